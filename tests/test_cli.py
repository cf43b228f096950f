"""Tests for command-line utilities."""

from json import loads
from typing import TYPE_CHECKING

from click.testing import CliRunner

from infragraph.__main__ import cli
from infragraph.manifest import ManifestDocument
from tests.examples.plugins import example

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_mock import MockType


def test_schema() -> None:
    """Verify printing of the manifest JSON Schema."""
    result = CliRunner().invoke(cli, ['schema', '--indent', '2'])

    assert result.exit_code == 0

    schema = loads(result.output)

    assert schema['title'] == 'infragraph manifest'
    assert schema['$schema'] == 'https://json-schema.org/draft/2020-12/schema'
    assert 'resources' in schema['properties']
    assert 'ManifestEntry' in schema['$defs']
    assert 'connectionString' in schema['$defs']['ManifestEntry']['properties']
    assert schema['$defs'] == ManifestDocument.model_json_schema(by_alias=True)['$defs']


def test_plugins(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Verify listing of bound kinds."""
    patch_entrypoints(example)

    result = CliRunner().invoke(cli, ['plugins'])

    assert result.exit_code == 0
    assert result.output.splitlines() == [
        'provisioner\tbicep',
        'provisioner\tchild',
        'provisioner\tcontainer',
        'provisioner\tparameter',
        'provisioner\tproject',
        'enumerator\tsql',
    ]


def test_plugins_strict(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Verify failing on plugin issues with strict mode."""
    patch_entrypoints({})

    result = CliRunner().invoke(cli, ['plugins', '--strict'])

    assert result.exit_code != 0
    assert 'object is not a plugin' in str(result.exception)
