"""Tests configurations and fixtures."""

from importlib.metadata import EntryPoint, EntryPoints
from typing import TYPE_CHECKING

import pytest

from infragraph.graph import ResourceGraph
from infragraph.manifest import ManifestContext
from infragraph.provisioning import ProvisionerRegistry
from infragraph.settings import ProvisionerSettings

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

if TYPE_CHECKING:
    from pytest_mock import MockerFixture, MockType

if TYPE_CHECKING:
    from infragraph.extensions import Plugin


@pytest.fixture
def graph() -> ResourceGraph:
    """Provide an empty resource graph."""
    return ResourceGraph()


@pytest.fixture
def registry() -> ProvisionerRegistry:
    """Provide a registry with the built-in provisioners only.

    Plugins installed in the environment are never loaded, so tests
    control every registered binding.
    """
    return ProvisionerRegistry()


@pytest.fixture
def settings() -> ProvisionerSettings:
    """Provide settings independent of `INFRAGRAPH_*` variables."""
    return ProvisionerSettings(
        resource_group='rg-tests',
        max_workers=2,
        identity_tag='infragraph-resource-name',
        strict_plugins=False,
    )


@pytest.fixture
def manifest_context(tmp_path: 'Path') -> ManifestContext:
    """Provide a manifest context writing side files to a temporary directory."""
    return ManifestContext(tmp_path)


@pytest.fixture
def patch_entrypoints(mocker: 'MockerFixture') -> 'Callable[..., MockType]':
    """Provide a factory for mocking `importlib.metadata.entry_points`.

    Returns a callable that patches `entry_points()` to simulate
    discovery of plugins in the `infragraph_provisioners` entry point
    group.

    The returned factory allows configuring:
    - a successfully loadable plugin,
    - or an exception raised during plugin loading,
    - or an empty entry point list.
    """
    def patch(*plugins: 'Plugin | None', raises: Exception | type[Exception] | None = None) -> 'MockType':
        """Patch `entry_points` with a controlled plugin configuration.

        Args:
            plugins: Objects to be returned by `EntryPoint.load()`.
                If empty, no entry points are registered.
            raises: Exception to raise when `EntryPoint.load()` is called.

        Returns:
            A mock patch object replacing `importlib.metadata.entry_points`
            for the duration of the test.
        """
        entrypoints = []
        for plugin in plugins:
            ep = mocker.Mock(spec=EntryPoint)
            ep.group = 'infragraph_provisioners'
            ep.name = 'tests'
            ep.value = 'tests.examples.plugins:example'
            ep.load.return_value = plugin
            if raises is not None:
                ep.load.side_effect = raises
            entrypoints.append(ep)

        return mocker.patch(
            'importlib.metadata.entry_points',
            return_value=EntryPoints(entrypoints),
        )

    return patch
