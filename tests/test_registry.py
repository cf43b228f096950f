"""Tests for provisioner registration and plugin loading."""

from typing import TYPE_CHECKING

import pydantic
import pytest

from infragraph.errors import PluginError, PluginWarning, UnsupportedKindError
from infragraph.extensions import Plugin, ProvisionerBinding
from infragraph.provisioning import ProvisionerRegistry
from infragraph.provisioning.registry import iter_kinds
from infragraph.resources import (
    CloudRedisResource,
    CosmosDBResource,
    DatabaseResource,
    ParameterResource,
    ProjectResource,
    RedisResource,
    Resource,
    SqlServerResource,
    StorageServiceResource,
    TemplateResource,
)
from tests.examples.plugins import example, templates
from tests.examples.provisioners import RecordingProvisioner, make_enumerator

if TYPE_CHECKING:
    from collections.abc import Callable

if TYPE_CHECKING:
    from pytest_mock import MockType


@pytest.mark.parametrize('resource, kinds', (
    pytest.param(ParameterResource('usr'), ['parameter', 'resource'], id='parameter'),
    pytest.param(RedisResource('cache'), ['redis', 'container', 'resource'], id='container'),
    pytest.param(CloudRedisResource('cache'), ['redis.cloud', 'bicep', 'resource'], id='cloud'),
    pytest.param(
        DatabaseResource('db', Resource('server')),
        ['database', 'child', 'resource'],
        id='database',
    ),
))
def test_iter_kinds(resource: Resource, kinds: list[str]) -> None:
    """Verify that kinds follow the resource class hierarchy."""
    assert list(iter_kinds(resource)) == kinds


def test_builtin_provisioners(registry: ProvisionerRegistry) -> None:
    """Verify provisioners registered by default."""
    assert registry.kinds() == ['child', 'container', 'parameter', 'project']
    assert registry.enumerators == {}

    for resource in (
        ParameterResource('usr'),
        RedisResource('cache'),
        DatabaseResource('db', Resource('server')),
        StorageServiceResource('blobs', Resource('storage'), 'blob'),  # type: ignore[arg-type]
        ProjectResource('api', 'api'),
    ):
        assert registry.provisioner_for(resource) is not None


def test_without_builtins() -> None:
    """Verify a registry without built-in provisioners."""
    registry = ProvisionerRegistry(builtins=False)

    with pytest.raises(UnsupportedKindError, match=r"^No provisioner is registered for kind 'parameter'") as error:
        registry.provisioner_for(ParameterResource('usr'))

    assert error.value.resource == 'usr'
    assert error.value.context['kind'] == 'parameter'

    registry.clear_plugins()

    assert registry.kinds() == []


def test_unsupported_kind(registry: ProvisionerRegistry) -> None:
    """Verify that template kinds need a plugin."""
    with pytest.raises(UnsupportedKindError, match=r"kind 'cosmosdb'"):
        registry.provisioner_for(CosmosDBResource('cosmos'))


def test_base_kind_serves_subclasses(registry: ProvisionerRegistry) -> None:
    """Verify that a provisioner bound to a base kind serves its subclasses."""
    generic = RecordingProvisioner()
    specific = RecordingProvisioner()

    registry.add_provisioner('bicep', generic)

    assert registry.provisioner_for(TemplateResource('templ', template_string='content')) is generic
    assert registry.provisioner_for(CosmosDBResource('cosmos')) is generic

    registry.add_provisioner('cosmosdb', specific)

    assert registry.provisioner_for(CosmosDBResource('cosmos')) is specific
    assert registry.provisioner_for(SqlServerResource('sql')) is generic


def test_enumerator_for(registry: ProvisionerRegistry) -> None:
    """Verify selection of enumerators."""
    enumerator = make_enumerator('sql')
    registry.add_enumerator(enumerator)

    assert registry.enumerator_for(SqlServerResource('sql')) is enumerator
    assert registry.enumerator_for(CosmosDBResource('cosmos')) is None


def test_invalid_provisioner(registry: ProvisionerRegistry) -> None:
    """Verify validation of provisioner bindings."""
    with pytest.raises(pydantic.ValidationError):
        registry.add_provisioner('bicep', object())  # type: ignore[arg-type]

    with pytest.raises(pydantic.ValidationError):
        registry.add_provisioner('Invalid Kind', RecordingProvisioner())


def test_shadowing_warns(registry: ProvisionerRegistry) -> None:
    """Verify that a shadowing registration wins with a warning."""
    provisioner = RecordingProvisioner()

    message = r"^Provisioner for 'parameter' from 'tests.examples.provisioners' is shadowing an existing"
    with pytest.warns(PluginWarning, match=message):
        registry.add_provisioner('parameter', provisioner)

    assert registry.provisioner_for(ParameterResource('usr')) is provisioner

    registry.add_enumerator(make_enumerator('sql'))
    with pytest.warns(PluginWarning, match=r"^Enumerator for 'sql'"):
        registry.add_enumerator(make_enumerator('sql'))


def test_shadowing_fails_on_strict_mode() -> None:
    """Verify that a shadowing registration fails with strict mode."""
    registry = ProvisionerRegistry(strict=True)
    builtin = registry.provisioner_for(ParameterResource('usr'))

    with pytest.raises(PluginError, match=r'is shadowing an existing$'):
        registry.add_provisioner('parameter', RecordingProvisioner())

    assert registry.provisioner_for(ParameterResource('usr')) is builtin


def test_load_plugins(patch_entrypoints: 'Callable[..., MockType]',
                      registry: ProvisionerRegistry) -> None:
    """Verify registration of plugin bindings from entrypoints."""
    patch_entrypoints(example)

    registry.load_plugins()

    assert registry.kinds() == ['bicep', 'child', 'container', 'parameter', 'project']
    assert registry.provisioner_for(CosmosDBResource('cosmos')) is templates
    assert registry.enumerator_for(SqlServerResource('sql')) is example.enumerators[0]

    registry.clear_plugins()

    assert 'bicep' not in registry.provisioners
    assert registry.enumerators == {}


def test_load_plugins_twice(patch_entrypoints: 'Callable[..., MockType]',
                            registry: ProvisionerRegistry) -> None:
    """Verify that loading the same plugin again shadows its bindings."""
    patch_entrypoints(example)
    registry.load_plugins()

    with pytest.warns(PluginWarning, match=r"from 'tests.examples.plugins:example' is shadowing"):
        registry.load_plugins()


def test_loading_with_empty_plugin(patch_entrypoints: 'Callable[..., MockType]',
                                   registry: ProvisionerRegistry) -> None:
    """Verify behavior when plugins provide no bindings."""
    patch_entrypoints(Plugin(name='empty'))

    registry.load_plugins()

    assert registry.kinds() == ['child', 'container', 'parameter', 'project']


def test_loading_without_entrypoints(patch_entrypoints: 'Callable[..., MockType]',
                                     registry: ProvisionerRegistry) -> None:
    """Verify behavior when no plugin is installed."""
    patch_entrypoints()

    registry.load_plugins()

    assert registry.kinds() == ['child', 'container', 'parameter', 'project']


def test_loading_skip_with_failed_entrypoint(patch_entrypoints: 'Callable[..., MockType]',
                                             registry: ProvisionerRegistry) -> None:
    """Verify skipping of plugins that fail during loading."""
    patch_entrypoints(None, raises=SyntaxError)

    with pytest.warns(PluginWarning, match=r"^Failed to load entrypoint 'tests'"):
        registry.load_plugins()


def test_loading_fail_with_failed_entrypoint(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Verify failing of plugins that fail during loading with strict mode."""
    patch_entrypoints(None, raises=SyntaxError)

    with pytest.raises(PluginError, match=r'^Failed to load entrypoint') as error:
        ProvisionerRegistry(strict=True).load_plugins()

    assert error.value.entrypoint is not None
    assert error.value.entrypoint.value == 'tests.examples.plugins:example'


def test_loading_skip_with_not_valid_entrypoint(patch_entrypoints: 'Callable[..., MockType]',
                                                registry: ProvisionerRegistry) -> None:
    """Verify skipping of plugins that fail validation during loading."""
    try:
        Plugin(name='invalid', provisioners=[ProvisionerBinding(kind='bicep', provisioner=object())])
    except pydantic.ValidationError as exception:
        error = exception

    patch_entrypoints(None, raises=error)

    with pytest.warns(PluginWarning, match=r'^Failed to validate entrypoint'):
        registry.load_plugins()


def test_loading_fail_with_not_valid_entrypoint(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Verify failing of plugins that fail validation during loading with strict mode."""
    try:
        pydantic.TypeAdapter(int).validate_python('error')
    except pydantic.ValidationError as exception:
        error = exception

    patch_entrypoints(None, raises=error)

    with pytest.raises(PluginError, match=r'^Failed to validate entrypoint'):
        ProvisionerRegistry(strict=True).load_plugins()


def test_loading_skip_with_invalid_plugin(patch_entrypoints: 'Callable[..., MockType]',
                                          registry: ProvisionerRegistry) -> None:
    """Verify handling of objects that are not plugins."""
    patch_entrypoints({})

    with pytest.warns(PluginWarning, match=r'object is not a plugin$'):
        registry.load_plugins()


def test_loading_fail_with_invalid_plugin(patch_entrypoints: 'Callable[..., MockType]') -> None:
    """Verify failing on objects that are not plugins with strict mode."""
    patch_entrypoints({})

    with pytest.raises(PluginError, match=r'object is not a plugin$'):
        ProvisionerRegistry(strict=True).load_plugins()
