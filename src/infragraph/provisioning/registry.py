"""Registry of provisioners and enumerators.

This module maps resource kinds to the provisioner creating them and
to the enumerator listing their existing external objects. Built-in
provisioners are registered first; cloud bindings are discovered from
plugins exposed via Python entry points.

Individual plugin failures and shadowed registrations emit warnings
and do not interrupt loading unless strict mode is enabled.
"""

import logging
from typing import TYPE_CHECKING
from warnings import warn

from pydantic import ValidationError

from infragraph.builtins import provisioners as builtin_provisioners
from infragraph.errors import PluginError, PluginWarning, UnsupportedKindError
from infragraph.extensions import Plugin, ProvisionerBinding, ResourceEnumerator

if TYPE_CHECKING:
    from collections.abc import Iterator
    from importlib.metadata import EntryPoint

if TYPE_CHECKING:
    from infragraph.extensions import ResourceProvisioner
    from infragraph.resources import Resource

#: Entry point group of provisioner plugins.
PLUGINS_GROUP = 'infragraph_provisioners'

#: Bindings registered by every registry unless disabled.
BUILTIN_BINDINGS = (
    builtin_provisioners.parameter,
    builtin_provisioners.container,
    builtin_provisioners.child,
    builtin_provisioners.project,
)

logger = logging.getLogger(__name__)


def iter_kinds(resource: 'Resource') -> 'Iterator[str]':
    """Yield the kinds of a resource from the most specific one.

    The resource class hierarchy is walked, so a binding registered for
    a base kind also serves its subclasses.
    """
    for cls in type(resource).__mro__:
        if kind := vars(cls).get('kind'):
            yield kind


class ProvisionerRegistry:
    """Mapping of resource kinds to provisioners and enumerators.

    Attributes:
        strict_mode: If True, any plugin loading issue or shadowed
            registration raises an error. If False, issues are emitted
            as warnings and the later registration wins.
        provisioners: Provisioners keyed by resource kind.
        enumerators: Enumerators keyed by resource kind.
    """

    def __init__(self, strict: bool = False, builtins: bool = True) -> None:
        """Initialize a registry.

        Args:
            strict: Whether registration issues raise errors.
            builtins: Whether to register the built-in provisioners.
        """
        self.strict_mode = strict
        self.builtins = builtins

        self.provisioners: dict[str, ResourceProvisioner] = {}
        self.enumerators: dict[str, ResourceEnumerator] = {}

        self.clear_plugins()

    def add_provisioner(self, kind: str, provisioner: 'ResourceProvisioner',
                        entrypoint: 'EntryPoint | None' = None) -> None:
        """Register a provisioner for a resource kind.

        Args:
            kind: Resource kind handled by the provisioner.
            provisioner: Provisioner implementation.
            entrypoint: Entry point from which the provisioner was
                loaded, if applicable. Used for diagnostics.

        Raises:
            PluginError: If the kind is already bound on strict mode.
        """
        binding = ProvisionerBinding(kind=kind, provisioner=provisioner)

        if binding.kind in self.provisioners and (error := self.emit_plugin_issue(
            f'Provisioner for {kind!r} from {self._source(provisioner, entrypoint)!r} '
            'is shadowing an existing',
            entrypoint,
        )):
            raise error

        self.provisioners[binding.kind] = binding.provisioner

    def add_enumerator(self, enumerator: ResourceEnumerator,
                       entrypoint: 'EntryPoint | None' = None) -> None:
        """Register an enumerator for its resource kind.

        Args:
            enumerator: Enumerator definition.
            entrypoint: Entry point from which the enumerator was
                loaded, if applicable. Used for diagnostics.

        Raises:
            PluginError: If the kind is already bound on strict mode.
        """
        if enumerator.kind in self.enumerators and (error := self.emit_plugin_issue(
            f'Enumerator for {enumerator.kind!r} from '
            f'{self._source(enumerator.list_objects, entrypoint)!r} is shadowing an existing',
            entrypoint,
        )):
            raise error

        self.enumerators[enumerator.kind] = enumerator

    def provisioner_for(self, resource: 'Resource') -> 'ResourceProvisioner':
        """Select the provisioner of a resource.

        Raises:
            UnsupportedKindError: If no kind of the resource is bound.
        """
        for kind in iter_kinds(resource):
            if provisioner := self.provisioners.get(kind):
                return provisioner

        raise UnsupportedKindError(
            f'No provisioner is registered for kind {resource.kind!r}',
            resource=resource.name,
            context={'kind': resource.kind},
        )

    def enumerator_for(self, resource: 'Resource') -> ResourceEnumerator | None:
        """Select the enumerator of a resource, if any.

        Kinds without an enumerator are always created, never adopted.
        """
        for kind in iter_kinds(resource):
            if enumerator := self.enumerators.get(kind):
                return enumerator

        return None

    def kinds(self) -> list[str]:
        """Kinds with a registered provisioner, sorted."""
        return sorted(self.provisioners)

    @staticmethod
    def _source(item: object, entrypoint: 'EntryPoint | None' = None) -> str:
        """Resolve the display name of a registration source."""
        if entrypoint is not None:
            return entrypoint.value

        return getattr(item, '__module__', None) or type(item).__module__

    def emit_plugin_issue(self, message: str,
                          entrypoint: 'EntryPoint | None' = None) -> Exception | None:
        """Emit a plugin warning or return the exception.

        Args:
            message: Warning message to emit.
            entrypoint: Entry point from which the binding was loaded,
                if applicable.

        Returns:
            PluginError on strict mode, otherwise `None`
                with producing a PluginWarning.
        """
        if self.strict_mode:
            return PluginError(message, entrypoint=entrypoint)

        warn(message, category=PluginWarning, stacklevel=2)

        return None

    def _load_plugin(self, entrypoint: 'EntryPoint') -> None:
        """Load and register a single plugin entry point.

        Args:
            entrypoint: Entry point describing the plugin to load.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        try:
            plugin = entrypoint.load()

        except ValidationError as base:
            if error := self.emit_plugin_issue(
                f'Failed to validate entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        except Exception as base:
            if error := self.emit_plugin_issue(
                f'Failed to load entrypoint {entrypoint.name!r}',
                entrypoint,
            ):
                raise error from base
            return None

        if not isinstance(plugin, Plugin):
            if error := self.emit_plugin_issue(
                f'Loaded from entrypoint {entrypoint.name!r} object is not a plugin',
                entrypoint,
            ):
                raise error
            return None

        for binding in plugin.provisioners:
            self.add_provisioner(binding.kind, binding.provisioner, entrypoint)

        for enumerator in plugin.enumerators:
            self.add_enumerator(enumerator, entrypoint)

        logger.debug(
            'Loaded plugin %r: %d provisioners, %d enumerators',
            plugin.name,
            len(plugin.provisioners),
            len(plugin.enumerators),
        )

        return None

    def clear_plugins(self) -> None:
        """Drop every registration except the built-in provisioners."""
        self.provisioners = {
            binding.kind: binding.provisioner
            for binding in BUILTIN_BINDINGS
            if self.builtins
        }
        self.enumerators = {}

    def load_plugins(self) -> None:
        """Load plugins via entry points and register their bindings.

        Discovers plugins from the `infragraph_provisioners` entry point
        group.

        Raises:
            PluginError: If any loading issues occur on strict mode.
        """
        from importlib.metadata import entry_points  # noqa: PLC0415

        for entrypoint in entry_points().select(group=PLUGINS_GROUP):
            self._load_plugin(entrypoint)
