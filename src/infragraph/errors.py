"""Errors and warnings raised by infragraph.

This module defines the error and warning types used across the library
to report configuration problems detected before any external call,
resolution of values whose targets are not provisioned yet, provisioning
and reconciliation failures, and plugin loading issues.

Every error carries the name of the offending resource and the phase
(declare, resolve, provision, enumerate) in which it was raised.
"""

from enum import StrEnum
from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from pydantic import SecretStr
from yaml import dump

from infragraph.values import MAPPINGS, SEQUENCES

if TYPE_CHECKING:
    from importlib.metadata import EntryPoint

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_SECRET = '******'
FORMAT_INDENT = 4

SNIPPET_SCALARS = (str, int, float, bool)


class Phase(StrEnum):
    """Stage of a run in which an error was raised."""

    DECLARE = 'declare'
    RESOLVE = 'resolve'
    PROVISION = 'provision'
    ENUMERATE = 'enumerate'


class ErrorContext(TypedDict, total=False):
    """Location and data attached to an error for formatting.

    Every field is optional; the formatter omits lines of missing
    values.
    """

    #: Name of the resource the error is reported against.
    resource: str | None
    #: Kind of the resource, when known.
    kind: str | None
    #: Phase of the run.
    phase: Phase | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Element associated with the error (a declaration snapshot).
    element: Any


class ErrorFormatter:
    """Utility class for formatting library errors.

    This formatter produces human-readable error messages with the
    resource location and an optional YAML snippet of the offending
    element. Secrets are masked in snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        location = cls.get_location_string(context, indent=FORMAT_INDENT)
        snippet = cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)
        if not location and not snippet:
            return message

        return f'{message}{linesep}{location}{snippet}'

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format resource and phase information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location line, or an empty string if neither
            a resource nor a phase is known.
        """
        indent = cls._ensure_indent(indent)

        resource = context.get('resource')
        phase = context.get('phase')
        if not resource and not phase:
            return ''

        parts = []
        if resource:
            part = f'for resource "{resource}"'
            if kind := context.get('kind'):
                part += f' (kind "{kind}")'
            parts.append(part)
        if phase:
            parts.append(f'during {phase}')

        return f'{indent}{", ".join(parts)}{linesep}'

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error element.

        Args:
            context: Error context containing the element.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no element is available.
        """
        indent = cls._ensure_indent(indent)

        if element := context.get('element'):
            snippet = f'{indent}{SNIPPET_ELLIPSIS}'
            snippet += cls._make_yaml(element, indent)
            snippet += linesep
            return snippet

        return ''

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Secrets are masked and non-scalar, non-container objects are
        replaced with a placeholder.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if isinstance(value, SecretStr):
            return FORMAT_SECRET

        if value is None or isinstance(value, SNIPPET_SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                str(key): cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a value to a YAML-formatted string.

        Args:
            value: Arbitrary value to serialize.
            indent: Optional indentation prefix.

        Returns:
            A YAML-formatted string representation of the value.
        """
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class PluginWarning(UserWarning):
    """Warning for plugin issues that do not stop loading.

    Used when a plugin cannot be loaded or shadows an existing
    registration, but the issue does not prevent further execution
    (non-strict mode).
    """


class InfraGraphError(Exception, ErrorFormatter):
    """Base exception for all infragraph errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 resource: str | None = None,
                 phase: Phase | None = None,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            resource: Name of the offending resource.
            phase: Phase of the run in which the error was raised.
            context: Additional error context.
        """
        self.message = message
        self.resource = resource
        self.phase = phase
        self.context = ErrorContext({
            **(context or {}),
            'resource': resource,
            'phase': phase,
        })

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)


class ConfigurationError(InfraGraphError):
    """Error raised for an invalid graph declaration.

    Configuration errors are fatal and are always detected before any
    external call is made.
    """

    def __init__(self, message: str, *,
                 resource: str | None = None,
                 phase: Phase | None = Phase.DECLARE,
                 context: ErrorContext | None = None) -> None:
        """Initialize a configuration error (declare phase by default)."""
        super().__init__(message, resource=resource, phase=phase, context=context)


class CycleError(ConfigurationError):
    """Error raised when reference edges form a cycle."""

    def __init__(self, cycle: list[str]) -> None:
        """Initialize a cycle error.

        Args:
            cycle: Names of the resources that could not be ordered.
        """
        self.cycle = cycle

        super().__init__(
            f'Cyclic references between resources: {", ".join(cycle)}',
            resource=cycle[0] if cycle else None,
        )


class ExpressionSyntaxError(ConfigurationError):
    """Error raised for a malformed placeholder in an expression."""


class UnsupportedKindError(ConfigurationError):
    """Error raised when no provisioner is registered for a resource kind."""


class UnknownResourceError(ConfigurationError):
    """Error raised when a reference names a resource absent from the graph."""


class RedirectionError(ConfigurationError):
    """Error raised for an invalid promotion of a local resource."""


class UnresolvedReferenceError(InfraGraphError):
    """Error raised when a referenced value is not available yet.

    This indicates that a value was resolved before its target was
    provisioned. It is never replaced by an empty default.
    """

    def __init__(self, message: str, *,
                 resource: str | None = None,
                 channel: str | None = None,
                 key: str | None = None) -> None:
        """Initialize an unresolved reference error.

        Args:
            message: Human-readable error description.
            resource: Name of the referenced resource.
            channel: Channel of the missing value.
            key: Key of the missing value.
        """
        self.channel = channel
        self.key = key

        super().__init__(message, resource=resource, phase=Phase.RESOLVE)


class ProvisioningFailure(InfraGraphError):
    """Error raised when an external create, deploy, or adopt call fails.

    Provisioning failures are reported per resource; independent
    resources keep provisioning.
    """

    def __init__(self, message: str, *,
                 resource: str | None = None,
                 phase: Phase | None = Phase.PROVISION,
                 context: ErrorContext | None = None) -> None:
        """Initialize a provisioning failure (provision phase by default)."""
        super().__init__(message, resource=resource, phase=phase, context=context)


class DependencyFailure(ProvisioningFailure):
    """Error reported for a resource skipped because a dependency failed."""

    def __init__(self, resource: str, dependency: str) -> None:
        """Initialize a dependency failure.

        Args:
            resource: Name of the skipped resource.
            dependency: Name of the dependency that was not provisioned.
        """
        self.dependency = dependency

        super().__init__(
            f'Dependency {dependency!r} was not provisioned',
            resource=resource,
        )


class ProvisioningCancelled(ProvisioningFailure):
    """Error reported for a resource interrupted by run cancellation."""


class ReconciliationAmbiguity(InfraGraphError):
    """Error raised when several external objects match one identity tag.

    The resource is never adopted in this case: guessing which object to
    reuse could bind the graph to the wrong infrastructure.
    """

    def __init__(self, message: str, *,
                 resource: str | None = None,
                 matches: int = 0) -> None:
        """Initialize a reconciliation ambiguity.

        Args:
            message: Human-readable error description.
            resource: Name of the resource being reconciled.
            matches: Number of matching external objects.
        """
        self.matches = matches

        super().__init__(message, resource=resource, phase=Phase.ENUMERATE)


class PluginError(InfraGraphError):
    """Error raised for plugin issues on strict mode.

    Raised when an entry point can not be loaded as a plugin, or when a
    binding shadows an existing registration.
    """

    def __init__(self, message: str, *,
                 entrypoint: 'EntryPoint | None' = None) -> None:
        """Initialize a plugin error.

        Args:
            message: Human-readable error description.
            entrypoint: Optional plugin entry point associated with the error.
        """
        self.entrypoint = entrypoint

        super().__init__(message)
