"""Core value definitions for resource parameters.

This module defines the tagged union used for resource parameters. It
distinguishes between values known at declaration time (literals,
secrets, and structures built from them), values computed lazily by a
callback, and references to values that only exist once another
resource has been provisioned.

It also provides utilities for recursively normalizing arbitrary
runtime objects into strict values and for walking the references a
value carries.
"""

from collections.abc import Callable, Iterator
from enum import StrEnum
from typing import Annotated, Any, Literal, Protocol, runtime_checkable

from pydantic import Field, SecretStr

from infragraph.models import SchemaModel
from infragraph.names import OutputKey, ResourceName

#: A value in runtime represents any Python object passed by declaration
#: code (strings, numbers, lists, dicts, callables, resources) prior to
#: normalization into a strict `Value`.
type RuntimeValue = Any

#: A resolved value is what a resolver produces: plain strings and
#: structures of strings, ready to be passed to an external call.
type ResolvedValue = str | list[ResolvedValue] | dict[str, ResolvedValue]

MAPPINGS = (dict,)
SCALARS = (str, int, float)
SEQUENCES = (list, tuple)


class Channel(StrEnum):
    """Output channel of a provisioned resource."""

    OUTPUTS = 'outputs'
    SECRET_OUTPUTS = 'secretOutputs'


class LiteralValue(SchemaModel):
    """Plain string known at declaration time."""

    kind: Literal['literal'] = 'literal'

    value: str = Field(
        title='Literal value',
        description='String value passed as is.',
    )


class SecretValue(SchemaModel):
    """Secret string known at declaration time.

    Secrecy is a classification flag only: the value resolves like a
    literal, but manifests and error snippets never render it.
    """

    kind: Literal['secret'] = 'secret'

    value: SecretStr = Field(
        title='Secret value',
        description='String value restricted to secret channels.',
    )


class ListValue(SchemaModel):
    """Ordered sequence of values."""

    kind: Literal['list'] = 'list'

    items: tuple['Value', ...] = Field(
        default=(),
        title='Items',
        description='Items resolved recursively in declaration order.',
    )


class ObjectValue(SchemaModel):
    """Mapping of string keys to values."""

    kind: Literal['object'] = 'object'

    members: dict[str, 'Value'] = Field(
        default_factory=dict,
        title='Members',
        description='Members resolved recursively, preserving key order.',
    )


class DeferredValue(SchemaModel):
    """Value produced by a callback at resolution time.

    The callback is invoked on every evaluation and its result is never
    cached, so declarations made after the deferred value was created
    (for example, databases added to a server) are always visible.
    """

    kind: Literal['deferred'] = 'deferred'

    callback: Callable[[], RuntimeValue] = Field(
        title='Callback',
        description='Callable returning a runtime value to normalize.',
    )

    def evaluate(self) -> 'Value':
        """Invoke the callback and normalize its result."""
        return normalize(self.callback())


class OutputReference(SchemaModel):
    """Reference to an output or secret output of another resource."""

    kind: Literal['output'] = 'output'

    resource: ResourceName
    channel: Channel = Channel.OUTPUTS
    key: OutputKey

    @property
    def expression(self) -> str:
        """Placeholder form of the reference."""
        return f'{{{self.resource}.{self.channel}.{self.key}}}'


class ParameterReference(SchemaModel):
    """Reference to the value of a parameter resource."""

    kind: Literal['parameter'] = 'parameter'

    resource: ResourceName

    @property
    def expression(self) -> str:
        """Placeholder form of the reference."""
        return f'{{{self.resource}.value}}'


class ConnectionStringReference(SchemaModel):
    """Reference to the connection string of another resource."""

    kind: Literal['connectionString'] = 'connectionString'

    resource: ResourceName

    @property
    def expression(self) -> str:
        """Placeholder form of the reference."""
        return f'{{{self.resource}.connectionString}}'


#: A value is any member of the tagged union. References and deferred
#: callbacks make a value partially known until resolution.
Value = Annotated[
    LiteralValue
    | SecretValue
    | ListValue
    | ObjectValue
    | DeferredValue
    | OutputReference
    | ParameterReference
    | ConnectionStringReference,
    Field(discriminator='kind'),
]

type Reference = OutputReference | ParameterReference | ConnectionStringReference

REFERENCES = (OutputReference, ParameterReference, ConnectionStringReference)
VALUES = (
    LiteralValue,
    SecretValue,
    ListValue,
    ObjectValue,
    DeferredValue,
    *REFERENCES,
)

ListValue.model_rebuild()
ObjectValue.model_rebuild()


@runtime_checkable
class ValueSource(Protocol):
    """Object that can stand for a value, such as a resource."""

    def as_value(self) -> Value:
        """Return the value representing this object."""
        ...  # pragma: no cover


def _normalize_key(value: RuntimeValue) -> str:
    """Validate and normalize a mapping key.

    Args:
        value: Candidate mapping key.

    Returns:
        The validated key as a string.

    Raises:
        TypeError: If the provided key is not a string.
    """
    if not isinstance(value, str):
        raise TypeError(f'Can not use {value!r} as mapping key')

    return value


def normalize(value: RuntimeValue) -> Value:
    """Recursively normalize a runtime value into a `Value`.

    Strings and numbers become literals (booleans are rendered as
    `true`/`false`), `SecretStr` becomes a secret, lists and tuples
    become lists, dictionaries become objects, resources stand for
    their reference, and any other callable becomes a deferred value.
    Callables are not invoked here.

    Args:
        value: Runtime value to normalize.

    Returns:
        A strict value.

    Raises:
        TypeError: If the value type is unsupported.
    """
    if isinstance(value, VALUES):
        return value

    if isinstance(value, SecretStr):
        return SecretValue(value=value)

    if isinstance(value, bool):
        return LiteralValue(value='true' if value else 'false')

    if isinstance(value, SCALARS):
        return LiteralValue(value=str(value))

    if isinstance(value, MAPPINGS):
        return ObjectValue(members={
            _normalize_key(key): normalize(item)
            for key, item in value.items()
        })

    if isinstance(value, SEQUENCES):
        return ListValue(items=tuple(
            normalize(item)
            for item in value
        ))

    if isinstance(value, ValueSource):
        return value.as_value()

    if callable(value):
        return DeferredValue(callback=value)

    raise TypeError(f'{value!r} has unsupported type')


def iter_references(value: Value) -> Iterator[Reference]:
    """Yield every reference carried by a value.

    Deferred values are evaluated to discover the references they
    produce; the callback may therefore be invoked more than once
    during a run.

    Args:
        value: Value to walk.

    Yields:
        References in depth-first declaration order.
    """
    if isinstance(value, REFERENCES):
        yield value

    elif isinstance(value, ListValue):
        for item in value.items:
            yield from iter_references(item)

    elif isinstance(value, ObjectValue):
        for item in value.members.values():
            yield from iter_references(item)

    elif isinstance(value, DeferredValue):
        yield from iter_references(value.evaluate())


def has_secret(value: Value) -> bool:
    """Check whether a value embeds a secret literal.

    References are not inspected: they render as placeholders and never
    expose the referenced value.

    Args:
        value: Value to inspect.

    Returns:
        True if any nested member is a `SecretValue`.
    """
    if isinstance(value, SecretValue):
        return True

    if isinstance(value, ListValue):
        return any(has_secret(item) for item in value.items)

    if isinstance(value, ObjectValue):
        return any(has_secret(item) for item in value.members.values())

    if isinstance(value, DeferredValue):
        return has_secret(value.evaluate())

    return False
