"""Expression parsing and value resolution.

This module converts values and connection-string expression templates
into concrete strings once the outputs they reference exist.

Templates use the placeholder grammar:

- `{name.outputs.key}` and `{name.secretOutputs.key}` for provisioned
  outputs;
- `{name.value}` for the value of a parameter resource;
- `{name.connectionString}` for the connection string of a resource;
- `{name.secretParameters.key}` for a secret parameter written to a
  manifest as a placeholder instead of plaintext.

Resolution is a pure function of the current outputs: it never blocks
and never defaults a missing output to an empty string.
"""

from enum import StrEnum
from typing import TYPE_CHECKING, Self

from pydantic import model_validator

from infragraph.errors import ExpressionSyntaxError, Phase, UnknownResourceError, UnresolvedReferenceError
from infragraph.models import SchemaModel
from infragraph.names import PLACEHOLDER_PATTERN, TOKEN_PATTERN, OutputKey, ResourceName
from infragraph.values import (
    REFERENCES,
    Channel,
    ConnectionStringReference,
    DeferredValue,
    ListValue,
    LiteralValue,
    ObjectValue,
    OutputReference,
    ParameterReference,
    SecretValue,
    has_secret,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from re import Match

if TYPE_CHECKING:
    from infragraph.resources import Resource
    from infragraph.values import ResolvedValue, Value

#: Rendered manifest value: strings, lists, and objects of placeholders.
type RenderedValue = str | list[RenderedValue] | dict[str, RenderedValue]


class TokenChannel(StrEnum):
    """Channel named by a placeholder."""

    OUTPUTS = 'outputs'
    SECRET_OUTPUTS = 'secretOutputs'
    SECRET_PARAMETERS = 'secretParameters'
    VALUE = 'value'
    CONNECTION_STRING = 'connectionString'


#: Channels addressing a keyed value.
KEYED_CHANNELS = frozenset((
    TokenChannel.OUTPUTS,
    TokenChannel.SECRET_OUTPUTS,
    TokenChannel.SECRET_PARAMETERS,
))


class Token(SchemaModel):
    """Placeholder located in an expression template."""

    resource: ResourceName
    channel: TokenChannel
    key: OutputKey | None = None

    #: Offsets of the placeholder (braces included) in the template.
    start: int
    end: int

    @model_validator(mode='after')
    def check_key(self) -> Self:
        """Check that a key is present exactly for keyed channels.

        Raises:
            ValueError: If a keyed channel has no key, or another
                channel has one.
        """
        if (self.channel in KEYED_CHANNELS) != (self.key is not None):
            raise ValueError(f'channel {self.channel!r} does not match key {self.key!r}')

        return self

    @property
    def placeholder(self) -> str:
        """Source text of the placeholder."""
        if self.key is None:
            return f'{{{self.resource}.{self.channel}}}'

        return f'{{{self.resource}.{self.channel}.{self.key}}}'


def _check_literal(text: str, template: str) -> None:
    """Reject stray braces outside well-formed placeholders."""
    if '{' in text or '}' in text:
        raise ExpressionSyntaxError(f'Unbalanced brace in expression {template!r}')


def _parse_token(match: 'Match[str]', template: str) -> Token:
    """Build a token from a placeholder match.

    Raises:
        ExpressionSyntaxError: If the placeholder body is malformed.
    """
    body = match.group('body')
    parts = TOKEN_PATTERN.match(body)
    if parts is None:
        raise ExpressionSyntaxError(f'Malformed placeholder {match.group(0)!r} in expression {template!r}')

    try:
        channel = TokenChannel(parts.group('channel'))
        key = parts.group('key')
        if (channel in KEYED_CHANNELS) != (key is not None):
            raise ValueError(channel)

    except ValueError as base:
        raise ExpressionSyntaxError(
            f'Malformed placeholder {match.group(0)!r} in expression {template!r}',
        ) from base

    return Token(
        resource=parts.group('resource'),
        channel=channel,
        key=key,
        start=match.start(),
        end=match.end(),
    )


def parse(template: str) -> list[Token]:
    """Locate and validate every placeholder of a template.

    Args:
        template: Expression template.

    Returns:
        Tokens in order of appearance; empty if the template has none.

    Raises:
        ExpressionSyntaxError: If a placeholder is malformed or a brace
            is not part of a placeholder.
    """
    tokens = []
    position = 0

    for match in PLACEHOLDER_PATTERN.finditer(template):
        _check_literal(template[position:match.start()], template)
        tokens.append(_parse_token(match, template))
        position = match.end()

    _check_literal(template[position:], template)

    return tokens


class Resolver:
    """Resolver of values and expressions against a set of resources.

    The resolver looks resources up by name. A local resource redirected
    to a cloud counterpart resolves through the counterpart, so the
    same placeholders work in both modes.
    """

    def __init__(self, resources: 'Mapping[str, Resource]') -> None:
        """Initialize the resolver.

        Args:
            resources: Mapping of resource names to resources, usually
                a `ResourceGraph`.
        """
        self.resources = resources

    def lookup(self, name: str) -> 'Resource':
        """Find the effective resource for a name.

        Raises:
            UnknownResourceError: If no resource has this name.
        """
        try:
            resource = self.resources[name]
        except KeyError:
            raise UnknownResourceError(
                f'Reference to unknown resource {name!r}',
                resource=name,
                phase=Phase.RESOLVE,
            ) from None

        return resource.effective_resource()

    def read_output(self, name: str, channel: Channel | str, key: str) -> str:
        """Read a provisioned output.

        Args:
            name: Name of the resource.
            channel: Output channel.
            key: Output key.

        Returns:
            The stored output string.

        Raises:
            UnresolvedReferenceError: If the output is not written yet.
        """
        resource = self.lookup(name)
        source = (
            resource.secret_outputs
            if channel == Channel.SECRET_OUTPUTS
            else resource.outputs
        )

        if key not in source:
            raise UnresolvedReferenceError(
                f'Output "{channel}.{key}" of resource {name!r} is not yet available',
                resource=name,
                channel=str(channel),
                key=key,
            )

        return source[key]

    def read_parameter(self, name: str, key: str) -> str:
        """Read a parameter of a resource as a string.

        Raises:
            UnresolvedReferenceError: If the parameter is not declared
                or does not resolve to a string.
        """
        resource = self.lookup(name)
        if key not in resource.parameters:
            raise UnresolvedReferenceError(
                f'Parameter {key!r} of resource {name!r} is not declared',
                resource=name,
                channel=TokenChannel.SECRET_PARAMETERS,
                key=key,
            )

        value = self.resolve(resource.parameters[key])
        if not isinstance(value, str):
            raise UnresolvedReferenceError(
                f'Parameter {key!r} of resource {name!r} is not a string',
                resource=name,
                channel=TokenChannel.SECRET_PARAMETERS,
                key=key,
            )

        return value

    def resolve_token(self, token: Token) -> str:
        """Resolve a single placeholder."""
        match token.channel:
            case TokenChannel.OUTPUTS | TokenChannel.SECRET_OUTPUTS:
                return self.read_output(token.resource, token.channel, token.key or '')
            case TokenChannel.SECRET_PARAMETERS:
                return self.read_parameter(token.resource, token.key or '')
            case TokenChannel.VALUE:
                return self.lookup(token.resource).get_value()
            case TokenChannel.CONNECTION_STRING:
                return self.lookup(token.resource).get_connection_string()

        raise ExpressionSyntaxError(f'Unsupported placeholder {token.placeholder!r}')  # pragma: no cover

    def resolve_expression(self, template: str) -> str:
        """Substitute every placeholder of a template.

        Args:
            template: Expression template.

        Returns:
            The template with placeholders replaced verbatim, or the
            template itself when it has no placeholder.

        Raises:
            ExpressionSyntaxError: If the template is malformed.
            UnresolvedReferenceError: If a referenced value is missing.
        """
        tokens = parse(template)
        if not tokens:
            return template

        parts = []
        position = 0
        for token in tokens:
            parts.append(template[position:token.start])
            parts.append(self.resolve_token(token))
            position = token.end
        parts.append(template[position:])

        return ''.join(parts)

    def resolve(self, value: 'Value') -> 'ResolvedValue':
        """Resolve a value into strings and structures of strings.

        Args:
            value: A value to resolve.

        Returns:
            A fully resolved value.

        Raises:
            UnresolvedReferenceError: If a referenced value is missing.
            Any exception raised by deferred callbacks.
        """
        if isinstance(value, LiteralValue):
            return value.value

        if isinstance(value, SecretValue):
            return value.value.get_secret_value()

        if isinstance(value, ListValue):
            return [self.resolve(item) for item in value.items]

        if isinstance(value, ObjectValue):
            return {
                key: self.resolve(item)
                for key, item in value.members.items()
            }

        if isinstance(value, DeferredValue):
            return self.resolve(value.evaluate())

        if isinstance(value, OutputReference):
            return self.read_output(value.resource, value.channel, value.key)

        if isinstance(value, ParameterReference):
            return self.lookup(value.resource).get_value()

        if isinstance(value, ConnectionStringReference):
            return self.lookup(value.resource).get_connection_string()

        raise TypeError(f'{value!r} has unsupported type')


def render(value: 'Value', *, owner: str, key: str) -> RenderedValue:
    """Render a parameter for a manifest without resolving it.

    References become placeholders, deferred values are evaluated, and
    a parameter embedding a secret literal is replaced as a whole by a
    `{owner.secretParameters.key}` placeholder.

    Args:
        value: Parameter value.
        owner: Name of the resource declaring the parameter.
        key: Parameter name.

    Returns:
        A JSON-compatible rendering.
    """
    if isinstance(value, REFERENCES):
        return value.expression

    if has_secret(value):
        return f'{{{owner}.{TokenChannel.SECRET_PARAMETERS}.{key}}}'

    return _render_public(value)


def _render_public(value: 'Value') -> RenderedValue:
    """Render a value known to hold no secret literal."""
    if isinstance(value, LiteralValue):
        return value.value

    if isinstance(value, REFERENCES):
        return value.expression

    if isinstance(value, ListValue):
        return [_render_public(item) for item in value.items]

    if isinstance(value, ObjectValue):
        return {
            key: _render_public(item)
            for key, item in value.members.items()
        }

    if isinstance(value, DeferredValue):
        return _render_public(value.evaluate())

    raise TypeError(f'{value!r} has unsupported type')
