"""Tests for value normalization and reference discovery."""

import pydantic
import pytest
from pydantic import SecretStr

from infragraph.resources import ParameterResource, TemplateResource
from infragraph.values import (
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
    iter_references,
    normalize,
)


@pytest.mark.parametrize('value, expected', (
    pytest.param('text', LiteralValue(value='text'), id='string'),
    pytest.param('', LiteralValue(value=''), id='empty string'),
    pytest.param(42, LiteralValue(value='42'), id='integer'),
    pytest.param(1.5, LiteralValue(value='1.5'), id='float'),
    pytest.param(True, LiteralValue(value='true'), id='true'),
    pytest.param(False, LiteralValue(value='false'), id='false'),
    pytest.param(
        ['1', 2],
        ListValue(items=(LiteralValue(value='1'), LiteralValue(value='2'))),
        id='list',
    ),
    pytest.param(
        ('a',),
        ListValue(items=(LiteralValue(value='a'),)),
        id='tuple',
    ),
    pytest.param(
        {'value': 'nested', 'items': ['x']},
        ObjectValue(members={
            'value': LiteralValue(value='nested'),
            'items': ListValue(items=(LiteralValue(value='x'),)),
        }),
        id='nested mapping',
    ),
))
def test_normalize_plain_values(value: object, expected: object) -> None:
    """Verify normalization of plain runtime values."""
    assert normalize(value) == expected


def test_normalize_secret() -> None:
    """Verify that secret strings become secret values."""
    value = normalize(SecretStr('hunter2'))

    assert isinstance(value, SecretValue)
    assert value.value.get_secret_value() == 'hunter2'
    assert 'hunter2' not in repr(value)


def test_normalize_keeps_values() -> None:
    """Verify that values are returned unchanged."""
    reference = OutputReference(resource='sql', key='sqlServerFqdn')

    assert normalize(reference) is reference


def test_normalize_resources() -> None:
    """Verify that resources stand for their reference."""
    parameter = ParameterResource('usr', 'user')
    template = TemplateResource('templ', template_string='content')

    assert normalize(parameter) == ParameterReference(resource='usr')
    assert normalize(template) == ConnectionStringReference(resource='templ')


def test_normalize_callable_is_deferred() -> None:
    """Verify that callables are deferred and not invoked on normalization."""
    calls = []

    def callback() -> list[str]:
        calls.append(None)
        return ['mydatabase']

    value = normalize(callback)

    assert isinstance(value, DeferredValue)
    assert not calls

    assert value.evaluate() == ListValue(items=(LiteralValue(value='mydatabase'),))
    assert value.evaluate() == value.evaluate()
    assert len(calls) == 3


def test_deferred_value_sees_later_changes() -> None:
    """Verify that deferred values are never cached."""
    databases = ['mydatabase']
    value = normalize(lambda: list(databases))

    databases.append('otherdb')

    assert value.evaluate() == ListValue(items=(
        LiteralValue(value='mydatabase'),
        LiteralValue(value='otherdb'),
    ))


@pytest.mark.parametrize('value, message', (
    pytest.param({1: 'a'}, r'^Can not use 1 as mapping key', id='integer key'),
    pytest.param({'a': {None: 'b'}}, r'^Can not use None as mapping key', id='nested key'),
    pytest.param(None, r'^None has unsupported type', id='none'),
    pytest.param(b'bytes', r'has unsupported type', id='bytes'),
))
def test_normalize_unsupported(value: object, message: str) -> None:
    """Verify rejection of unsupported runtime values."""
    with pytest.raises(TypeError, match=message):
        normalize(value)


@pytest.mark.parametrize('reference, expression', (
    pytest.param(
        OutputReference(resource='sql', key='sqlServerFqdn'),
        '{sql.outputs.sqlServerFqdn}',
        id='output',
    ),
    pytest.param(
        OutputReference(resource='cache', channel=Channel.SECRET_OUTPUTS, key='connectionString'),
        '{cache.secretOutputs.connectionString}',
        id='secret output',
    ),
    pytest.param(ParameterReference(resource='usr'), '{usr.value}', id='parameter'),
    pytest.param(ConnectionStringReference(resource='sql'), '{sql.connectionString}', id='connection string'),
))
def test_reference_expression(reference: OutputReference, expression: str) -> None:
    """Verify placeholder forms of references."""
    assert reference.expression == expression


@pytest.mark.parametrize('content', (
    pytest.param({'resource': '1sql', 'key': 'fqdn'}, id='invalid resource name'),
    pytest.param({'resource': 'sql', 'key': 'a.b'}, id='invalid key'),
    pytest.param({'resource': 'sql', 'key': 'fqdn', 'channel': 'inputs'}, id='invalid channel'),
    pytest.param({'resource': 'sql', 'key': 'fqdn', 'extra': True}, id='extra field'),
))
def test_invalid_reference(content: dict) -> None:
    """Verify validation of output references."""
    with pytest.raises(pydantic.ValidationError):
        OutputReference.model_validate(content)


def test_values_are_frozen() -> None:
    """Verify that values can not be modified after creation."""
    value = LiteralValue(value='a')

    with pytest.raises(pydantic.ValidationError):
        value.value = 'b'  # type: ignore[misc]


def test_iter_references() -> None:
    """Verify discovery of references nested in structures and callbacks."""
    value = normalize({
        'login': ParameterResource('usr'),
        'servers': [OutputReference(resource='sql', key='sqlServerFqdn'), 'literal'],
        'later': lambda: ConnectionStringReference(resource='cache'),
    })

    assert list(iter_references(value)) == [
        ParameterReference(resource='usr'),
        OutputReference(resource='sql', key='sqlServerFqdn'),
        ConnectionStringReference(resource='cache'),
    ]


@pytest.mark.parametrize('value, expected', (
    pytest.param(SecretStr('x'), True, id='secret'),
    pytest.param(['a', {'b': SecretStr('x')}], True, id='nested secret'),
    pytest.param(lambda: SecretStr('x'), True, id='deferred secret'),
    pytest.param(['a', {'b': 'c'}], False, id='no secret'),
    pytest.param(OutputReference(resource='cache', channel=Channel.SECRET_OUTPUTS, key='key'), False, id='reference'),
))
def test_has_secret(value: object, expected: bool) -> None:
    """Verify detection of embedded secrets."""
    assert has_secret(normalize(value)) is expected
