"""Tests for graph edges and dependency layers."""

from typing import TYPE_CHECKING

import pytest

from infragraph import catalog
from infragraph.environment import with_reference
from infragraph.errors import CycleError, ExpressionSyntaxError, UnknownResourceError
from infragraph.graph import ResourceGraph

if TYPE_CHECKING:
    from infragraph.resources import Resource


def names(layers: list[list['Resource']]) -> list[list[str]]:
    """Map layers of resources to layers of names."""
    return [[resource.name for resource in layer] for layer in layers]


def test_mapping_interface(graph: ResourceGraph) -> None:
    """Verify lookup and iteration in declaration order."""
    first = catalog.add_parameter(graph, 'first')
    second = catalog.add_parameter(graph, 'second')

    assert list(graph) == ['first', 'second']
    assert graph.resources() == [first, second]
    assert len(graph) == 2
    assert 'first' in graph
    assert graph.get('third') is None
    assert first.graph is graph


def test_dependencies(graph: ResourceGraph) -> None:
    """Verify edges implied by parents, parameters, expressions, and references."""
    usr = catalog.add_parameter(graph, 'usr')
    sql = catalog.add_sql_server(graph, 'sql')
    database = catalog.add_database(sql, 'db')
    vault = catalog.add_key_vault(graph, 'vault')

    template = catalog.add_template(
        graph,
        'templ',
        template_string='content',
        parameters={'login': usr, 'later': lambda: [sql.get_output('sqlServerFqdn')]},
        connection_string_expression='{vault.outputs.vaultUri};{templ.outputs.key}',
    )
    project = with_reference(catalog.add_project(graph, 'api', 'api'), database)

    assert graph.dependencies(usr) == []
    assert graph.dependencies(sql) == []
    assert graph.dependencies(database) == ['sql']
    assert graph.dependencies(vault) == []
    assert graph.dependencies(template) == ['usr', 'sql', 'vault']
    assert graph.dependencies(project) == ['db']


def test_layers(graph: ResourceGraph) -> None:
    """Verify grouping of resources in dependency layers."""
    usr = catalog.add_parameter(graph, 'usr', 'admin')
    sql = catalog.add_sql_server(graph, 'sql')
    catalog.add_database(sql, 'db')
    catalog.add_template(graph, 'templ', template_string='content', parameters={'login': usr})
    catalog.add_key_vault(graph, 'vault')
    project = catalog.add_project(graph, 'api', 'api')
    with_reference(project, graph['db'])
    with_reference(project, graph['templ'])

    assert names(graph.layers()) == [
        ['usr', 'sql', 'vault'],
        ['db', 'templ'],
        ['api'],
    ]


def test_edges_to_unknown_resource(graph: ResourceGraph) -> None:
    """Verify that references must name declared resources."""
    catalog.add_template(
        graph,
        'templ',
        template_string='content',
        connection_string_expression='{nowhere.outputs.key}',
    )

    with pytest.raises(UnknownResourceError, match=r"references unknown resource 'nowhere'"):
        graph.validate()


def test_cycle(graph: ResourceGraph) -> None:
    """Verify detection of cyclic references."""
    catalog.add_parameter(graph, 'standalone', 'value')
    catalog.add_template(
        graph,
        'first',
        template_string='content',
        parameters={'other': graph['standalone']},
        connection_string_expression='{second.outputs.key}',
    )
    catalog.add_template(
        graph,
        'second',
        template_string='content',
        connection_string_expression='{first.outputs.key}',
    )

    with pytest.raises(CycleError) as error:
        graph.validate()

    assert error.value.cycle == ['first', 'second']
    assert error.value.resource == 'first'


def test_self_reference_to_outputs(graph: ResourceGraph) -> None:
    """Verify that a resource may read its own outputs."""
    cache = catalog.add_template(
        graph,
        'cache',
        template_file='cache.bicep',
        connection_string_expression='{cache.outputs.host}:{cache.secretOutputs.port}',
    )
    cache.set_parameter('name', cache.get_output('name'))

    graph.validate()

    assert graph.dependencies(cache) == []


@pytest.mark.parametrize('expression, parameters', (
    pytest.param('{x.connectionString}', False, id='expression'),
    pytest.param('{x.secretParameters.p}', True, id='parameter'),
    pytest.param(None, True, id='parameter without expression'),
))
def test_self_reference_to_connection_string(graph: ResourceGraph, expression: str | None,
                                             parameters: bool) -> None:
    """Verify that reaching the own connection string is a cycle."""
    resource = catalog.add_template(
        graph,
        'x',
        template_file='x.bicep',
        connection_string_expression=expression,
    )
    if parameters:
        resource.set_parameter('p', resource)

    with pytest.raises(CycleError) as error:
        graph.validate()

    assert error.value.cycle == ['x']
    assert error.value.resource == 'x'


def test_malformed_expression(graph: ResourceGraph) -> None:
    """Verify that malformed expressions fail validation."""
    catalog.add_template(
        graph,
        'templ',
        template_string='content',
        connection_string_expression='{templ.outputs}',
    )

    with pytest.raises(ExpressionSyntaxError):
        graph.validate()


def test_dependents(graph: ResourceGraph) -> None:
    """Verify transitive dependents of a resource."""
    sql = catalog.add_sql_server(graph, 'sql')
    catalog.add_database(sql, 'db')
    project = with_reference(catalog.add_project(graph, 'api', 'api'), graph['db'])
    catalog.add_key_vault(graph, 'vault')

    assert graph.dependents('sql') == {'db', 'api'}
    assert graph.dependents(project.name) == set()
