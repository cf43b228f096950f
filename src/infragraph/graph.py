"""Resource graph.

The graph holds the declared resources and derives the edges between
them: parent to child ownership, and reference edges implied by
parameter references, expression placeholders, and consumer references.
It orders resources in dependency layers for provisioning.
"""

from collections.abc import Iterable, Iterator, Mapping

from infragraph.errors import ConfigurationError, CycleError, UnknownResourceError
from infragraph.expressions import TokenChannel, parse
from infragraph.resources import Resource, ResourceReference
from infragraph.values import ConnectionStringReference, iter_references


class ResourceGraph(Mapping[str, Resource]):
    """Directed acyclic graph of resources keyed by name.

    Iteration follows declaration order.
    """

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        """Initialize a graph.

        Args:
            resources: Resources to add in declaration order.
        """
        self._resources: dict[str, Resource] = {}

        for resource in resources:
            self.add(resource)

    def __getitem__(self, name: str) -> Resource:
        return self._resources[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def __repr__(self) -> str:
        """String representation."""
        return f'{type(self).__name__}({list(self._resources)!r})'

    def add[R: Resource](self, resource: R) -> R:
        """Add a resource to the graph.

        Args:
            resource: Resource to add.

        Returns:
            The added resource.

        Raises:
            ConfigurationError: If a resource with the same name exists.
        """
        if resource.name in self._resources:
            raise ConfigurationError(
                f'Resource {resource.name!r} is already declared',
                resource=resource.name,
            )

        self._resources[resource.name] = resource
        resource.bind(self)

        return resource

    def resources(self) -> list[Resource]:
        """Resources in declaration order."""
        return list(self._resources.values())

    def dependencies(self, resource: Resource) -> list[str]:
        """Names of the resources a resource depends on.

        Dependencies are collected from the parent, from references in
        parameters and from expression placeholders of both the
        resource and its effective counterpart, and from consumer
        references. References to own outputs are excluded; a resource
        reaching its own connection string is a cycle of one resource.

        Args:
            resource: Resource to inspect.

        Returns:
            Unique names in order of discovery.

        Raises:
            ExpressionSyntaxError: If an expression is malformed.
            CycleError: If the resource depends on its own connection string.
        """
        names: dict[str, None] = {}

        if resource.parent is not None:
            names[resource.parent.name] = None

        for declared in dict.fromkeys((resource, resource.effective_resource())):
            for value in declared.parameters.values():
                for reference in iter_references(value):
                    if reference.resource == resource.name and isinstance(reference, ConnectionStringReference):
                        raise CycleError([resource.name])
                    names[reference.resource] = None

            if expression := declared.connection_string_expression:
                for token in parse(expression):
                    if token.resource == resource.name and token.channel == TokenChannel.CONNECTION_STRING:
                        raise CycleError([resource.name])
                    names[token.resource] = None

        for reference in resource.annotations_of(ResourceReference):
            names[reference.resource] = None

        names.pop(resource.name, None)

        return list(names)

    def edges(self) -> dict[str, list[str]]:
        """Dependencies of every resource, keyed by name.

        Raises:
            UnknownResourceError: If a dependency is not declared.
        """
        edges = {}
        for name, resource in self._resources.items():
            dependencies = self.dependencies(resource)
            for dependency in dependencies:
                if dependency not in self._resources:
                    raise UnknownResourceError(
                        f'Resource {name!r} references unknown resource {dependency!r}',
                        resource=name,
                    )
            edges[name] = dependencies

        return edges

    def layers(self) -> list[list[Resource]]:
        """Order resources in dependency layers.

        Resources of one layer have no dependencies among each other and
        depend only on resources of earlier layers. Within a layer the
        declaration order is preserved.

        Returns:
            Layers in provisioning order.

        Raises:
            UnknownResourceError: If a dependency is not declared.
            CycleError: If reference edges form a cycle.
        """
        edges = self.edges()
        pending = {
            name: len(dependencies)
            for name, dependencies in edges.items()
        }

        dependents: dict[str, list[str]] = {name: [] for name in edges}
        for name, dependencies in edges.items():
            for dependency in dependencies:
                dependents[dependency].append(name)

        layers = []
        ready = [name for name, count in pending.items() if count == 0]
        while ready:
            layers.append([self._resources[name] for name in ready])

            released = set()
            for name in ready:
                del pending[name]
                for dependent in dependents[name]:
                    pending[dependent] -= 1
                    if pending[dependent] == 0:
                        released.add(dependent)

            ready = [name for name in pending if name in released]

        if pending:
            raise CycleError(list(pending))

        return layers

    def validate(self) -> None:
        """Check that every reference is declared and edges are acyclic.

        Raises:
            UnknownResourceError: If a dependency is not declared.
            CycleError: If reference edges form a cycle.
        """
        self.layers()

    def dependents(self, name: str) -> set[str]:
        """Names of the resources transitively depending on a resource."""
        edges = self.edges()

        found: set[str] = set()
        frontier = [name]
        while frontier:
            current = frontier.pop()
            for candidate, dependencies in edges.items():
                if current in dependencies and candidate not in found:
                    found.add(candidate)
                    frontier.append(candidate)

        return found
