"""Resource model.

A resource is a named node of the graph holding an ordered mapping of
parameters, the outputs and secret outputs written by provisioning, and
an optional connection-string expression. Identity (the name) is fixed
at declaration; parameters and outputs are mutable afterwards.
"""

from typing import TYPE_CHECKING, Any, ClassVar, Self

from pydantic import Field, SecretStr

from infragraph.errors import ConfigurationError, Phase, ProvisioningFailure, UnresolvedReferenceError
from infragraph.expressions import Resolver
from infragraph.models import SchemaModel
from infragraph.names import RESOURCE_PATTERN, ResourceName
from infragraph.values import Channel, ConnectionStringReference, OutputReference, ParameterReference, normalize

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

if TYPE_CHECKING:
    from infragraph.graph import ResourceGraph
    from infragraph.values import RuntimeValue, Value


class AllocatedEndpoint(SchemaModel):
    """Network endpoint allocated to a locally running resource."""

    name: str = Field(
        title='Endpoint name',
        description='Logical name of the endpoint, such as "tcp" or "http".',
    )

    address: str = Field(
        title='Address',
        description='Host name or address the endpoint listens on.',
    )

    port: int = Field(
        ge=0,
        le=65535,
        title='Port',
        description='Port the endpoint listens on.',
    )

    scheme: str = Field(
        default='tcp',
        title='Scheme',
        description='URI scheme of the endpoint.',
    )

    @property
    def endpoint_string(self) -> str:
        """Address and port joined as `address:port`."""
        return f'{self.address}:{self.port}'


class ResourceReference(SchemaModel):
    """Dependency of a consumer on another resource."""

    resource: ResourceName


class Resource:
    """Named node of a resource graph.

    Attributes:
        name: Unique, stable name of the resource.
        parameters: Ordered mapping of parameter names to values.
        outputs: Values written by provisioning.
        secret_outputs: Secret values written by provisioning.
        parent: Logical parent resource, if any.
        children: Resources declared with this resource as parent.
        annotations: Additional declarations (endpoints, callbacks,
            references).
        graph: Graph the resource belongs to, once added.
    """

    #: Tag selecting the provisioner for this class of resources.
    kind: ClassVar[str] = 'resource'

    #: Manifest `type` written for this class of resources.
    manifest_type: ClassVar[str | None] = None

    #: Environment variable name used by consumers referencing the resource
    #: when none is given explicitly.
    environment_variable: ClassVar[str | None] = None

    def __init__(self, name: str, *,
                 parent: 'Resource | None' = None,
                 connection_string_expression: str | None = None) -> None:
        """Initialize a resource.

        Args:
            name: Unique name of the resource.
            parent: Optional logical parent resource.
            connection_string_expression: Optional expression template.

        Raises:
            ConfigurationError: If the name is not a valid identifier.
        """
        if not RESOURCE_PATTERN.match(name):
            raise ConfigurationError(f'Invalid resource name {name!r}', resource=name)

        self.name = name
        self.parent = parent
        self.children: list[Resource] = []

        self.parameters: dict[str, Value] = {}
        self.outputs: dict[str, str] = {}
        self.secret_outputs: dict[str, str] = {}
        self.annotations: list[Any] = []

        self.graph: ResourceGraph | None = None
        self._connection_string_expression = connection_string_expression

        if parent is not None:
            parent.children.append(self)

    def __repr__(self) -> str:
        """String representation."""
        return f'{type(self).__name__}({self.name!r})'

    @property
    def connection_string_expression(self) -> str | None:
        """Expression template of the connection string."""
        return self._connection_string_expression

    @connection_string_expression.setter
    def connection_string_expression(self, value: str | None) -> None:
        self._connection_string_expression = value

    def set_parameter(self, name: str, value: 'RuntimeValue') -> Self:
        """Declare a parameter, overwriting any previous declaration.

        Args:
            name: Parameter name.
            value: Runtime value normalized into a `Value`.

        Returns:
            The resource itself.
        """
        self.parameters[name] = normalize(value)
        return self

    def with_annotation(self, annotation: Any) -> Self:  # noqa: ANN401
        """Attach an annotation and return the resource."""
        self.annotations.append(annotation)
        return self

    def annotations_of[T](self, annotation_type: type[T]) -> list[T]:
        """Return annotations of a type in registration order."""
        return [
            annotation
            for annotation in self.annotations
            if isinstance(annotation, annotation_type)
        ]

    def get_output(self, key: str) -> OutputReference:
        """Reference an output of this resource."""
        return OutputReference(resource=self.name, channel=Channel.OUTPUTS, key=key)

    def get_secret_output(self, key: str) -> OutputReference:
        """Reference a secret output of this resource."""
        return OutputReference(resource=self.name, channel=Channel.SECRET_OUTPUTS, key=key)

    def output_value(self, key: str) -> str:
        """Resolve an output of this resource.

        Raises:
            UnresolvedReferenceError: If the output is not written yet.
        """
        return self.resolver().read_output(self.name, Channel.OUTPUTS, key)

    def secret_output_value(self, key: str) -> str:
        """Resolve a secret output of this resource.

        Raises:
            UnresolvedReferenceError: If the secret output is not written yet.
        """
        return self.resolver().read_output(self.name, Channel.SECRET_OUTPUTS, key)

    def as_value(self) -> 'Value':
        """Stand for the connection string of this resource in parameters."""
        return ConnectionStringReference(resource=self.name)

    def get_value(self) -> str:
        """Return the value exposed through `{name.value}`.

        Raises:
            ConfigurationError: If the resource does not expose a value.
        """
        raise ConfigurationError(
            f'Resource {self.name!r} does not expose a value',
            resource=self.name,
            phase=Phase.RESOLVE,
        )

    def effective_resource(self) -> 'Resource':
        """Resource answering runtime queries for this one."""
        return self

    def published_resource(self) -> 'Resource':
        """Resource written to manifests for this one."""
        return self

    def is_container(self) -> bool:
        """Whether the resource runs as a local container."""
        return False

    def lineage(self) -> 'Iterator[Resource]':
        """Iterate over the resource and its ancestors."""
        resource: Resource | None = self
        while resource is not None:
            yield resource
            resource = resource.parent

    def bind(self, graph: 'ResourceGraph') -> None:
        """Attach the resource to a graph."""
        self.graph = graph

    def resolver(self) -> Resolver:
        """Build a resolver over the graph of this resource.

        A resource outside of any graph resolves against itself and
        its ancestors only.
        """
        if self.graph is not None:
            return Resolver(self.graph)

        resources: Mapping[str, Resource] = {
            resource.name: resource
            for resource in reversed(list(self.lineage()))
        }

        return Resolver(resources)

    def get_connection_string(self) -> str:
        """Resolve the connection string of this resource.

        Raises:
            ConfigurationError: If the resource has no expression.
            UnresolvedReferenceError: If a referenced output is missing.
        """
        expression = self.connection_string_expression
        if expression is None:
            raise ConfigurationError(
                f'Resource {self.name!r} does not expose a connection string',
                resource=self.name,
                phase=Phase.RESOLVE,
            )

        return self.resolver().resolve_expression(expression)

    def write_outputs(self, outputs: 'Mapping[str, str] | None' = None,
                      secret_outputs: 'Mapping[str, str | SecretStr] | None' = None, *,
                      overwrite: bool = False) -> None:
        """Record values produced by provisioning.

        Outputs are append-only within a run: writing a key again with a
        different value is refused unless `overwrite` is set (an explicit
        re-run). A refused write records none of the given keys.

        Args:
            outputs: Outputs to record.
            secret_outputs: Secret outputs to record.
            overwrite: Whether existing keys may change.

        Raises:
            ProvisioningFailure: If an existing key would change.
        """
        channels = (
            (Channel.OUTPUTS, self.outputs, outputs),
            (Channel.SECRET_OUTPUTS, self.secret_outputs, secret_outputs),
        )

        pending = [
            (channel, target, key, value.get_secret_value() if isinstance(value, SecretStr) else value)
            for channel, target, values in channels
            for key, value in (values or {}).items()
        ]

        for channel, target, key, value in pending:
            if not overwrite and target.get(key, value) != value:
                raise ProvisioningFailure(
                    f'Output "{channel}.{key}" is already written',
                    resource=self.name,
                )

        for _, target, key, value in pending:
            target[key] = value

    def snapshot(self) -> dict[str, Any]:
        """Describe the declaration for error snippets.

        Secret values appear as `SecretStr` and are masked by the
        error formatter.
        """
        snapshot: dict[str, Any] = {'name': self.name, 'kind': self.kind}
        if self.parent is not None:
            snapshot['parent'] = self.parent.name
        if self.connection_string_expression:
            snapshot['connectionString'] = self.connection_string_expression
        if self.parameters:
            snapshot['params'] = {
                key: value.model_dump()
                for key, value in self.parameters.items()
            }
        return snapshot


class ParameterResource(Resource):
    """Externally supplied parameter usable as a value.

    The value is exposed through the `{name.value}` placeholder and
    stands for itself when used as a parameter of another resource.
    """

    kind = 'parameter'
    manifest_type = 'parameter.v0'

    def __init__(self, name: str, value: str | None = None, *,
                 secret: bool = False) -> None:
        """Initialize a parameter resource.

        Args:
            name: Unique name of the parameter.
            value: Value of the parameter, if already known.
            secret: Whether the value is restricted to secret channels.
        """
        super().__init__(name, connection_string_expression=f'{{{name}.value}}')

        self.secret = secret
        self.value = SecretStr(value) if value is not None else None

    def as_value(self) -> 'Value':
        """Stand for the parameter value."""
        return ParameterReference(resource=self.name)

    def get_value(self) -> str:
        """Return the parameter value.

        Raises:
            UnresolvedReferenceError: If no value was supplied.
        """
        if self.value is None:
            raise UnresolvedReferenceError(
                f'Parameter {self.name!r} has no value',
                resource=self.name,
                channel='value',
            )

        return self.value.get_secret_value()


class TemplateResource(Resource):
    """Cloud resource deployed from a declarative template.

    The template is given as a file, an inline string, or the name of a
    template shipped by a provisioner plugin. Template compilation is
    left to the provisioner.
    """

    kind = 'bicep'
    manifest_type = 'cloud.bicep.v0'

    def __init__(self, name: str, *,
                 template_file: str | None = None,
                 template_string: str | None = None,
                 template_resource_name: str | None = None,
                 connection_string_expression: str | None = None) -> None:
        """Initialize a template resource.

        Raises:
            ConfigurationError: If not exactly one template source is given.
        """
        sources = [
            source
            for source in (template_file, template_string, template_resource_name)
            if source is not None
        ]
        if len(sources) != 1:
            raise ConfigurationError(
                'Exactly one of template file, template string, or template '
                'resource name must be given',
                resource=name,
            )

        super().__init__(name, connection_string_expression=connection_string_expression)

        self.template_file = template_file
        self.template_string = template_string
        self.template_resource_name = template_resource_name


class ChildResource(Resource):
    """Resource owned by a parent, such as a database on a server.

    A child has no deployment of its own: it is created together with
    its parent and, by default, shares the parent connection string.
    """

    kind = 'child'
    manifest_type = 'cloud.bicep.v0'

    def __init__(self, name: str, parent: Resource, *,
                 connection_string_expression: str | None = None) -> None:
        """Initialize a child resource."""
        super().__init__(
            name,
            parent=parent,
            connection_string_expression=(
                connection_string_expression
                or f'{{{parent.name}.connectionString}}'
            ),
        )


class DatabaseResource(ChildResource):
    """Logical database declared on a server resource."""

    kind = 'database'

    def __init__(self, name: str, parent: Resource,
                 database_name: str | None = None) -> None:
        """Initialize a database resource.

        Args:
            name: Unique name of the resource.
            parent: Server resource.
            database_name: Name of the database on the server; the
                resource name by default.
        """
        super().__init__(name, parent)

        self.database_name = database_name or name


class ProjectResource(Resource):
    """Application process consuming other resources.

    Consumers receive connection information through environment
    callbacks, invoked once the referenced outputs are available.
    """

    kind = 'project'
    manifest_type = 'project.v0'

    def __init__(self, name: str, path: str) -> None:
        """Initialize a project resource.

        Args:
            name: Unique name of the project.
            path: Path of the project definition.
        """
        super().__init__(name)

        self.path = path
        self.environment: dict[str, str] = {}

    def reference_names(self) -> list[str]:
        """Names of the resources referenced by this consumer."""
        return [
            reference.resource
            for reference in self.annotations_of(ResourceReference)
        ]

