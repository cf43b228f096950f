"""Environment injection for consumer resources.

A consumer (an application process) registers callbacks invoked with a
mutable environment mapping and the execution context. The callbacks of
a resource run in registration order, and the dispatcher only invokes
them once every resource the consumer references has been provisioned.
"""

from collections.abc import Callable, Iterable
from enum import StrEnum

from pydantic import Field

from infragraph.models import SchemaModel
from infragraph.resources import Resource, ResourceReference


class Operation(StrEnum):
    """Operation performed by the current execution."""

    RUN = 'run'
    PUBLISH = 'publish'


class ExecutionContext(SchemaModel):
    """Context of the current execution."""

    operation: Operation = Field(
        default=Operation.RUN,
        title='Operation',
        description=(
            'Whether resources are run (connection strings are resolved) '
            'or published (expressions are written verbatim).'
        ),
    )

    @property
    def is_publish(self) -> bool:
        """Whether the execution publishes a manifest."""
        return self.operation == Operation.PUBLISH


class EnvironmentContext:
    """Mutable environment passed to environment callbacks."""

    def __init__(self, execution_context: ExecutionContext,
                 env: dict[str, str] | None = None) -> None:
        """Initialize the context.

        Args:
            execution_context: Context of the current execution.
            env: Environment mapping updated by callbacks.
        """
        self.execution_context = execution_context
        self.env = env if env is not None else {}


class EnvironmentCallback(SchemaModel):
    """Callback contributing environment variables to a consumer."""

    callback: Callable[[EnvironmentContext], None] = Field(
        title='Callback',
        description='Callable updating `EnvironmentContext.env` in place.',
    )


def with_environment[R: Resource](resource: R,
                                  callback: Callable[[EnvironmentContext], None], *,
                                  references: Iterable[Resource] = ()) -> R:
    """Register an environment callback on a consumer.

    The callback only runs after the resources in `references` are
    provisioned. Resources it reads must be listed there, otherwise
    nothing orders the consumer after them.

    Args:
        resource: Consumer resource.
        callback: Callable updating the environment in place.
        references: Resources whose values the callback reads.

    Returns:
        The consumer.
    """
    for referenced in references:
        resource.with_annotation(ResourceReference(resource=referenced.name))

    resource.with_annotation(EnvironmentCallback(callback=callback))
    return resource


def with_reference[R: Resource](consumer: R, resource: Resource, *,
                                name: str | None = None,
                                env_name: str | None = None) -> R:
    """Expose the connection string of a resource to a consumer.

    The variable is `env_name` when given, otherwise the resource class
    default variable, otherwise `ConnectionStrings__<name>`. When running,
    it holds the resolved connection string; when publishing, the
    expression template of the published resource.

    Args:
        consumer: Consumer resource.
        resource: Referenced resource.
        name: Connection name; the resource name by default.
        env_name: Explicit environment variable name.

    Returns:
        The consumer.
    """
    variable = env_name
    if variable is None and name is None:
        variable = resource.environment_variable
    if variable is None:
        variable = f'ConnectionStrings__{name or resource.name}'

    def apply(context: EnvironmentContext) -> None:
        if context.execution_context.is_publish:
            expression = resource.published_resource().connection_string_expression
            context.env[variable] = expression or f'{{{resource.name}.connectionString}}'
        else:
            context.env[variable] = resource.get_connection_string()

    return with_environment(consumer, apply, references=[resource])


def build_environment(resource: Resource,
                      execution_context: ExecutionContext | None = None) -> dict[str, str]:
    """Invoke the environment callbacks of a resource.

    Args:
        resource: Consumer resource.
        execution_context: Context of the current execution; run by default.

    Returns:
        The environment produced by the callbacks, in registration order.

    Raises:
        UnresolvedReferenceError: If a callback resolves a value whose
            target is not provisioned yet.
    """
    context = EnvironmentContext(execution_context or ExecutionContext())

    for annotation in resource.annotations_of(EnvironmentCallback):
        annotation.callback(context)

    return context.env
