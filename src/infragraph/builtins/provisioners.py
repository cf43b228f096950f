"""Built-in provisioners for resources without an external deployment.

Parameters, local containers, child resources, and application
processes never reach a cloud SDK: their provisioners validate the
resource at its turn in dependency order and produce no outputs, except
for projects, whose environment is built once the resources they
reference are provisioned.
"""

import logging
from typing import TYPE_CHECKING, Any

from infragraph.environment import build_environment
from infragraph.errors import ConfigurationError
from infragraph.extensions import ProvisionerBinding, ProvisionResult
from infragraph.resources import (
    AllocatedEndpoint,
    ChildResource,
    ContainerResource,
    ParameterResource,
    ProjectResource,
)

if TYPE_CHECKING:
    from infragraph.provisioning import ProvisioningContext
    from infragraph.resources import Resource

logger = logging.getLogger(__name__)


class ParameterProvisioner:
    """Check that a parameter has a value before its consumers run."""

    def create(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:  # noqa: ARG002
        """Validate the parameter value.

        Raises:
            UnresolvedReferenceError: If the parameter has no value.
        """
        if isinstance(resource, ParameterResource):
            resource.get_value()

        return ProvisionResult()

    def adopt(self, resource: 'Resource', existing: Any,  # noqa: ANN401, ARG002
              context: 'ProvisioningContext') -> ProvisionResult:
        """Parameters are never enumerated; adoption is creation."""
        return self.create(resource, context)


class ContainerProvisioner:
    """Accept a local container started outside of the run."""

    def create(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:  # noqa: ARG002
        """Record the allocated endpoints of the container, if any."""
        outputs = {}
        if isinstance(resource, ContainerResource):
            for endpoint in resource.annotations_of(AllocatedEndpoint):
                outputs[f'{endpoint.name}Endpoint'] = endpoint.endpoint_string

        return ProvisionResult(outputs=outputs)

    def adopt(self, resource: 'Resource', existing: Any,  # noqa: ANN401, ARG002
              context: 'ProvisioningContext') -> ProvisionResult:
        """Containers are never enumerated; adoption is creation."""
        return self.create(resource, context)


class ChildProvisioner:
    """Accept a child created together with its parent."""

    def create(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:  # noqa: ARG002
        """Check that the child is attached to a parent.

        Raises:
            ConfigurationError: If the resource has no parent.
        """
        if resource.parent is None:
            raise ConfigurationError(
                f'Child resource {resource.name!r} has no parent',
                resource=resource.name,
            )

        return ProvisionResult()

    def adopt(self, resource: 'Resource', existing: Any,  # noqa: ANN401, ARG002
              context: 'ProvisioningContext') -> ProvisionResult:
        """Children are never enumerated; adoption is creation."""
        return self.create(resource, context)


class ProjectProvisioner:
    """Build the environment of an application process."""

    def create(self, resource: 'Resource', context: 'ProvisioningContext') -> ProvisionResult:
        """Invoke the environment callbacks of the project.

        The resulting variables are stored on the project; they are not
        outputs, since they may embed secrets of referenced resources.

        Raises:
            UnresolvedReferenceError: If a referenced value is missing.
        """
        environment = build_environment(resource, context.execution_context)
        if isinstance(resource, ProjectResource):
            resource.environment = environment

        logger.debug('Built %d environment variables for %r', len(environment), resource.name)

        return ProvisionResult()

    def adopt(self, resource: 'Resource', existing: Any,  # noqa: ANN401, ARG002
              context: 'ProvisioningContext') -> ProvisionResult:
        """Projects are never enumerated; adoption is creation."""
        return self.create(resource, context)


parameter = ProvisionerBinding(kind=ParameterResource.kind, provisioner=ParameterProvisioner())
container = ProvisionerBinding(kind=ContainerResource.kind, provisioner=ContainerProvisioner())
child = ProvisionerBinding(kind=ChildResource.kind, provisioner=ChildProvisioner())
project = ProvisionerBinding(kind=ProjectResource.kind, provisioner=ProjectProvisioner())
