"""Provisioner interface and registration descriptors.

A provisioner is the seam through which concrete cloud bindings create
or adopt resources of one kind. The core never calls a cloud SDK
itself: it hands the resource and a provisioning context to the
provisioner and records the outputs it returns.
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import Field, SecretStr

from infragraph.models import SchemaModel
from infragraph.names import OutputKey, ResourceKind  # noqa: TC001

if TYPE_CHECKING:
    from infragraph.provisioning import ProvisioningContext
    from infragraph.resources import Resource


class ProvisionResult(SchemaModel):
    """Values produced by creating or adopting a resource."""

    outputs: dict[OutputKey, str] = Field(
        default_factory=dict,
        title='Outputs',
        description='Values exposed through `{name.outputs.key}` placeholders.',
    )

    secret_outputs: dict[OutputKey, SecretStr] = Field(
        default_factory=dict,
        title='Secret outputs',
        description=(
            'Values exposed through `{name.secretOutputs.key}` placeholders. '
            'They are never logged or rendered in manifests.'
        ),
    )


@runtime_checkable
class ResourceProvisioner(Protocol):
    """Kind-specific implementation of resource provisioning.

    Implementations must be safe to call from worker threads: resources
    of one dependency layer are provisioned concurrently. Long waits
    should go through `ProvisioningContext.wait` so that cancellation
    interrupts them.
    """

    def create(self, resource: 'Resource',
               context: 'ProvisioningContext') -> ProvisionResult:
        """Create or deploy a resource and return its outputs.

        The resource parameters are resolved through `context.resolver`;
        every output they reference is available at this point.
        """
        ...  # pragma: no cover

    def adopt(self, resource: 'Resource', existing: Any,  # noqa: ANN401
              context: 'ProvisioningContext') -> ProvisionResult:
        """Read the outputs of an existing external object.

        Called instead of `create` when enumeration found an object
        tagged with the identity of the resource.
        """
        ...  # pragma: no cover


class ProvisionerBinding(SchemaModel):
    """Registration of a provisioner for a resource kind."""

    kind: ResourceKind = Field(
        title='Resource kind',
        description='Kind of the resources handled by the provisioner.',
    )

    provisioner: ResourceProvisioner = Field(
        title='Provisioner',
        description='Object implementing `create` and `adopt`.',
    )
