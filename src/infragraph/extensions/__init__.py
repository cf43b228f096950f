"""Provisioner plugin definition.

This module defines the declarative container used to describe the
cloud bindings provided by an `infragraph` plugin.

A plugin aggregates:
- provisioners, each bound to the resource kind it creates and adopts;
- enumerators, each listing the existing external objects of a kind.

The plugin model itself is purely declarative. It is consumed by the
provisioner registry, which registers its bindings in a structured and
validated form.
"""

from pydantic import Field

from infragraph.models import SchemaModel

from .enumerators import ExternalObject, ExternalObjects, ResourceEnumerator
from .provisioners import ProvisionerBinding, ProvisionResult, ResourceProvisioner

__all__ = (
    'ExternalObject',
    'ExternalObjects',
    'Plugin',
    'ProvisionResult',
    'ProvisionerBinding',
    'ResourceEnumerator',
    'ResourceProvisioner',
)


class Plugin(SchemaModel):
    """Declarative container for provisioner plugin bindings.

    All contained bindings are optional, allowing a plugin to provide
    enumerators for kinds provisioned by another one.
    """

    name: str = Field(
        min_length=1,
        title='Plugin name',
        description=(
            'Name of the plugin. '
            'Used for identification and diagnostics of shadowed bindings.'
        ),
    )

    version: int = Field(
        default=1,
        title='Interface version',
        description=(
            'Version of the provisioner interface the plugin targets. '
            'This is not a semantic version of the plugin implementation.'
        ),
    )

    provisioners: list[ProvisionerBinding] = Field(
        default_factory=list,
        title='Provisioners',
        description='Provisioners bound to the resource kinds they handle.',
    )

    enumerators: list[ResourceEnumerator] = Field(
        default_factory=list,
        title='Enumerators',
        description='Enumerators listing existing external objects per kind.',
    )
