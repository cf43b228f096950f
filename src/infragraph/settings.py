"""Runtime settings for provisioning runs.

Settings are resolved from `INFRAGRAPH_*` environment variables and
passed explicitly to the dispatcher. They describe where resources are
provisioned and how a run is scheduled, never how to authenticate.
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from infragraph.models import SettingsModel

#: Tag written on every cloud object created for a resource, holding
#: the resource name. Enumeration matches existing objects by this tag.
DEFAULT_IDENTITY_TAG = 'infragraph-resource-name'


class ProvisionerSettings(SettingsModel):
    """Settings of a provisioning run."""

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
        env_prefix='INFRAGRAPH_',
    )

    subscription_id: str | None = Field(
        default=None,
        title='Subscription',
        description='Identifier of the cloud subscription hosting the resources.',
    )

    resource_group: str | None = Field(
        default=None,
        title='Resource group',
        description=(
            'Name of the external scope searched for existing objects '
            'and used for new deployments.'
        ),
    )

    location: str | None = Field(
        default=None,
        title='Location',
        description='Cloud region used for new deployments.',
    )

    allow_resource_group_creation: bool = Field(
        default=False,
        title='Allow resource group creation',
        description='Whether provisioners may create a missing resource group.',
    )

    max_workers: int = Field(
        default=4,
        ge=1,
        title='Worker pool size',
        description=(
            'Maximum number of resources of one dependency layer '
            'provisioned concurrently.'
        ),
    )

    identity_tag: str = Field(
        default=DEFAULT_IDENTITY_TAG,
        min_length=1,
        title='Identity tag',
        description='Tag name carrying the resource identity on cloud objects.',
    )

    strict_plugins: bool = Field(
        default=False,
        title='Strict plugins',
        description=(
            'Whether plugin loading issues and registration shadowing '
            'raise errors instead of emitting warnings.'
        ),
    )
