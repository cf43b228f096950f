"""Resource declarations.

Defines the base resource model, local container resources with
redirection support, and the catalog of cloud resource kinds.
"""

from .base import (
    AllocatedEndpoint,
    ChildResource,
    DatabaseResource,
    ParameterResource,
    ProjectResource,
    Resource,
    ResourceReference,
    TemplateResource,
)
from .cloud import (
    AppConfigurationResource,
    ApplicationInsightsResource,
    CloudPostgresResource,
    CloudRedisResource,
    CloudResource,
    CosmosDBResource,
    KeyVaultResource,
    KnownParameters,
    PostgresServerResource,
    RedisResource,
    ServiceBusResource,
    SqlServerResource,
    StorageResource,
    StorageServiceResource,
)
from .containers import ContainerResource

__all__ = (
    'AllocatedEndpoint',
    'AppConfigurationResource',
    'ApplicationInsightsResource',
    'ChildResource',
    'CloudPostgresResource',
    'CloudRedisResource',
    'CloudResource',
    'ContainerResource',
    'CosmosDBResource',
    'DatabaseResource',
    'KeyVaultResource',
    'KnownParameters',
    'ParameterResource',
    'PostgresServerResource',
    'ProjectResource',
    'RedisResource',
    'Resource',
    'ResourceReference',
    'ServiceBusResource',
    'SqlServerResource',
    'StorageResource',
    'StorageServiceResource',
    'TemplateResource',
)
