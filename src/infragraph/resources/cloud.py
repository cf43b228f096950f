"""Cloud resource kinds.

Each kind is a template resource with a known template name, default
parameters, and a connection-string expression over the outputs its
template produces. Local containers that can be promoted to one of
these kinds are defined alongside.
"""

from secrets import token_urlsafe
from typing import ClassVar

from .base import ChildResource, DatabaseResource, TemplateResource
from .containers import ContainerResource

#: Prefix of template names shipped by provisioner plugins.
TEMPLATE_PREFIX = 'infragraph.templates'


class KnownParameters:
    """Parameter names filled by provisioners rather than declarations."""

    KEY_VAULT_NAME = 'keyVaultName'
    PRINCIPAL_ID = 'principalId'
    PRINCIPAL_TYPE = 'principalType'
    LOCATION = 'location'


class CloudResource(TemplateResource):
    """Template resource deployed from a template shipped by a plugin."""

    #: Template file name, relative to `TEMPLATE_PREFIX`.
    template: ClassVar[str]

    #: Connection-string expression, formatted with the resource name.
    expression: ClassVar[str | None] = None

    def __init__(self, name: str) -> None:
        """Initialize a cloud resource."""
        super().__init__(
            name,
            template_resource_name=f'{TEMPLATE_PREFIX}.{self.template}',
            connection_string_expression=(
                self.expression.format(name=name)
                if self.expression
                else None
            ),
        )

    def databases(self) -> list[DatabaseResource]:
        """Databases declared on this resource so far."""
        return [
            child
            for child in self.children
            if isinstance(child, DatabaseResource)
        ]

    def database_names(self) -> list[str]:
        """Names of the databases declared on this resource so far."""
        return [database.database_name for database in self.databases()]


class CosmosDBResource(CloudResource):
    """Document database account."""

    kind = 'cosmosdb'
    template = 'cosmosdb.bicep'
    expression = '{{{name}.secretOutputs.connectionString}}'


class SqlServerResource(CloudResource):
    """SQL server authenticated with the ambient directory identity."""

    kind = 'sql'
    template = 'sql.bicep'
    expression = (
        'Server=tcp:{{{name}.outputs.sqlServerFqdn}},1433;Encrypt=True;'
        'Authentication="Active Directory Default"'
    )


class AppConfigurationResource(CloudResource):
    """Application configuration store."""

    kind = 'appconfig'
    template = 'appconfig.bicep'
    expression = '{{{name}.outputs.appConfigEndpoint}}'


class ApplicationInsightsResource(CloudResource):
    """Application telemetry sink."""

    kind = 'appinsights'
    template = 'appinsights.bicep'
    expression = '{{{name}.outputs.appInsightsConnectionString}}'
    environment_variable = 'APPLICATIONINSIGHTS_CONNECTION_STRING'


class KeyVaultResource(CloudResource):
    """Secret store."""

    kind = 'keyvault'
    template = 'keyvault.bicep'
    expression = '{{{name}.outputs.vaultUri}}'


class ServiceBusResource(CloudResource):
    """Message bus namespace with queues and topics."""

    kind = 'servicebus'
    template = 'servicebus.bicep'
    expression = '{{{name}.outputs.serviceBusEndpoint}}'


class StorageResource(CloudResource):
    """Storage account exposing blob, queue, and table endpoints."""

    kind = 'storage'
    template = 'storage.bicep'


class StorageServiceResource(ChildResource):
    """Blob, queue, or table service of a storage account."""

    kind = 'storage.service'

    def __init__(self, name: str, parent: StorageResource, service: str) -> None:
        """Initialize a storage service.

        Args:
            name: Unique name of the resource.
            parent: Storage account.
            service: Service name: `blob`, `queue`, or `table`.
        """
        super().__init__(
            name,
            parent,
            connection_string_expression=f'{{{parent.name}.outputs.{service}Endpoint}}',
        )

        self.service = service


class CloudRedisResource(CloudResource):
    """Managed cache, the cloud counterpart of a local Redis container."""

    kind = 'redis.cloud'
    template = 'redis.bicep'
    expression = '{{{name}.secretOutputs.connectionString}}'


class CloudPostgresResource(CloudResource):
    """Managed PostgreSQL flexible server."""

    kind = 'postgres.cloud'
    template = 'postgres.bicep'
    expression = '{{{name}.secretOutputs.connectionString}}'


class RedisResource(ContainerResource):
    """Local Redis container."""

    kind = 'redis'

    def __init__(self, name: str) -> None:
        """Initialize a Redis container."""
        super().__init__(name, 'redis')


class PostgresServerResource(ContainerResource):
    """Local PostgreSQL container."""

    kind = 'postgres'

    #: Default user of the container image.
    user: ClassVar[str] = 'postgres'

    def __init__(self, name: str, password: str | None = None) -> None:
        """Initialize a PostgreSQL container.

        Args:
            name: Unique name of the resource.
            password: Superuser password; generated when omitted.
        """
        super().__init__(name, 'postgres')

        self.password = password or token_urlsafe(16)

    def local_connection_string(self) -> str:
        """Connection string of the primary endpoint."""
        endpoint = self.primary_endpoint()
        return (
            f'Host={endpoint.address};Port={endpoint.port};'
            f'Username={self.user};Password={escape_password(self.password)}'
        )

    def database_names(self) -> list[str]:
        """Names of the databases declared on this server so far."""
        return [
            child.database_name
            for child in self.children
            if isinstance(child, DatabaseResource)
        ]


def escape_password(password: str) -> str:
    """Quote a password for a key-value connection string."""
    return password.replace('"', '""')

