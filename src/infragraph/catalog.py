"""Factory functions declaring resources on a graph.

Every factory creates a resource, fills the parameters its template
expects, adds it to the graph, and returns it. Database lists are
declared as deferred values over the children of the server, so
databases added after the server are visible when the parameter is
resolved or rendered.
"""

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from infragraph.errors import ConfigurationError
from infragraph.resources import (
    AppConfigurationResource,
    ApplicationInsightsResource,
    CloudPostgresResource,
    CloudRedisResource,
    CosmosDBResource,
    DatabaseResource,
    KeyVaultResource,
    KnownParameters,
    ParameterResource,
    PostgresServerResource,
    ProjectResource,
    RedisResource,
    ServiceBusResource,
    SqlServerResource,
    StorageResource,
    StorageServiceResource,
    TemplateResource,
)

if TYPE_CHECKING:
    from infragraph.graph import ResourceGraph
    from infragraph.resources import Resource
    from infragraph.values import RuntimeValue


def add_template(graph: 'ResourceGraph', name: str, *,
                 template_file: str | None = None,
                 template_string: str | None = None,
                 parameters: 'dict[str, RuntimeValue] | None' = None,
                 connection_string_expression: str | None = None) -> TemplateResource:
    """Declare a resource deployed from a template file or string.

    Args:
        graph: Graph to add the resource to.
        name: Unique name of the resource.
        template_file: Path of the template file.
        template_string: Inline template content.
        parameters: Initial template parameters.
        connection_string_expression: Optional expression template.

    Returns:
        The declared resource.

    Raises:
        ConfigurationError: If not exactly one template source is given
            or the name is already declared.
    """
    resource = TemplateResource(
        name,
        template_file=template_file,
        template_string=template_string,
        connection_string_expression=connection_string_expression,
    )

    for key, value in (parameters or {}).items():
        resource.set_parameter(key, value)

    return graph.add(resource)


def add_parameter(graph: 'ResourceGraph', name: str, value: str | None = None, *,
                  secret: bool = False) -> ParameterResource:
    """Declare an externally supplied parameter."""
    return graph.add(ParameterResource(name, value, secret=secret))


def add_project(graph: 'ResourceGraph', name: str, path: str) -> ProjectResource:
    """Declare an application process consuming other resources."""
    return graph.add(ProjectResource(name, path))


def add_database(server: 'Resource', name: str,
                 database_name: str | None = None) -> DatabaseResource:
    """Declare a database on a server resource.

    The database is added to the graph of the server, which must have
    been added to one already.

    Args:
        server: Server resource owning the database.
        name: Unique name of the database resource.
        database_name: Name of the database on the server; the resource
            name by default.

    Returns:
        The declared database.

    Raises:
        ConfigurationError: If the server does not belong to a graph.
    """
    database = DatabaseResource(name, server, database_name)
    return _graph_of(server).add(database)


def add_cosmos_db(graph: 'ResourceGraph', name: str) -> CosmosDBResource:
    """Declare a document database account."""
    cosmos = CosmosDBResource(name)
    cosmos.set_parameter('databaseAccountName', name)
    cosmos.set_parameter('databases', cosmos.database_names)

    return graph.add(cosmos)


def add_sql_server(graph: 'ResourceGraph', name: str) -> SqlServerResource:
    """Declare a SQL server."""
    sql = SqlServerResource(name)
    sql.set_parameter('serverName', name)
    sql.set_parameter('databases', sql.database_names)

    return graph.add(sql)


def add_app_configuration(graph: 'ResourceGraph', name: str) -> AppConfigurationResource:
    """Declare an application configuration store."""
    config = AppConfigurationResource(name)
    config.set_parameter('configName', name.lower())

    return graph.add(config)


def add_application_insights(graph: 'ResourceGraph', name: str) -> ApplicationInsightsResource:
    """Declare an application telemetry sink."""
    insights = ApplicationInsightsResource(name)
    insights.set_parameter('appInsightsName', name.lower())

    return graph.add(insights)


def add_key_vault(graph: 'ResourceGraph', name: str) -> KeyVaultResource:
    """Declare a secret store."""
    vault = KeyVaultResource(name)
    vault.set_parameter('vaultName', name.lower())

    return graph.add(vault)


def add_service_bus(graph: 'ResourceGraph', name: str,
                    queues: Iterable[str] = (),
                    topics: Iterable[str] = ()) -> ServiceBusResource:
    """Declare a message bus namespace.

    Args:
        graph: Graph to add the resource to.
        name: Unique name of the namespace.
        queues: Names of the queues to create.
        topics: Names of the topics to create.

    Returns:
        The declared namespace.
    """
    bus = ServiceBusResource(name)
    bus.set_parameter('serviceBusNamespaceName', name)
    bus.set_parameter('queues', list(queues))
    bus.set_parameter('topics', list(topics))

    return graph.add(bus)


def add_storage(graph: 'ResourceGraph', name: str) -> StorageResource:
    """Declare a storage account."""
    storage = StorageResource(name)
    storage.set_parameter('storageName', name.lower())

    return graph.add(storage)


def _add_storage_service(storage: StorageResource, name: str,
                         service: str) -> StorageServiceResource:
    return _graph_of(storage).add(StorageServiceResource(name, storage, service))


def add_blobs(storage: StorageResource, name: str) -> StorageServiceResource:
    """Declare the blob service of a storage account."""
    return _add_storage_service(storage, name, 'blob')


def add_queues(storage: StorageResource, name: str) -> StorageServiceResource:
    """Declare the queue service of a storage account."""
    return _add_storage_service(storage, name, 'queue')


def add_tables(storage: StorageResource, name: str) -> StorageServiceResource:
    """Declare the table service of a storage account."""
    return _add_storage_service(storage, name, 'table')


def add_redis(graph: 'ResourceGraph', name: str) -> RedisResource:
    """Declare a local Redis container."""
    return graph.add(RedisResource(name))


def _cloud_redis(redis: RedisResource) -> CloudRedisResource:
    cloud = CloudRedisResource(redis.name)
    cloud.set_parameter('redisCacheName', redis.name.lower())
    cloud.set_parameter(KnownParameters.KEY_VAULT_NAME, '')

    return cloud


def as_cloud_redis(redis: RedisResource,
                   configure: Callable[[CloudRedisResource], None] | None = None) -> RedisResource:
    """Promote a local Redis container to a managed cache.

    Connection-string queries on the container delegate to the cache
    from now on.

    Args:
        redis: Local container.
        configure: Optional callback receiving the managed cache.

    Returns:
        The local container.

    Raises:
        RedirectionError: If the container is already promoted.
    """
    cloud = redis.redirect_to(_cloud_redis(redis))
    if configure is not None:
        configure(cloud)

    return redis


def publish_as_cloud_redis(redis: RedisResource,
                           configure: Callable[[CloudRedisResource], None] | None = None) -> RedisResource:
    """Publish a local Redis container as a managed cache.

    The container keeps running locally; only manifests describe the
    managed cache.
    """
    cloud = redis.publish_as(_cloud_redis(redis))
    if configure is not None:
        configure(cloud)

    return redis


def add_postgres(graph: 'ResourceGraph', name: str,
                 password: str | None = None) -> PostgresServerResource:
    """Declare a local PostgreSQL container."""
    return graph.add(PostgresServerResource(name, password))


def _cloud_postgres(postgres: PostgresServerResource,
                    administrator_login: 'RuntimeValue',
                    administrator_login_password: 'RuntimeValue') -> CloudPostgresResource:
    cloud = CloudPostgresResource(postgres.name)
    cloud.set_parameter('serverName', postgres.name)
    cloud.set_parameter('administratorLogin', administrator_login)
    cloud.set_parameter('administratorLoginPassword', administrator_login_password)
    cloud.set_parameter('databases', postgres.database_names)
    cloud.set_parameter(KnownParameters.KEY_VAULT_NAME, '')

    return cloud


def as_cloud_postgres(postgres: PostgresServerResource,
                      administrator_login: 'RuntimeValue',
                      administrator_login_password: 'RuntimeValue',
                      configure: Callable[[CloudPostgresResource], None] | None = None) -> PostgresServerResource:
    """Promote a local PostgreSQL container to a managed flexible server.

    Databases declared on the container, before or after the promotion,
    are created on the managed server.

    Args:
        postgres: Local container.
        administrator_login: Administrator login, usually a parameter
            resource.
        administrator_login_password: Administrator password, usually a
            secret parameter resource.
        configure: Optional callback receiving the managed server.

    Returns:
        The local container.

    Raises:
        RedirectionError: If the container is already promoted.
    """
    cloud = postgres.redirect_to(
        _cloud_postgres(postgres, administrator_login, administrator_login_password),
    )
    if configure is not None:
        configure(cloud)

    return postgres


def publish_as_cloud_postgres(postgres: PostgresServerResource,
                              administrator_login: 'RuntimeValue',
                              administrator_login_password: 'RuntimeValue',
                              configure: Callable[[CloudPostgresResource], None] | None = None,
                              ) -> PostgresServerResource:
    """Publish a local PostgreSQL container as a managed flexible server.

    The container keeps running locally; only manifests describe the
    managed server.
    """
    cloud = postgres.publish_as(
        _cloud_postgres(postgres, administrator_login, administrator_login_password),
    )
    if configure is not None:
        configure(cloud)

    return postgres


def _graph_of(resource: 'Resource') -> 'ResourceGraph':
    """Return the graph of a resource.

    Raises:
        ConfigurationError: If the resource was not added to a graph.
    """
    if resource.graph is None:
        raise ConfigurationError(
            f'Resource {resource.name!r} does not belong to a graph',
            resource=resource.name,
        )

    return resource.graph
