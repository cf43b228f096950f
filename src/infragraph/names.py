"""Identifier primitive types and validation rules.

This module defines the name patterns used for resources, output keys,
resource kinds, and the placeholder grammar of connection-string
expressions.

The rules defined here form part of the public contract: placeholders
written into manifests are parsed back with the same patterns.
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for resource names.
#: Names must start with a letter and may contain letters, digits,
#: underscores, or hyphens.
_NAME_PATTERN = r'[a-zA-Z][\w-]*'

#: Pattern for output and parameter keys.
_KEY_PATTERN = r'[a-zA-Z_][\w-]*'

#: Pattern for resource kind tags ("sql", "redis.cloud", "cloud.bicep.v0").
_KIND_PATTERN = r'[a-z][\w.-]*'

#: Compiled pattern for resource names.
RESOURCE_PATTERN = regexp(
    rf'^{_NAME_PATTERN}$',
    flags=ASCII,
)

#: Compiled pattern locating placeholders in an expression template.
#: The body is validated separately against `TOKEN_PATTERN`.
PLACEHOLDER_PATTERN = regexp(r'\{(?P<body>[^{}]*)\}')

#: Compiled pattern for a placeholder body, such as `sql.outputs.fqdn`
#: or `param.value`.
TOKEN_PATTERN = regexp(
    rf'^(?P<resource>{_NAME_PATTERN})'
    rf'\.(?P<channel>[a-zA-Z]+)'
    rf'(\.(?P<key>{_KEY_PATTERN}))?$',
    flags=ASCII,
)


ResourceName = Annotated[
    str, Field(
        pattern=rf'^{_NAME_PATTERN}$',
        title='Resource name',
        description=(
            'Unique name of a resource within a graph. '
            'The name is the stable identity of the resource across runs '
            'and is used to tag adopted cloud objects.'
        ),
        examples=[
            'cache',
            'sql',
            'appConfig',
        ],
    ),
]

OutputKey = Annotated[
    str, Field(
        pattern=rf'^{_KEY_PATTERN}$',
        title='Output key',
        description=(
            'Name of an output or secret output produced by provisioning, '
            'or of a parameter exposed through a placeholder.'
        ),
        examples=[
            'connectionString',
            'sqlServerFqdn',
        ],
    ),
]

ResourceKind = Annotated[
    str, Field(
        pattern=rf'^{_KIND_PATTERN}$',
        title='Resource kind',
        description=(
            'Tag selecting the provisioner and enumerator responsible for '
            'a resource. Lookup walks the resource class hierarchy, so a '
            'provisioner registered for a base kind also serves subclasses.'
        ),
        examples=[
            'bicep',
            'cosmosdb',
            'sql',
        ],
    ),
]
