"""Manifest documents describing a graph for deployment tooling.

A manifest entry is written per resource. It carries the unresolved
connection-string expression verbatim and the template parameters
rendered without resolution: references become placeholders, and
parameters embedding secrets are replaced by a placeholder so that no
secret is ever written in plaintext.

Local resources published as, or redirected to, a cloud counterpart are
described by the counterpart.
"""

from json import dumps
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ConfigDict, Field

from infragraph.environment import ExecutionContext, Operation, build_environment
from infragraph.errors import ConfigurationError
from infragraph.expressions import RenderedValue, render
from infragraph.models import SchemaModel
from infragraph.names import ResourceName  # noqa: TC001
from infragraph.resources import ContainerResource, ParameterResource, ProjectResource, TemplateResource

if TYPE_CHECKING:
    from infragraph.graph import ResourceGraph
    from infragraph.resources import Resource

#: Suffix of template files written for inline templates.
TEMPLATE_SUFFIX = '.module.bicep'


class ParameterInput(SchemaModel):
    """Input prompted for when a parameter has no value at deployment."""

    type: str = Field(
        default='string',
        title='Input type',
        description='Type of the input value.',
    )

    secret: bool = Field(
        default=False,
        title='Secret',
        description='Whether the input must be stored in a secret channel.',
    )


class ManifestEntry(SchemaModel):
    """Manifest entry of a single resource."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(
        title='Resource type',
        description='Manifest type tag of the resource, such as "cloud.bicep.v0".',
        examples=['cloud.bicep.v0', 'parameter.v0'],
    )

    path: str | None = Field(
        default=None,
        title='Path',
        description='Location of the underlying template or project definition.',
    )

    params: dict[str, RenderedValue] | None = Field(
        default=None,
        title='Template parameters',
        description=(
            'Parameters rendered without resolution. Secret values appear '
            'only as `{name.secretParameters.key}` placeholders.'
        ),
    )

    connection_string: str | None = Field(
        default=None,
        alias='connectionString',
        title='Connection string',
        description='Unresolved connection-string expression, verbatim.',
    )

    parent: ResourceName | None = Field(
        default=None,
        title='Parent',
        description='Name of the parent resource, for child resources.',
    )

    image: str | None = Field(
        default=None,
        title='Container image',
        description='Image reference of a container resource.',
    )

    value: str | None = Field(
        default=None,
        title='Parameter value',
        description='Placeholder of the value of a parameter resource.',
    )

    inputs: dict[str, ParameterInput] | None = Field(
        default=None,
        title='Parameter inputs',
        description='Inputs of a parameter resource.',
    )

    env: dict[str, str] | None = Field(
        default=None,
        title='Environment',
        description='Environment variables of a project, as expression templates.',
    )

    def as_json(self) -> dict[str, Any]:
        """Dump the entry with manifest field names, omitting empty fields."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


class ManifestDocument(SchemaModel):
    """Manifest of a whole graph."""

    resources: dict[ResourceName, ManifestEntry] = Field(
        default_factory=dict,
        title='Resources',
        description='Manifest entries keyed by resource name, in declaration order.',
    )


class ManifestContext:
    """Location where manifest side files are written."""

    def __init__(self, base_dir: str | Path) -> None:
        """Initialize a manifest context.

        Args:
            base_dir: Directory receiving template files; manifest paths
                are relative to it.
        """
        self.base_dir = Path(base_dir)

    def write_template(self, name: str, content: str) -> str:
        """Write an inline template and return its relative path."""
        self.base_dir.mkdir(parents=True, exist_ok=True)

        path = self.base_dir / f'{name}{TEMPLATE_SUFFIX}'
        path.write_text(content)

        return path.name


def _template_path(resource: TemplateResource, context: ManifestContext) -> str | None:
    if resource.template_string is not None:
        return context.write_template(resource.name, resource.template_string)

    return resource.template_file or resource.template_resource_name


def build_entry(resource: 'Resource', context: ManifestContext) -> ManifestEntry:
    """Build the manifest entry of a resource.

    Args:
        resource: Declared resource.
        context: Manifest context receiving side files.

    Returns:
        The manifest entry of the resource or of its published
        counterpart.

    Raises:
        ConfigurationError: If the resource kind has no manifest type.
        ExpressionSyntaxError: If an environment callback fails to render.
    """
    published = resource.published_resource()
    if published.manifest_type is None:
        raise ConfigurationError(
            f'Resource {resource.name!r} of kind {published.kind!r} can not be published',
            resource=resource.name,
        )

    fields: dict[str, Any] = {
        'type': published.manifest_type,
        'connection_string': published.connection_string_expression,
    }

    if resource.parent is not None:
        fields['parent'] = resource.parent.name

    if isinstance(published, TemplateResource):
        fields['path'] = _template_path(published, context)
        fields['params'] = {
            key: render(value, owner=published.name, key=key)
            for key, value in published.parameters.items()
        }

    elif isinstance(published, ParameterResource):
        fields['connection_string'] = None
        fields['value'] = f'{{{published.name}.inputs.value}}'
        fields['inputs'] = {'value': ParameterInput(secret=published.secret)}

    elif isinstance(published, ContainerResource):
        fields['image'] = published.image_reference

    elif isinstance(published, ProjectResource):
        fields['path'] = published.path
        fields['env'] = build_environment(
            published,
            ExecutionContext(operation=Operation.PUBLISH),
        )

    return ManifestEntry(**fields)


def write_manifest(resource: 'Resource', context: ManifestContext) -> dict[str, Any]:
    """Write the manifest entry of a resource as a JSON object."""
    return build_entry(resource, context).as_json()


def write_graph_manifest(graph: 'ResourceGraph', context: ManifestContext) -> dict[str, Any]:
    """Write the manifest of a graph.

    Returns:
        A `{'resources': {name: entry}}` JSON object in declaration order.
    """
    document = ManifestDocument(resources={
        resource.name: build_entry(resource, context)
        for resource in graph.resources()
    })

    return document.model_dump(mode='json', by_alias=True, exclude_none=True)


def dumps_manifest(graph: 'ResourceGraph', context: ManifestContext,
                   indent: int | str | None = 2) -> str:
    """Serialize the manifest of a graph to JSON."""
    return dumps(
        write_graph_manifest(graph, context),
        ensure_ascii=False,
        indent=indent,
    )
