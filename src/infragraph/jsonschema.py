"""JSON Schema of manifest documents."""

from functools import cache
from json import dumps

from pydantic.json_schema import GenerateJsonSchema

from infragraph.manifest import ManifestDocument


class SchemaGenerator(GenerateJsonSchema):
    """JSON Schema generator for manifest documents.

    Manifest entries hold rendered values only, so the default pydantic
    generation applies; the generator adds the document title and the
    schema dialect.
    """

    @classmethod
    @cache
    def make_schema(cls, indent: int | str | None = 4) -> str:
        """Generate the JSON Schema of manifest documents.

        Args:
            indent: Indentation of the serialized schema.

        Returns:
            The schema serialized to JSON.
        """
        schema = {
            **ManifestDocument.model_json_schema(
                by_alias=True,
                schema_generator=cls,
            ),
            'title': 'infragraph manifest',
            'description': 'JSON Schema of infragraph manifest documents',
            '$schema': cls.schema_dialect,
        }

        return dumps(
            schema,
            ensure_ascii=False,
            sort_keys=True,
            indent=indent,
        )
