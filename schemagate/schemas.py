"""
Adapters between route schemas and pydantic.

A route schema is anything ``pydantic.TypeAdapter`` understands: a
``BaseModel`` subclass, a ``TypedDict``, ``list[...]``, a primitive type,
an ``Annotated`` constraint, or an existing ``TypeAdapter``.  ``None``
stands for "no body allowed" and only accepts an absent payload.

Schemas are compiled once, when the ``SchemaContract`` is built, so that
request handling never pays the schema-building cost.
"""

import json
import typing

import pydantic
import pydantic_core

NO_CONTENT = None
"""Schema for statuses that carry no body, such as 204."""

_STRUCTURED_MEDIA_TYPES: frozenset[str] = frozenset({"application/json"})
_STRUCTURED_MEDIA_TYPE_SUFFIX = "+json"


def compile_schema(schema: typing.Any) -> pydantic.TypeAdapter:
    """Build (or reuse) the ``TypeAdapter`` that validates values against ``schema``."""
    if isinstance(schema, pydantic.TypeAdapter):
        return schema
    if is_no_body_schema(schema):
        return pydantic.TypeAdapter(type(None))
    return pydantic.TypeAdapter(schema)


def is_no_body_schema(schema: typing.Any) -> bool:
    """Return True for the schemas that describe a response without a body."""
    return schema is None or schema is type(None)


def dump_validated_value(adapter: pydantic.TypeAdapter, validated_value: typing.Any) -> typing.Any:
    """
    Convert a validated value into plain JSON-compatible Python data.

    Models are dumped by alias so that the wire names match the names the
    schema was declared with.
    """
    return adapter.dump_python(validated_value, mode="json", by_alias=True)


def to_jsonable(value: typing.Any) -> typing.Any:
    """Convert an arbitrary value (models, dataclasses, UUIDs, ...) into JSON-compatible data."""
    return pydantic_core.to_jsonable_python(value, by_alias=True)


def serialise_json(value: typing.Any) -> str:
    """Serialise a value to compact JSON text."""
    return json.dumps(to_jsonable(value), ensure_ascii=False, separators=(",", ":"))


def extract_media_type(content_type: str | None) -> str | None:
    """Return the lowercased media type of a Content-Type value, without parameters."""
    if not content_type:
        return None
    return content_type.split(";", 1)[0].strip().lower() or None


def is_structured_media_type(content_type: str | None) -> bool:
    """Return True when the content type declares JSON (``application/json`` or ``*/*+json``)."""
    media_type = extract_media_type(content_type)
    if media_type is None:
        return False
    return media_type in _STRUCTURED_MEDIA_TYPES or media_type.endswith(_STRUCTURED_MEDIA_TYPE_SUFFIX)


OPENAPI_REF_TEMPLATE = "#/components/schemas/{model}"

_SUBSCHEMA_MAP_KEYWORDS: frozenset[str] = frozenset({"properties", "patternProperties", "$defs"})
_SUBSCHEMA_KEYWORDS: frozenset[str] = frozenset({"items", "additionalProperties", "not"})
_SUBSCHEMA_LIST_KEYWORDS: frozenset[str] = frozenset({"anyOf", "oneOf", "allOf", "prefixItems"})

SchemaKey = typing.Hashable
SchemaInput = tuple[SchemaKey, typing.Literal["validation", "serialization"], pydantic.TypeAdapter]


def generate_json_schemas(
    schema_inputs: typing.Iterable[SchemaInput],
    openapi_30: bool = True,
) -> tuple[dict[SchemaKey, dict[str, typing.Any]], dict[str, typing.Any]]:
    """
    Produce the JSON Schemas of many adapters in a single generation pass.

    Generating everything together gives every model one definition name,
    so two different models sharing a class name, or one model whose
    validation and serialization schemas differ, never overwrite each
    other.  References point at ``#/components/schemas``.

    Args:
        schema_inputs: ``(key, mode, adapter)`` triples.  Each key must be
            unique.
        openapi_30: Rewrite the schemas into the OpenAPI 3.0 dialect.

    Returns:
        The schema of each key, and the shared definitions to publish
        under ``components.schemas``.
    """
    schema_inputs = list(schema_inputs)
    if not schema_inputs:
        return {}, {}

    keyed_schemas, top_level_schema = pydantic.TypeAdapter.json_schemas(
        schema_inputs,
        by_alias=True,
        ref_template=OPENAPI_REF_TEMPLATE,
    )
    schemas = {key: json_schema for (key, _mode), json_schema in keyed_schemas.items()}
    definitions = top_level_schema.get("$defs", {})

    if openapi_30:
        schemas = {key: convert_to_openapi_30(json_schema) for key, json_schema in schemas.items()}
        definitions = {name: convert_to_openapi_30(json_schema) for name, json_schema in definitions.items()}
    return schemas, definitions


def convert_to_openapi_30(json_schema: dict[str, typing.Any]) -> dict[str, typing.Any]:
    """
    Rewrite a JSON Schema 2020-12 document into the OpenAPI 3.0 schema dialect.

    - a union with ``null`` becomes the remaining schema plus ``nullable: true``
    - ``const`` becomes a one-value ``enum``
    - numeric ``exclusiveMinimum``/``exclusiveMaximum`` become ``minimum``/
      ``maximum`` with the boolean flag
    """
    converted: dict[str, typing.Any] = {}
    for keyword, value in json_schema.items():
        if keyword in _SUBSCHEMA_MAP_KEYWORDS and isinstance(value, dict):
            converted[keyword] = {name: convert_to_openapi_30(subschema) for name, subschema in value.items()}
        elif keyword in _SUBSCHEMA_KEYWORDS and isinstance(value, dict):
            converted[keyword] = convert_to_openapi_30(value)
        elif keyword in _SUBSCHEMA_LIST_KEYWORDS and isinstance(value, list):
            converted[keyword] = [convert_to_openapi_30(subschema) for subschema in value]
        else:
            converted[keyword] = value

    converted = _collapse_null_union(converted)

    if "const" in converted:
        const_value = converted.pop("const")
        converted.setdefault("enum", [const_value])

    for bound_keyword, limit_keyword in (("exclusiveMinimum", "minimum"), ("exclusiveMaximum", "maximum")):
        bound = converted.get(bound_keyword)
        if isinstance(bound, (int, float)) and not isinstance(bound, bool):
            converted[limit_keyword] = bound
            converted[bound_keyword] = True

    return converted


def _is_null_schema(json_schema: typing.Any) -> bool:
    return json_schema == {"type": "null"}


def _collapse_null_union(json_schema: dict[str, typing.Any]) -> dict[str, typing.Any]:
    schema_type = json_schema.get("type")
    if schema_type == "null":
        json_schema = {keyword: value for keyword, value in json_schema.items() if keyword != "type"}
        json_schema["nullable"] = True
        return json_schema
    if isinstance(schema_type, list) and "null" in schema_type:
        remaining_types = [type_name for type_name in schema_type if type_name != "null"]
        json_schema = dict(json_schema)
        if len(remaining_types) == 1:
            json_schema["type"] = remaining_types[0]
        else:
            json_schema.pop("type")
            json_schema["anyOf"] = [{"type": type_name} for type_name in remaining_types]
        json_schema["nullable"] = True

    for union_keyword in ("anyOf", "oneOf"):
        branches = json_schema.get(union_keyword)
        if not isinstance(branches, list) or not any(_is_null_schema(branch) for branch in branches):
            continue

        remaining_branches = [branch for branch in branches if not _is_null_schema(branch)]
        outer_schema = {keyword: value for keyword, value in json_schema.items() if keyword != union_keyword}
        outer_schema["nullable"] = True

        if len(remaining_branches) != 1:
            outer_schema[union_keyword] = remaining_branches
            return outer_schema

        [branch] = remaining_branches
        # Keywords next to a $ref are ignored in 3.0.
        if "$ref" in branch:
            outer_schema["allOf"] = [branch]
            return outer_schema
        return {**branch, **outer_schema}

    return json_schema
