# src/cadenza/plugins/extractor.py
"""Decode a plugin's embedded configuration schema.

The custom section payload is a JSON envelope:

    {"plugin_id": "com.example.demo",
     "json_schema": "{\\"type\\": \\"object\\", \\"properties\\": {...}}",
     "description": "..."}

json_schema is itself JSON text, decoded into the supported subset of
JSON Schema. Anything outside that subset is reported as
UnsupportedSchemaShape rather than ignored: dropping a constraint would let
a plugin accept configuration its author meant to reject.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from cadenza.contracts.enums import FieldKind
from cadenza.contracts.errors import MalformedSchema, UnsupportedSchemaShape
from cadenza.contracts.schema import FieldSchema, ObjectSchema, PluginSchema
from cadenza.core.logging import get_logger
from cadenza.core.sections import CONFIG_SCHEMA_SECTION, find_custom_section

logger = get_logger(__name__)

# Keywords that change what a document may contain but are not enforced
UNSUPPORTED_KEYWORDS: frozenset[str] = frozenset(
    {
        # references
        "$ref",
        "$dynamicRef",
        "$defs",
        "definitions",
        # arrays
        "items",
        "prefixItems",
        "additionalItems",
        "contains",
        "minItems",
        "maxItems",
        "uniqueItems",
        "unevaluatedItems",
        # composition and conditionals
        "allOf",
        "anyOf",
        "oneOf",
        "not",
        "if",
        "then",
        "else",
        "dependentSchemas",
        "dependentRequired",
        "dependencies",
        # unenforced constraints
        "pattern",
        "patternProperties",
        "propertyNames",
        "unevaluatedProperties",
        "format",
        "enum",
        "const",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "multipleOf",
        "minLength",
        "maxLength",
        "minProperties",
        "maxProperties",
    }
)

# Informational keywords with no effect on validation
ANNOTATION_KEYWORDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "examples",
        "$schema",
        "$id",
        "$comment",
        "deprecated",
        "readOnly",
        "writeOnly",
    }
)

FIELD_KEYWORDS: frozenset[str] = frozenset(
    {
        "type",
        "default",
        "minimum",
        "maximum",
        "properties",
        "required",
        "additionalProperties",
    }
)

_UNSUPPORTED_TYPES = frozenset({"array", "null"})


class SchemaEnvelope(BaseModel):
    """Wire format of the custom section payload.

    Unknown envelope keys are ignored so newer plugin builders can add
    metadata without breaking older hosts.
    """

    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    plugin_id: str
    json_schema: str
    description: str | None = None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} in schema")


def _check_keywords(node: dict[str, Any], path: str) -> None:
    for keyword in node:
        if keyword in FIELD_KEYWORDS or keyword in ANNOTATION_KEYWORDS:
            continue
        if keyword.startswith("x-"):
            continue
        raise UnsupportedSchemaShape(path, keyword)


def _decode_kind(node: dict[str, Any], path: str) -> FieldKind:
    if "type" not in node:
        raise MalformedSchema(f"{path}: missing 'type'")
    declared = node["type"]
    if isinstance(declared, list):
        raise UnsupportedSchemaShape(path, "type")
    if not isinstance(declared, str):
        raise MalformedSchema(f"{path}: 'type' must be a string")
    if declared in _UNSUPPORTED_TYPES:
        raise UnsupportedSchemaShape(path, f"type: {declared}")
    try:
        return FieldKind(declared)
    except ValueError:
        raise MalformedSchema(f"{path}: unknown type {declared!r}") from None


def _decode_members(
    node: dict[str, Any], path: str
) -> tuple[dict[str, FieldSchema], frozenset[str], bool]:
    """Decode properties/required/additionalProperties of an object node."""
    raw_properties = node.get("properties", {})
    if not isinstance(raw_properties, dict):
        raise MalformedSchema(f"{path}: 'properties' must be an object")
    properties = {
        name: _decode_field(child, f"{path}.properties.{name}")
        for name, child in raw_properties.items()
    }

    raw_required = node.get("required", [])
    if not isinstance(raw_required, list) or not all(
        isinstance(name, str) for name in raw_required
    ):
        raise MalformedSchema(f"{path}: 'required' must be a list of strings")

    additional = node.get("additionalProperties", True)
    if isinstance(additional, dict):
        raise UnsupportedSchemaShape(path, "additionalProperties")
    if not isinstance(additional, bool):
        raise MalformedSchema(f"{path}: 'additionalProperties' must be a boolean")

    return properties, frozenset(raw_required), not additional


def _decode_field(node: Any, path: str) -> FieldSchema:
    if not isinstance(node, dict):
        raise MalformedSchema(f"{path}: field schema must be an object")
    _check_keywords(node, path)
    kind = _decode_kind(node, path)

    description = node.get("description")
    if description is not None and not isinstance(description, str):
        raise MalformedSchema(f"{path}: 'description' must be a string")

    if kind is FieldKind.OBJECT:
        properties, required, closed = _decode_members(node, path)
    else:
        for keyword in ("properties", "required", "additionalProperties"):
            if keyword in node:
                raise MalformedSchema(f"{path}: {keyword!r} is only valid on objects")
        properties, required, closed = {}, frozenset(), False

    try:
        return FieldSchema(
            kind=kind,
            description=description,
            default=node.get("default"),
            minimum=node.get("minimum"),
            maximum=node.get("maximum"),
            properties=properties,
            required=required,
            closed=closed,
        )
    except ValueError as e:
        raise MalformedSchema(f"{path}: {e}") from e


def decode_json_schema(text: str) -> ObjectSchema:
    """Decode JSON Schema text into the supported object subset.

    Raises:
        MalformedSchema: If the text is not a valid object schema
        UnsupportedSchemaShape: If it uses unsupported constructs
    """
    try:
        document = json.loads(text, parse_constant=_reject_constant)
    except ValueError as e:
        raise MalformedSchema(f"json_schema is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedSchema("json_schema must be a JSON object")
    _check_keywords(document, "$")
    if _decode_kind(document, "$") is not FieldKind.OBJECT:
        raise MalformedSchema("$: top-level schema must have type 'object'")
    for keyword in ("default", "minimum", "maximum"):
        if keyword in document:
            raise MalformedSchema(f"$: {keyword!r} is not valid on the top-level schema")

    properties, required, closed = _decode_members(document, "$")
    try:
        return ObjectSchema(properties=properties, required=required, closed=closed)
    except ValueError as e:
        raise MalformedSchema(f"$: {e}") from e


def decode_schema_payload(payload: bytes) -> PluginSchema:
    """Decode a custom section payload into a PluginSchema.

    Raises:
        MalformedSchema: If the envelope or schema cannot be decoded
        UnsupportedSchemaShape: If the schema uses unsupported constructs
    """
    try:
        envelope = SchemaEnvelope.model_validate_json(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or '$'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedSchema(f"invalid schema envelope: {problems}") from e

    if not envelope.plugin_id.strip():
        raise MalformedSchema("plugin_id cannot be empty")

    json_schema = decode_json_schema(envelope.json_schema)
    return PluginSchema(
        plugin_id=envelope.plugin_id,
        json_schema=json_schema,
        raw_json_schema=envelope.json_schema,
        description=envelope.description,
    )


def encode_schema_payload(schema: PluginSchema) -> bytes:
    """Encode a PluginSchema into the custom section payload format."""
    envelope = SchemaEnvelope(
        plugin_id=schema.plugin_id,
        json_schema=schema.raw_json_schema,
        description=schema.description,
    )
    return envelope.model_dump_json().encode("utf-8")


def extract_plugin_schema(
    module: bytes | bytearray | memoryview,
    section_name: str = CONFIG_SCHEMA_SECTION,
) -> PluginSchema | None:
    """Extract the configuration schema from a plugin binary.

    Reads the custom section without loading or instantiating the plugin.

    Returns:
        The decoded schema, or None if the plugin embeds no schema

    Raises:
        ParseError: If the binary container is malformed
        MalformedSchema: If the section payload cannot be decoded
        UnsupportedSchemaShape: If the schema uses unsupported constructs
    """
    payload = find_custom_section(module, section_name)
    if payload is None:
        return None
    schema = decode_schema_payload(payload)
    logger.debug(
        "Extracted plugin schema",
        plugin_id=schema.plugin_id,
        fields=len(schema.json_schema.properties),
    )
    return schema
