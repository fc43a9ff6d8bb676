# tests/plugins/test_extractor.py
"""Tests for decoding embedded plugin schemas."""

import json
from collections.abc import Callable
from typing import Any

import pytest


class TestExtractPluginSchema:
    """Reading the schema out of a module without instantiating it."""

    def test_round_trip(self, schema_module_builder: Callable[..., bytes]) -> None:
        from cadenza.contracts import FieldKind
        from cadenza.plugins.extractor import extract_plugin_schema

        raw = '{"type": "object", "properties": {"temperature": {"type": "number"}}}'
        module = schema_module_builder("com.example.heater", raw, "Hotend heater")

        schema = extract_plugin_schema(module)

        assert schema is not None
        assert schema.plugin_id == "com.example.heater"
        assert schema.raw_json_schema == raw
        assert schema.description == "Hotend heater"
        assert schema.json_schema.properties["temperature"].kind is FieldKind.NUMBER

    def test_component_module(self, schema_module_builder: Callable[..., bytes]) -> None:
        from cadenza.plugins.extractor import extract_plugin_schema

        module = schema_module_builder("c", {"type": "object"}, component=True)
        schema = extract_plugin_schema(module)
        assert schema is not None
        assert schema.plugin_id == "c"

    def test_no_section(self, module_builder: Callable[..., bytes]) -> None:
        from cadenza.plugins.extractor import extract_plugin_schema

        assert extract_plugin_schema(module_builder([b"\x01\x01\x00"])) is None

    def test_custom_section_name(self, module_builder: Callable[..., bytes]) -> None:
        from cadenza.core.sections import encode_custom_section
        from cadenza.plugins.extractor import encode_schema_payload, extract_plugin_schema
        from cadenza.contracts import ObjectSchema, PluginSchema

        payload = encode_schema_payload(
            PluginSchema(plugin_id="p", json_schema=ObjectSchema(), raw_json_schema='{"type":"object"}')
        )
        module = module_builder([encode_custom_section("my-schema", payload)])

        assert extract_plugin_schema(module) is None
        schema = extract_plugin_schema(module, "my-schema")
        assert schema is not None
        assert schema.plugin_id == "p"

    def test_malformed_container(self) -> None:
        from cadenza.contracts import ParseError
        from cadenza.plugins.extractor import extract_plugin_schema

        with pytest.raises(ParseError):
            extract_plugin_schema(b"garbage!")


class TestDecodeSchemaPayload:
    """Envelope decoding."""

    def test_not_json(self) -> None:
        from cadenza.contracts import MalformedSchema
        from cadenza.plugins.extractor import decode_schema_payload

        with pytest.raises(MalformedSchema):
            decode_schema_payload(b"\xff\x00")

    def test_missing_plugin_id(self) -> None:
        from cadenza.contracts import MalformedSchema
        from cadenza.plugins.extractor import decode_schema_payload

        with pytest.raises(MalformedSchema, match="plugin_id"):
            decode_schema_payload(b'{"json_schema": "{\\"type\\": \\"object\\"}"}')

    def test_empty_plugin_id(self) -> None:
        from cadenza.contracts import MalformedSchema
        from cadenza.plugins.extractor import decode_schema_payload

        payload = json.dumps({"plugin_id": "", "json_schema": '{"type": "object"}'})
        with pytest.raises(MalformedSchema, match="plugin_id"):
            decode_schema_payload(payload.encode())

    def test_json_schema_must_be_text(self) -> None:
        from cadenza.contracts import MalformedSchema
        from cadenza.plugins.extractor import decode_schema_payload

        payload = json.dumps({"plugin_id": "p", "json_schema": {"type": "object"}})
        with pytest.raises(MalformedSchema):
            decode_schema_payload(payload.encode())

    def test_extra_envelope_keys_ignored(self) -> None:
        from cadenza.plugins.extractor import decode_schema_payload

        payload = json.dumps(
            {"plugin_id": "p", "json_schema": '{"type": "object"}', "builder": "2.1"}
        )
        assert decode_schema_payload(payload.encode()).plugin_id == "p"

    def test_encode_then_decode_preserves_text(self) -> None:
        from cadenza.plugins.extractor import (
            decode_json_schema,
            decode_schema_payload,
            encode_schema_payload,
        )
        from cadenza.contracts import PluginSchema

        raw = '{ "type" : "object" ,"properties":{"a":{"type":"string"}} }'
        original = PluginSchema(
            plugin_id="p", json_schema=decode_json_schema(raw), raw_json_schema=raw
        )
        decoded = decode_schema_payload(encode_schema_payload(original))
        assert decoded == original


class TestDecodeJsonSchema:
    """The supported JSON Schema subset."""

    def test_full_subset(self) -> None:
        from cadenza.contracts import FieldKind
        from cadenza.plugins.extractor import decode_json_schema

        schema = decode_json_schema(
            json.dumps(
                {
                    "$schema": "https://json-schema.org/draft/2020-12/schema",
                    "title": "Heater",
                    "type": "object",
                    "properties": {
                        "enabled": {"type": "boolean", "default": True},
                        "tool": {"type": "integer", "minimum": 0, "maximum": 7},
                        "temperature": {"type": "number", "maximum": 300},
                        "name": {"type": "string", "description": "label"},
                        "pid": {
                            "type": "object",
                            "properties": {"kp": {"type": "number"}},
                            "required": ["kp"],
                            "additionalProperties": False,
                        },
                    },
                    "required": ["tool"],
                    "additionalProperties": False,
                    "x-ui-order": ["tool"],
                }
            )
        )

        assert list(schema.properties) == ["enabled", "tool", "temperature", "name", "pid"]
        assert schema.required == frozenset({"tool"})
        assert schema.closed is True
        assert schema.properties["enabled"].default is True
        assert schema.properties["tool"].minimum == 0
        assert schema.properties["name"].description == "label"
        pid = schema.properties["pid"]
        assert pid.kind is FieldKind.OBJECT
        assert pid.closed is True
        assert pid.required == frozenset({"kp"})

    @pytest.mark.parametrize(
        ("node", "keyword"),
        [
            ({"type": "string", "pattern": "^a"}, "pattern"),
            ({"type": "string", "enum": ["a"]}, "enum"),
            ({"$ref": "#/defs/x"}, "$ref"),
            ({"type": "number", "anyOf": []}, "anyOf"),
            ({"type": ["string", "null"]}, "type"),
            ({"type": "array"}, "type: array"),
            ({"type": "null"}, "type: null"),
        ],
    )
    def test_unsupported_constructs(self, node: dict[str, Any], keyword: str) -> None:
        from cadenza.contracts import UnsupportedSchemaShape
        from cadenza.plugins.extractor import decode_json_schema

        text = json.dumps({"type": "object", "properties": {"f": node}})
        with pytest.raises(UnsupportedSchemaShape) as exc_info:
            decode_json_schema(text)
        assert exc_info.value.keyword == keyword
        assert exc_info.value.path == "$.properties.f"

    def test_additional_properties_schema_unsupported(self) -> None:
        from cadenza.contracts import UnsupportedSchemaShape
        from cadenza.plugins.extractor import decode_json_schema

        with pytest.raises(UnsupportedSchemaShape):
            decode_json_schema('{"type": "object", "additionalProperties": {"type": "string"}}')

    @pytest.mark.parametrize(
        "text",
        [
            "not json",
            "[]",
            '{"type": "string"}',
            '{"type": "object", "properties": {"a": {"type": "decimal"}}}',
            '{"type": "object", "properties": {"a": {"description": "no type"}}}',
            '{"type": "object", "properties": {"a": {"type": "string", "minimum": 1}}}',
            '{"type": "object", "properties": {"a": {"type": "integer", "default": "x"}}}',
            '{"type": "object", "properties": {"a": {"type": "string"}}, "required": ["b"]}',
            '{"type": "object", "required": "a"}',
            '{"type": "object", "properties": {"a": {"type": "number", "default": NaN}}}',
        ],
    )
    def test_malformed(self, text: str) -> None:
        from cadenza.contracts import MalformedSchema
        from cadenza.plugins.extractor import decode_json_schema

        with pytest.raises(MalformedSchema):
            decode_json_schema(text)
