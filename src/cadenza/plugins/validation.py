# src/cadenza/plugins/validation.py
"""Validate configuration documents against plugin schemas.

Violations are data, not exceptions. The validator always walks the whole
document and returns every violation so a user can fix a config in one
pass. Order is fixed by the schema's field declaration order, never by
the document's key order.
"""

import math
from collections.abc import Mapping
from typing import Any, Protocol

from cadenza.contracts.enums import kind_of
from cadenza.contracts.errors import ConfigValidationError
from cadenza.contracts.schema import FieldSchema, ObjectSchema
from cadenza.contracts.violations import (
    MissingRequiredField,
    NotAnObject,
    OutOfRange,
    TypeMismatch,
    UnknownField,
    Violation,
)
from cadenza.core.canonical import MAX_SAFE_INTEGER
from cadenza.core.logging import get_logger
from cadenza.plugins.registry import SchemaRegistry

logger = get_logger(__name__)


class SchemaLike(Protocol):
    """Anything with object-schema members: ObjectSchema or MergedSchema."""

    @property
    def properties(self) -> Mapping[str, FieldSchema]: ...

    @property
    def required(self) -> frozenset[str]: ...

    @property
    def closed(self) -> bool: ...


def _validate_members(
    values: Mapping[str, Any],
    properties: Mapping[str, FieldSchema],
    required: frozenset[str],
    closed: bool,
    force_closed: bool,
    prefix: str,
    out: list[Violation],
) -> None:
    for name, field in properties.items():
        path = prefix + name
        if name not in values:
            if name in required:
                out.append(MissingRequiredField(path))
            continue
        _validate_value(values[name], field, path, force_closed, out)

    for name in sorted(required - set(properties)):
        if name not in values:
            out.append(MissingRequiredField(prefix + name))

    if closed or force_closed:
        for name in sorted(str(key) for key in values if key not in properties):
            out.append(UnknownField(prefix + name))


def _validate_value(
    value: Any,
    field: FieldSchema,
    path: str,
    force_closed: bool,
    out: list[Violation],
) -> None:
    if not field.kind.accepts(value):
        out.append(
            TypeMismatch(path, expected_kind=field.kind.value, actual_kind=kind_of(value))
        )
        return

    violated = field.out_of_range(value)
    if violated is not None:
        limit, bound = violated
        out.append(OutOfRange(path, value=value, bound=bound, limit=limit))
        return

    if field.properties or field.closed or force_closed:
        if isinstance(value, Mapping):
            _validate_members(
                value,
                field.properties,
                field.required,
                field.closed,
                force_closed,
                f"{path}.",
                out,
            )


def validate_config(
    document: Any,
    schema: SchemaLike,
    *,
    closed: bool | None = None,
) -> list[Violation]:
    """Validate a parsed configuration document.

    Args:
        document: Parsed configuration tree (from TOML, JSON or YAML)
        schema: ObjectSchema of one plugin, or the MergedSchema
        closed: Override the schema's closed flag. When True, unknown
            fields are reported at every level.

    Returns:
        List of violations (empty if valid)
    """
    if not isinstance(document, Mapping):
        return [NotAnObject("", actual_kind=kind_of(document))]

    is_closed = schema.closed if closed is None else closed
    violations: list[Violation] = []
    _validate_members(
        document,
        schema.properties,
        schema.required,
        is_closed,
        closed is True,
        "",
        violations,
    )
    return violations


def _json_value_violations(value: Any, path: str, out: list[Violation]) -> None:
    if value is None or isinstance(value, (bool, str)):
        return
    if isinstance(value, int):
        if value < -MAX_SAFE_INTEGER:
            out.append(OutOfRange(path, value=value, bound=-MAX_SAFE_INTEGER, limit="minimum"))
        elif value > MAX_SAFE_INTEGER:
            out.append(OutOfRange(path, value=value, bound=MAX_SAFE_INTEGER, limit="maximum"))
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            out.append(
                TypeMismatch(path, expected_kind="number", actual_kind=kind_of(value))
            )
        return
    if isinstance(value, Mapping):
        for key, item in value.items():
            _json_value_violations(item, f"{path}.{key}" if path else str(key), out)
        return
    if isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            _json_value_violations(item, f"{path}[{index}]", out)
        return
    out.append(TypeMismatch(path, expected_kind="JSON value", actual_kind=kind_of(value)))


def check_json_values(document: Mapping[str, Any]) -> list[Violation]:
    """Report values a canonical JSON document cannot carry.

    Covers what a schema cannot: members no schema declared. Flags
    non-finite floats, integers beyond +/-MAX_SAFE_INTEGER and values of
    non-JSON types (a YAML timestamp, say), in document order.
    """
    violations: list[Violation] = []
    for key, value in document.items():
        _json_value_violations(value, str(key), violations)
    return violations


def _with_defaults(values: Mapping[str, Any], properties: Mapping[str, FieldSchema]) -> dict[str, Any]:
    out = dict(values)
    for name, field in properties.items():
        if name not in out:
            if field.has_default:
                out[name] = field.default
        elif field.properties and isinstance(out[name], Mapping):
            out[name] = _with_defaults(out[name], field.properties)
    return out


def apply_defaults(document: Mapping[str, Any], schema: SchemaLike) -> dict[str, Any]:
    """Return a copy of document with declared defaults filled in.

    Nested objects get their defaults only when the object itself is
    present.
    """
    return _with_defaults(document, schema.properties)


def _project(values: Mapping[str, Any], properties: Mapping[str, FieldSchema]) -> dict[str, Any]:
    """Keep only declared keys, descending into declared nested objects."""
    out: dict[str, Any] = {}
    for name, field in properties.items():
        if name not in values:
            continue
        value = values[name]
        if field.properties and isinstance(value, Mapping):
            value = _project(value, field.properties)
        out[name] = value
    return out


def split_config(
    document: Any,
    registry: SchemaRegistry,
    *,
    closed: bool | None = None,
) -> dict[str, dict[str, Any]]:
    """Validate a document and cut it into per-plugin payloads.

    Each registered plugin receives only the fields it declared, with its
    own defaults filled in. Every payload is also checked against its
    plugin's own schema, so no plugin is handed a value it declared
    invalid, whatever the merge kept.

    Raises:
        ConfigValidationError: If the document violates the merged schema
            or any plugin's own schema
    """
    schemas, merged = registry.snapshot()
    violations = validate_config(document, merged, closed=closed)
    if violations and isinstance(violations[0], NotAnObject):
        logger.warning("Configuration rejected", violations=len(violations))
        raise ConfigValidationError(violations)

    payloads: dict[str, dict[str, Any]] = {}
    for schema in schemas:
        object_schema: ObjectSchema = schema.json_schema
        projected = _project(document, object_schema.properties)
        for violation in validate_config(projected, object_schema, closed=False):
            if violation not in violations:
                violations.append(violation)
        payloads[schema.plugin_id] = apply_defaults(projected, object_schema)

    if violations:
        logger.warning("Configuration rejected", violations=len(violations))
        raise ConfigValidationError(violations)
    return payloads
