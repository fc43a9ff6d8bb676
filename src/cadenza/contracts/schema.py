"""Configuration schema contracts.

These types describe the supported subset of JSON Schema as a closed
tagged union over FieldKind. All are frozen: a schema never changes after
extraction, and registries hand out the same instances they were given.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from cadenza.contracts.enums import FieldKind
from cadenza.core.canonical import MAX_SAFE_INTEGER


def _empty_properties() -> Mapping[str, "FieldSchema"]:
    return MappingProxyType({})


@dataclass(frozen=True)
class FieldSchema:
    """Declaration of a single field.

    A default of None means "no default": JSON null is not a value of any
    supported kind, so it can never be a legal default.

    Nested properties are only allowed for kind OBJECT.
    """

    kind: FieldKind
    description: str | None = None
    default: Any = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    properties: Mapping[str, "FieldSchema"] = field(default_factory=_empty_properties)
    required: frozenset[str] = frozenset()
    closed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        object.__setattr__(self, "required", frozenset(self.required))

        if not self.kind.is_numeric and (
            self.minimum is not None or self.maximum is not None
        ):
            raise ValueError(
                f"minimum/maximum only apply to integer and number, not {self.kind.value}"
            )
        for bound in (self.minimum, self.maximum):
            if bound is not None and not FieldKind.NUMBER.accepts(bound):
                raise ValueError(f"bound must be numeric, got {bound!r}")
        if (
            self.minimum is not None
            and self.maximum is not None
            and self.minimum > self.maximum
        ):
            raise ValueError(f"minimum {self.minimum} exceeds maximum {self.maximum}")

        if self.kind is not FieldKind.OBJECT and (self.properties or self.required):
            raise ValueError(f"nested properties require kind object, not {self.kind.value}")
        undeclared = self.required - set(self.properties)
        if undeclared:
            raise ValueError(f"required names undeclared properties: {sorted(undeclared)}")

        if self.default is not None:
            if not self.kind.accepts(self.default):
                raise ValueError(
                    f"default {self.default!r} does not match kind {self.kind.value}"
                )
            if self.out_of_range(self.default) is not None:
                raise ValueError(f"default {self.default!r} is outside the declared bounds")

    @property
    def has_default(self) -> bool:
        return self.default is not None

    def out_of_range(self, value: Any) -> tuple[str, int | float] | None:
        """Return ("minimum"|"maximum", bound) if value violates a bound.

        Integers must also stay within +/-MAX_SAFE_INTEGER whatever the
        declared bounds, or they could not be hashed into a job fingerprint.
        """
        if not self.kind.is_numeric:
            return None
        if self.minimum is not None and value < self.minimum:
            return ("minimum", self.minimum)
        if self.maximum is not None and value > self.maximum:
            return ("maximum", self.maximum)
        if isinstance(value, int):
            if value < -MAX_SAFE_INTEGER:
                return ("minimum", -MAX_SAFE_INTEGER)
            if value > MAX_SAFE_INTEGER:
                return ("maximum", MAX_SAFE_INTEGER)
        return None

    def shape(self) -> tuple[Any, ...]:
        """Structural identity: kind plus nested shapes, order-insensitive."""
        if self.kind is not FieldKind.OBJECT or not self.properties:
            return (self.kind.value,)
        nested = tuple(
            sorted(
                (name, name in self.required, child.shape())
                for name, child in self.properties.items()
            )
        )
        return (self.kind.value, nested)

    def walk(self, path: tuple[str, ...]) -> Iterator[tuple[tuple[str, ...], "FieldSchema"]]:
        """Yield (path, field) for this field and every nested field.

        Paths are tuples of property names: a nested a.b and a top-level
        property literally named "a.b" are different fields.
        """
        yield path, self
        for name, child in self.properties.items():
            yield from child.walk((*path, name))

    def to_json_schema(self) -> dict[str, Any]:
        """Render back into the JSON Schema subset this type was decoded from."""
        out: dict[str, Any] = {"type": self.kind.value}
        if self.description is not None:
            out["description"] = self.description
        if self.has_default:
            out["default"] = self.default
        if self.minimum is not None:
            out["minimum"] = self.minimum
        if self.maximum is not None:
            out["maximum"] = self.maximum
        if self.properties:
            out["properties"] = {
                name: child.to_json_schema() for name, child in self.properties.items()
            }
        if self.required:
            out["required"] = sorted(self.required)
        if self.closed:
            out["additionalProperties"] = False
        return out


@dataclass(frozen=True)
class ObjectSchema:
    """Top-level object description carried in a plugin's json_schema.

    Property order is declaration order; the validator reports violations
    in this order.
    """

    properties: Mapping[str, FieldSchema] = field(default_factory=_empty_properties)
    required: frozenset[str] = frozenset()
    closed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        object.__setattr__(self, "required", frozenset(self.required))
        undeclared = self.required - set(self.properties)
        if undeclared:
            raise ValueError(f"required names undeclared properties: {sorted(undeclared)}")

    def walk(self) -> Iterator[tuple[tuple[str, ...], FieldSchema]]:
        """Yield (path, field) for every field, depth first."""
        for name, child in self.properties.items():
            yield from child.walk((name,))

    def to_json_schema(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": "object",
            "properties": {
                name: child.to_json_schema() for name, child in self.properties.items()
            },
        }
        if self.required:
            out["required"] = sorted(self.required)
        if self.closed:
            out["additionalProperties"] = False
        return out


@dataclass(frozen=True)
class PluginSchema:
    """Configuration contract recovered from one plugin module.

    raw_json_schema keeps the exact text that was embedded so extraction
    round-trips byte for byte.
    """

    plugin_id: str
    json_schema: ObjectSchema
    raw_json_schema: str
    description: str | None = None

    def __post_init__(self) -> None:
        if not self.plugin_id or not self.plugin_id.strip():
            raise ValueError("plugin_id cannot be empty")


@dataclass(frozen=True)
class MergedSchema:
    """Union of every registered plugin's configuration contract.

    Invariant: each field path has exactly one kind. The registry refuses
    registrations that would break this.
    """

    properties: Mapping[str, FieldSchema] = field(default_factory=_empty_properties)
    required: frozenset[str] = frozenset()
    contributors: Mapping[str, frozenset[str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    closed: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        object.__setattr__(self, "required", frozenset(self.required))
        object.__setattr__(
            self,
            "contributors",
            MappingProxyType({k: frozenset(v) for k, v in self.contributors.items()}),
        )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view used by the CLI and for hashing."""
        return {
            "type": "object",
            "properties": {
                name: child.to_json_schema() for name, child in self.properties.items()
            },
            "required": sorted(self.required),
            "contributors": {
                name: sorted(ids) for name, ids in self.contributors.items()
            },
        }
