# src/cadenza/plugins/registry.py
"""Schema registry: merge many plugin contracts into one.

The registry keeps every registered PluginSchema in registration order and
derives the MergedSchema from them. Conflicts are checked against every
registered contributor, field path by field path, so the outcome does not
depend on which plugin arrived first.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
from typing import Any

from cadenza.contracts.errors import (
    DuplicatePluginError,
    PluginNotFoundError,
    SchemaConflictError,
)
from cadenza.contracts.schema import FieldSchema, MergedSchema, PluginSchema
from cadenza.core.locking import ReadWriteLock
from cadenza.core.logging import get_logger

logger = get_logger(__name__)


def _tightest(bounds: Iterable[int | float | None], pick: Callable[..., Any]) -> int | float | None:
    present = [bound for bound in bounds if bound is not None]
    return pick(present) if present else None


def _describe_range(field: FieldSchema) -> str:
    low = "-inf" if field.minimum is None else repr(field.minimum)
    high = "inf" if field.maximum is None else repr(field.maximum)
    return f"[{low}, {high}]"


def _ranges_disjoint(first: FieldSchema, second: FieldSchema) -> bool:
    """Whether no value satisfies both declarations' bounds."""
    low = _tightest((first.minimum, second.minimum), max)
    high = _tightest((first.maximum, second.maximum), min)
    return low is not None and high is not None and low > high


def merge_fields(declarations: Sequence[FieldSchema]) -> FieldSchema:
    """Combine every registered declaration of one field.

    Kinds must already agree and numeric ranges must overlap. The result
    accepts only what every declaration accepts and does not depend on the
    order of declarations:

    - bounds are intersected (largest minimum, smallest maximum)
    - a default survives only if every declaration that has one agrees on
      it and it lies within the intersected bounds
    - objects take the union of nested properties (merged recursively) and
      of required names, and are closed only if every declaration is closed

    The description is taken from the first declaration that has one.
    """
    first = declarations[0]
    minimum = _tightest((d.minimum for d in declarations), max)
    maximum = _tightest((d.maximum for d in declarations), min)

    defaults = [d.default for d in declarations if d.has_default]
    default = defaults[0] if defaults and all(v == defaults[0] for v in defaults) else None

    members: dict[str, list[FieldSchema]] = {}
    for declaration in declarations:
        for name, child in declaration.properties.items():
            members.setdefault(name, []).append(child)

    merged = FieldSchema(
        kind=first.kind,
        description=next(
            (d.description for d in declarations if d.description is not None), None
        ),
        minimum=minimum,
        maximum=maximum,
        properties={name: merge_fields(children) for name, children in members.items()},
        required=frozenset().union(*(d.required for d in declarations)),
        closed=all(d.closed for d in declarations),
    )
    if default is not None and merged.out_of_range(default) is None:
        merged = replace(merged, default=default)
    return merged


def build_merged_schema(schemas: Iterable[PluginSchema], *, closed: bool = False) -> MergedSchema:
    """Fold plugin schemas into a MergedSchema.

    Assumes the schemas are mutually conflict-free. Property order follows
    first declaration in the given order; nothing else depends on it.
    """
    declarations: dict[str, list[FieldSchema]] = {}
    required: set[str] = set()
    contributors: dict[str, set[str]] = {}

    for schema in schemas:
        for name, field in schema.json_schema.properties.items():
            declarations.setdefault(name, []).append(field)
            contributors.setdefault(name, set()).add(schema.plugin_id)
        required |= schema.json_schema.required

    return MergedSchema(
        properties={name: merge_fields(fields) for name, fields in declarations.items()},
        required=frozenset(required),
        contributors={name: frozenset(ids) for name, ids in contributors.items()},
        closed=closed,
    )


class SchemaRegistry:
    """Accumulates plugin configuration schemas.

    An explicit object, not a process-wide singleton: construct one per
    host (or per test). Thread-safe under a single-writer/multi-reader
    discipline.

    Usage:
        registry = SchemaRegistry()
        registry.register(schema_a)
        registry.register(schema_b)   # raises SchemaConflictError on a clash
        merged = registry.merged_schema()
    """

    def __init__(self, *, closed: bool = False) -> None:
        self._lock = ReadWriteLock()
        self._schemas: dict[str, PluginSchema] = {}
        self._closed = closed
        self._merged: MergedSchema | None = None

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._schemas)

    def __contains__(self, plugin_id: object) -> bool:
        with self._lock.read():
            return plugin_id in self._schemas

    def plugin_ids(self) -> tuple[str, ...]:
        """Registered plugin ids in registration order."""
        with self._lock.read():
            return tuple(self._schemas)

    def get(self, plugin_id: str) -> PluginSchema | None:
        with self._lock.read():
            return self._schemas.get(plugin_id)

    def schemas(self) -> tuple[PluginSchema, ...]:
        with self._lock.read():
            return tuple(self._schemas.values())

    def _find_conflict(self, incoming: PluginSchema) -> SchemaConflictError | None:
        """Compare incoming fields with every registered contributor.

        Kinds must match and numeric ranges must overlap. Reports the first
        conflicting path in the incoming schema's declaration order,
        against the earliest-registered contributor.
        """
        registered = [
            (existing, dict(existing.json_schema.walk())) for existing in self._schemas.values()
        ]
        for path, field in incoming.json_schema.walk():
            for existing, fields in registered:
                other = fields.get(path)
                if other is None:
                    continue
                reason = None
                if other.kind is field.kind:
                    if not _ranges_disjoint(other, field):
                        continue
                    reason = (
                        f"ranges {_describe_range(other)} and {_describe_range(field)} "
                        "do not overlap"
                    )
                return SchemaConflictError(
                    field=".".join(path),
                    plugin_a=existing.plugin_id,
                    kind_a=other.kind.value,
                    plugin_b=incoming.plugin_id,
                    kind_b=field.kind.value,
                    reason=reason,
                )
        return None

    def register(self, schema: PluginSchema) -> None:
        """Register a plugin's schema.

        A failed registration leaves the registry unchanged.

        Raises:
            DuplicatePluginError: If plugin_id is already registered
            SchemaConflictError: If a field kind or range clashes with a registered plugin
        """
        with self._lock.write():
            if schema.plugin_id in self._schemas:
                raise DuplicatePluginError(schema.plugin_id)
            conflict = self._find_conflict(schema)
            if conflict is not None:
                logger.warning(
                    "Schema conflict",
                    field=conflict.field,
                    plugin_a=conflict.plugin_a,
                    kind_a=conflict.kind_a,
                    plugin_b=conflict.plugin_b,
                    kind_b=conflict.kind_b,
                    reason=conflict.reason,
                )
                raise conflict
            self._schemas[schema.plugin_id] = schema
            self._merged = None
        logger.info(
            "Registered plugin schema",
            plugin_id=schema.plugin_id,
            fields=list(schema.json_schema.properties),
        )

    def unregister(self, plugin_id: str) -> PluginSchema:
        """Retract a plugin's contribution.

        Fields only that plugin declared disappear from the merged schema;
        shared fields stay with the remaining contributors.

        Returns:
            The schema that was removed

        Raises:
            PluginNotFoundError: If plugin_id is not registered
        """
        with self._lock.write():
            try:
                removed = self._schemas.pop(plugin_id)
            except KeyError:
                raise PluginNotFoundError(plugin_id) from None
            self._merged = None
        logger.info("Unregistered plugin schema", plugin_id=plugin_id)
        return removed

    def _merged_unlocked(self) -> MergedSchema:
        # Caller holds the lock; concurrent readers may both rebuild, which
        # is harmless because the inputs cannot change under a read lock.
        merged = self._merged
        if merged is None:
            merged = build_merged_schema(self._schemas.values(), closed=self._closed)
            self._merged = merged
        return merged

    def merged_schema(self) -> MergedSchema:
        """Read-only snapshot of the union of all registered schemas."""
        with self._lock.read():
            return self._merged_unlocked()

    def snapshot(self) -> tuple[tuple[PluginSchema, ...], MergedSchema]:
        """Registered schemas and their merge, taken under one read lock."""
        with self._lock.read():
            return tuple(self._schemas.values()), self._merged_unlocked()
