"""Kinds and classes shared across subsystem boundaries.

FieldKind is a closed set. Schema constructs outside it are rejected at
extraction time rather than approximated.
"""

import math
from enum import Enum
from typing import Any


class FieldKind(str, Enum):
    """Value kind of a configuration field or command parameter.

    Uses (str, Enum) because the value is written into serialized schemas
    and compiled jobs.
    """

    BOOLEAN = "boolean"
    INTEGER = "integer"
    NUMBER = "number"
    STRING = "string"
    OBJECT = "object"

    @property
    def is_numeric(self) -> bool:
        """Whether minimum/maximum bounds apply to this kind."""
        return self in (FieldKind.INTEGER, FieldKind.NUMBER)

    def accepts(self, value: Any) -> bool:
        """Check a parsed value against this kind.

        bool is never accepted as integer or number, even though Python
        treats it as an int subclass. Integers are accepted as numbers;
        NaN and the infinities are not, since JSON has no spelling for them.
        """
        if self is FieldKind.BOOLEAN:
            return isinstance(value, bool)
        if self is FieldKind.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FieldKind.NUMBER:
            if isinstance(value, float):
                return math.isfinite(value)
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FieldKind.STRING:
            return isinstance(value, str)
        return isinstance(value, dict)


# Aliases used by command declarations of the host's plugin interface
_KIND_ALIASES: dict[str, FieldKind] = {
    "bool": FieldKind.BOOLEAN,
    "int": FieldKind.INTEGER,
    "float": FieldKind.NUMBER,
    "text": FieldKind.STRING,
    "str": FieldKind.STRING,
}


def parse_kind(name: str) -> FieldKind:
    """Resolve a kind name or alias to a FieldKind.

    Raises:
        ValueError: If the name is not a supported kind
    """
    try:
        return FieldKind(name)
    except ValueError:
        pass
    try:
        return _KIND_ALIASES[name]
    except KeyError:
        raise ValueError(f"Unsupported field kind: {name!r}") from None


def kind_of(value: Any) -> str:
    """Describe the kind of a parsed document value.

    Returns names outside FieldKind ("array", "null", "non-finite number")
    for values that no supported schema kind can describe.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return FieldKind.BOOLEAN.value
    if isinstance(value, int):
        return FieldKind.INTEGER.value
    if isinstance(value, float):
        return FieldKind.NUMBER.value if math.isfinite(value) else "non-finite number"
    if isinstance(value, str):
        return FieldKind.STRING.value
    if isinstance(value, dict):
        return FieldKind.OBJECT.value
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


class SchedulingClass(str, Enum):
    """Execution tier a command handler declares.

    Consumed by the executor, which owns real-time vs. best-effort dispatch.
    """

    REALTIME = "realtime"
    BEST_EFFORT = "best_effort"

    @classmethod
    def parse(cls, value: "str | SchedulingClass") -> "SchedulingClass":
        """Parse a scheduling class, accepting the short forms rt/be."""
        if isinstance(value, SchedulingClass):
            return value
        normalized = value.strip().lower().replace("-", "_")
        if normalized in ("rt", "real_time"):
            return cls.REALTIME
        if normalized in ("be", "besteffort"):
            return cls.BEST_EFFORT
        return cls(normalized)
