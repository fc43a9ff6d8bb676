"""Validation outcomes returned as data.

A violation never raises on its own: the validator returns the complete
list and the caller decides whether to reject the document.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Violation:
    """Base for all configuration and argument violations."""

    name: str

    def __str__(self) -> str:
        return f"{self.name}: invalid"


@dataclass(frozen=True)
class NotAnObject(Violation):
    """The top-level document is not a mapping."""

    actual_kind: str = "null"

    def __str__(self) -> str:
        return f"document must be an object, got {self.actual_kind}"


@dataclass(frozen=True)
class MissingRequiredField(Violation):
    def __str__(self) -> str:
        return f"{self.name}: required field is missing"


@dataclass(frozen=True)
class TypeMismatch(Violation):
    expected_kind: str = ""
    actual_kind: str = ""

    def __str__(self) -> str:
        return f"{self.name}: expected {self.expected_kind}, got {self.actual_kind}"


@dataclass(frozen=True)
class OutOfRange(Violation):
    """A numeric value crossed a declared bound.

    limit is "minimum" or "maximum"; bound is the declared value.
    """

    value: Any = None
    bound: int | float = 0
    limit: str = "minimum"

    def __str__(self) -> str:
        relation = "below" if self.limit == "minimum" else "above"
        return f"{self.name}: {self.value!r} is {relation} {self.limit} {self.bound!r}"


@dataclass(frozen=True)
class UnknownField(Violation):
    def __str__(self) -> str:
        return f"{self.name}: unknown field"
