# src/cadenza/core/canonical.py
"""
Canonical JSON serialization for deterministic hashing.

Two-phase approach:
1. Normalize: Convert tuples, enums, mapping proxies to JSON-safe primitives (our code)
2. Serialize: Produce deterministic JSON per RFC 8785/JCS (rfc8785 package)

Command signatures and compiled job fingerprints are hashed with this, so
the same schema or job hashes identically in every process.

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
So are integers outside the I-JSON safe range, which RFC 8785 cannot
represent exactly.
"""

import hashlib
import math
from collections.abc import Mapping
from enum import Enum
from typing import Any

import rfc8785

# Version string recorded alongside hashes for verification
CANONICAL_VERSION = "sha256-rfc8785-v1"

# Largest integer an IEEE 754 double represents exactly (RFC 7493 section 2.2)
MAX_SAFE_INTEGER = 2**53 - 1


def _normalize_value(obj: Any) -> Any:
    """Convert a value to JSON-safe primitives, recursively.

    Args:
        obj: Any Python value

    Returns:
        JSON-serializable primitive

    Raises:
        ValueError: If value contains NaN, Infinity or an unsafe integer
        TypeError: If value has no JSON representation
    """
    # Check for NaN/Infinity FIRST (before type coercion)
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(
                f"Cannot canonicalize non-finite float: {obj}. "
                "Use None for missing values, not NaN."
            )
        return obj

    # Enum before str: (str, Enum) members are also str instances
    if isinstance(obj, Enum):
        return _normalize_value(obj.value)

    if isinstance(obj, int) and not isinstance(obj, bool):
        if abs(obj) > MAX_SAFE_INTEGER:
            raise ValueError(
                f"Cannot canonicalize integer {obj}: outside +/-{MAX_SAFE_INTEGER}"
            )
        return obj

    if obj is None or isinstance(obj, (str, bool)):
        return obj

    if isinstance(obj, Mapping):
        return {str(k): _normalize_value(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, frozenset, set)):
        items = [_normalize_value(v) for v in obj]
        if isinstance(obj, (frozenset, set)):
            items.sort(key=canonical_json)
        return items

    raise TypeError(f"Cannot canonicalize value of type {type(obj).__name__}")


def canonical_json(obj: Any) -> str:
    """Serialize a value to RFC 8785 canonical JSON."""
    return rfc8785.dumps(_normalize_value(obj)).decode("utf-8")


def stable_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON form of obj."""
    return hashlib.sha256(canonical_json(obj).encode("utf-8")).hexdigest()
