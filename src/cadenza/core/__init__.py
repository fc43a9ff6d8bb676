# src/cadenza/core/__init__.py
"""Core infrastructure: Canonical hashing, Configuration, Logging, Locking, Sections."""

from cadenza.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    stable_hash,
)
from cadenza.core.config import (
    CadenzaSettings,
    CompilerSettings,
    ExtractionSettings,
    JobsSettings,
    LoggingSettings,
    ValidationSettings,
    load_settings,
)
from cadenza.core.locking import ReadWriteLock
from cadenza.core.logging import (
    configure_logging,
    get_logger,
)
from cadenza.core.sections import (
    CONFIG_SCHEMA_SECTION,
    Section,
    append_custom_section,
    encode_custom_section,
    find_custom_section,
    iter_sections,
)

__all__ = [
    "CANONICAL_VERSION",
    "CONFIG_SCHEMA_SECTION",
    "CadenzaSettings",
    "CompilerSettings",
    "ExtractionSettings",
    "JobsSettings",
    "LoggingSettings",
    "ReadWriteLock",
    "Section",
    "ValidationSettings",
    "append_custom_section",
    "canonical_json",
    "configure_logging",
    "encode_custom_section",
    "find_custom_section",
    "get_logger",
    "iter_sections",
    "load_settings",
    "stable_hash",
]
