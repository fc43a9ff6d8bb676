# src/cadenza/plugins/__init__.py
"""Plugin system: schema extraction, registries, validation via pluggy.

This module provides the plugin-facing infrastructure for Cadenza:

- Extractor: decode schemas embedded in plugin binaries
- Registry: merge plugin schemas and detect conflicts
- Validation: check configuration documents, split per-plugin payloads
- Commands: command declarations and their registry
- Manager: load/unload plugins, pluggy hook registration
"""

from cadenza.plugins.commands import CommandRegistry, CommandRegistrySnapshot
from cadenza.plugins.declarations import load_manifest, parse_manifest
from cadenza.plugins.extractor import (
    decode_json_schema,
    decode_schema_payload,
    encode_schema_payload,
    extract_plugin_schema,
)
from cadenza.plugins.hookspecs import hookimpl, hookspec
from cadenza.plugins.manager import LoadedPlugin, LoadReport, PluginManager
from cadenza.plugins.registry import SchemaRegistry, build_merged_schema
from cadenza.plugins.validation import (
    apply_defaults,
    check_json_values,
    split_config,
    validate_config,
)

__all__ = [
    "CommandRegistry",
    "CommandRegistrySnapshot",
    "LoadReport",
    "LoadedPlugin",
    "PluginManager",
    "SchemaRegistry",
    "apply_defaults",
    "build_merged_schema",
    "check_json_values",
    "decode_json_schema",
    "decode_schema_payload",
    "encode_schema_payload",
    "extract_plugin_schema",
    "hookimpl",
    "hookspec",
    "load_manifest",
    "parse_manifest",
    "split_config",
    "validate_config",
]
