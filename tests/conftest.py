# tests/conftest.py
"""Shared test fixtures and helpers.

This module provides builders for plugin module bytes, embedded schemas
and command declarations, so tests can describe plugins in a line or two.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import json
import os
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from cadenza.contracts import (
    CommandSchema,
    FieldKind,
    FieldSchema,
    ParameterSchema,
    SchedulingClass,
)
from cadenza.core.sections import CONFIG_SCHEMA_SECTION, encode_custom_section

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Drop logging config a test (or a CLI run) bound to captured streams."""
    yield
    structlog.reset_defaults()


# =============================================================================
# Module builders
# =============================================================================

CORE_HEADER = b"\x00asm\x01\x00\x00\x00"
# Component model: version 0x0d, layer 1
COMPONENT_HEADER = b"\x00asm\x0d\x00\x01\x00"

# A type section with zero entries; stands in for real module content
EMPTY_TYPE_SECTION = b"\x01\x01\x00"


def build_module(sections: Iterable[bytes] = (), *, component: bool = False) -> bytes:
    """Concatenate a header and already-encoded sections."""
    header = COMPONENT_HEADER if component else CORE_HEADER
    return header + b"".join(sections)


def schema_payload(
    plugin_id: str,
    json_schema: Mapping[str, Any] | str,
    description: str | None = None,
) -> bytes:
    """Encode the custom section envelope the way a plugin builder would."""
    text = json_schema if isinstance(json_schema, str) else json.dumps(json_schema)
    return json.dumps(
        {"plugin_id": plugin_id, "json_schema": text, "description": description}
    ).encode("utf-8")


def schema_module(
    plugin_id: str,
    json_schema: Mapping[str, Any] | str,
    description: str | None = None,
    *,
    component: bool = False,
) -> bytes:
    """A module with some ordinary content and an embedded config schema."""
    return build_module(
        [
            EMPTY_TYPE_SECTION,
            encode_custom_section("name", b"\x00"),
            encode_custom_section(
                CONFIG_SCHEMA_SECTION, schema_payload(plugin_id, json_schema, description)
            ),
        ],
        component=component,
    )


def object_schema(properties: Mapping[str, str], required: Iterable[str] = ()) -> dict[str, Any]:
    """JSON Schema for a flat object: {"name": "kind"}."""
    return {
        "type": "object",
        "properties": {name: {"type": kind} for name, kind in properties.items()},
        "required": list(required),
    }


def make_command(
    name: str,
    params: Mapping[str, tuple[FieldKind, bool]] | None = None,
    *,
    plugin_id: str = "com.example.heater",
    scheduling_class: SchedulingClass = SchedulingClass.REALTIME,
    priority: int = 0,
) -> CommandSchema:
    """Build a CommandSchema from {param: (kind, required)}."""
    return CommandSchema(
        name=name,
        parameters=tuple(
            ParameterSchema(name=p, field=FieldSchema(kind=kind), required=required)
            for p, (kind, required) in (params or {}).items()
        ),
        scheduling_class=scheduling_class,
        priority=priority,
        owning_plugin_id=plugin_id,
    )


# Builders are pure functions; session scope lets @given tests take them
@pytest.fixture(scope="session")
def module_builder() -> Callable[..., bytes]:
    return build_module


@pytest.fixture(scope="session")
def schema_module_builder() -> Callable[..., bytes]:
    return schema_module


@pytest.fixture(scope="session")
def payload_builder() -> Callable[..., bytes]:
    return schema_payload


@pytest.fixture(scope="session")
def schema_json() -> Callable[..., dict[str, Any]]:
    return object_schema


@pytest.fixture(scope="session")
def command_builder() -> Callable[..., CommandSchema]:
    return make_command


@pytest.fixture
def set_temp() -> CommandSchema:
    """SET_TEMP{tool: integer required, value: number required}."""
    return make_command(
        "SET_TEMP",
        {"tool": (FieldKind.INTEGER, True), "value": (FieldKind.NUMBER, True)},
    )
