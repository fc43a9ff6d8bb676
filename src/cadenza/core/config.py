# src/cadenza/core/config.py
"""
Configuration schema and loading for Cadenza.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

The plugin_config table is deliberately untyped here: its shape is only
known after plugin schemas have been extracted and merged, so it is
validated later against the MergedSchema, not by Pydantic.
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from cadenza.core.sections import CONFIG_SCHEMA_SECTION


class ValidationSettings(BaseModel):
    """How plugin configuration documents are checked."""

    model_config = {"frozen": True}

    closed: bool = Field(
        default=False,
        description="Report fields no plugin declared (default: tolerate them)",
    )


class CompilerSettings(BaseModel):
    """Job compiler behavior."""

    model_config = {"frozen": True}

    allow_unknown_arguments: bool = Field(
        default=False,
        description="Accept invocation arguments the command does not declare",
    )


class ExtractionSettings(BaseModel):
    """Schema extraction from plugin binaries."""

    model_config = {"frozen": True}

    max_workers: int = Field(
        default=4,
        gt=0,
        description="Threads used to extract schemas from plugin files",
    )
    section_name: str = Field(
        default=CONFIG_SCHEMA_SECTION,
        min_length=1,
        description="Custom section that carries the plugin config schema",
    )


class JobsSettings(BaseModel):
    """Compiled job storage."""

    model_config = {"frozen": True}

    storage_dir: str = Field(
        default="./jobs",
        description="Directory compiled jobs are written to",
    )
    max_size_bytes: int = Field(
        default=100 * 1024 * 1024,
        gt=0,
        description="Largest job document accepted for compilation",
    )

    @field_validator("storage_dir")
    @classmethod
    def validate_storage_dir_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("jobs.storage_dir cannot be empty")
        return v


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: str = Field(default="INFO", description="Log level name")
    json_output: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level {v!r}")
        return level


class CadenzaSettings(BaseModel):
    """Top-level settings.

    Example TOML:
        plugins = ["plugins/heater.wasm", "plugins/fan.wasm"]
        commands = ["plugins/heater.commands.yaml"]

        [plugin_config]
        temperature = 200
        pressure = 1

        [validation]
        closed = true
    """

    model_config = {"frozen": True}

    plugins: list[str] = Field(
        default_factory=list,
        description="Plugin module paths to load",
    )
    commands: list[str] = Field(
        default_factory=list,
        description="Command declaration manifests (YAML or JSON)",
    )
    plugin_config: dict[str, Any] = Field(
        default_factory=dict,
        description="Configuration document validated against the merged plugin schema",
    )
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    compiler: CompilerSettings = Field(default_factory=CompilerSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    jobs: JobsSettings = Field(default_factory=JobsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("plugins", "commands")
    @classmethod
    def validate_paths_not_empty(cls, v: list[str]) -> list[str]:
        for path in v:
            if not path or not path.strip():
                raise ValueError("paths cannot be empty")
        return v

    def resolve_path(self, path: str, base_dir: Path | None) -> Path:
        """Resolve a configured path relative to the settings file."""
        p = Path(path)
        if base_dir and not p.is_absolute():
            return base_dir / p
        return p


def _to_plain(value: Any) -> Any:
    """Convert Dynaconf boxes into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {str(k): _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value


def load_settings(config_path: Path) -> CadenzaSettings:
    """Load settings from a TOML, JSON or YAML file with environment overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (CADENZA_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: CADENZA_JOBS__STORAGE_DIR for nested keys.

    Args:
        config_path: Path to the settings file

    Returns:
        Validated CadenzaSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="CADENZA",
        settings_files=[str(config_path)],
        environments=False,  # No [default]/[production] sections
        load_dotenv=False,  # Don't auto-load .env
        merge_enabled=True,  # Deep merge nested dicts
    )

    # Dynaconf returns uppercase top-level keys; nested keys keep their case
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {
        k.lower(): _to_plain(v)
        for k, v in dynaconf_settings.as_dict().items()
        if k not in internal_keys
    }
    return CadenzaSettings(**raw_config)


def resolve_config(settings: CadenzaSettings) -> dict[str, Any]:
    """Convert validated settings to a JSON-ready dict (explicit + defaults)."""
    return settings.model_dump(mode="json")
