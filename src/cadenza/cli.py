# src/cadenza/cli.py
"""Cadenza Command Line Interface.

Entry point for the cadenza CLI tool.
"""

import json
from pathlib import Path
from typing import Any

import typer
import yaml
from pydantic import ValidationError

from cadenza import __version__
from cadenza.contracts.errors import (
    CadenzaError,
    CompileError,
    ConfigValidationError,
    MalformedJob,
)
from cadenza.contracts.schema import PluginSchema
from cadenza.core.config import CadenzaSettings, load_settings
from cadenza.core.logging import configure_logging
from cadenza.core.sections import CONFIG_SCHEMA_SECTION, append_custom_section
from cadenza.engine.compiler import JobCompiler, load_invocations
from cadenza.plugins.extractor import decode_json_schema, encode_schema_payload
from cadenza.plugins.manager import PluginManager
from cadenza.plugins.validation import split_config

app = typer.Typer(
    name="cadenza",
    help="Cadenza: plugin configuration schemas and job compilation.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"cadenza version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Cadenza: plugin configuration schemas and job compilation."""
    pass


# === Shared helpers ===


def _load_config(settings: str) -> CadenzaSettings:
    """Load settings and configure logging, exiting 1 on any error."""
    settings_path = Path(settings)
    try:
        config = load_settings(settings_path)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    configure_logging(config.logging.level, json_output=config.logging.json_output)
    return config


def _load_plugins(config: CadenzaSettings, settings: str) -> PluginManager:
    """Load every configured plugin; any rejected plugin is fatal for the CLI."""
    base_dir = Path(settings).parent
    manager = PluginManager.from_settings(config)
    report = manager.load_files(
        [config.resolve_path(p, base_dir) for p in config.plugins],
        [config.resolve_path(p, base_dir) for p in config.commands],
    )
    if not report.ok:
        typer.echo("Plugin errors:", err=True)
        for source, error in report.failed:
            typer.echo(f"  - {source}: {error}", err=True)
        raise typer.Exit(1)
    return manager


def _write_json(data: Any, output: Path | None) -> None:
    text = json.dumps(data, indent=2)
    if output is None:
        typer.echo(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    typer.echo(f"Wrote {output}")


def _read_job(path: Path, max_size_bytes: int) -> Any:
    """Read a YAML or JSON job document, refusing oversized files."""
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        typer.echo(f"Error: Job file not found: {path}", err=True)
        raise typer.Exit(1) from None
    if size > max_size_bytes:
        typer.echo(
            f"Error: Job file {path} is {size} bytes, limit is {max_size_bytes}",
            err=True,
        )
        raise typer.Exit(1)
    try:
        # YAML is a superset of JSON, one loader covers both
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        typer.echo(f"Error: Cannot parse job file {path}: {e}", err=True)
        raise typer.Exit(1) from None


# === Commands ===


@app.command()
def schema(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings file.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the merged schema here instead of stdout.",
    ),
) -> None:
    """Load the configured plugins and print their merged configuration schema."""
    config = _load_config(settings)
    manager = _load_plugins(config, settings)
    _write_json(manager.schemas.merged_schema().to_dict(), output)


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings file.",
    ),
) -> None:
    """Validate plugin_config against the merged plugin schema."""
    config = _load_config(settings)
    manager = _load_plugins(config, settings)

    try:
        payloads = split_config(config.plugin_config, manager.schemas)
    except ConfigValidationError as e:
        typer.echo(f"Configuration invalid: {len(e.violations)} violation(s)", err=True)
        for violation in e.violations:
            typer.echo(f"  - {violation}", err=True)
        raise typer.Exit(1) from None

    typer.echo(f"Configuration valid: {Path(settings).name}")
    for plugin_id, payload in payloads.items():
        typer.echo(f"  {plugin_id}: {len(payload)} field(s)")


@app.command("compile")
def compile_command(
    job: Path = typer.Argument(..., help="Job document (YAML or JSON list of commands)."),
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings file.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Where to write the compiled job (default: jobs.storage_dir/<job>.json).",
    ),
) -> None:
    """Compile a job document against the loaded plugins' commands."""
    config = _load_config(settings)
    manager = _load_plugins(config, settings)

    try:
        invocations = load_invocations(_read_job(job, config.jobs.max_size_bytes))
    except MalformedJob as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    compiler = JobCompiler(allow_unknown_arguments=config.compiler.allow_unknown_arguments)
    try:
        compiled = compiler.compile(invocations, manager.commands)
    except CompileError as e:
        typer.echo(f"Job failed to compile: {len(e.errors)} error(s)", err=True)
        for error in e.errors:
            typer.echo(f"  - {error}", err=True)
        raise typer.Exit(1) from None

    if output is None:
        storage_dir = config.resolve_path(config.jobs.storage_dir, Path(settings).parent)
        output = storage_dir / f"{job.stem}.json"
    _write_json(compiled.to_dict(), output)
    typer.echo(f"  Invocations: {len(compiled)}")
    typer.echo(f"  Fingerprint: {compiled.fingerprint}")


@app.command()
def embed(
    module: Path = typer.Argument(..., help="Plugin module to add the schema to."),
    schema_file: Path = typer.Option(
        ...,
        "--schema",
        help="JSON Schema file describing the plugin's configuration.",
    ),
    plugin_id: str = typer.Option(
        ...,
        "--plugin-id",
        "-p",
        help="Identity of the plugin.",
    ),
    description: str | None = typer.Option(
        None,
        "--description",
        "-d",
        help="Human readable plugin description.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Output module (default: overwrite the input module).",
    ),
) -> None:
    """Embed a configuration schema into a plugin module as a custom section."""
    try:
        raw = schema_file.read_text(encoding="utf-8")
        module_bytes = module.read_bytes()
    except OSError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    try:
        plugin_schema = PluginSchema(
            plugin_id=plugin_id,
            json_schema=decode_json_schema(raw),
            raw_json_schema=raw,
            description=description,
        )
        result = append_custom_section(
            module_bytes, CONFIG_SCHEMA_SECTION, encode_schema_payload(plugin_schema)
        )
    except (CadenzaError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    target = output if output is not None else module
    target.write_bytes(result)
    typer.echo(f"Embedded schema for {plugin_id} into {target}")


@app.command()
def plugins(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings file.",
    ),
) -> None:
    """List the configured plugins and what each contributes."""
    config = _load_config(settings)
    manager = _load_plugins(config, settings)

    loaded = manager.loaded()
    if not loaded:
        typer.echo("No plugins loaded.")
        return

    for record in loaded:
        fields = len(record.schema.json_schema.properties) if record.schema else 0
        typer.echo(f"{record.plugin_id} ({record.source})")
        typer.echo(f"  Fields: {fields}")
        typer.echo(f"  Commands: {', '.join(record.commands) or '(none)'}")


if __name__ == "__main__":
    app()
