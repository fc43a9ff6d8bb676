# tests/cli/test_cli.py
"""Tests for cadenza CLI."""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

runner = CliRunner()

HEATER_MANIFEST = {
    "plugin_id": "heater",
    "commands": [
        {
            "name": "SET_TEMP",
            "scheduling_class": "rt",
            "params": [
                {"name": "tool", "type": "int", "required": True},
                {"name": "value", "type": "float", "required": True},
            ],
        },
        {"name": "HOME", "scheduling_class": "be"},
    ],
}


@pytest.fixture
def workspace(
    tmp_path: Path,
    schema_module_builder: Callable[..., bytes],
    schema_json: Callable[..., dict[str, Any]],
) -> Callable[..., Path]:
    """Write plugins, a manifest and a settings file; return the settings path."""
    (tmp_path / "plugins").mkdir()
    (tmp_path / "plugins" / "heater.wasm").write_bytes(
        schema_module_builder("heater", schema_json({"temperature": "number"}))
    )
    (tmp_path / "plugins" / "press.wasm").write_bytes(
        schema_module_builder(
            "press", schema_json({"temperature": "number", "pressure": "number"}, ["pressure"])
        )
    )
    (tmp_path / "heater.commands.yaml").write_text(yaml.safe_dump(HEATER_MANIFEST))

    def write(**overrides: Any) -> Path:
        settings: dict[str, Any] = {
            "plugins": ["plugins/heater.wasm", "plugins/press.wasm"],
            "commands": ["heater.commands.yaml"],
            "plugin_config": {"temperature": 200, "pressure": 1},
            "jobs": {"storage_dir": "compiled"},
            "logging": {"level": "WARNING"},
        }
        settings.update(overrides)
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump(settings))
        return path

    return write


class TestCLIBasics:
    def test_cli_help(self) -> None:
        from cadenza.cli import app

        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("schema", "validate", "compile", "embed", "plugins"):
            assert command in result.output

    def test_version(self) -> None:
        from cadenza import __version__
        from cadenza.cli import app

        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"cadenza version {__version__}" in result.output

    def test_missing_settings(self, tmp_path: Path) -> None:
        from cadenza.cli import app

        result = runner.invoke(app, ["validate", "-s", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "Settings file not found" in result.output

    def test_invalid_settings(self, tmp_path: Path) -> None:
        from cadenza.cli import app

        path = tmp_path / "settings.yaml"
        path.write_text("extraction:\n  max_workers: 0\n")
        result = runner.invoke(app, ["validate", "-s", str(path)])
        assert result.exit_code == 1
        assert "extraction.max_workers" in result.output


class TestSchemaCommand:
    def test_writes_merged_schema(self, workspace: Callable[..., Path], tmp_path: Path) -> None:
        from cadenza.cli import app

        out = tmp_path / "merged.json"
        result = runner.invoke(app, ["schema", "-s", str(workspace()), "-o", str(out)])

        assert result.exit_code == 0, result.output
        merged = json.loads(out.read_text())
        assert set(merged["properties"]) == {"temperature", "pressure"}
        assert merged["required"] == ["pressure"]
        assert merged["contributors"]["temperature"] == ["heater", "press"]

    def test_conflicting_plugins(
        self,
        workspace: Callable[..., Path],
        tmp_path: Path,
        schema_module_builder: Callable[..., bytes],
        schema_json: Callable[..., dict[str, Any]],
    ) -> None:
        from cadenza.cli import app

        (tmp_path / "plugins" / "bad.wasm").write_bytes(
            schema_module_builder("bad", schema_json({"temperature": "string"}))
        )
        settings = workspace(plugins=["plugins/heater.wasm", "plugins/bad.wasm"])

        result = runner.invoke(app, ["schema", "-s", str(settings)])

        assert result.exit_code == 1
        assert "Plugin errors" in result.output
        assert "temperature" in result.output


class TestValidateCommand:
    def test_valid(self, workspace: Callable[..., Path]) -> None:
        from cadenza.cli import app

        result = runner.invoke(app, ["validate", "-s", str(workspace())])

        assert result.exit_code == 0, result.output
        assert "Configuration valid" in result.output
        assert "press: 2 field(s)" in result.output

    def test_all_violations_printed(self, workspace: Callable[..., Path]) -> None:
        from cadenza.cli import app

        settings = workspace(plugin_config={"temperature": "hot"})
        result = runner.invoke(app, ["validate", "-s", str(settings)])

        assert result.exit_code == 1
        assert "2 violation(s)" in result.output
        assert "temperature: expected number, got string" in result.output
        assert "pressure: required field is missing" in result.output

    def test_closed_validation(self, workspace: Callable[..., Path]) -> None:
        from cadenza.cli import app

        settings = workspace(
            plugin_config={"temperature": 200, "pressure": 1, "speed": 3},
            validation={"closed": True},
        )
        result = runner.invoke(app, ["validate", "-s", str(settings)])

        assert result.exit_code == 1
        assert "speed: unknown field" in result.output


class TestCompileCommand:
    def test_compile_to_storage_dir(self, workspace: Callable[..., Path], tmp_path: Path) -> None:
        from cadenza.cli import app
        from cadenza.contracts import CompiledJob

        job_file = tmp_path / "print.yaml"
        job_file.write_text(
            yaml.safe_dump(
                [
                    {"command": "HOME"},
                    {"command": "SET_TEMP", "args": {"tool": 0, "value": 200}},
                ]
            )
        )

        result = runner.invoke(app, ["compile", str(job_file), "-s", str(workspace())])

        assert result.exit_code == 0, result.output
        stored = tmp_path / "compiled" / "print.json"
        job = CompiledJob.from_dict(json.loads(stored.read_text()))
        assert [inv.command_name for inv in job.invocations] == ["HOME", "SET_TEMP"]
        assert job.invocations[1].typed_arguments["value"] == 200.0
        assert job.fingerprint in result.output

    def test_compile_json_job(self, workspace: Callable[..., Path], tmp_path: Path) -> None:
        from cadenza.cli import app

        job_file = tmp_path / "job.json"
        job_file.write_text(json.dumps({"commands": [{"command": "HOME"}]}))
        out = tmp_path / "out" / "job.compiled.json"

        result = runner.invoke(
            app, ["compile", str(job_file), "-s", str(workspace()), "-o", str(out)]
        )

        assert result.exit_code == 0, result.output
        assert len(json.loads(out.read_text())["invocations"]) == 1

    def test_compile_errors_listed(self, workspace: Callable[..., Path], tmp_path: Path) -> None:
        from cadenza.cli import app

        job_file = tmp_path / "bad.yaml"
        job_file.write_text(
            yaml.safe_dump(
                [
                    {"command": "HOME"},
                    {"command": "SET_TEMP", "args": {"tool": 0}},
                    {"command": "EXPLODE"},
                ]
            )
        )

        result = runner.invoke(app, ["compile", str(job_file), "-s", str(workspace())])

        assert result.exit_code == 1
        assert "2 error(s)" in result.output
        assert "[1] SET_TEMP: value: required field is missing" in result.output
        assert "[2] unknown command 'EXPLODE'" in result.output
        assert not (tmp_path / "compiled").exists()

    def test_oversized_job(self, workspace: Callable[..., Path], tmp_path: Path) -> None:
        from cadenza.cli import app

        job_file = tmp_path / "big.yaml"
        job_file.write_text(yaml.safe_dump([{"command": "HOME"}] * 10))
        settings = workspace(jobs={"storage_dir": "compiled", "max_size_bytes": 16})

        result = runner.invoke(app, ["compile", str(job_file), "-s", str(settings)])

        assert result.exit_code == 1
        assert "limit is 16" in result.output

    def test_malformed_job(self, workspace: Callable[..., Path], tmp_path: Path) -> None:
        from cadenza.cli import app

        job_file = tmp_path / "bad.yaml"
        job_file.write_text("just a string\n")

        result = runner.invoke(app, ["compile", str(job_file), "-s", str(workspace())])

        assert result.exit_code == 1
        assert "invalid job document" in result.output


class TestEmbedCommand:
    def test_embed_then_extract(self, tmp_path: Path, module_builder: Callable[..., bytes]) -> None:
        from cadenza.cli import app
        from cadenza.plugins.extractor import extract_plugin_schema

        module = tmp_path / "fan.wasm"
        module.write_bytes(module_builder([b"\x01\x01\x00"]))
        schema_file = tmp_path / "fan.schema.json"
        raw = '{"type": "object", "properties": {"speed": {"type": "integer", "maximum": 255}}}'
        schema_file.write_text(raw)
        out = tmp_path / "fan.out.wasm"

        result = runner.invoke(
            app,
            [
                "embed",
                str(module),
                "--schema",
                str(schema_file),
                "-p",
                "com.example.fan",
                "-d",
                "Part cooling fan",
                "-o",
                str(out),
            ],
        )

        assert result.exit_code == 0, result.output
        schema = extract_plugin_schema(out.read_bytes())
        assert schema is not None
        assert schema.plugin_id == "com.example.fan"
        assert schema.raw_json_schema == raw
        assert schema.description == "Part cooling fan"

    def test_embed_rejects_unsupported_schema(
        self, tmp_path: Path, module_builder: Callable[..., bytes]
    ) -> None:
        from cadenza.cli import app

        module = tmp_path / "fan.wasm"
        module.write_bytes(module_builder())
        schema_file = tmp_path / "fan.schema.json"
        schema_file.write_text('{"type": "object", "properties": {"mode": {"type": "string", "enum": ["a"]}}}')

        result = runner.invoke(
            app, ["embed", str(module), "--schema", str(schema_file), "-p", "fan"]
        )

        assert result.exit_code == 1
        assert "enum" in result.output
        assert module.read_bytes() == module_builder()

    def test_embed_rejects_non_module(self, tmp_path: Path) -> None:
        from cadenza.cli import app

        module = tmp_path / "notes.txt"
        module.write_text("hello")
        schema_file = tmp_path / "s.json"
        schema_file.write_text('{"type": "object"}')

        result = runner.invoke(
            app, ["embed", str(module), "--schema", str(schema_file), "-p", "x"]
        )
        assert result.exit_code == 1


class TestPluginsCommand:
    def test_lists_plugins(self, workspace: Callable[..., Path]) -> None:
        from cadenza.cli import app

        result = runner.invoke(app, ["plugins", "-s", str(workspace())])

        assert result.exit_code == 0, result.output
        assert "heater" in result.output
        assert "Commands: SET_TEMP, HOME" in result.output
        assert "press" in result.output

    def test_no_plugins(self, workspace: Callable[..., Path]) -> None:
        from cadenza.cli import app

        settings = workspace(plugins=[], commands=[])
        result = runner.invoke(app, ["plugins", "-s", str(settings)])

        assert result.exit_code == 0
        assert "No plugins loaded" in result.output
