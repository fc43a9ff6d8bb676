# tests/plugins/test_declarations.py
"""Tests for command declaration manifests."""

from pathlib import Path

import pytest


MANIFEST = """
plugin_id: com.example.heater
commands:
  - name: SET_TEMP
    scheduling_class: rt
    priority: 10
    description: Set hotend temperature
    params:
      - {name: tool, type: int, required: true}
      - {name: value, type: float, required: true, minimum: 0, maximum: 300}
  - name: WAIT
    params:
      - {name: seconds, type: number, default: 1}
"""


class TestParseManifest:
    def test_load_yaml(self, tmp_path: Path) -> None:
        from cadenza.contracts import FieldKind, SchedulingClass
        from cadenza.plugins.declarations import load_manifest

        path = tmp_path / "heater.commands.yaml"
        path.write_text(MANIFEST)

        set_temp, wait = load_manifest(path)

        assert set_temp.name == "SET_TEMP"
        assert set_temp.owning_plugin_id == "com.example.heater"
        assert set_temp.scheduling_class is SchedulingClass.REALTIME
        assert set_temp.priority == 10
        assert [p.name for p in set_temp.parameters] == ["tool", "value"]
        assert set_temp.parameters[0].field.kind is FieldKind.INTEGER
        assert set_temp.parameters[1].field.maximum == 300

        assert wait.scheduling_class is SchedulingClass.BEST_EFFORT
        assert wait.parameters[0].field.default == 1
        assert wait.parameters[0].required is False

    def test_load_json(self, tmp_path: Path) -> None:
        from cadenza.plugins.declarations import load_manifest

        path = tmp_path / "fan.json"
        path.write_text('{"plugin_id": "fan", "commands": [{"name": "FAN_ON"}]}')

        (command,) = load_manifest(path)
        assert command.name == "FAN_ON"
        assert command.parameters == ()

    @pytest.mark.parametrize(
        "data",
        [
            {"commands": []},
            {"plugin_id": "p", "commands": [{"name": ""}]},
            {"plugin_id": "p", "commands": [{"name": "X", "params": [{"name": "a", "type": "array"}]}]},
            {"plugin_id": "p", "commands": [{"name": "X", "scheduling_class": "urgent"}]},
            {"plugin_id": "p", "commands": [{"name": "X", "unknown": 1}]},
            {
                "plugin_id": "p",
                "commands": [
                    {
                        "name": "X",
                        "params": [{"name": "a", "type": "int"}, {"name": "a", "type": "int"}],
                    }
                ],
            },
            {
                "plugin_id": "p",
                "commands": [
                    {"name": "X", "params": [{"name": "a", "type": "string", "minimum": 1}]}
                ],
            },
            ["not", "a", "mapping"],
        ],
    )
    def test_invalid(self, data: object) -> None:
        from cadenza.contracts import MalformedSchema
        from cadenza.plugins.declarations import parse_manifest

        with pytest.raises(MalformedSchema):
            parse_manifest(data)

    def test_unparseable_file(self, tmp_path: Path) -> None:
        from cadenza.contracts import MalformedSchema
        from cadenza.plugins.declarations import load_manifest

        path = tmp_path / "bad.yaml"
        path.write_text("plugin_id: [unclosed")
        with pytest.raises(MalformedSchema, match="cannot parse"):
            load_manifest(path)
