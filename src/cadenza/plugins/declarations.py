# src/cadenza/plugins/declarations.py
"""Command declaration manifests.

Plugins that cannot call back into the host at load time ship their command
declarations as a YAML or JSON manifest next to the binary:

    plugin_id: com.example.heater
    commands:
      - name: SET_TEMP
        scheduling_class: rt
        priority: 10
        params:
          - {name: tool, type: int, required: true}
          - {name: value, type: float, required: true, minimum: 0}
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from cadenza.contracts.commands import CommandSchema, ParameterSchema
from cadenza.contracts.enums import FieldKind, SchedulingClass, parse_kind
from cadenza.contracts.errors import MalformedSchema
from cadenza.contracts.schema import FieldSchema


class ParameterDeclaration(BaseModel):
    """One parameter entry in a manifest."""

    model_config = {"extra": "forbid", "frozen": True}

    name: str = Field(min_length=1)
    type: FieldKind
    required: bool = False
    description: str | None = None
    default: Any = None
    minimum: int | float | None = None
    maximum: int | float | None = None

    @field_validator("type", mode="before")
    @classmethod
    def resolve_kind_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_kind(v)
        return v

    def to_parameter(self) -> ParameterSchema:
        return ParameterSchema(
            name=self.name,
            field=FieldSchema(
                kind=self.type,
                description=self.description,
                default=self.default,
                minimum=self.minimum,
                maximum=self.maximum,
            ),
            required=self.required,
        )


class CommandDeclaration(BaseModel):
    """One command entry in a manifest."""

    model_config = {"extra": "forbid", "frozen": True}

    name: str = Field(min_length=1)
    scheduling_class: SchedulingClass = SchedulingClass.BEST_EFFORT
    priority: int = 0
    description: str | None = None
    params: list[ParameterDeclaration] = Field(default_factory=list)

    @field_validator("scheduling_class", mode="before")
    @classmethod
    def resolve_scheduling_alias(cls, v: Any) -> Any:
        if isinstance(v, str):
            return SchedulingClass.parse(v)
        return v


class CommandManifest(BaseModel):
    """A plugin's full set of command declarations."""

    model_config = {"extra": "forbid", "frozen": True}

    plugin_id: str = Field(min_length=1)
    commands: list[CommandDeclaration] = Field(default_factory=list)

    def to_commands(self) -> list[CommandSchema]:
        """Convert to CommandSchema values owned by plugin_id.

        Raises:
            ValueError: If a parameter declaration is inconsistent
        """
        return [
            CommandSchema(
                name=decl.name,
                parameters=tuple(p.to_parameter() for p in decl.params),
                scheduling_class=decl.scheduling_class,
                priority=decl.priority,
                owning_plugin_id=self.plugin_id,
                description=decl.description,
            )
            for decl in self.commands
        ]


def parse_manifest(data: Any) -> list[CommandSchema]:
    """Decode an already-parsed manifest document.

    Raises:
        MalformedSchema: If the manifest does not describe valid commands
    """
    try:
        manifest = CommandManifest.model_validate(data)
        return manifest.to_commands()
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or '$'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedSchema(f"invalid command manifest: {problems}") from e
    except ValueError as e:
        raise MalformedSchema(f"invalid command manifest: {e}") from e


def load_manifest(path: Path) -> list[CommandSchema]:
    """Read and decode a YAML or JSON manifest file.

    JSON is a subset of YAML, so one loader handles both.

    Raises:
        FileNotFoundError: If the manifest doesn't exist
        MalformedSchema: If it cannot be parsed or decoded
    """
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise MalformedSchema(f"cannot parse command manifest {path}: {e}") from e
    return parse_manifest(data)
