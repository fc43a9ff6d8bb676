"""Command declaration and compiled job contracts.

A CompiledJob refers to commands by name and signature only. Handlers are
bound later, at link time, against whatever the host has loaded then.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from cadenza.contracts.enums import SchedulingClass
from cadenza.contracts.schema import FieldSchema, ObjectSchema
from cadenza.core.canonical import CANONICAL_VERSION, stable_hash


@dataclass(frozen=True)
class ParameterSchema:
    """One named parameter of a command."""

    name: str
    field: FieldSchema
    required: bool = False


def parameter_signature(parameters: tuple[ParameterSchema, ...]) -> str:
    """Hash the structural signature of a parameter list.

    Covers names, kinds, nested shapes and required flags. Declaration order,
    descriptions, defaults and bounds are not part of the signature.
    """
    structure = sorted(
        [p.name, p.required, list(p.field.shape())] for p in parameters
    )
    return stable_hash(structure)


@dataclass(frozen=True)
class CommandSchema:
    """A command a plugin declares it can handle."""

    name: str
    parameters: tuple[ParameterSchema, ...]
    scheduling_class: SchedulingClass
    priority: int
    owning_plugin_id: str
    description: str | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("command name cannot be empty")
        if not self.owning_plugin_id:
            raise ValueError(f"command {self.name!r} has no owning plugin")
        object.__setattr__(self, "parameters", tuple(self.parameters))
        seen: set[str] = set()
        for param in self.parameters:
            if param.name in seen:
                raise ValueError(
                    f"command {self.name!r} declares parameter {param.name!r} twice"
                )
            seen.add(param.name)

    @property
    def signature(self) -> str:
        return parameter_signature(self.parameters)

    def parameter_schema(self, *, closed: bool = True) -> ObjectSchema:
        """View the parameter list as an object schema for validation."""
        return ObjectSchema(
            properties={p.name: p.field for p in self.parameters},
            required=frozenset(p.name for p in self.parameters if p.required),
            closed=closed,
        )


@dataclass(frozen=True)
class CommandEntry:
    """Registry view of one command name across all its providers.

    providers lists owning plugin ids in registration order; all of them
    declared a structurally identical parameter list.
    """

    name: str
    parameters: tuple[ParameterSchema, ...]
    scheduling_class: SchedulingClass
    priority: int
    providers: tuple[str, ...]
    signature: str

    def parameter_schema(self, *, closed: bool = True) -> ObjectSchema:
        return ObjectSchema(
            properties={p.name: p.field for p in self.parameters},
            required=frozenset(p.name for p in self.parameters if p.required),
            closed=closed,
        )


@dataclass(frozen=True)
class CommandInvocation:
    """A single high-level command as written in a job."""

    command_name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedInvocation:
    """A validated invocation with typed arguments.

    signature pins the parameter list the arguments were checked against.
    """

    command_name: str
    typed_arguments: Mapping[str, Any]
    scheduling_class: SchedulingClass
    signature: str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "typed_arguments", MappingProxyType(dict(self.typed_arguments))
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command_name,
            "args": dict(self.typed_arguments),
            "scheduling_class": self.scheduling_class.value,
            "signature": self.signature,
        }


@dataclass(frozen=True)
class CompiledJob:
    """Ordered, immutable result of a successful compilation."""

    invocations: tuple[ResolvedInvocation, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "invocations", tuple(self.invocations))

    def __len__(self) -> int:
        return len(self.invocations)

    @property
    def command_names(self) -> frozenset[str]:
        return frozenset(inv.command_name for inv in self.invocations)

    @property
    def fingerprint(self) -> str:
        """Content hash of the job, stable across processes."""
        return stable_hash([inv.to_dict() for inv in self.invocations])

    def to_dict(self) -> dict[str, Any]:
        return {
            "canonical_version": CANONICAL_VERSION,
            "fingerprint": self.fingerprint,
            "invocations": [inv.to_dict() for inv in self.invocations],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CompiledJob":
        """Rebuild a job written by to_dict().

        Raises:
            ValueError: If the job was hashed under another canonical form, or
                the stored fingerprint does not match the content
        """
        version = data.get("canonical_version", CANONICAL_VERSION)
        if version != CANONICAL_VERSION:
            raise ValueError(
                f"compiled job uses canonical form {version!r}, expected {CANONICAL_VERSION!r}"
            )
        job = cls(
            invocations=tuple(
                ResolvedInvocation(
                    command_name=item["command"],
                    typed_arguments=item["args"],
                    scheduling_class=SchedulingClass(item["scheduling_class"]),
                    signature=item["signature"],
                )
                for item in data["invocations"]
            )
        )
        expected = data.get("fingerprint")
        if expected is not None and expected != job.fingerprint:
            raise ValueError(
                f"compiled job fingerprint mismatch: stored {expected}, computed {job.fingerprint}"
            )
        return job
