# src/cadenza/engine/compiler.py
"""
Compiler - Turn a sequence of command invocations into a CompiledJob.

The compiler resolves:
- command names against one snapshot of the command registry
- arguments against each command's parameter schema
- defaults and number widening into typed arguments

The resulting CompiledJob has:
- The invocations in source order
- Commands referenced by name and signature, never by handler
- The scheduling class each command declared

Compilation is all or nothing: any unknown command or argument violation
fails the whole job, and every such problem is reported together.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from cadenza.contracts.commands import (
    CommandEntry,
    CommandInvocation,
    CompiledJob,
    ResolvedInvocation,
)
from cadenza.contracts.enums import FieldKind
from cadenza.contracts.errors import (
    ArgumentError,
    CompileDiagnostic,
    CompileError,
    MalformedJob,
    UnknownCommand,
)
from cadenza.core.logging import get_logger
from cadenza.plugins.commands import CommandRegistry, CommandRegistrySnapshot
from cadenza.plugins.validation import apply_defaults, check_json_values, validate_config

logger = get_logger(__name__)


class InvocationModel(BaseModel):
    """One entry of a job document."""

    model_config = {"extra": "forbid", "frozen": True}

    command: str = Field(min_length=1)
    args: dict[str, Any] = Field(default_factory=dict)


class JobDocument(BaseModel):
    """A job document: the commands to run, in order."""

    model_config = {"extra": "forbid", "frozen": True}

    commands: list[InvocationModel]


def load_invocations(data: Any) -> list[CommandInvocation]:
    """Decode a parsed job document into invocations.

    Accepts either a bare list of {command, args} entries or a mapping
    with a commands key.

    Raises:
        MalformedJob: If the document has the wrong shape
    """
    if isinstance(data, list):
        data = {"commands": data}
    try:
        document = JobDocument.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or '$'}: {err['msg']}"
            for err in e.errors()
        )
        raise MalformedJob(f"invalid job document: {problems}") from e
    return [
        CommandInvocation(command_name=item.command, arguments=item.args)
        for item in document.commands
    ]


def _covered(name: str, flagged: set[str]) -> bool:
    """Whether name, or an object or array containing it, was already reported."""
    return any(
        name == other or name.startswith((f"{other}.", f"{other}["))
        for other in flagged
    )


def _typed_arguments(arguments: Mapping[str, Any], entry: CommandEntry) -> dict[str, Any]:
    """Fill defaults and widen integers passed to number parameters."""
    typed = apply_defaults(arguments, entry.parameter_schema())
    for param in entry.parameters:
        value = typed.get(param.name)
        if param.field.kind is FieldKind.NUMBER and isinstance(value, int):
            typed[param.name] = float(value)
    return typed


class JobCompiler:
    """
    Compiler for turning invocations into a CompiledJob.

    Usage:
        compiler = JobCompiler()
        job = compiler.compile(invocations, command_registry)
    """

    def __init__(self, *, allow_unknown_arguments: bool = False) -> None:
        self.allow_unknown_arguments = allow_unknown_arguments

    def _check(
        self, position: int, invocation: CommandInvocation, entry: CommandEntry
    ) -> list[CompileDiagnostic]:
        schema = entry.parameter_schema(closed=not self.allow_unknown_arguments)
        violations = validate_config(invocation.arguments, schema)
        # Undeclared members are hashed into the fingerprint unchecked by
        # the schema; report what canonical JSON cannot carry
        flagged = {violation.name for violation in violations}
        for violation in check_json_values(invocation.arguments):
            if not _covered(violation.name, flagged):
                violations.append(violation)
        return [
            ArgumentError(position=position, command_name=entry.name, violation=violation)
            for violation in violations
        ]

    def compile(
        self,
        invocations: Iterable[CommandInvocation],
        registry: CommandRegistry | CommandRegistrySnapshot,
    ) -> CompiledJob:
        """
        Compile invocations against the registry.

        The registry is read once, as a snapshot, and never modified.

        Args:
            invocations: Commands in source order
            registry: Live registry or an existing snapshot

        Returns:
            CompiledJob with one ResolvedInvocation per input

        Raises:
            CompileError: With every per-position diagnostic
        """
        snapshot = registry.snapshot()
        errors: list[CompileDiagnostic] = []
        resolved: list[ResolvedInvocation] = []

        for position, invocation in enumerate(invocations):
            entry = snapshot.get(invocation.command_name)
            if entry is None:
                errors.append(UnknownCommand(position=position, name=invocation.command_name))
                continue

            problems = self._check(position, invocation, entry)
            if problems:
                errors.extend(problems)
                continue

            if not errors:
                resolved.append(
                    ResolvedInvocation(
                        command_name=entry.name,
                        typed_arguments=_typed_arguments(invocation.arguments, entry),
                        scheduling_class=entry.scheduling_class,
                        signature=entry.signature,
                    )
                )

        if errors:
            logger.warning(
                "Job failed to compile",
                errors=len(errors),
                positions=sorted({e.position for e in errors}),
            )
            raise CompileError(errors)

        job = CompiledJob(invocations=tuple(resolved))
        logger.info("Compiled job", invocations=len(job), fingerprint=job.fingerprint)
        return job


def compile_job(
    invocations: Iterable[CommandInvocation],
    registry: CommandRegistry | CommandRegistrySnapshot,
    *,
    allow_unknown_arguments: bool = False,
) -> CompiledJob:
    """Compile with a one-off JobCompiler."""
    return JobCompiler(allow_unknown_arguments=allow_unknown_arguments).compile(
        invocations, registry
    )
