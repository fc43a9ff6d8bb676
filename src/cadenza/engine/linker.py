# src/cadenza/engine/linker.py
"""Link a CompiledJob against the handlers that are live right now.

A compiled job only promises that its commands were valid when it was
compiled. Plugins may have been unloaded or replaced since, so linking
re-checks every step: the command must still be registered, with the
signature the job was compiled against, and the host must have a handler
for it. Nothing is called here; dispatch belongs to the executor.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from cadenza.contracts.commands import CompiledJob, ResolvedInvocation
from cadenza.contracts.enums import SchedulingClass
from cadenza.contracts.errors import (
    LinkDiagnostic,
    LinkError,
    MissingCommand,
    MissingHandler,
    SignatureMismatch,
)
from cadenza.core.logging import get_logger
from cadenza.plugins.commands import CommandRegistry, CommandRegistrySnapshot

logger = get_logger(__name__)


@dataclass(frozen=True)
class LinkedStep:
    """One invocation bound to the handler that will run it."""

    position: int
    invocation: ResolvedInvocation
    handler: Any


@dataclass(frozen=True)
class LinkedJob:
    """A compiled job with every step resolved to a live handler."""

    job: CompiledJob
    steps: tuple[LinkedStep, ...]

    def partition(self) -> dict[SchedulingClass, tuple[LinkedStep, ...]]:
        """Group steps by scheduling class, keeping source order in each."""
        groups: dict[SchedulingClass, list[LinkedStep]] = {cls: [] for cls in SchedulingClass}
        for step in self.steps:
            groups[step.invocation.scheduling_class].append(step)
        return {cls: tuple(steps) for cls, steps in groups.items()}


def link_job(
    job: CompiledJob,
    registry: CommandRegistry | CommandRegistrySnapshot,
    handlers: Mapping[str, Any],
) -> LinkedJob:
    """Resolve each step of job by name against the live handler table.

    Args:
        job: Artifact from the compiler
        registry: Current command registry (or a snapshot of it)
        handlers: Command name -> implementation, as loaded by the host

    Raises:
        LinkError: With every step that cannot be resolved
    """
    snapshot = registry.snapshot()
    errors: list[LinkDiagnostic] = []
    steps: list[LinkedStep] = []

    for position, invocation in enumerate(job.invocations):
        name = invocation.command_name
        entry = snapshot.get(name)
        if entry is None:
            errors.append(MissingCommand(position=position, name=name))
            continue
        if entry.signature != invocation.signature:
            errors.append(
                SignatureMismatch(
                    position=position,
                    name=name,
                    compiled=invocation.signature,
                    current=entry.signature,
                )
            )
            continue
        handler = handlers.get(name)
        if handler is None:
            errors.append(MissingHandler(position=position, name=name))
            continue
        steps.append(LinkedStep(position=position, invocation=invocation, handler=handler))

    if errors:
        logger.warning("Job failed to link", fingerprint=job.fingerprint, errors=len(errors))
        raise LinkError(errors)

    logger.info("Linked job", fingerprint=job.fingerprint, steps=len(steps))
    return LinkedJob(job=job, steps=tuple(steps))
