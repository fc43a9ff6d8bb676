# src/cadenza/plugins/commands.py
"""Command registry: which commands exist, and with what parameters.

Keyed by command name. Several plugins may provide the same command, but
only with a structurally identical parameter list and the same scheduling
class; which provider actually runs is the executor's decision.
"""

from collections.abc import Iterator, Mapping
from types import MappingProxyType

from cadenza.contracts.commands import CommandEntry, CommandSchema
from cadenza.contracts.errors import CommandConflictError, DuplicateCommandError
from cadenza.core.locking import ReadWriteLock
from cadenza.core.logging import get_logger

logger = get_logger(__name__)


def _describe_difference(existing: CommandSchema, incoming: CommandSchema) -> str | None:
    """Explain why two declarations of one command are incompatible."""
    if existing.scheduling_class is not incoming.scheduling_class:
        return (
            f"scheduling class {incoming.scheduling_class.value} "
            f"!= {existing.scheduling_class.value}"
        )
    if existing.signature == incoming.signature:
        return None

    ours = {p.name: p for p in existing.parameters}
    theirs = {p.name: p for p in incoming.parameters}
    if set(ours) != set(theirs):
        added = sorted(set(theirs) - set(ours))
        missing = sorted(set(ours) - set(theirs))
        return f"parameter names differ (added {added}, missing {missing})"
    for name, param in ours.items():
        other = theirs[name]
        if param.field.shape() != other.field.shape():
            return f"parameter {name!r} is {other.field.kind.value}, expected {param.field.kind.value}"
        if param.required != other.required:
            return f"parameter {name!r} required={other.required}, expected {param.required}"
    return "parameter signatures differ"


class CommandRegistrySnapshot(Mapping[str, CommandEntry]):
    """Immutable view of the registry at one instant.

    A compilation reads only from its snapshot, so plugin loads or unloads
    that happen meanwhile do not affect it.
    """

    def __init__(self, entries: Mapping[str, CommandEntry]) -> None:
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, name: str) -> CommandEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot(self) -> "CommandRegistrySnapshot":
        return self


class CommandRegistry:
    """Accumulates command declarations from plugins.

    Usage:
        registry = CommandRegistry()
        registry.register(set_temp)
        entry = registry.get("SET_TEMP")
        view = registry.snapshot()
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        # name -> declarations in registration order
        self._declarations: dict[str, list[CommandSchema]] = {}

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._declarations)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._declarations

    def names(self) -> tuple[str, ...]:
        with self._lock.read():
            return tuple(self._declarations)

    def register(self, command: CommandSchema) -> None:
        """Register one command declaration.

        Raises:
            DuplicateCommandError: If this plugin already declared the name
            CommandConflictError: If another plugin declared it differently
        """
        with self._lock.write():
            existing = self._declarations.get(command.name, [])
            for declared in existing:
                if declared.owning_plugin_id == command.owning_plugin_id:
                    raise DuplicateCommandError(command.name, command.owning_plugin_id)
            if existing:
                reason = _describe_difference(existing[0], command)
                if reason is not None:
                    logger.warning(
                        "Command conflict",
                        command=command.name,
                        plugin_a=existing[0].owning_plugin_id,
                        plugin_b=command.owning_plugin_id,
                        reason=reason,
                    )
                    raise CommandConflictError(
                        command.name,
                        existing[0].owning_plugin_id,
                        command.owning_plugin_id,
                        reason,
                    )
            self._declarations.setdefault(command.name, []).append(command)
        logger.info(
            "Registered command",
            command=command.name,
            plugin_id=command.owning_plugin_id,
            scheduling_class=command.scheduling_class.value,
        )

    def unregister_plugin(self, plugin_id: str) -> tuple[str, ...]:
        """Retract every declaration owned by plugin_id.

        Returns:
            Names of commands that no longer have any provider
        """
        dropped: list[str] = []
        with self._lock.write():
            for name in list(self._declarations):
                remaining = [
                    d for d in self._declarations[name] if d.owning_plugin_id != plugin_id
                ]
                if remaining:
                    self._declarations[name] = remaining
                else:
                    del self._declarations[name]
                    dropped.append(name)
        if dropped:
            logger.info("Dropped commands", plugin_id=plugin_id, commands=dropped)
        return tuple(dropped)

    def commands_of(self, plugin_id: str) -> tuple[CommandSchema, ...]:
        """Declarations owned by one plugin."""
        with self._lock.read():
            return tuple(
                d
                for declarations in self._declarations.values()
                for d in declarations
                if d.owning_plugin_id == plugin_id
            )

    @staticmethod
    def _entry(declarations: list[CommandSchema]) -> CommandEntry:
        first = declarations[0]
        return CommandEntry(
            name=first.name,
            parameters=first.parameters,
            scheduling_class=first.scheduling_class,
            priority=max(d.priority for d in declarations),
            providers=tuple(d.owning_plugin_id for d in declarations),
            signature=first.signature,
        )

    def get(self, name: str) -> CommandEntry | None:
        with self._lock.read():
            declarations = self._declarations.get(name)
            return self._entry(declarations) if declarations else None

    def snapshot(self) -> CommandRegistrySnapshot:
        with self._lock.read():
            return CommandRegistrySnapshot(
                {name: self._entry(decls) for name, decls in self._declarations.items()}
            )
