"""Exception taxonomy.

Every failure in the schema/compile/link core is one of these. They are
raised at operation boundaries and never abort the process; errors that
carry many diagnostics (validation, compile, link) keep all of them.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from cadenza.contracts.violations import Violation


class CadenzaError(Exception):
    """Base exception for cadenza."""

    pass


class ParseError(CadenzaError):
    """Binary module container is not well formed."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        self.offset = offset
        if offset is not None:
            message = f"{message} (at byte offset {offset})"
        super().__init__(message)


class SchemaError(CadenzaError):
    """A plugin's embedded schema cannot be used."""

    pass


class MalformedSchema(SchemaError):
    """The schema payload could not be decoded into a PluginSchema."""

    pass


class UnsupportedSchemaShape(SchemaError):
    """The schema uses JSON Schema constructs outside the supported subset."""

    def __init__(self, path: str, keyword: str) -> None:
        self.path = path
        self.keyword = keyword
        super().__init__(f"unsupported schema construct {keyword!r} at {path}")


class ConflictError(CadenzaError):
    """A registration would make the registry inconsistent."""

    pass


class DuplicatePluginError(ConflictError):
    """The plugin id is already registered; unregister it first."""

    def __init__(self, plugin_id: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(f"plugin {plugin_id!r} is already registered")


class SchemaConflictError(ConflictError):
    """Two plugins declare the same field incompatibly.

    Either the kinds differ, or (reason set) the kinds agree but no value
    satisfies both declarations' bounds. plugin_a is the contributor already
    registered, plugin_b the one being registered.
    """

    def __init__(
        self,
        field: str,
        plugin_a: str,
        kind_a: str,
        plugin_b: str,
        kind_b: str,
        reason: str | None = None,
    ) -> None:
        self.field = field
        self.plugin_a = plugin_a
        self.kind_a = kind_a
        self.plugin_b = plugin_b
        self.kind_b = kind_b
        self.reason = reason
        if reason is None:
            message = (
                f"field {field!r} is {kind_a} in plugin {plugin_a!r} "
                f"but {kind_b} in plugin {plugin_b!r}"
            )
        else:
            message = (
                f"field {field!r} in plugin {plugin_b!r} conflicts with "
                f"plugin {plugin_a!r}: {reason}"
            )
        super().__init__(message)


class DuplicateCommandError(ConflictError):
    """The same plugin declared a command name twice."""

    def __init__(self, command: str, plugin_id: str) -> None:
        self.command = command
        self.plugin_id = plugin_id
        super().__init__(f"command {command!r} is already declared by plugin {plugin_id!r}")


class CommandConflictError(ConflictError):
    """Two plugins declare the same command with incompatible signatures."""

    def __init__(self, command: str, plugin_a: str, plugin_b: str, reason: str) -> None:
        self.command = command
        self.plugin_a = plugin_a
        self.plugin_b = plugin_b
        self.reason = reason
        super().__init__(
            f"command {command!r} from plugin {plugin_b!r} conflicts with "
            f"plugin {plugin_a!r}: {reason}"
        )


class PluginNotFoundError(CadenzaError):
    """No plugin with this id is registered."""

    def __init__(self, plugin_id: str) -> None:
        self.plugin_id = plugin_id
        super().__init__(f"plugin {plugin_id!r} is not registered")


class ConfigValidationError(CadenzaError):
    """A configuration document has one or more violations."""

    def __init__(self, violations: Sequence[Violation]) -> None:
        self.violations = tuple(violations)
        lines = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(f"configuration has {len(self.violations)} violation(s):\n{lines}")


class MalformedJob(CadenzaError):
    """A job document is not a list of command invocations."""

    pass


# === Compile diagnostics ===


@dataclass(frozen=True)
class UnknownCommand:
    """Invocation at position names a command nobody registered."""

    position: int
    name: str

    def __str__(self) -> str:
        return f"[{self.position}] unknown command {self.name!r}"


@dataclass(frozen=True)
class ArgumentError:
    """Invocation at position has an argument violation."""

    position: int
    command_name: str
    violation: Violation

    def __str__(self) -> str:
        return f"[{self.position}] {self.command_name}: {self.violation}"


CompileDiagnostic = UnknownCommand | ArgumentError


class CompileError(CadenzaError):
    """Compilation failed; no CompiledJob was produced."""

    def __init__(self, errors: Sequence[CompileDiagnostic]) -> None:
        self.errors = tuple(errors)
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"job failed to compile with {len(self.errors)} error(s):\n{lines}")

    @property
    def positions(self) -> tuple[int, ...]:
        """Sorted distinct invocation positions that failed."""
        return tuple(sorted({e.position for e in self.errors}))


# === Link diagnostics ===


@dataclass(frozen=True)
class MissingCommand:
    """The command was unregistered after the job compiled."""

    position: int
    name: str

    def __str__(self) -> str:
        return f"[{self.position}] command {self.name!r} is no longer registered"


@dataclass(frozen=True)
class SignatureMismatch:
    """The command's parameters changed after the job compiled."""

    position: int
    name: str
    compiled: str
    current: str

    def __str__(self) -> str:
        return (
            f"[{self.position}] command {self.name!r} signature changed "
            f"({self.compiled[:12]} -> {self.current[:12]})"
        )


@dataclass(frozen=True)
class MissingHandler:
    """The host has no live implementation for the command."""

    position: int
    name: str

    def __str__(self) -> str:
        return f"[{self.position}] no handler loaded for command {self.name!r}"


LinkDiagnostic = MissingCommand | SignatureMismatch | MissingHandler


class LinkError(CadenzaError):
    """A compiled job could not be resolved against live handlers."""

    def __init__(self, errors: Sequence[LinkDiagnostic]) -> None:
        self.errors = tuple(errors)
        lines = "\n".join(f"  - {e}" for e in self.errors)
        super().__init__(f"job failed to link with {len(self.errors)} error(s):\n{lines}")
