"""Shared contracts for cross-boundary data types.

All dataclasses and enums that cross subsystem boundaries are defined
here.

Import pattern:
    from cadenza.contracts import FieldKind, PluginSchema, CompiledJob
"""

from cadenza.contracts.enums import (
    FieldKind,
    SchedulingClass,
    kind_of,
    parse_kind,
)
from cadenza.contracts.violations import (
    MissingRequiredField,
    NotAnObject,
    OutOfRange,
    TypeMismatch,
    UnknownField,
    Violation,
)
from cadenza.contracts.errors import (
    ArgumentError,
    CadenzaError,
    CommandConflictError,
    CompileDiagnostic,
    CompileError,
    ConfigValidationError,
    ConflictError,
    DuplicateCommandError,
    DuplicatePluginError,
    LinkDiagnostic,
    LinkError,
    MalformedJob,
    MalformedSchema,
    MissingCommand,
    MissingHandler,
    ParseError,
    PluginNotFoundError,
    SchemaConflictError,
    SchemaError,
    SignatureMismatch,
    UnknownCommand,
    UnsupportedSchemaShape,
)
from cadenza.contracts.schema import (
    FieldSchema,
    MergedSchema,
    ObjectSchema,
    PluginSchema,
)
from cadenza.contracts.commands import (
    CommandEntry,
    CommandInvocation,
    CommandSchema,
    CompiledJob,
    ParameterSchema,
    ResolvedInvocation,
    parameter_signature,
)

__all__ = [
    # enums
    "FieldKind",
    "SchedulingClass",
    "kind_of",
    "parse_kind",
    # violations
    "MissingRequiredField",
    "NotAnObject",
    "OutOfRange",
    "TypeMismatch",
    "UnknownField",
    "Violation",
    # errors
    "ArgumentError",
    "CadenzaError",
    "CommandConflictError",
    "CompileDiagnostic",
    "CompileError",
    "ConfigValidationError",
    "ConflictError",
    "DuplicateCommandError",
    "DuplicatePluginError",
    "LinkDiagnostic",
    "LinkError",
    "MalformedJob",
    "MalformedSchema",
    "MissingCommand",
    "MissingHandler",
    "ParseError",
    "PluginNotFoundError",
    "SchemaConflictError",
    "SchemaError",
    "SignatureMismatch",
    "UnknownCommand",
    "UnsupportedSchemaShape",
    # schema
    "FieldSchema",
    "MergedSchema",
    "ObjectSchema",
    "PluginSchema",
    # commands
    "CommandEntry",
    "CommandInvocation",
    "CommandSchema",
    "CompiledJob",
    "ParameterSchema",
    "ResolvedInvocation",
    "parameter_signature",
]
