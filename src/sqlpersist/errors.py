"""
Structured error types for sqlpersist.

Every failure raised by the persistence core is a ``PersistError`` carrying a
category, a retry hint, structured context (backend, table, SQL) and the
chained driver exception. Callers can route on type while logging stays
uniform through ``to_dict()``.

Manifesto:
    - **Typed Error Hierarchy:** Statement, connection, schema and
      transaction failures are distinct types
    - **Explicit Retry Semantics:** Only connection-level errors are retryable
    - **Rich Context:** Errors carry the backend, table and SQL that failed
    - **Error Chaining:** The driver exception is always kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        PersistError                              │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  DatabaseError            ValidationError        ConfigError     │
        │  (DATABASE)               (VALIDATION)           (CONFIG)        │
        │       │                        │                                 │
        │  StatementError           SchemaError                            │
        │  NoIdentifierReturnedError ArityError                            │
        │  CursorClosedError                                               │
        │  TransactionStateError    DatabaseConnectionError                │
        │  RollbackError            (NETWORK, retryable)                   │
        └─────────────────────────────────────────────────────────────────┘

        DecodeFallbackWarning (UserWarning) -- soft data-fidelity signal

Guardrails:
    ❌ DON'T: Let a raw ``sqlite3.Error`` / ``psycopg2.Error`` escape a backend
    ✅ DO: Wrap it in ``StatementError`` or ``DatabaseConnectionError`` with cause=

    ❌ DON'T: Replace the original failure with a rollback failure
    ✅ DO: Attach the rollback failure as a secondary ``RollbackError``

Tags:
    error-handling, exception-hierarchy, error-context, sqlpersist

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    - **Infrastructure:** NETWORK, DATABASE
    - **Caller errors:** VALIDATION, CONFIG
    - **Internal errors:** INTERNAL, UNKNOWN
    """

    NETWORK = "NETWORK"
    DATABASE = "DATABASE"
    VALIDATION = "VALIDATION"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are set end up in ``to_dict()``; anything that does
    not have a typed field goes into ``metadata``.

    Attributes:
        backend: Backend name (``"sqlite"``, ``"postgresql"``, ...)
        entity: Entity name when the failure came from generated operations
        table: Table the statement targeted
        sql: Statement text (never the bound parameters)
        metadata: Additional key-value pairs
    """

    backend: str | None = None
    entity: str | None = None
    table: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["backend", "entity", "table", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PersistError(Exception):
    """
    Base exception for all sqlpersist errors.

    Subclasses set ``default_category`` and ``default_retryable`` so call
    sites only pass the message, the context and the cause.

    Examples:
        >>> error = PersistError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> err = StatementError("insert failed").with_context(table="users")
        >>> err.context.table
        'users'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PersistError:
        """
        Add context to this error (fluent API).

        Usage:
            raise StatementError("Failed", cause=e).with_context(
                backend="sqlite", table="users"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(PersistError):
    """Database statement or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class StatementError(DatabaseError):
    """Preparing, binding or executing a statement failed in the driver.

    Covers malformed SQL, constraint violations and type incompatibilities.
    Never retried automatically.
    """


class NoIdentifierReturnedError(DatabaseError):
    """An insert ran but no usable generated identifier came back.

    This is an invariant violation (the table lacks a single generated
    ``id`` column, or the driver dropped the ``RETURNING`` row), not a
    recoverable condition.
    """


class CursorClosedError(DatabaseError):
    """A row cursor was used after it was closed or its scope ended."""


class TransactionStateError(DatabaseError):
    """A transaction scope was used outside the ``OPEN`` state."""


class RollbackError(DatabaseError):
    """Rolling back after a failure failed as well.

    Always secondary: it is attached to the original failure, never raised
    in its place.
    """


class DatabaseConnectionError(PersistError):
    """Opening or talking over the driver connection failed."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


# =============================================================================
# VALIDATION / CONFIG ERRORS (Never Retryable)
# =============================================================================


class ValidationError(PersistError):
    """Caller supplied data that can never succeed."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class SchemaError(ValidationError):
    """An entity definition is malformed (bad identifiers, duplicates, ...)."""


class ArityError(ValidationError):
    """Column and value counts of an insert disagree."""

    def __init__(self, columns: int, values: int, *, table: str | None = None):
        super().__init__(
            f"insert into {table or '<table>'} got {columns} columns but {values} values",
            context=ErrorContext(table=table, metadata={"columns": columns, "values": values}),
        )
        self.columns = columns
        self.values = values


class ConfigError(PersistError):
    """Unknown backend, missing driver, unsupported driver setting."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# WARNINGS
# =============================================================================


class DecodeFallbackWarning(UserWarning):
    """A native value had no Value mapping and was rendered as text.

    Emitted through :mod:`warnings`; the decoded ``Text`` does not survive a
    round trip back to the original native type.
    """


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, PersistError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, PersistError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PersistError",
    # Database
    "DatabaseError",
    "StatementError",
    "NoIdentifierReturnedError",
    "CursorClosedError",
    "TransactionStateError",
    "RollbackError",
    "DatabaseConnectionError",
    # Validation / config
    "ValidationError",
    "SchemaError",
    "ArityError",
    "ConfigError",
    # Warnings
    "DecodeFallbackWarning",
    # Utilities
    "is_retryable",
    "categorize_error",
]
