"""
Result envelope for units of work run inside a transaction scope.

A unit of work handed to :class:`~sqlpersist.transaction.Transaction` returns
``Ok(value)`` when its statements should be committed and ``Err(error)`` when
they should be rolled back. The scope inspects the result instead of relying
on exceptions unwinding through it, and hands the same envelope back to the
caller.

Manifesto:
    - **Explicit over Implicit:** Commit/rollback is decided by a value the
      unit of work returns, not by whether something happened to raise
    - **Functional composition:** Chain dependent inserts with ``and_then``
      without nested try/except blocks
    - **Bridge:** ``try_result`` turns exception-raising driver code into a
      Result

Examples:
    >>> from sqlpersist.result import Ok, Err
    >>> Ok(10).map(lambda x: x * 2).unwrap()
    20
    >>> Err(ValueError("oops")).map(lambda x: x * 2).unwrap_or(0)
    0

    Pattern matching:

    >>> match run_in_transaction(conn, work):
    ...     case Ok(user_id):
    ...         print(f"created {user_id}")
    ...     case Err(error):
    ...         print(f"rolled back: {error}")

Tags:
    result-pattern, error-handling, transaction, sqlpersist

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from sqlpersist.errors import PersistError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get value or default (always returns value for Ok)."""
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def and_then(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """Chain to another Result-returning function."""
        return f(self.value)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """Failed result containing the exception that caused the failure."""

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        """Get default since this is Err."""
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def and_then(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, PersistError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "error_type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result = Ok[T] | Err[T]


def try_result(f: Callable[[], T]) -> Result[T]:
    """
    Execute a zero-argument function and wrap its outcome.

    Returns ``Ok`` with the return value, or ``Err`` with the raised
    exception. Only ``Exception`` subclasses are captured; ``KeyboardInterrupt``
    and friends propagate.

    Example:
        >>> try_result(lambda: users.insert(conn, [Text("alice")]))
        Ok(1)
    """
    try:
        return Ok(f())
    except Exception as e:
        return Err(e)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
]
