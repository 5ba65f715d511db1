"""Transaction scope — all-or-nothing execution over one connection.

A :class:`Transaction` begins when it is created and ends exactly once,
either committed or rolled back. Units of work report their outcome
explicitly as a :class:`~sqlpersist.result.Result`:

* ``Ok(value)``  → commit, the ``Ok`` is handed back
* ``Err(error)`` → roll back, the ``Err`` is handed back
* an exception   → roll back, returned as ``Err(exception)``
  (``KeyboardInterrupt`` and other ``BaseException`` s roll back and propagate)

A rollback that itself fails never replaces the failure that caused it:
it is wrapped in :class:`~sqlpersist.errors.RollbackError`, kept on
``transaction.rollback_error``, attached to the original exception as a
note and logged as ``rollback_failed``.

State machine::

    OPEN ──commit ok──────────────► COMMITTED
      │
      ├──Err / exception──rollback─► ROLLED_BACK
      └──commit fails─────rollback─► ROLLED_BACK

Closing the scope invalidates every cursor created on its connection.

Usage::

    def register(tx: Transaction) -> Result[int]:
        person_id = people.insert(tx.connection, [Text("alice")])
        return Ok(person_id)

    with connect("app.db") as conn:
        match run_in_transaction(conn, register):
            case Ok(person_id): ...
            case Err(error): ...

    # Dependent inserts chained with and_then; the first Err rolls both back:
    def enroll(tx: Transaction) -> Result[int]:
        return try_result(
            lambda: people.insert(tx.connection, [Text("carol")])
        ).and_then(
            lambda person_id: try_result(
                lambda: members.insert(tx.connection, [Int64(person_id)])
            )
        )

    # Or as a context manager (commit on clean exit, rollback and re-raise):
    with Transaction(conn) as tx:
        people.insert(tx.connection, [Text("bob")])

Tags:
    transaction, unit-of-work, commit, rollback, sqlpersist

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from sqlpersist.connection import DatabaseConnection, with_connection
from sqlpersist.errors import PersistError, RollbackError, TransactionStateError
from sqlpersist.logging import get_logger
from sqlpersist.result import Err, Ok, Result
from sqlpersist.settings import PersistSettings

if TYPE_CHECKING:
    from sqlpersist.backends.base import Backend

logger = get_logger(__name__)

T = TypeVar("T")


class TransactionState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """A single-use transaction scope on one :class:`DatabaseConnection`.

    Only one scope may be open per connection at a time.

    Raises:
        TransactionStateError: another scope is already open on ``conn``.
        DatabaseConnectionError: ``conn`` is closed or beginning failed.
    """

    def __init__(self, conn: DatabaseConnection):
        conn.ensure_open()
        if conn.transaction is not None:
            raise TransactionStateError(
                "a transaction scope is already open on this connection"
            ).with_context(backend=conn.backend.name)
        self._conn = conn
        self._state = TransactionState.OPEN
        self.rollback_error: RollbackError | None = None
        conn.backend.begin(conn)
        conn._transaction = self

    @property
    def connection(self) -> DatabaseConnection:
        return self._conn

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is TransactionState.OPEN

    # -- Unit of work ------------------------------------------------------------

    def run(self, work: Callable[[Transaction], Result[T]]) -> Result[T]:
        """Run ``work`` inside the scope and commit or roll back on its outcome."""
        self._ensure_open("run")
        try:
            result = work(self)
        except Exception as exc:
            self._rollback_after(exc)
            return Err(exc)
        except BaseException as exc:
            self._rollback_after(exc)
            raise

        if isinstance(result, Err):
            self._rollback_after(result.error)
            return result
        if not isinstance(result, Ok):
            error = TypeError(f"unit of work must return Ok or Err, got {type(result).__name__}")
            self._rollback_after(error)
            return Err(error)

        try:
            self.commit()
        except Exception as exc:
            self._rollback_after(exc)
            return Err(exc)
        return result

    # -- Explicit control --------------------------------------------------------

    def commit(self) -> None:
        """Commit and close the scope.

        On failure the scope stays open so the caller can roll back.
        """
        self._ensure_open("commit")
        self._conn.backend.commit(self._conn)
        self._close(TransactionState.COMMITTED)
        logger.debug("transaction_committed", backend=self._conn.backend.name)

    def rollback(self) -> None:
        """Roll back and close the scope.

        Raises:
            RollbackError: the driver failed to roll back (the scope is
                closed regardless).
        """
        self._ensure_open("rollback")
        try:
            self._conn.backend.rollback(self._conn)
        except Exception as exc:
            self._close(TransactionState.ROLLED_BACK)
            raise RollbackError(f"rollback failed: {exc}", cause=exc).with_context(
                backend=self._conn.backend.name
            ) from exc
        self._close(TransactionState.ROLLED_BACK)
        logger.debug("transaction_rolled_back", backend=self._conn.backend.name)

    # -- Context manager ---------------------------------------------------------

    def __enter__(self) -> Transaction:
        return self

    def __exit__(self, exc_type: Any, exc: BaseException | None, tb: Any) -> None:
        if not self.is_open:
            return
        if exc is not None:
            self._rollback_after(exc)
            return
        try:
            self.commit()
        except BaseException as commit_exc:
            self._rollback_after(commit_exc)
            raise

    # -- Internals -------------------------------------------------------------

    def _rollback_after(self, original: BaseException) -> None:
        """Roll back because of ``original``; a failing rollback is attached, not raised."""
        try:
            self.rollback()
        except RollbackError as err:
            self.rollback_error = err
            original.add_note(f"rollback also failed: {err.cause!r}")
            logger.error(
                "rollback_failed",
                backend=self._conn.backend.name,
                original_error=type(original).__name__,
                rollback_error=str(err.cause),
            )

    def _ensure_open(self, action: str) -> None:
        if self._state is not TransactionState.OPEN:
            raise TransactionStateError(
                f"cannot {action}: transaction already {self._state.value}"
            ).with_context(backend=self._conn.backend.name, state=self._state.value)

    def _close(self, state: TransactionState) -> None:
        self._state = state
        self._conn.invalidate_cursors()
        self._conn._transaction = None

    def __repr__(self) -> str:
        return f"Transaction(backend={self._conn.backend.name!r}, state={self._state.value})"


def run_in_transaction(
    conn: DatabaseConnection, work: Callable[[Transaction], Result[T]]
) -> Result[T]:
    """Open a scope on ``conn``, run ``work`` in it and close it.

    Failing to open the scope is returned as ``Err`` as well.
    """
    try:
        tx = Transaction(conn)
    except PersistError as exc:
        return Err(exc)
    return tx.run(work)


def with_transaction(
    url: str | None,
    work: Callable[[Transaction], Result[T]],
    *,
    backend: str | Backend | None = None,
    settings: PersistSettings | None = None,
) -> Result[T]:
    """Open a connection, run ``work`` in a transaction scope on it, release it."""
    return with_connection(
        url,
        lambda conn: run_in_transaction(conn, work),
        backend=backend,
        settings=settings,
    )


__all__ = [
    "TransactionState",
    "Transaction",
    "run_in_transaction",
    "with_transaction",
]
