"""SQLite backend."""

from __future__ import annotations

import datetime as dt
import sqlite3
from typing import Any

from sqlpersist.codec import ValueCodec
from sqlpersist.connection import DatabaseConnection
from sqlpersist.dialect import SQLiteDialect
from sqlpersist.errors import DatabaseConnectionError
from sqlpersist.settings import PersistSettings

from .base import Backend

_TYPES_REGISTERED = False


def register_sqlite_types() -> None:
    """Teach ``sqlite3`` to store and restore the temporal and boolean kinds.

    Adapters are process-wide in ``sqlite3``; converters only apply to
    connections opened with ``PARSE_DECLTYPES`` and to columns declared with
    the matching type name (see :class:`SQLiteDialect`).
    """
    global _TYPES_REGISTERED
    if _TYPES_REGISTERED:
        return
    sqlite3.register_adapter(dt.date, dt.date.isoformat)
    sqlite3.register_adapter(dt.time, dt.time.isoformat)
    sqlite3.register_adapter(dt.datetime, dt.datetime.isoformat)
    sqlite3.register_converter("DATE", lambda raw: dt.date.fromisoformat(raw.decode()))
    sqlite3.register_converter("TIME", lambda raw: dt.time.fromisoformat(raw.decode()))
    sqlite3.register_converter("TIMESTAMP", lambda raw: dt.datetime.fromisoformat(raw.decode()))
    sqlite3.register_converter("BOOLEAN", lambda raw: bool(int(raw)))
    _TYPES_REGISTERED = True


def sqlite_path(url: str) -> str:
    """Database path for a SQLite URL (``sqlite:///x.db``, ``x.db``, ``:memory:``)."""
    if url in ("", "memory", ":memory:"):
        return ":memory:"
    for prefix in ("sqlite:///", "sqlite://"):
        if url.startswith(prefix):
            return url[len(prefix):] or ":memory:"
    return url


class SQLiteBackend(Backend):
    """
    SQLite backend on the stdlib ``sqlite3`` driver.

    Connections run in autocommit mode; a transaction scope issues an
    explicit ``BEGIN`` so DDL and DML inside it commit or roll back
    together. Table names are folded to lower case when listed, matching
    SQLite's case-insensitive identifiers.
    """

    name = "sqlite"

    def __init__(
        self,
        *,
        timeout: float | None = None,
        codec: ValueCodec | None = None,
        settings: PersistSettings | None = None,
    ):
        super().__init__(SQLiteDialect(), codec=codec, settings=settings)
        self._timeout = timeout if timeout is not None else self._settings.sqlite_timeout

    def _open(self, url: str) -> Any:
        register_sqlite_types()
        path = sqlite_path(url)
        try:
            raw = sqlite3.connect(
                path,
                timeout=self._timeout,
                detect_types=sqlite3.PARSE_DECLTYPES,
                isolation_level=None,
                uri=path.startswith("file:"),
            )
            raw.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to SQLite: {e}",
                cause=e,
            ).with_context(backend=self.name) from e
        return raw

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        return (sqlite3.Error,)

    def _is_connection_error(self, exc: BaseException) -> bool:
        message = str(exc).lower()
        if isinstance(exc, sqlite3.ProgrammingError):
            return "closed" in message
        if isinstance(exc, sqlite3.OperationalError):
            return "unable to open" in message or "disk i/o" in message
        return False

    def begin(self, conn: DatabaseConnection) -> None:
        conn.ensure_open()
        try:
            conn.raw.execute("BEGIN")
        except sqlite3.Error as exc:
            raise self._translate(exc, "BEGIN") from exc

    def list_tables(self, conn: DatabaseConnection) -> list[str]:
        cursor = self._statement(conn, self._dialect.list_tables_query(), ())
        try:
            return [row[0].lower() for row in cursor.fetchall()]
        finally:
            cursor.close()


__all__ = [
    "SQLiteBackend",
    "register_sqlite_types",
    "sqlite_path",
]
