"""SQLAlchemy engine backend.

Runs the four primitive operations over any SQLAlchemy engine, so every
database SQLAlchemy has a dialect for becomes reachable without a dedicated
backend. Statements are sent through ``Connection.exec_driver_sql``: the
generated SQL is already final, only its ``?`` placeholders are rewritten
into the engine driver's paramstyle.

This module provides:

* ``create_persist_engine`` -- Create an engine from a URL with SQLite tweaks.
* ``SQLAlchemyBackend``     -- Backend over an ``Engine`` (or engine URL).

Tags:
    sqlpersist, sqlalchemy, engine, backend

Doc-Types:
    api-reference
"""

from __future__ import annotations

import sqlite3
from typing import Any

import sqlalchemy
from sqlalchemy import event
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine

from sqlpersist.codec import ValueCodec
from sqlpersist.connection import DatabaseConnection
from sqlpersist.dialect import GenericDialect, SQLiteDialect, get_dialect
from sqlpersist.errors import ConfigError, DatabaseConnectionError
from sqlpersist.settings import PersistSettings

from .base import Backend
from .sqlite import register_sqlite_types


def create_persist_engine(url: str, *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    SQLite engines get declared-type conversion (so ``DATE``, ``TIME``,
    ``TIMESTAMP`` and ``BOOLEAN`` columns come back typed, as with
    :class:`~sqlpersist.backends.sqlite.SQLiteBackend`) and foreign keys on.
    """
    try:
        if not url.startswith("sqlite"):
            return sqlalchemy.create_engine(url, echo=echo, **kwargs)

        register_sqlite_types()
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("detect_types", sqlite3.PARSE_DECLTYPES)
        engine = sqlalchemy.create_engine(url, echo=echo, connect_args=connect_args, **kwargs)
    except (sa_exc.ArgumentError, ImportError) as e:
        raise ConfigError(f"Cannot create SQLAlchemy engine for {url!r}: {e}", cause=e) from e

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def _dialect_for(engine: Engine) -> GenericDialect:
    name = engine.dialect.name
    try:
        base = get_dialect(name)
    except ConfigError:
        base = SQLiteDialect()
    return GenericDialect(name, engine.dialect.paramstyle, base=base)


class SQLAlchemyBackend(Backend):
    """
    Backend over a SQLAlchemy ``Engine``.

    Column types and the identifier descriptor come from the matching
    built-in dialect (SQLite's as a fallback for unknown databases); the
    placeholder style comes from the engine's driver. Each
    ``DatabaseConnection`` wraps one ``engine.connect()`` connection, which
    begins its transaction implicitly and commits only when a transaction
    scope commits.

    An engine created here from a URL is owned by the backend and disposed
    when a connection closes; an engine passed in is left to its creator.
    """

    name = "sqlalchemy"

    def __init__(
        self,
        engine: Engine | str,
        *,
        codec: ValueCodec | None = None,
        settings: PersistSettings | None = None,
    ):
        self._owns_engine = isinstance(engine, str)
        if isinstance(engine, str):
            engine = create_persist_engine(engine)
        self._engine = engine
        super().__init__(_dialect_for(engine), codec=codec, settings=settings)

    @property
    def engine(self) -> Engine:
        return self._engine

    def _open(self, url: str) -> Any:
        try:
            return self._engine.connect()
        except sa_exc.SQLAlchemyError as e:
            raise DatabaseConnectionError(
                f"Failed to connect through SQLAlchemy: {e}",
                cause=e,
            ).with_context(backend=self.name, dialect=self._dialect.name) from e

    def _run(self, conn: DatabaseConnection, statement: str, params: tuple[Any, ...]) -> Any:
        return conn.raw.exec_driver_sql(statement, params)

    def _columns(self, cursor: Any) -> list[str]:
        return list(cursor.keys()) if cursor.returns_rows else []

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        return (sa_exc.SQLAlchemyError,)

    def _is_connection_error(self, exc: BaseException) -> bool:
        if isinstance(exc, sa_exc.DBAPIError) and exc.connection_invalidated:
            return True
        return isinstance(
            exc, (sa_exc.DisconnectionError, sa_exc.InterfaceError, sa_exc.ResourceClosedError)
        )

    def close(self, conn: DatabaseConnection) -> None:
        try:
            super().close(conn)
        finally:
            if self._owns_engine:
                self._engine.dispose()

    def list_tables(self, conn: DatabaseConnection) -> list[str]:
        conn.ensure_open()
        try:
            names = sqlalchemy.inspect(conn.raw).get_table_names()
        except sa_exc.SQLAlchemyError as exc:
            raise self._translate(exc, None) from exc
        if self._engine.dialect.name == "sqlite":
            return [name.lower() for name in names]
        return list(names)

    def __repr__(self) -> str:
        return f"SQLAlchemyBackend(engine={self._engine.url!r}, dialect={self._dialect.name!r})"


__all__ = [
    "create_persist_engine",
    "SQLAlchemyBackend",
]
