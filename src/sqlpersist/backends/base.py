"""Backend base class — the four primitive operations over a DB-API driver.

Manifesto:
    Every relational backend shares the same shape: open a driver
    connection, run a statement with positional parameters, pull rows,
    commit or roll back. The abstract base implements the four primitive
    operations once, on top of a handful of driver hooks, so a concrete
    backend only says how to connect, how to list tables and how to
    classify its driver's exceptions.

Features:
    - ``query`` / ``execute`` / ``insert`` / ``table_exists`` implemented once
    - Parameters encoded and rows decoded through the backend's ``ValueCodec``
    - Driver exceptions mapped onto ``StatementError`` /
      ``DatabaseConnectionError`` with backend, table and SQL context
    - ``begin`` / ``commit`` / ``rollback`` hooks used by transaction scopes

Tags:
    sqlpersist, database, abstract-base, backend

Doc-Types:
    api-reference
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, ClassVar

from sqlpersist.codec import ValueCodec
from sqlpersist.connection import DatabaseConnection
from sqlpersist.cursor import RowCursor
from sqlpersist.dialect import Dialect
from sqlpersist.errors import (
    ArityError,
    DatabaseConnectionError,
    NoIdentifierReturnedError,
    PersistError,
    StatementError,
)
from sqlpersist.logging import get_logger
from sqlpersist.settings import PersistSettings, get_settings
from sqlpersist.statements import insert_statement
from sqlpersist.values import Int64, Value

logger = get_logger(__name__)

# Raised by driver-side type converters (e.g. sqlite3 declared-type converters)
# while a row is fetched.
CONVERSION_ERRORS: tuple[type[Exception], ...] = (ValueError, TypeError, OverflowError)


class Backend(ABC):
    """
    Abstract base class for backends.

    Implements :class:`~sqlpersist.protocols.BackendOperations` generically;
    subclasses provide the driver hooks.
    """

    name: ClassVar[str] = "backend"

    def __init__(
        self,
        dialect: Dialect,
        *,
        codec: ValueCodec | None = None,
        settings: PersistSettings | None = None,
    ):
        self._dialect = dialect
        self._codec = codec or ValueCodec(self.name)
        self._settings = settings or get_settings()

    @property
    def dialect(self) -> Dialect:
        """SQL dialect (column types, id descriptor, placeholder style)."""
        return self._dialect

    @property
    def codec(self) -> ValueCodec:
        return self._codec

    # -- Driver hooks --------------------------------------------------------

    @abstractmethod
    def _open(self, url: str) -> Any:
        """Open and return a raw driver connection."""
        ...

    @abstractmethod
    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        """Exception types raised by the driver."""
        ...

    @abstractmethod
    def _is_connection_error(self, exc: BaseException) -> bool:
        """Whether a driver exception means the connection itself failed."""
        ...

    @abstractmethod
    def list_tables(self, conn: DatabaseConnection) -> list[str]:
        """Names of all tables visible on ``conn``."""
        ...

    def _run(self, conn: DatabaseConnection, statement: str, params: tuple[Any, ...]) -> Any:
        """Execute an already-translated statement; return the driver cursor."""
        cursor = conn.raw.cursor()
        try:
            cursor.execute(statement, params)
        except BaseException:
            cursor.close()
            raise
        return cursor

    def _columns(self, cursor: Any) -> list[str]:
        description = cursor.description
        return [d[0] for d in description] if description else []

    # -- Lifecycle -----------------------------------------------------------

    def connect(self, url: str) -> DatabaseConnection:
        """Open a driver connection wrapped as a ``DatabaseConnection``."""
        return DatabaseConnection(self._open(url), self, url)

    def close(self, conn: DatabaseConnection) -> None:
        try:
            conn.raw.close()
        except self._driver_errors() as exc:
            raise self._translate(exc, None) from exc

    def begin(self, conn: DatabaseConnection) -> None:
        """Enter transactional mode (drivers that begin implicitly do nothing)."""
        conn.ensure_open()

    def commit(self, conn: DatabaseConnection) -> None:
        conn.ensure_open()
        try:
            conn.raw.commit()
        except self._driver_errors() as exc:
            raise self._translate(exc, "COMMIT") from exc

    def rollback(self, conn: DatabaseConnection) -> None:
        conn.ensure_open()
        try:
            conn.raw.rollback()
        except self._driver_errors() as exc:
            raise self._translate(exc, "ROLLBACK") from exc

    # -- Primitive operations ----------------------------------------------

    def query(
        self, conn: DatabaseConnection, sql: str, params: Sequence[Value] = ()
    ) -> RowCursor:
        """Run ``sql`` and return a lazy cursor over its decoded rows."""
        cursor = self._statement(conn, sql, params)
        rows = RowCursor(
            cursor,
            self._columns(cursor),
            self._codec,
            translate_error=lambda exc: self._translate_if_driver(exc, sql),
        )
        return conn.track(rows)

    def execute(self, conn: DatabaseConnection, sql: str, params: Sequence[Value] = ()) -> None:
        """Run ``sql`` and discard any rows."""
        cursor = self._statement(conn, sql, params)
        cursor.close()

    def insert(
        self,
        conn: DatabaseConnection,
        table: str,
        columns: Sequence[str],
        values: Sequence[Value],
    ) -> int:
        """Insert one row and return the generated ``id``.

        Raises:
            ArityError: ``columns`` and ``values`` differ in length (checked
                before anything is sent to the driver).
            StatementError: the driver rejected the statement.
            NoIdentifierReturnedError: no single integer id came back.
        """
        if len(columns) != len(values):
            raise ArityError(len(columns), len(values), table=table)
        sql = insert_statement(table, tuple(columns))
        cursor = self._statement(conn, sql, values, table=table)
        try:
            rows = cursor.fetchall()
        except (*self._driver_errors(), *CONVERSION_ERRORS) as exc:
            raise self._translate(exc, sql, table=table) from exc
        finally:
            cursor.close()

        if not rows or len(rows[0]) != 1:
            raise NoIdentifierReturnedError(
                f"insert into {table} returned no identifier row"
            ).with_context(backend=self.name, table=table, sql=sql)
        ident = self._codec.decode(rows[0][0])
        if not isinstance(ident, Int64):
            raise NoIdentifierReturnedError(
                f"insert into {table} returned a non-integer identifier: {ident!r}"
            ).with_context(backend=self.name, table=table, sql=sql)
        return ident.value

    def table_exists(self, conn: DatabaseConnection, name: str) -> bool:
        """Whether ``name`` (lower-cased) is among the backend's table names.

        Unquoted identifiers are stored lower-cased by PostgreSQL and listed
        lower-cased by SQLite, so both match whatever case the caller uses.
        A PostgreSQL table created under a quoted mixed-case name is listed
        verbatim by ``list_tables`` and is not reported here.
        """
        return name.lower() in self.list_tables(conn)

    # -- Internals -------------------------------------------------------------

    def _statement(
        self,
        conn: DatabaseConnection,
        sql: str,
        params: Sequence[Value],
        *,
        table: str | None = None,
    ) -> Any:
        conn.ensure_open()
        native = self._codec.encode_many(params)
        statement = self._dialect.translate(sql)
        if self._settings.echo_sql:
            logger.debug("statement", backend=self.name, sql=statement, params=len(native))
        try:
            return self._run(conn, statement, native)
        except (*self._driver_errors(), *CONVERSION_ERRORS) as exc:
            raise self._translate(exc, sql, table=table) from exc

    def _translate(
        self, exc: BaseException, sql: str | None, *, table: str | None = None
    ) -> PersistError:
        if isinstance(exc, CONVERSION_ERRORS):
            error_cls: type[PersistError] = StatementError
        elif self._is_connection_error(exc):
            error_cls = DatabaseConnectionError
        else:
            error_cls = StatementError
        logger.warning(
            "statement_failed",
            backend=self.name,
            error_type=error_cls.__name__,
            driver_error=type(exc).__name__,
            table=table,
        )
        return error_cls(f"{self.name}: {exc}", cause=exc).with_context(
            backend=self.name, table=table, sql=sql
        )

    def _translate_if_driver(self, exc: Exception, sql: str) -> Exception:
        if isinstance(exc, (*self._driver_errors(), *CONVERSION_ERRORS)):
            return self._translate(exc, sql)
        return exc

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dialect={self._dialect.name!r})"


__all__ = [
    "Backend",
]
