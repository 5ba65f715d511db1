"""PostgreSQL backend."""

from __future__ import annotations

from typing import Any

from sqlpersist.codec import SqlChar, ValueCodec
from sqlpersist.connection import DatabaseConnection
from sqlpersist.dialect import PostgreSQLDialect
from sqlpersist.errors import ConfigError, DatabaseConnectionError
from sqlpersist.settings import PersistSettings

from .base import Backend

# pg_type OID of the internal single-byte "char" type
CHAR_OID = 18


def _psycopg2() -> Any:
    try:
        import psycopg2
        import psycopg2.extensions
    except ImportError:
        raise ConfigError(
            "psycopg2 is required for PostgreSQL. Install with: pip install sqlpersist[postgresql]"
        ) from None
    return psycopg2


def _cast_char(value: str | None, cursor: Any) -> SqlChar | None:
    return None if value is None else SqlChar(value)


class PostgreSQLBackend(Backend):
    """
    PostgreSQL backend.

    Uses psycopg2, imported when the first connection is opened. Statements
    run inside the driver's implicit transaction, so nothing is persisted
    until a transaction scope commits.

    Columns of PostgreSQL's internal ``"char"`` type are returned as
    :class:`~sqlpersist.codec.SqlChar` and decode to their ordinal.
    """

    name = "postgresql"

    def __init__(
        self,
        *,
        connect_timeout: int | None = None,
        codec: ValueCodec | None = None,
        settings: PersistSettings | None = None,
    ):
        super().__init__(PostgreSQLDialect(), codec=codec, settings=settings)
        self._connect_timeout = (
            connect_timeout if connect_timeout is not None else self._settings.connect_timeout
        )

    def _open(self, url: str) -> Any:
        psycopg2 = _psycopg2()
        try:
            raw = psycopg2.connect(url, connect_timeout=self._connect_timeout)
        except psycopg2.Error as e:
            raise DatabaseConnectionError(
                f"Failed to connect to PostgreSQL: {e}",
                cause=e,
            ).with_context(backend=self.name) from e
        char_type = psycopg2.extensions.new_type((CHAR_OID,), "SQLPERSIST_CHAR", _cast_char)
        psycopg2.extensions.register_type(char_type, raw)
        return raw

    def _driver_errors(self) -> tuple[type[BaseException], ...]:
        return (_psycopg2().Error,)

    def _is_connection_error(self, exc: BaseException) -> bool:
        psycopg2 = _psycopg2()
        if isinstance(exc, psycopg2.extensions.QueryCanceledError):
            return False
        return isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError))

    def list_tables(self, conn: DatabaseConnection) -> list[str]:
        cursor = self._statement(conn, self._dialect.list_tables_query(), ())
        try:
            return [row[0] for row in cursor.fetchall()]
        finally:
            cursor.close()


__all__ = [
    "CHAR_OID",
    "PostgreSQLBackend",
]
