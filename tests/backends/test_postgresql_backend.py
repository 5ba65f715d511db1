"""Tests for ``sqlpersist.backends.postgresql`` — PostgreSQL backend.

The driver is mocked; tests against a real server run only when
``SQLPERSIST_TEST_POSTGRES_URL`` is set.
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest

psycopg2 = pytest.importorskip("psycopg2")

from sqlpersist.backends.postgresql import CHAR_OID, PostgreSQLBackend, _cast_char  # noqa: E402
from sqlpersist.codec import SqlChar  # noqa: E402
from sqlpersist.connection import connect  # noqa: E402
from sqlpersist.errors import (  # noqa: E402
    ConfigError,
    DatabaseConnectionError,
    StatementError,
)
from sqlpersist.generator import derive_entity  # noqa: E402
from sqlpersist.result import Err, Ok  # noqa: E402
from sqlpersist.transaction import Transaction, run_in_transaction  # noqa: E402
from sqlpersist.values import NULL, Int64, Text  # noqa: E402


@pytest.fixture
def mock_raw():
    raw = MagicMock()
    with patch("psycopg2.connect", return_value=raw) as mock_connect, patch(
        "psycopg2.extensions.register_type"
    ):
        raw.mock_connect = mock_connect
        yield raw


@pytest.fixture
def backend(settings):
    return PostgreSQLBackend(settings=settings)


def _cursor(description=None, rows=()):
    cursor = MagicMock()
    cursor.description = description
    cursor.fetchone.side_effect = list(rows) + [None]
    cursor.fetchall.return_value = list(rows)
    return cursor


class TestPostgreSQLBackendConnect:
    def test_connect_passes_url_and_timeout(self, backend, mock_raw, settings):
        conn = backend.connect("postgresql://u:p@db/app")
        assert conn.raw is mock_raw
        mock_raw.mock_connect.assert_called_once_with(
            "postgresql://u:p@db/app", connect_timeout=settings.connect_timeout
        )

    def test_connect_registers_char_caster(self, backend):
        raw = MagicMock()
        with patch("psycopg2.connect", return_value=raw), patch(
            "psycopg2.extensions.register_type"
        ) as mock_register:
            backend.connect("dbname=app")
        char_type, scope = mock_register.call_args.args
        assert scope is raw
        assert char_type.values == (CHAR_OID,)

    @patch("psycopg2.connect")
    def test_connect_failure(self, mock_connect, backend):
        mock_connect.side_effect = psycopg2.OperationalError("Connection refused")
        with pytest.raises(DatabaseConnectionError, match="Failed to connect"):
            backend.connect("postgresql://bad-host/app")

    def test_missing_driver(self, backend):
        with patch.dict("sys.modules", {"psycopg2": None}):
            with pytest.raises(ConfigError, match="pip install"):
                backend.connect("postgresql://db/app")


class TestCharCaster:
    def test_cast(self):
        assert isinstance(_cast_char("A", None), SqlChar)
        assert _cast_char(None, None) is None


class TestStatements:
    def test_placeholders_translated(self, backend, mock_raw):
        cursor = _cursor(description=[("name",)], rows=[("alice",)])
        mock_raw.cursor.return_value = cursor
        conn = backend.connect("postgresql://db/app")

        rows = backend.query(conn, "SELECT name FROM person WHERE id=? AND name LIKE 'a%'", [Int64(1)])

        cursor.execute.assert_called_once_with(
            "SELECT name FROM person WHERE id=%s AND name LIKE 'a%%'", (1,)
        )
        assert rows.fetchall() == [(Text("alice"),)]

    def test_insert_returning(self, backend, mock_raw):
        cursor = _cursor(description=[("id",)], rows=[(42,)])
        mock_raw.cursor.return_value = cursor
        conn = backend.connect("postgresql://db/app")

        assert backend.insert(conn, "person", ["name", "age"], [Text("bob"), NULL]) == 42
        cursor.execute.assert_called_once_with(
            "INSERT INTO person(name,age) VALUES(%s,%s) RETURNING id", ("bob", None)
        )

    def test_char_column_decodes_to_ordinal(self, backend, mock_raw):
        mock_raw.cursor.return_value = _cursor(description=[("c",)], rows=[(SqlChar("x"),)])
        conn = backend.connect("postgresql://db/app")
        assert backend.query(conn, "SELECT c FROM t").first() == (Int64(ord("x")),)

    def test_table_exists_case_insensitive(self, backend, mock_raw):
        mock_raw.cursor.side_effect = lambda: _cursor(
            description=[("table_name",)], rows=[("users",), ("orders",)]
        )
        conn = backend.connect("postgresql://db/app")
        assert backend.table_exists(conn, "Users") is True
        assert backend.table_exists(conn, "missing") is False

    def test_quoted_mixed_case_table_listed_verbatim(self, backend, mock_raw):
        mock_raw.cursor.side_effect = lambda: _cursor(
            description=[("table_name",)], rows=[("Users",), ("orders",)]
        )
        conn = backend.connect("postgresql://db/app")
        assert backend.list_tables(conn) == ["Users", "orders"]
        assert backend.table_exists(conn, "users") is False
        assert backend.table_exists(conn, "Orders") is True

    def test_integrity_error_is_statement_error(self, backend, mock_raw):
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg2.IntegrityError("null value in column")
        mock_raw.cursor.return_value = cursor
        conn = backend.connect("postgresql://db/app")
        with pytest.raises(StatementError):
            backend.execute(conn, "INSERT INTO t(a) VALUES(?)", [NULL])
        cursor.close.assert_called_once()

    def test_operational_error_is_connection_error(self, backend, mock_raw):
        cursor = MagicMock()
        cursor.execute.side_effect = psycopg2.OperationalError("server closed the connection")
        mock_raw.cursor.return_value = cursor
        conn = backend.connect("postgresql://db/app")
        with pytest.raises(DatabaseConnectionError) as exc_info:
            backend.execute(conn, "SELECT 1")
        assert exc_info.value.retryable is True

    def test_query_canceled_is_statement_error(self, backend):
        canceled = psycopg2.extensions.QueryCanceledError("statement timeout")
        assert backend._is_connection_error(canceled) is False


class TestTransactions:
    def test_begin_is_implicit_commit_explicit(self, backend, mock_raw):
        mock_raw.cursor.return_value = _cursor()
        conn = backend.connect("postgresql://db/app")
        result = run_in_transaction(conn, lambda tx: Ok(backend.execute(conn, "SELECT 1")))
        assert result == Ok(None)
        mock_raw.commit.assert_called_once()
        mock_raw.rollback.assert_not_called()

    def test_err_rolls_back(self, backend, mock_raw):
        conn = backend.connect("postgresql://db/app")
        result = Transaction(conn).run(lambda tx: Err(ValueError("no")))
        assert result.is_err()
        mock_raw.rollback.assert_called_once()
        mock_raw.commit.assert_not_called()


# =============================================================================
# Live server
# =============================================================================

POSTGRES_URL = os.environ.get("SQLPERSIST_TEST_POSTGRES_URL")


@pytest.mark.integration
@pytest.mark.skipif(not POSTGRES_URL, reason="SQLPERSIST_TEST_POSTGRES_URL not set")
class TestLivePostgreSQL:
    def test_entity_round_trip(self, person):
        with connect(POSTGRES_URL, backend="postgresql") as conn:
            ops = derive_entity(person, conn.backend)
            conn.backend.execute(conn, "DROP TABLE IF EXISTS person")
            ops.create_table(conn)
            conn.backend.commit(conn)
            try:
                ident = run_in_transaction(
                    conn, lambda tx: Ok(ops.insert(conn, [Text("alice"), Int64(3)]))
                ).unwrap()
                assert ident > 0
                assert ops.get(conn, ident)["name"] == Text("alice")
                assert ops.exists(conn) is True
            finally:
                conn.backend.rollback(conn)
                conn.backend.execute(conn, "DROP TABLE person")
                conn.backend.commit(conn)

    def test_char_quirk(self):
        with connect(POSTGRES_URL, backend="postgresql") as conn:
            row = conn.backend.query(conn, "SELECT 'A'::\"char\"").first()
        assert row == (Int64(65),)
