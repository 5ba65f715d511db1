"""Tests for sqlpersist.generator — derived entity operations."""

import datetime as dt
from unittest.mock import MagicMock

import pytest

from sqlpersist.backends.sqlite import SQLiteBackend
from sqlpersist.cursor import RowCursor
from sqlpersist.dialect import PostgreSQLDialect
from sqlpersist.errors import ArityError, SchemaError, StatementError, ValidationError
from sqlpersist.generator import EntityOperations, derive_entities, derive_entity
from sqlpersist.schema import EntityDefinition
from sqlpersist.values import (
    NULL,
    Bool,
    Bytes,
    Date,
    Float64,
    Int64,
    Text,
    TimeOfDay,
    Timestamp,
    ValueKind,
)


class TestDerivation:
    """Derivation is pure and deterministic."""

    def test_generated_sql(self, person, sqlite_backend):
        ops = derive_entity(person, sqlite_backend)
        assert ops.insert_sql == "INSERT INTO person(name,age) VALUES(?,?) RETURNING id"
        assert ops.select_sql == "SELECT id,name,age FROM person"
        assert ops.get_sql == "SELECT id,name,age FROM person WHERE id=?"
        assert ops.delete_sql == "DELETE FROM person WHERE id=?"
        assert ops.create_sql == (
            "CREATE TABLE person(id INTEGER PRIMARY KEY AUTOINCREMENT,"
            "name TEXT NOT NULL,age INTEGER)"
        )

    def test_postgresql_create_sql(self, person):
        backend = MagicMock()
        backend.dialect = PostgreSQLDialect()
        ops = derive_entity(person, backend)
        assert ops.create_sql == "CREATE TABLE person(id SERIAL UNIQUE,name VARCHAR NOT NULL,age INT8)"

    def test_deterministic(self, sqlite_backend):
        a = EntityDefinition.of("t", {"x": ValueKind.TEXT, "y": ValueKind.BOOL})
        b = EntityDefinition.of("t", {"x": ValueKind.TEXT, "y": ValueKind.BOOL})
        ops_a = derive_entity(a, sqlite_backend)
        ops_b = derive_entity(b, sqlite_backend)
        for attr in ("insert_sql", "select_sql", "get_sql", "delete_sql", "create_sql"):
            assert getattr(ops_a, attr) == getattr(ops_b, attr)

    def test_derivation_does_no_io(self, person):
        backend = MagicMock()
        backend.dialect = PostgreSQLDialect()
        derive_entity(person, backend)
        backend.query.assert_not_called()
        backend.execute.assert_not_called()
        backend.insert.assert_not_called()
        backend.table_exists.assert_not_called()

    def test_invalid_definition_rejected(self, sqlite_backend):
        with pytest.raises(SchemaError):
            derive_entity(EntityDefinition.of("t", {"id": ValueKind.INT64}), sqlite_backend)

    def test_derive_entities(self, person, sqlite_backend):
        pet = EntityDefinition.of("pet", {"species": ValueKind.TEXT})
        derived = derive_entities([person, pet], sqlite_backend)
        assert set(derived) == {"person", "pet"}
        assert isinstance(derived["pet"], EntityOperations)

    def test_derive_entities_duplicate_name(self, person, sqlite_backend):
        with pytest.raises(SchemaError, match="duplicate entity"):
            derive_entities([person, person], sqlite_backend)


class TestOperationsOnMockBackend:
    """Generated operations only call the four primitives."""

    @pytest.fixture
    def backend(self):
        backend = MagicMock()
        backend.dialect = PostgreSQLDialect()
        return backend

    def test_insert_sequence(self, person, backend):
        backend.insert.return_value = 7
        ops = derive_entity(person, backend)
        conn = object()
        assert ops.insert(conn, [Text("a"), Int64(3)]) == 7
        backend.insert.assert_called_once_with(conn, "person", ("name", "age"), [Text("a"), Int64(3)])

    def test_insert_mapping_fills_nullable(self, person, backend):
        ops = derive_entity(person, backend)
        ops.insert(None, {"name": Text("a")})
        _, _, _, values = backend.insert.call_args.args
        assert values == [Text("a"), NULL]

    def test_insert_mapping_missing_required(self, person, backend):
        ops = derive_entity(person, backend)
        with pytest.raises(SchemaError, match="missing required field"):
            ops.insert(None, {"age": Int64(1)})
        backend.insert.assert_not_called()

    def test_insert_mapping_unknown_field(self, person, backend):
        ops = derive_entity(person, backend)
        with pytest.raises(SchemaError, match="unknown fields"):
            ops.insert(None, {"name": Text("a"), "email": Text("x")})

    def test_insert_rejects_wrong_kind(self, person, backend):
        ops = derive_entity(person, backend)
        with pytest.raises(ValidationError, match="person.age expects int64, got text") as exc_info:
            ops.insert(None, [Text("a"), Text("30")])
        assert exc_info.value.context.metadata["field"] == "age"
        backend.insert.assert_not_called()

    def test_insert_rejects_null_for_required_field(self, person, backend):
        ops = derive_entity(person, backend)
        with pytest.raises(ValidationError, match="person.name expects text, got null"):
            ops.insert(None, [NULL, Int64(1)])
        backend.insert.assert_not_called()

    def test_insert_rejects_non_values(self, person, backend):
        ops = derive_entity(person, backend)
        with pytest.raises(ValidationError, match="got str"):
            ops.insert(None, {"name": "alice"})

    def test_select_rejects_wrong_kind(self, person, backend):
        ops = derive_entity(person, backend)
        with pytest.raises(ValidationError):
            ops.select("conn", {"age": Text("old")})
        backend.query.assert_not_called()

    def test_select_null_on_required_field(self, person, backend):
        ops = derive_entity(person, backend)
        ops.select("conn", {"name": NULL})
        backend.query.assert_called_once_with(
            "conn", "SELECT id,name,age FROM person WHERE name IS NULL", []
        )

    def test_exists_uses_table_exists(self, person, backend):
        backend.table_exists.return_value = True
        ops = derive_entity(person, backend)
        assert ops.exists("conn") is True
        backend.table_exists.assert_called_once_with("conn", "person")

    def test_delete(self, person, backend):
        ops = derive_entity(person, backend)
        ops.delete("conn", 5)
        backend.execute.assert_called_once_with("conn", "DELETE FROM person WHERE id=?", [Int64(5)])

    def test_select_where_null(self, person, backend):
        ops = derive_entity(person, backend)
        ops.select("conn", {"name": Text("a"), "age": NULL})
        backend.query.assert_called_once_with(
            "conn",
            "SELECT id,name,age FROM person WHERE name=? AND age IS NULL",
            [Text("a")],
        )


class TestOperationsOnSQLite:
    """End-to-end through the SQLite backend."""

    def test_create_table_idempotent(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        assert ops.exists(sqlite_conn) is False
        assert ops.create_table(sqlite_conn) is True
        assert ops.create_table(sqlite_conn) is False
        assert ops.exists(sqlite_conn) is True

    def test_insert_get_round_trip(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        ops.create_table(sqlite_conn)
        first = ops.insert(sqlite_conn, [Text("alice"), Int64(30)])
        second = ops.insert(sqlite_conn, {"name": Text("bob")})
        assert first > 0
        assert second > first
        assert ops.get(sqlite_conn, first) == {
            "id": Int64(first),
            "name": Text("alice"),
            "age": Int64(30),
        }
        assert ops.get(sqlite_conn, second)["age"] == NULL
        assert ops.get(sqlite_conn, 999) is None

    def test_every_kind_round_trips(self, every_kind, sqlite_backend, sqlite_conn):
        ops = derive_entity(every_kind, sqlite_backend)
        ops.create_table(sqlite_conn)
        values = [
            Text("t"),
            Bytes(b"\x00\x01"),
            Int64(-(2**63)),
            Float64(2.5),
            Bool(True),
            Date(dt.date(2020, 2, 29)),
            TimeOfDay(dt.time(1, 2, 3, 4)),
            Timestamp(dt.datetime(2021, 6, 1, 12, 0, 0, 500)),
        ]
        ident = ops.insert(sqlite_conn, values)
        row = ops.get(sqlite_conn, ident)
        assert [row[c] for c in every_kind.columns] == values

    def test_every_kind_null(self, every_kind, sqlite_backend, sqlite_conn):
        ops = derive_entity(every_kind, sqlite_backend)
        ops.create_table(sqlite_conn)
        ident = ops.insert(sqlite_conn, {})
        row = ops.get(sqlite_conn, ident)
        assert all(row[c] == NULL for c in every_kind.columns)

    def test_select_filters(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        ops.create_table(sqlite_conn)
        ops.insert(sqlite_conn, [Text("a"), Int64(1)])
        ops.insert(sqlite_conn, [Text("b"), NULL])
        ops.insert(sqlite_conn, [Text("c"), NULL])

        with ops.select(sqlite_conn) as rows:
            assert isinstance(rows, RowCursor)
            assert rows.columns == ("id", "name", "age")
            assert len(rows.fetchall()) == 3

        names = [row[1] for row in ops.select(sqlite_conn, {"age": NULL})]
        assert names == [Text("b"), Text("c")]

        rows = ops.select(sqlite_conn, {"name": Text("a"), "age": Int64(1)}).fetchall()
        assert len(rows) == 1

    def test_select_unknown_column(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        with pytest.raises(SchemaError):
            ops.select(sqlite_conn, {"nope": Text("x")})

    def test_delete(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        ops.create_table(sqlite_conn)
        ident = ops.insert(sqlite_conn, [Text("gone"), NULL])
        ops.delete(sqlite_conn, ident)
        assert ops.get(sqlite_conn, ident) is None

    def test_constraint_violation(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        sqlite_backend.execute(
            sqlite_conn, "CREATE TABLE person(id INTEGER PRIMARY KEY, name TEXT, age INTEGER CHECK (age > 0))"
        )
        with pytest.raises(StatementError) as exc_info:
            ops.insert(sqlite_conn, [Text("young"), Int64(-1)])
        assert exc_info.value.context.table == "person"

    def test_wrong_kind_never_stored(self, sqlite_backend, sqlite_conn):
        entity = EntityDefinition.of("event", {"day": ValueKind.DATE})
        ops = derive_entity(entity, sqlite_backend)
        ops.create_table(sqlite_conn)
        with pytest.raises(ValidationError, match="expects date, got text"):
            ops.insert(sqlite_conn, [Text("not a date")])
        assert ops.select(sqlite_conn).fetchall() == []

    def test_unreadable_stored_value(self, sqlite_backend, sqlite_conn):
        entity = EntityDefinition.of("event", {"day": ValueKind.DATE})
        ops = derive_entity(entity, sqlite_backend)
        ops.create_table(sqlite_conn)
        ops.execute(sqlite_conn, "INSERT INTO event(day) VALUES(?)", [Text("garbage")])
        with pytest.raises(StatementError):
            ops.get(sqlite_conn, 1)

    def test_arity_mismatch(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        with pytest.raises(ArityError):
            ops.insert(sqlite_conn, [Text("only one")])

    def test_passthrough(self, person, sqlite_backend, sqlite_conn):
        ops = derive_entity(person, sqlite_backend)
        ops.create_table(sqlite_conn)
        ops.execute(sqlite_conn, "INSERT INTO person(name) VALUES(?)", [Text("raw")])
        assert ops.query(sqlite_conn, "SELECT count(*) FROM person").first() == (Int64(1),)


def test_repr(person):
    ops = derive_entity(person, SQLiteBackend())
    assert "person" in repr(ops)
