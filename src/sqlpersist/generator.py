"""Entity operation generator.

Derives every entity-specific operation from an :class:`EntityDefinition`
by composing the four primitive backend operations. No per-entity SQL is
written by hand: the statements are built once, at derivation time, and
the resulting :class:`EntityOperations` only binds Values and calls the
backend.

Architecture::

    EntityDefinition ──derive_entity(entity, backend)──► EntityOperations
                                                           │
            insert(conn, values)  ─────────────────────────┼─► backend.insert
            get(conn, id) / select(conn, where)  ──────────┼─► backend.query
            delete(conn, id) / create_table(conn)  ────────┼─► backend.execute
            exists(conn)  ─────────────────────────────────┴─► backend.table_exists

Derivation is pure: it validates the definition and builds strings, and
never touches a connection. Deriving twice from equal definitions yields
identical SQL text.

Usage::

    person = EntityDefinition.of("person", {"name": ValueKind.TEXT})
    people = derive_entity(person, backend)

    with connect("app.db") as conn:
        people.create_table(conn)
        person_id = people.insert(conn, {"name": Text("alice")})
        people.get(conn, person_id)   # {'id': Int64(1), 'name': Text('alice')}

Tags:
    generator, entity, sql, crud, sqlpersist

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from sqlpersist.dialect import Dialect, SQLiteDialect
from sqlpersist.errors import SchemaError, ValidationError
from sqlpersist.logging import get_logger
from sqlpersist.protocols import BackendOperations
from sqlpersist.schema import ID_COLUMN, EntityDefinition
from sqlpersist.statements import (
    create_table_statement,
    delete_statement,
    get_statement,
    insert_statement,
    select_statement,
    where_clause,
)
from sqlpersist.values import NULL, Int64, Null, Value, ValueKind, is_value

if TYPE_CHECKING:
    from sqlpersist.connection import DatabaseConnection
    from sqlpersist.cursor import RowCursor

logger = get_logger(__name__)


class EntityOperations:
    """Generated operations for one entity on one backend.

    Holds the precomputed statement text (``insert_sql``, ``select_sql``,
    ``get_sql``, ``delete_sql``, ``create_sql``) and exposes the operations
    built on them. Instances are stateless apart from that text and may be
    shared across connections.
    """

    def __init__(self, entity: EntityDefinition, backend: BackendOperations, dialect: Dialect):
        self.entity = entity
        self.backend = backend
        self.dialect = dialect
        self.table = entity.table
        self.columns = entity.columns
        self.insert_sql = insert_statement(self.table, self.columns)
        self.select_sql = select_statement(self.table, self.columns)
        self.get_sql = get_statement(self.table, self.columns)
        self.delete_sql = delete_statement(self.table)
        self.create_sql = create_table_statement(
            self.table,
            dialect.id_column_type,
            tuple(
                f"{f.name} {dialect.column_type(f.kind)}" + ("" if f.nullable else " NOT NULL")
                for f in entity.fields
            ),
        )

    # -- Writes ----------------------------------------------------------------

    def insert(
        self, conn: DatabaseConnection, values: Sequence[Value] | Mapping[str, Value]
    ) -> int:
        """Insert one row and return its generated id.

        ``values`` is either a sequence in column order or a mapping by field
        name; omitted nullable fields are stored as NULL.

        Raises:
            SchemaError: unknown field, or a required field missing from a mapping.
            ValidationError: a value whose kind differs from its field's, or
                ``Null`` for a field that is not nullable.
            ArityError: a sequence of the wrong length.
        """
        if isinstance(values, Mapping):
            values = self._ordered(values)
        if len(values) == len(self.columns):
            self._check_kinds(zip(self.columns, values), null_ok=False)
        return self.backend.insert(conn, self.table, self.columns, values)

    def delete(self, conn: DatabaseConnection, ident: int) -> None:
        self.backend.execute(conn, self.delete_sql, [Int64(ident)])

    def create_table(self, conn: DatabaseConnection) -> bool:
        """Create the entity's table unless it exists; return whether it was created."""
        if self.backend.table_exists(conn, self.table):
            return False
        self.backend.execute(conn, self.create_sql)
        logger.info("table_created", entity=self.entity.name, table=self.table)
        return True

    # -- Reads -----------------------------------------------------------------

    def get(self, conn: DatabaseConnection, ident: int) -> dict[str, Value] | None:
        """Fetch one row by id as ``{column: Value}`` (``id`` included), or ``None``."""
        row = self.backend.query(conn, self.get_sql, [Int64(ident)]).first()
        if row is None:
            return None
        return dict(zip((ID_COLUMN, *self.columns), row, strict=True))

    def select(
        self, conn: DatabaseConnection, where: Mapping[str, Value] | None = None
    ) -> RowCursor:
        """Rows matching an equality conjunction over fields (all rows if none).

        A ``Null`` condition matches SQL ``NULL``.
        """
        if not where:
            return self.backend.query(conn, self.select_sql)
        self._check_fields(where)
        self._check_kinds(where.items(), null_ok=True)
        conditions = tuple((col, isinstance(value, Null)) for col, value in where.items())
        params = [value for value in where.values() if not isinstance(value, Null)]
        return self.backend.query(conn, self.select_sql + where_clause(conditions), params)

    def exists(self, conn: DatabaseConnection) -> bool:
        return self.backend.table_exists(conn, self.table)

    # -- Pass-through ------------------------------------------------------------

    def query(
        self, conn: DatabaseConnection, sql: str, params: Sequence[Value] = ()
    ) -> RowCursor:
        return self.backend.query(conn, sql, params)

    def execute(self, conn: DatabaseConnection, sql: str, params: Sequence[Value] = ()) -> None:
        self.backend.execute(conn, sql, params)

    # -- Internals -------------------------------------------------------------

    def _check_fields(self, names: Iterable[str]) -> None:
        unknown = [n for n in names if n not in self.columns]
        if unknown:
            raise SchemaError(f"unknown fields for {self.entity.name}: {unknown}").with_context(
                entity=self.entity.name, table=self.table
            )

    def _check_kinds(self, pairs: Iterable[tuple[str, Value]], *, null_ok: bool) -> None:
        """Reject values that do not match their field's kind.

        ``Null`` is accepted for nullable fields, and for every field when
        ``null_ok`` (filters may ask for ``IS NULL`` on any column).
        """
        for name, value in pairs:
            f = self.entity.field(name)
            kind = value.kind if is_value(value) else None
            if kind is f.kind:
                continue
            if kind is ValueKind.NULL and (f.nullable or null_ok):
                continue
            got = kind.value if kind is not None else type(value).__name__
            raise ValidationError(
                f"{self.entity.name}.{name} expects {f.kind.value}, got {got}"
            ).with_context(entity=self.entity.name, table=self.table, field=name)

    def _ordered(self, values: Mapping[str, Value]) -> list[Value]:
        self._check_fields(values)
        ordered: list[Value] = []
        for f in self.entity.fields:
            if f.name in values:
                ordered.append(values[f.name])
            elif f.nullable:
                ordered.append(NULL)
            else:
                raise SchemaError(
                    f"missing required field {f.name!r} for {self.entity.name}"
                ).with_context(entity=self.entity.name, table=self.table)
        return ordered

    def __repr__(self) -> str:
        return f"EntityOperations(entity={self.entity.name!r}, columns={self.columns!r})"


def derive_entity(
    entity: EntityDefinition,
    backend: BackendOperations,
    *,
    dialect: Dialect | None = None,
) -> EntityOperations:
    """Generate the operations of ``entity`` on ``backend``.

    The dialect (column types, identifier descriptor) defaults to
    ``backend.dialect`` and then to SQLite's.

    Raises:
        SchemaError: the definition is malformed.
    """
    entity.validate()
    chosen = dialect or getattr(backend, "dialect", None) or SQLiteDialect()
    return EntityOperations(entity, backend, chosen)


def derive_entities(
    entities: Iterable[EntityDefinition],
    backend: BackendOperations,
    *,
    dialect: Dialect | None = None,
) -> dict[str, EntityOperations]:
    """Derive operations for several entities, keyed by entity name.

    Raises:
        SchemaError: a definition is malformed, or two share a name.
    """
    derived: dict[str, EntityOperations] = {}
    for entity in entities:
        if entity.name in derived:
            raise SchemaError(f"duplicate entity: {entity.name!r}").with_context(
                entity=entity.name
            )
        derived[entity.name] = derive_entity(entity, backend, dialect=dialect)
    return derived


__all__ = [
    "EntityOperations",
    "derive_entity",
    "derive_entities",
]
