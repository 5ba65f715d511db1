"""sqlpersist -- generic persistence of schema-described entities.

Manifesto:
    Applications describe their entities once (a table name and typed
    fields) and get insert / fetch / delete / existence operations for free,
    on SQLite, PostgreSQL or any SQLAlchemy engine. No ORM, no query
    builder: four primitive backend operations, a value codec, and a
    transaction scope that commits all or nothing.

Architecture::

    Layer 1 -- Values & Errors
        values.py          Value tagged union (Text, Int64, ..., Null)
        errors.py          Structured error hierarchy (PersistError, ...)
        result.py          Result[T] envelope (Ok / Err / try_result)

    Layer 2 -- Backends
        codec.py           Value <-> driver-native conversion
        dialect.py         Column types, id descriptor, placeholder styles
        protocols.py       BackendOperations (query/execute/insert/table_exists)
        cursor.py          Lazy RowCursor
        backends/          SQLite, PostgreSQL, SQLAlchemy + registry

    Layer 3 -- Entities & Scopes
        schema.py          EntityDefinition / FieldDefinition
        statements.py      Generated SQL text
        generator.py       derive_entity -> EntityOperations
        connection.py      connect() / with_connection()
        transaction.py     Transaction / run_in_transaction / with_transaction

    Cross-cutting
        logging.py         structlog configuration
        settings.py        SQLPERSIST_* settings (pydantic-settings)

Quick start::

    from sqlpersist import EntityDefinition, ValueKind, Text, Ok
    from sqlpersist import connect, derive_entity, run_in_transaction

    person = EntityDefinition.of("person", {"name": ValueKind.TEXT})

    with connect("app.db") as conn:
        people = derive_entity(person, conn.backend)
        people.create_table(conn)
        result = run_in_transaction(
            conn, lambda tx: Ok(people.insert(tx.connection, [Text("alice")]))
        )

Tags:
    sqlpersist, persistence, database, entities, transactions

Doc-Types:
    package-overview, architecture-map
"""

from sqlpersist.backends import (
    Backend,
    PostgreSQLBackend,
    SQLAlchemyBackend,
    SQLiteBackend,
    backend_for_url,
    get_backend,
)
from sqlpersist.codec import SqlChar, ValueCodec
from sqlpersist.connection import DatabaseConnection, connect, with_connection
from sqlpersist.cursor import Row, RowCursor
from sqlpersist.errors import (
    ArityError,
    ConfigError,
    CursorClosedError,
    DatabaseConnectionError,
    DatabaseError,
    DecodeFallbackWarning,
    NoIdentifierReturnedError,
    PersistError,
    RollbackError,
    SchemaError,
    StatementError,
    TransactionStateError,
    ValidationError,
)
from sqlpersist.generator import EntityOperations, derive_entities, derive_entity
from sqlpersist.protocols import BackendOperations
from sqlpersist.result import Err, Ok, Result, try_result
from sqlpersist.schema import EntityDefinition, FieldDefinition
from sqlpersist.settings import PersistSettings, get_settings
from sqlpersist.transaction import (
    Transaction,
    TransactionState,
    run_in_transaction,
    with_transaction,
)
from sqlpersist.values import (
    NULL,
    Bool,
    Bytes,
    Date,
    Float64,
    Int64,
    Null,
    Text,
    TimeOfDay,
    Timestamp,
    Value,
    ValueKind,
)

__version__ = "0.1.0"

__all__ = [
    # Values
    "Value",
    "ValueKind",
    "Text",
    "Bytes",
    "Int64",
    "Float64",
    "Bool",
    "Date",
    "TimeOfDay",
    "Timestamp",
    "Null",
    "NULL",
    # Codec
    "ValueCodec",
    "SqlChar",
    # Schema / generator
    "EntityDefinition",
    "FieldDefinition",
    "EntityOperations",
    "derive_entity",
    "derive_entities",
    # Backends
    "BackendOperations",
    "Backend",
    "SQLiteBackend",
    "PostgreSQLBackend",
    "SQLAlchemyBackend",
    "get_backend",
    "backend_for_url",
    # Connections / scopes
    "DatabaseConnection",
    "connect",
    "with_connection",
    "Row",
    "RowCursor",
    "Transaction",
    "TransactionState",
    "run_in_transaction",
    "with_transaction",
    # Result
    "Ok",
    "Err",
    "Result",
    "try_result",
    # Errors
    "PersistError",
    "DatabaseError",
    "StatementError",
    "NoIdentifierReturnedError",
    "CursorClosedError",
    "TransactionStateError",
    "RollbackError",
    "DatabaseConnectionError",
    "ValidationError",
    "SchemaError",
    "ArityError",
    "ConfigError",
    "DecodeFallbackWarning",
    # Settings
    "PersistSettings",
    "get_settings",
]
