"""
Canonical protocol definitions for sqlpersist.

The four-operation ``BackendOperations`` interface lives here. Every backend
satisfies it, and the entity operation generator is written against it.

Manifesto:
    Protocols define contracts without inheritance. They enable:
    - **Decoupling:** The generator depends on shape, not on a backend class
    - **Testability:** Any object with the four operations works, including
      test doubles
    - **Portability:** Same generated operations on SQLite, PostgreSQL or any
      SQLAlchemy engine

Architecture:
    ::

        protocols.py
        └── BackendOperations   — query / execute / insert / table_exists

Guardrails:
    ❌ DON'T: Add a fifth primitive to BackendOperations
    ✅ DO: Compose new entity operations from the four in the generator

Tags:
    protocol, backend, sqlpersist, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlpersist.connection import DatabaseConnection
    from sqlpersist.cursor import RowCursor
    from sqlpersist.values import Value


@runtime_checkable
class BackendOperations(Protocol):
    """
    The four primitive operations every relational backend supplies.

    Each operation takes the open connection explicitly and performs one
    blocking round trip. Parameters are positional ``?`` placeholders bound
    to Values through the backend's codec.

    Architecture:
        ::

            ┌──────────────────────────────────────────────────────────────┐
            │ query(conn, sql, params)                  → RowCursor        │
            │ execute(conn, sql, params)                → None             │
            │ insert(conn, table, columns, values)      → generated id     │
            │ table_exists(conn, name)                  → bool             │
            └──────────────────────────────────────────────────────────────┘
    """

    def query(
        self, conn: DatabaseConnection, sql: str, params: Sequence[Value] = ()
    ) -> RowCursor:
        """Run a statement and return a lazy cursor over its decoded rows."""
        ...

    def execute(self, conn: DatabaseConnection, sql: str, params: Sequence[Value] = ()) -> None:
        """Run a statement, discarding any rows."""
        ...

    def insert(
        self,
        conn: DatabaseConnection,
        table: str,
        columns: Sequence[str],
        values: Sequence[Value],
    ) -> int:
        """Insert one row and return its generated identifier."""
        ...

    def table_exists(self, conn: DatabaseConnection, name: str) -> bool:
        """Case-insensitive table existence check."""
        ...


__all__ = [
    "BackendOperations",
]
