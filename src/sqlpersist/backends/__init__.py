"""Backends -- the four primitive operations over three kinds of driver.

Manifesto:
    Entity operations must run identically on SQLite (tests, embedded use),
    PostgreSQL (production) and anything SQLAlchemy can reach. Every backend
    implements the same closed set of operations (``query``, ``execute``,
    ``insert``, ``table_exists``) so generated entity operations never know
    which database they target.

    Each backend is **import-guarded**: the PostgreSQL driver is only
    required when a connection is opened, not at import time. Install the
    corresponding extra::

        pip install sqlpersist[postgresql]   # psycopg2-binary

Architecture::

    Backend (base.py)                Abstract base: query/execute/insert/table_exists
        |-- SQLiteBackend            stdlib sqlite3 (always available)
        |-- PostgreSQLBackend        psycopg2 (optional)
        |-- SQLAlchemyBackend        any SQLAlchemy engine

    BackendRegistry (registry.py)    Singleton: name -> backend class
    backend_for_url (registry.py)    URL scheme -> backend instance

Modules
-------
base            Abstract Backend base class
registry        BackendRegistry singleton + get_backend() / backend_for_url()
sqlite          SQLite backend (stdlib, always available)
postgresql      PostgreSQL backend (requires psycopg2)
sqlalchemy      SQLAlchemy engine backend

Guardrails:
    ❌ ``backend.execute(conn, "DELETE FROM t WHERE id=" + user_input)``
    ✅ ``backend.execute(conn, "DELETE FROM t WHERE id=?", [Int64(user_id)])``
    ❌ Importing optional drivers at module scope
    ✅ Import-guarded at connect time with clear ``ConfigError``

Tags:
    sqlpersist, database, backends, multi-backend, import-guarded,
    registry-pattern, postgresql, sqlite, sqlalchemy

Doc-Types:
    package-overview, architecture-map, module-index
"""

from sqlpersist.dialect import Dialect, get_dialect
from sqlpersist.protocols import BackendOperations

from .base import Backend
from .postgresql import PostgreSQLBackend
from .registry import BackendRegistry, backend_for_url, backend_registry, get_backend
from .sqlalchemy import SQLAlchemyBackend, create_persist_engine
from .sqlite import SQLiteBackend

__all__ = [
    # Protocols / Abstractions
    "BackendOperations",
    "Dialect",
    "get_dialect",
    # Base class
    "Backend",
    # Implementations
    "SQLiteBackend",
    "PostgreSQLBackend",
    "SQLAlchemyBackend",
    "create_persist_engine",
    # Registry
    "BackendRegistry",
    "backend_registry",
    "get_backend",
    "backend_for_url",
]
