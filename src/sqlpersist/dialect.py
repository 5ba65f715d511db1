"""SQL dialect abstraction for backend-agnostic statement generation.

Generated statements are always written with anonymous ``?`` placeholders.
A ``Dialect`` supplies everything that differs between databases: the
column type for each :class:`~sqlpersist.values.ValueKind`, the descriptor
of the auto-generated identifier column, how to list tables, and how to
rewrite ``?`` into the driver's DB-API paramstyle.

Manifesto:
    The operation generator must never know which database it targets.
    Without a dialect layer, backend-specific syntax leaks into every
    generated statement.

    - **One interface:** Dialect protocol for all SQL fragments
    - **Zero coupling:** The generator never imports a database driver
    - **Testable:** Dialects are pure; no connection needed

Architecture::

    Generator:
    ┌────────────────────────────────────────────────────────────────┐
    │  INSERT INTO person(name,age) VALUES(?,?) RETURNING id         │
    └────────────────────────────────────────────────────────────────┘
                              │  dialect.translate(sql)
                              ▼
    ┌──────────────┐ ┌─────────────────┐ ┌──────────────────────────┐
    │ SQLite       │ │ PostgreSQL      │ │ SQLAlchemy (per engine)  │
    │ ?, ?         │ │ %s, %s          │ │ driver paramstyle        │
    │ INTEGER PK.. │ │ SERIAL UNIQUE   │ │ from the wrapped dialect │
    └──────────────┘ └─────────────────┘ └──────────────────────────┘

Examples:
    >>> from sqlpersist.dialect import get_dialect
    >>> d = get_dialect("postgresql")
    >>> d.translate("SELECT * FROM t WHERE a=? AND b='?'")
    "SELECT * FROM t WHERE a=%s AND b='?'"
    >>> d.id_column_type
    'SERIAL UNIQUE'

Tags:
    dialect, sql, abstraction, portability, database, sqlpersist

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from sqlpersist.errors import ConfigError
from sqlpersist.values import ValueKind

PARAMSTYLES = ("qmark", "format", "pyformat", "numeric", "numeric_dollar")

_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")


def _is_word(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _quoted_end(sql: str, start: int, escapes: bool) -> int:
    quote = sql[start]
    i = start + 1
    while i < len(sql):
        ch = sql[i]
        if escapes and ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        i += 1
    return len(sql)


def _opaque_end(sql: str, i: int) -> int | None:
    """End of the literal, identifier or comment starting at ``i``, if any."""
    ch = sql[i]
    if ch in ("'", '"'):
        # E'...' strings (PostgreSQL) escape with backslashes
        escapes = ch == "'" and i > 0 and sql[i - 1] in "eE" and (i < 2 or not _is_word(sql[i - 2]))
        return _quoted_end(sql, i, escapes)
    if sql.startswith("--", i):
        end = sql.find("\n", i)
        return len(sql) if end == -1 else end
    if sql.startswith("/*", i):
        end = sql.find("*/", i + 2)
        return len(sql) if end == -1 else end + 2
    if ch == "$" and not (i > 0 and _is_word(sql[i - 1])):
        tag = _DOLLAR_TAG.match(sql, i)
        if tag is not None:
            end = sql.find(tag.group(0), tag.end())
            return len(sql) if end == -1 else end + len(tag.group(0))
    return None


def rewrite_placeholders(sql: str, paramstyle: str) -> str:
    """Rewrite ``?`` placeholders into ``paramstyle``.

    Question marks are left alone inside single-quoted literals (including
    PostgreSQL ``E'...'`` escape strings), double-quoted identifiers,
    ``$tag$``-quoted bodies, ``--`` comments and ``/* */`` comments. Block
    comments are not nested. For ``format``/``pyformat`` every literal
    percent sign is doubled, quoted or not, because the driver interpolates
    the whole statement text.
    """
    if paramstyle == "qmark":
        return sql
    if paramstyle not in PARAMSTYLES:
        raise ConfigError(f"unsupported paramstyle: {paramstyle}")

    percent = "%%" if paramstyle in ("format", "pyformat") else "%"
    out: list[str] = []
    index = 0
    i = 0
    while i < len(sql):
        end = _opaque_end(sql, i)
        if end is not None:
            out.append(sql[i:end].replace("%", percent))
            i = end
            continue
        ch = sql[i]
        if ch == "%":
            out.append(percent)
        elif ch == "?":
            index += 1
            if paramstyle in ("format", "pyformat"):
                out.append("%s")
            elif paramstyle == "numeric":
                out.append(f":{index}")
            else:
                out.append(f"${index}")
        else:
            out.append(ch)
        i += 1
    return "".join(out)


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every member is either a SQL fragment or a pure string transform; none
    of them touch a connection.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def paramstyle(self) -> str:
        """DB-API paramstyle the driver expects."""
        ...

    @property
    def id_column_type(self) -> str:
        """Column descriptor of the auto-generated, unique ``id`` column."""
        ...

    def column_type(self, kind: ValueKind) -> str:
        """Column type used to store values of ``kind``."""
        ...

    def translate(self, sql: str) -> str:
        """Rewrite ``?`` placeholders into the driver's paramstyle."""
        ...

    def list_tables_query(self) -> str:
        """Query returning one table name per row."""
        ...


# =========================================================================
# Concrete Dialect Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect — ``?`` placeholders, ``AUTOINCREMENT`` ids."""

    _TYPES = {
        ValueKind.TEXT: "TEXT",
        ValueKind.BYTES: "BLOB",
        ValueKind.INT64: "INTEGER",
        ValueKind.FLOAT64: "REAL",
        ValueKind.BOOL: "BOOLEAN",
        ValueKind.DATE: "DATE",
        ValueKind.TIME_OF_DAY: "TIME",
        ValueKind.TIMESTAMP: "TIMESTAMP",
    }

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def paramstyle(self) -> str:
        return "qmark"

    @property
    def id_column_type(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def column_type(self, kind: ValueKind) -> str:
        return self._TYPES[kind]

    def translate(self, sql: str) -> str:
        return sql

    def list_tables_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table'"


class PostgreSQLDialect:
    """PostgreSQL dialect — ``%s`` placeholders (psycopg2), ``SERIAL UNIQUE`` ids."""

    _TYPES = {
        ValueKind.TEXT: "VARCHAR",
        ValueKind.BYTES: "BYTEA",
        ValueKind.INT64: "INT8",
        ValueKind.FLOAT64: "DOUBLE PRECISION",
        ValueKind.BOOL: "BOOLEAN",
        ValueKind.DATE: "DATE",
        ValueKind.TIME_OF_DAY: "TIME",
        ValueKind.TIMESTAMP: "TIMESTAMP WITH TIME ZONE",
    }

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def paramstyle(self) -> str:
        return "format"

    @property
    def id_column_type(self) -> str:
        return "SERIAL UNIQUE"

    def column_type(self, kind: ValueKind) -> str:
        return self._TYPES[kind]

    def translate(self, sql: str) -> str:
        return rewrite_placeholders(sql, "format")

    def list_tables_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema != 'pg_catalog' AND table_schema != 'information_schema'"
        )


class GenericDialect:
    """Dialect for an arbitrary DB-API driver, parameterised by its paramstyle.

    Used by the SQLAlchemy backend, which learns the paramstyle and the
    underlying database name from the engine.
    """

    def __init__(self, name: str, paramstyle: str = "qmark", *, base: Dialect | None = None):
        if paramstyle not in PARAMSTYLES:
            raise ConfigError(f"unsupported paramstyle for {name}: {paramstyle}")
        self._name = name
        self._paramstyle = paramstyle
        self._base = base or SQLiteDialect()

    @property
    def name(self) -> str:
        return self._name

    @property
    def paramstyle(self) -> str:
        return self._paramstyle

    @property
    def id_column_type(self) -> str:
        return self._base.id_column_type

    def column_type(self, kind: ValueKind) -> str:
        return self._base.column_type(kind)

    def translate(self, sql: str) -> str:
        return rewrite_placeholders(sql, self._paramstyle)

    def list_tables_query(self) -> str:
        return self._base.list_tables_query()


# =========================================================================
# Registry / Factory
# =========================================================================

_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ConfigError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ConfigError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect implementation (lower-cased key)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "PARAMSTYLES",
    "rewrite_placeholders",
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "GenericDialect",
    "get_dialect",
    "register_dialect",
]
