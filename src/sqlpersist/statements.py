"""Pure SQL text builders.

Every statement sqlpersist generates is assembled here, with anonymous
``?`` placeholders; backends translate placeholders at execution time.
Builders are memoised on their (hashable) arguments, so deriving the same
entity twice or inserting into the same table repeatedly reuses one string.

>>> insert_statement("person", ("name", "age"))
'INSERT INTO person(name,age) VALUES(?,?) RETURNING id'
"""

from __future__ import annotations

from functools import lru_cache

from sqlpersist.schema import ID_COLUMN


@lru_cache(maxsize=512)
def insert_statement(table: str, columns: tuple[str, ...]) -> str:
    return (
        f"INSERT INTO {table}({','.join(columns)}) "
        f"VALUES({','.join('?' for _ in columns)}) "
        f"RETURNING {ID_COLUMN}"
    )


@lru_cache(maxsize=512)
def select_statement(table: str, columns: tuple[str, ...]) -> str:
    return f"SELECT {','.join((ID_COLUMN, *columns))} FROM {table}"


@lru_cache(maxsize=512)
def get_statement(table: str, columns: tuple[str, ...]) -> str:
    return f"{select_statement(table, columns)} WHERE {ID_COLUMN}=?"


@lru_cache(maxsize=512)
def delete_statement(table: str) -> str:
    return f"DELETE FROM {table} WHERE {ID_COLUMN}=?"


def where_clause(conditions: tuple[tuple[str, bool], ...]) -> str:
    """``WHERE`` for an equality conjunction; ``(column, is_null)`` pairs.

    Null conditions render as ``IS NULL`` and bind no parameter.
    """
    if not conditions:
        return ""
    parts = [f"{col} IS NULL" if is_null else f"{col}=?" for col, is_null in conditions]
    return " WHERE " + " AND ".join(parts)


def create_table_statement(table: str, id_column_type: str, column_defs: tuple[str, ...]) -> str:
    return f"CREATE TABLE {table}({','.join((f'{ID_COLUMN} {id_column_type}', *column_defs))})"


__all__ = [
    "insert_statement",
    "select_statement",
    "get_statement",
    "delete_statement",
    "where_clause",
    "create_table_statement",
]
