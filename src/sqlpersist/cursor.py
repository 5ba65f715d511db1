"""Lazy, forward-only row cursor over a driver result set.

A ``RowCursor`` decodes one row at a time through the backend's codec.
It is bound to the connection that produced it: when a transaction scope
on that connection ends, or the connection closes, the cursor is
invalidated and any further use raises ``CursorClosedError``.

Usage::

    with backend.query(conn, "SELECT id, name FROM person") as rows:
        for person_id, name in rows:
            ...
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from typing import Any

from sqlpersist.codec import ValueCodec
from sqlpersist.errors import CursorClosedError
from sqlpersist.values import Value

Row = tuple[Value, ...]


class RowCursor:
    """Iterator of decoded rows; exhausted once, never restarted."""

    def __init__(
        self,
        cursor: Any,
        columns: Sequence[str],
        codec: ValueCodec,
        *,
        translate_error: Callable[[Exception], Exception] | None = None,
    ) -> None:
        self._cursor = cursor
        self._columns = tuple(columns)
        self._codec = codec
        self._translate_error = translate_error
        self._closed = False
        # Statements without a result set (DDL, plain DML) yield no rows.
        self._exhausted = not self._columns
        if self._exhausted:
            self._release()

    @property
    def columns(self) -> tuple[str, ...]:
        return self._columns

    @property
    def closed(self) -> bool:
        return self._closed

    def fetchone(self) -> Row | None:
        """Pop the next row, or ``None`` once the result set is exhausted."""
        if self._closed:
            raise CursorClosedError("cursor used after it was closed")
        if self._exhausted:
            return None
        try:
            raw = self._cursor.fetchone()
        except Exception as exc:
            self.close()
            translated = exc if self._translate_error is None else self._translate_error(exc)
            if translated is exc:
                raise
            raise translated from exc
        if raw is None:
            self._exhausted = True
            self._release()
            return None
        return self._codec.decode_row(raw)

    def fetchall(self) -> list[Row]:
        return list(self)

    def first(self) -> Row | None:
        """Return the first remaining row and close the cursor."""
        try:
            return self.fetchone()
        finally:
            self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._release()

    def _release(self) -> None:
        cursor, self._cursor = self._cursor, None
        if cursor is not None:
            cursor.close()

    def __iter__(self) -> Iterator[Row]:
        return self

    def __next__(self) -> Row:
        row = self.fetchone()
        if row is None:
            raise StopIteration
        return row

    def __enter__(self) -> RowCursor:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("exhausted" if self._exhausted else "open")
        return f"RowCursor(columns={self._columns!r}, {state})"


__all__ = [
    "Row",
    "RowCursor",
]
