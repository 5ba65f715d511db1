"""Connection lifecycle — scoped acquisition and release of driver connections.

This is the **single place** raw driver handles are created and destroyed.
``connect()`` picks a backend (explicit name, else the URL scheme), opens
the driver connection, yields a :class:`DatabaseConnection` and closes it
on every exit path: normal return, exception, or ``KeyboardInterrupt``.

Supported URLs
--------------
==================================  ==========================
URL                                 Backend
==================================  ==========================
``None`` / ``":memory:"``            sqlite (RAM)
``sqlite:///path.db`` / ``path.db``  sqlite (file)
``postgresql://user:pw@host/db``     postgresql (psycopg2)
``host=... dbname=...``              postgresql (libpq DSN)
``sqlalchemy+<engine url>``          sqlalchemy
==================================  ==========================

Usage
-----
::

    from sqlpersist.connection import connect

    with connect("sqlite:///app.db") as conn:
        users.create_table(conn)
        users.insert(conn, [Text("alice")])

    # Compose with a unit of work
    result = with_connection("app.db", lambda conn: users.exists(conn))
"""

from __future__ import annotations

import weakref
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from sqlpersist.errors import DatabaseConnectionError
from sqlpersist.logging import get_logger
from sqlpersist.settings import PersistSettings, get_settings

if TYPE_CHECKING:
    from sqlpersist.backends.base import Backend
    from sqlpersist.cursor import RowCursor
    from sqlpersist.transaction import Transaction

logger = get_logger(__name__)

T = TypeVar("T")


class DatabaseConnection:
    """An open database session owned by one ``connect()`` scope.

    Wraps the driver connection (``raw``) together with the backend that
    opened it. Tracks the cursors it produced so a closing transaction
    scope, or closing the connection, invalidates them.

    Not safe for concurrent use; open one connection per task.
    """

    def __init__(self, raw: Any, backend: Backend, url: str):
        self.raw = raw
        self.backend = backend
        self.url = url
        self._closed = False
        self._cursors: weakref.WeakSet[RowCursor] = weakref.WeakSet()
        self._transaction: Transaction | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def transaction(self) -> Transaction | None:
        """The transaction scope currently open on this connection, if any."""
        return self._transaction

    def ensure_open(self) -> None:
        if self._closed:
            raise DatabaseConnectionError("connection is closed").with_context(
                backend=self.backend.name
            )

    def track(self, cursor: RowCursor) -> RowCursor:
        self._cursors.add(cursor)
        return cursor

    def invalidate_cursors(self) -> None:
        for cursor in list(self._cursors):
            cursor.close()
        self._cursors.clear()

    def close(self) -> None:
        """Close the driver connection (idempotent)."""
        if self._closed:
            return
        self._closed = True
        self.invalidate_cursors()
        self.backend.close(self)
        logger.debug("connection_closed", backend=self.backend.name)

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"DatabaseConnection(backend={self.backend.name!r}, {state})"


def resolve_backend(
    url: str,
    backend: str | Backend | None = None,
    settings: PersistSettings | None = None,
) -> Backend:
    """Pick the backend for ``url``: an instance, a registered name, or the URL scheme."""
    from sqlpersist.backends.base import Backend
    from sqlpersist.backends.registry import backend_for_url, get_backend, strip_scheme

    settings = settings or get_settings()
    if isinstance(backend, Backend):
        return backend
    name = backend or settings.backend
    if name is None:
        return backend_for_url(url, settings=settings)
    if name == "sqlalchemy":
        return get_backend(name, engine=strip_scheme(url), settings=settings)
    return get_backend(name, settings=settings)


@contextmanager
def connect(
    url: str | None = None,
    *,
    backend: str | Backend | None = None,
    settings: PersistSettings | None = None,
) -> Iterator[DatabaseConnection]:
    """Open a connection for the duration of a ``with`` block.

    Parameters
    ----------
    url:
        Backend-specific connection string; defaults to
        ``settings.database_url`` (``SQLPERSIST_DATABASE_URL``).
    backend:
        Backend instance or registered name; defaults to
        ``settings.backend`` and then to detection by URL scheme.
    settings:
        Settings override (mainly for tests).

    If closing fails while an exception is already propagating, the close
    failure is attached to it as a note and the original is re-raised.
    """
    settings = settings or get_settings()
    target = url if url is not None else settings.database_url
    chosen = resolve_backend(target, backend, settings)
    conn = chosen.connect(target)
    logger.debug("connection_opened", backend=chosen.name)
    try:
        yield conn
    except BaseException as exc:
        try:
            conn.close()
        except Exception as close_exc:
            exc.add_note(f"closing the connection also failed: {close_exc!r}")
            logger.error(
                "connection_close_failed",
                backend=chosen.name,
                original_error=type(exc).__name__,
                close_error=str(close_exc),
            )
        raise
    else:
        conn.close()


def with_connection(
    url: str | None,
    work: Callable[[DatabaseConnection], T],
    *,
    backend: str | Backend | None = None,
    settings: PersistSettings | None = None,
) -> T:
    """Run ``work`` with a freshly opened connection and release it afterwards."""
    with connect(url, backend=backend, settings=settings) as conn:
        return work(conn)


__all__ = [
    "DatabaseConnection",
    "resolve_backend",
    "connect",
    "with_connection",
]
