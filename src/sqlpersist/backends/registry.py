"""Backend registry and factory.

Manifesto:
    Consumers should never hard-code backend class names. The registry
    maps backend names to backend classes, ``get_backend()`` creates a
    configured instance by name and ``backend_for_url()`` picks one from
    the shape of a connection string.

Features:
    - ``BackendRegistry`` singleton with pre-registered defaults
    - ``register()`` for custom / third-party backends
    - ``get_backend()`` factory: name + options -> backend
    - ``backend_for_url()`` routing by URL scheme

Tags:
    sqlpersist, database, registry, factory, singleton

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

from sqlpersist.errors import ConfigError
from sqlpersist.settings import PersistSettings

from .base import Backend
from .postgresql import PostgreSQLBackend
from .sqlalchemy import SQLAlchemyBackend
from .sqlite import SQLiteBackend

SQLALCHEMY_PREFIX = "sqlalchemy+"


class BackendRegistry:
    """
    Registry for backend factories.

    Pre-registered backends:
    - ``sqlite`` — :class:`SQLiteBackend`
    - ``postgresql`` / ``postgres`` — :class:`PostgreSQLBackend`
    - ``sqlalchemy`` — :class:`SQLAlchemyBackend`
    """

    def __init__(self):
        self._factories: dict[str, type[Backend]] = {}
        self._register_defaults()

    def _register_defaults(self) -> None:
        self._factories["sqlite"] = SQLiteBackend
        self._factories["postgresql"] = PostgreSQLBackend
        self._factories["postgres"] = PostgreSQLBackend  # Alias
        self._factories["sqlalchemy"] = SQLAlchemyBackend

    def register(self, name: str, backend_class: type[Backend]) -> None:
        """Register a backend factory."""
        self._factories[name.lower()] = backend_class

    def create(self, name: str, **kwargs: Any) -> Backend:
        """Create a backend by name."""
        name = name.lower()
        if name not in self._factories:
            raise ConfigError(f"Unknown backend: {name}").with_context(
                registered=self.list_backends()
            )
        return self._factories[name](**kwargs)

    def list_backends(self) -> list[str]:
        """List registered backend names."""
        return sorted(self._factories.keys())


# Global registry
backend_registry = BackendRegistry()


def get_backend(name: str, **kwargs: Any) -> Backend:
    """
    Get a backend by name.

    Usage:
        backend = get_backend("sqlite")
        backend = get_backend("sqlalchemy", engine="mysql+pymysql://...")
    """
    return backend_registry.create(name, **kwargs)


def strip_scheme(url: str) -> str:
    """Drop the ``sqlalchemy+`` routing prefix from an engine URL."""
    return url[len(SQLALCHEMY_PREFIX):] if url.startswith(SQLALCHEMY_PREFIX) else url


def backend_for_url(url: str | None, *, settings: PersistSettings | None = None) -> Backend:
    """Pick and create the backend a connection string belongs to.

    ==================================  ==========
    ``None``, ``:memory:``, file path   sqlite
    ``sqlite://...`` / ``file:...``     sqlite
    ``postgresql://`` / ``postgres://`` postgresql
    ``host=... dbname=...`` (libpq)     postgresql
    ``sqlalchemy+<engine url>``         sqlalchemy
    ==================================  ==========

    Raises:
        ConfigError: for any other ``scheme://`` URL.
    """
    if url is None or url in ("", ":memory:") or url.startswith(("sqlite:", "file:")):
        return get_backend("sqlite", settings=settings)
    if url.startswith(SQLALCHEMY_PREFIX):
        return get_backend("sqlalchemy", engine=strip_scheme(url), settings=settings)
    if url.startswith(("postgresql://", "postgres://")):
        return get_backend("postgresql", settings=settings)
    if "://" not in url:
        if "=" in url:
            return get_backend("postgresql", settings=settings)
        return get_backend("sqlite", settings=settings)
    scheme = url.split("://", 1)[0]
    raise ConfigError(
        f"No backend for URL scheme '{scheme}'. "
        f"Use a registered backend name or the '{SQLALCHEMY_PREFIX}' prefix."
    )


__all__ = [
    "BackendRegistry",
    "backend_registry",
    "get_backend",
    "strip_scheme",
    "backend_for_url",
]
