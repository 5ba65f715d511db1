"""Environment-driven settings for sqlpersist.

``PersistSettings`` collects the few knobs the persistence core needs: which
database to open when the caller passes no URL, which backend to force, and
how to log. Values come from ``SQLPERSIST_*`` environment variables or a
``.env`` file.

Features:
    - **PersistSettings:** database_url, backend, log_level, json_logs,
      sqlite_timeout, connect_timeout, echo_sql
    - **get_settings():** Cached accessor used by ``connect()``
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> import os
    >>> os.environ["SQLPERSIST_DATABASE_URL"] = "sqlite:///app.db"
    >>> get_settings.cache_clear()
    >>> get_settings().database_url
    'sqlite:///app.db'

Tags:
    settings, configuration, pydantic, environment, sqlpersist
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PersistSettings(BaseSettings):
    """Settings shared by every backend.

    Fields
    ──────
    database_url    : Connection string used when ``connect()`` gets none
    backend         : Backend name overriding URL-scheme detection
    log_level       : Structlog log level
    json_logs       : Force JSON (True) / console (False) log rendering
    sqlite_timeout  : Seconds SQLite waits on a locked database
    connect_timeout : Seconds a network backend waits to connect
    echo_sql        : Log every statement at DEBUG level
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLPERSIST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Connection ───────────────────────────────────────────────
    database_url: str = ":memory:"
    backend: str | None = None
    sqlite_timeout: float = Field(default=5.0, gt=0)
    connect_timeout: int = Field(default=10, gt=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
    echo_sql: bool = False

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level

    @field_validator("backend")
    @classmethod
    def _lower_backend(cls, value: str | None) -> str | None:
        return value.lower() if value else None


@lru_cache(maxsize=1)
def get_settings() -> PersistSettings:
    """Return the process-wide settings (call ``get_settings.cache_clear()`` to reload)."""
    return PersistSettings()


__all__ = [
    "PersistSettings",
    "get_settings",
]
