"""
Shared pytest fixtures for sqlpersist tests.

This module provides:
- Settings isolation (no SQLPERSIST_* variable or .env leaks into a test)
- Sample entity definitions
- SQLite backends and connections (in memory and file-backed)

Usage:
    Fixtures are auto-discovered by pytest:

    def test_something(sqlite_conn, person):
        ...
"""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from sqlpersist.backends.sqlite import SQLiteBackend
from sqlpersist.connection import DatabaseConnection, connect
from sqlpersist.schema import EntityDefinition
from sqlpersist.settings import PersistSettings, get_settings
from sqlpersist.values import ValueKind


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark every test without an explicit marker as a unit test."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Strip SQLPERSIST_* variables and run from an empty directory (no .env)."""
    for key in list(os.environ):
        if key.startswith("SQLPERSIST_") and key != "SQLPERSIST_TEST_POSTGRES_URL":
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> PersistSettings:
    return PersistSettings()


# =============================================================================
# Entities
# =============================================================================


@pytest.fixture
def person() -> EntityDefinition:
    """person(name TEXT NOT NULL, age INT64 NULL)."""
    return EntityDefinition.of(
        "person",
        {"name": ValueKind.TEXT, "age": ValueKind.INT64},
        nullable={"age"},
    )


@pytest.fixture
def every_kind() -> EntityDefinition:
    """One nullable column of every storable kind."""
    kinds = [k for k in ValueKind if k is not ValueKind.NULL]
    return EntityDefinition.of(
        "sample",
        {f"c_{k.value}": k for k in kinds},
        nullable={f"c_{k.value}" for k in kinds},
    )


# =============================================================================
# Connections
# =============================================================================


@pytest.fixture
def sqlite_backend(settings: PersistSettings) -> SQLiteBackend:
    return SQLiteBackend(settings=settings)


@pytest.fixture
def sqlite_conn(sqlite_backend: SQLiteBackend) -> Generator[DatabaseConnection, None, None]:
    """In-memory SQLite connection, closed after the test."""
    with connect(":memory:", backend=sqlite_backend) as conn:
        yield conn


@pytest.fixture
def db_file(tmp_path: Path) -> str:
    """Path of a file database, for tests that need several connections."""
    return str(tmp_path / "persist.db")
