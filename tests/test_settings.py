"""Tests for settings module."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sqlpersist.settings import PersistSettings, get_settings


class TestPersistSettings:
    def test_defaults(self):
        settings = PersistSettings()
        assert settings.database_url == ":memory:"
        assert settings.backend is None
        assert settings.log_level == "INFO"
        assert settings.json_logs is None
        assert settings.echo_sql is False
        assert settings.sqlite_timeout == 5.0
        assert settings.connect_timeout == 10

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SQLPERSIST_DATABASE_URL", "postgresql://h/db")
        monkeypatch.setenv("SQLPERSIST_CONNECT_TIMEOUT", "3")
        settings = PersistSettings()
        assert settings.database_url == "postgresql://h/db"
        assert settings.connect_timeout == 3

    def test_log_level_normalized(self):
        assert PersistSettings(log_level="debug").log_level == "DEBUG"

    def test_log_level_rejected(self):
        with pytest.raises(ValidationError):
            PersistSettings(log_level="chatty")

    def test_backend_lowercased(self):
        assert PersistSettings(backend="PostgreSQL").backend == "postgresql"

    def test_timeouts_positive(self):
        with pytest.raises(ValidationError):
            PersistSettings(sqlite_timeout=0)

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("SQLPERSIST_ECHO_SQL=true\n")
        assert PersistSettings().echo_sql is True

    def test_unknown_variables_ignored(self, monkeypatch):
        monkeypatch.setenv("SQLPERSIST_NOT_A_SETTING", "x")
        PersistSettings()


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_cache_clear_reloads(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("SQLPERSIST_LOG_LEVEL", "ERROR")
        assert get_settings() is first
        get_settings.cache_clear()
        assert get_settings().log_level == "ERROR"
