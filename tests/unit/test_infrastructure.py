"""Tests for database configuration and structured logging helpers."""

from datetime import datetime, timedelta, timezone

import pytest
import structlog

from capstone.infrastructure.database import session as db_session
from capstone.shared.utils.datetime_utils import ensure_utc
from capstone.shared.utils.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)


class TestDatabaseUrl:
    def test_postgres_scheme_rewritten(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db:5432/capstone")
        assert db_session.get_database_url() == "postgresql+asyncpg://u:p@db:5432/capstone"

    def test_postgresql_scheme_rewritten(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db/capstone")
        assert db_session.get_database_url() == "postgresql+asyncpg://u:p@db/capstone"

    def test_sqlite_untouched(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./local.db")
        assert db_session.get_database_url() == "sqlite+aiosqlite:///./local.db"


class TestEngineLifecycle:
    @pytest.mark.asyncio
    async def test_init_create_and_close(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")
        monkeypatch.setattr(db_session, "_engine", None)
        monkeypatch.setattr(db_session, "_session_factory", None)

        await db_session.init_db()
        await db_session.create_schema()
        factory = db_session.get_session_factory()
        assert factory is db_session.get_session_factory()

        await db_session.close_db()
        assert db_session._engine is None
        assert db_session._session_factory is None


class TestEnsureUtc:
    def test_naive_assumed_utc(self):
        naive = datetime(2026, 3, 1, 12, 0)
        assert ensure_utc(naive) == datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_offset_converted(self):
        plus_two = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert ensure_utc(plus_two).hour == 12


class TestLogging:
    def teardown_method(self):
        clear_request_context()

    def test_request_context_is_bound(self):
        configure_logging(level="DEBUG", json_format=True, service_name="capstone-test")
        bind_request_context("req-1", actor_id="lecturer-7", topic_id="t-1")

        context = structlog.contextvars.get_contextvars()

        assert context["service"] == "capstone-test"
        assert context["request_id"] == "req-1"
        assert context["actor_id"] == "lecturer-7"
        assert context["topic_id"] == "t-1"

    def test_clear_request_context(self):
        bind_request_context("req-2")
        clear_request_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_console_logger_emits(self, capsys):
        configure_logging(level="INFO", json_format=False)
        get_logger("tests").info("topic_transferred", topic_id="t-1")
        assert "topic_transferred" in capsys.readouterr().out
