"""SQL store and repository tests with a mocked session factory.

No database is needed: the session factory returns a MagicMock session
whose ``begin()`` is an async context manager, and statements are checked
by compiling them against the PostgreSQL dialect.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from questionnaire_db.config import get_async_url
from questionnaire_db.repository import KeyValueRepository, ProfileRepository
from questionnaire_db.stores import SqlKeyValueStore, SqlProfileSink
from questionnaire_flow.errors import FinalizationError, PersistenceError
from questionnaire_flow.flow import FlowManager
from questionnaire_flow.memory import InMemoryProfileSink
from questionnaire_flow.orchestrator import SessionOrchestrator, SessionStatus


def _session():
    db = MagicMock()
    db.execute = AsyncMock()
    db.get = AsyncMock()
    db.begin.return_value.__aenter__ = AsyncMock(return_value=db)
    db.begin.return_value.__aexit__ = AsyncMock(return_value=False)
    return db


def _factory(db):
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(return_value=db)
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def _unreachable_factory():
    """A session factory whose connection attempt is refused, as asyncpg does."""
    factory = MagicMock()
    factory.return_value.__aenter__ = AsyncMock(
        side_effect=ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 1)")
    )
    factory.return_value.__aexit__ = AsyncMock(return_value=False)
    return factory


def _sql(stmt):
    return str(stmt.compile(dialect=postgresql.dialect()))


class TestRepositories:

    @pytest.mark.asyncio
    async def test_put_is_single_upsert(self):
        db = _session()
        await KeyValueRepository().put(db, "questionnaire_draft:u1", b"{}")
        sql = _sql(db.execute.await_args.args[0])
        assert "INSERT INTO kv_store" in sql
        assert "ON CONFLICT (key) DO UPDATE" in sql

    @pytest.mark.asyncio
    async def test_delete_reports_removed_row(self):
        db = _session()
        db.execute.return_value = MagicMock(rowcount=1)
        assert await KeyValueRepository().delete(db, "k") is True
        db.execute.return_value = MagicMock(rowcount=0)
        assert await KeyValueRepository().delete(db, "k") is False

    @pytest.mark.asyncio
    async def test_get_missing_key(self):
        db = _session()
        db.get.return_value = None
        assert await KeyValueRepository().get(db, "k") is None

    @pytest.mark.asyncio
    async def test_profile_upsert_targets_user(self):
        db = _session()
        await ProfileRepository().upsert(
            db, user_id="u1", record={"answers": {}}, version="2.3", completed_at=None,
        )
        sql = _sql(db.execute.await_args.args[0])
        assert "INSERT INTO questionnaire_profiles" in sql
        assert "ON CONFLICT (user_id) DO UPDATE" in sql


class TestSqlKeyValueStore:

    @pytest.mark.asyncio
    async def test_set_runs_in_transaction(self):
        db = _session()
        store = SqlKeyValueStore(_factory(db))
        store._repo = AsyncMock()
        await store.set("k", b"v")
        store._repo.put.assert_awaited_once_with(db, "k", b"v")
        db.begin.assert_called_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method, args", [("get", ("k",)), ("set", ("k", b"v")), ("remove", ("k",))])
    async def test_database_errors_become_persistence_errors(self, method, args):
        store = SqlKeyValueStore(_factory(_session()))
        store._repo = AsyncMock()
        failing = OperationalError("SELECT 1", {}, Exception("connection refused"))
        for name in ("get", "put", "delete"):
            getattr(store._repo, name).side_effect = failing
        with pytest.raises(PersistenceError):
            await getattr(store, method)(*args)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method, args", [("get", ("k",)), ("set", ("k", b"v")), ("remove", ("k",))])
    async def test_refused_connection_becomes_persistence_error(self, method, args):
        store = SqlKeyValueStore(_unreachable_factory())
        with pytest.raises(PersistenceError) as excinfo:
            await getattr(store, method)(*args)
        assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)


class TestSqlProfileSink:

    @pytest.fixture
    def record(self, linear):
        flow = FlowManager(linear)
        flow.answer_question("q1", "a")
        return flow.to_output_record(completed_at=datetime(2026, 10, 18, tzinfo=timezone.utc))

    @pytest.mark.asyncio
    async def test_save_profile(self, record):
        sink = SqlProfileSink(_factory(_session()))
        sink._repo = AsyncMock()
        await sink.save_profile("u1", record)

        kwargs = sink._repo.upsert.await_args.kwargs
        assert kwargs["user_id"] == "u1"
        assert kwargs["version"] == "1.0"
        assert kwargs["record"]["answers"] == {"q1": "a"}
        assert kwargs["completed_at"] == record.metadata.completed_at

    @pytest.mark.asyncio
    async def test_missing_user_rejected(self, record):
        sink = SqlProfileSink(_factory(_session()))
        with pytest.raises(FinalizationError, match="without a user id"):
            await sink.save_profile(None, record)

    @pytest.mark.asyncio
    async def test_database_error_becomes_finalization_error(self, record):
        sink = SqlProfileSink(_factory(_session()))
        sink._repo = AsyncMock()
        sink._repo.upsert.side_effect = SQLAlchemyError("boom")
        with pytest.raises(FinalizationError):
            await sink.save_profile("u1", record)

    @pytest.mark.asyncio
    async def test_refused_connection_becomes_finalization_error(self, record):
        sink = SqlProfileSink(_unreachable_factory())
        with pytest.raises(FinalizationError):
            await sink.save_profile("u1", record)


class TestUnreachableDatabase:
    """The orchestrator absorbs an unreachable database behind the SQL stores."""

    @pytest.mark.asyncio
    async def test_start_degrades_to_fresh_session(self, linear):
        orch = SessionOrchestrator(
            linear, SqlKeyValueStore(_unreachable_factory()), InMemoryProfileSink(),
            user_id="u1", draft_debounce=0,
        )
        assert await orch.start() is None
        assert orch.status is SessionStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_finalization_keeps_session_pending(self, linear):
        factory = _unreachable_factory()
        orch = SessionOrchestrator(
            linear, SqlKeyValueStore(factory), SqlProfileSink(factory),
            user_id="u1", draft_debounce=0,
        )
        await orch.start()
        for qid in ("q1", "q2", "q3"):
            await orch.answer(qid, "a")
            await orch.next()
        assert orch.status is SessionStatus.COMPLETED_PENDING
        assert orch.output_record is None
        await orch.close()


class TestConnectionUrl:

    @pytest.mark.parametrize(
        "env_url, expected",
        [
            ("postgresql://u:p@db:5432/q", "postgresql+asyncpg://u:p@db:5432/q"),
            ("postgres://u:p@db/q", "postgresql+asyncpg://u:p@db/q"),
            ("postgresql+asyncpg://u:p@db/q", "postgresql+asyncpg://u:p@db/q"),
        ],
    )
    def test_database_url_rewritten_for_asyncpg(self, monkeypatch, env_url, expected):
        monkeypatch.setenv("DATABASE_URL", env_url)
        assert get_async_url() == expected

    def test_url_from_parts(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("PG_HOST", "pg")
        monkeypatch.setenv("PG_DATABASE", "intake")
        url = get_async_url()
        assert url.startswith("postgresql+asyncpg://")
        assert url.endswith("@pg:5432/intake")
