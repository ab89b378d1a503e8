"""Tests for deadline_kernel.db.engine: process-wide engine and session scope."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.pool import StaticPool

from deadline_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from deadline_kernel.models.profile_change import ProfileChangeModel

RECORDED = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset():
    reset_engine()
    yield
    reset_engine()


def _change(client_id="c1"):
    return ProfileChangeModel(
        client_id=client_id,
        effective_date=date(2025, 3, 1),
        recorded_at=RECORDED,
        created_by_id=uuid4(),
    )


def _count():
    with session_scope() as session:
        return session.scalar(select(func.count()).select_from(ProfileChangeModel))


class TestInitialization:
    def test_accessors_before_init(self):
        for accessor in (get_engine, get_session, get_session_factory):
            with pytest.raises(RuntimeError, match="init_engine_from_url"):
                accessor()

    def test_memory_sqlite_uses_static_pool(self, captured_logs):
        engine = init_engine_from_url("sqlite://")
        assert isinstance(engine.pool, StaticPool)
        assert get_engine() is engine
        initialized = [r for r in captured_logs() if r["message"] == "engine_initialized"]
        assert initialized[-1]["backend"] == "sqlite"
        assert initialized[-1]["pool_size"] is None

    def test_reinit_replaces_engine(self, tmp_path):
        first = init_engine_from_url("sqlite://")
        second = init_engine_from_url(f"sqlite:///{tmp_path / 'tasks.db'}")
        assert get_engine() is second
        assert second is not first

    def test_create_and_drop_tables(self, tmp_path):
        init_engine_from_url(f"sqlite:///{tmp_path / 'tasks.db'}")
        create_tables()
        assert {"deadline_tasks", "profile_changes"} <= set(inspect(get_engine()).get_table_names())
        drop_tables()
        assert inspect(get_engine()).get_table_names() == []


class TestSessionScope:
    @pytest.fixture(autouse=True)
    def _database(self):
        init_engine_from_url("sqlite://")
        create_tables()

    def test_commits_on_success(self):
        with session_scope() as session:
            session.add(_change())
        assert _count() == 1

    def test_rolls_back_on_error(self, captured_logs):
        with pytest.raises(ValueError):
            with session_scope() as session:
                session.add(_change())
                session.flush()
                raise ValueError("abort")
        assert _count() == 0
        assert any(r["message"] == "session_rolled_back" for r in captured_logs())

    def test_savepoint_rollback_keeps_outer_work(self):
        with session_scope() as session:
            session.add(_change("kept"))
            session.flush()
            nested = session.begin_nested()
            session.add(_change("dropped"))
            session.flush()
            nested.rollback()
        with session_scope() as session:
            clients = session.scalars(select(ProfileChangeModel.client_id)).all()
        assert clients == ["kept"]

    def test_rows_readable_after_commit(self):
        with session_scope() as session:
            change = _change()
            session.add(change)
        assert change.client_id == "c1"
