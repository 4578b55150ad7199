"""Tests for the Supabase table adapters."""

from datetime import timedelta

import pytest

from app.infra.supabase.repositories import RepositoryFactory
from app.infra.supabase.repositories.sessions import SessionRepository
from app.infra.supabase.repositories.timer_state import TimerStateRepository
from app.infra.supabase.repositories.user_settings import UserSettingsRepository
from app.models.timer import CompletionRecord, RunState, TimerPhase

from helpers import T0, USER_ID, FakeSupabaseClient, running_snapshot


def ops(query):
    return [(name, args, kwargs) for name, args, kwargs in query.ops]


class TestTimerStateRepository:

    async def test_fetch_missing_row_is_none(self):
        client = FakeSupabaseClient(responses=[[]])
        repo = TimerStateRepository(client)
        assert await repo.fetch(USER_ID) is None

        query = client.executed[0]
        assert query.table == "timer_state"
        assert ("eq", ("user_id", USER_ID), {}) in ops(query)

    async def test_fetch_parses_row(self):
        row = running_snapshot(T0, 1500).model_dump(mode="json")
        row["user_id"] = USER_ID
        client = FakeSupabaseClient(responses=[[row]])
        snap = await TimerStateRepository(client).fetch(USER_ID)
        assert snap.run_state == RunState.RUNNING
        assert snap.end_instant == T0 + timedelta(seconds=1500)

    async def test_write_upserts_whole_row(self):
        snapshot = running_snapshot(T0, 1500)
        stored = snapshot.model_dump(mode="json")
        stored.update(user_id=USER_ID, updated_at="2025-03-01T09:00:01+00:00")
        client = FakeSupabaseClient(responses=[[stored]])

        result = await TimerStateRepository(client).write(USER_ID, snapshot)

        name, args, kwargs = ops(client.executed[0])[0]
        assert name == "upsert"
        row = args[0]
        assert row["user_id"] == USER_ID
        assert row["phase"] == "work"
        assert row["run_state"] == "running"
        assert row["active_interval_id"] == "interval-1"
        assert "updated_at" in row
        assert kwargs == {"on_conflict": "user_id", "ignore_duplicates": False}
        assert result.updated_at is not None

    async def test_write_with_empty_response_raises(self):
        client = FakeSupabaseClient(responses=[[]])
        with pytest.raises(ValueError):
            await TimerStateRepository(client).write(USER_ID, running_snapshot(T0, 10))


class TestSessionRepository:

    def _record(self):
        return CompletionRecord(
            user_id=USER_ID,
            start_time=T0,
            end_time=T0 + timedelta(minutes=25),
            duration=25,
            interval_id="interval-1",
        )

    async def test_record_writes_completed_work_row(self):
        record = self._record()
        client = FakeSupabaseClient(responses=[[record.model_dump(mode="json")]])
        assert await SessionRepository(client).record(USER_ID, record) is True

        query = client.executed[0]
        assert query.table == "sessions"
        name, args, kwargs = ops(query)[0]
        row = args[0]
        assert row["type"] == "work"
        assert row["completed"] is True
        assert row["interrupted"] is False
        assert row["duration"] == 25
        assert kwargs == {"on_conflict": "interval_id", "ignore_duplicates": True}

    async def test_duplicate_interval_is_ignored(self):
        client = FakeSupabaseClient(responses=[[]])
        assert await SessionRepository(client).record(USER_ID, self._record()) is False


class TestUserSettingsRepository:

    async def test_find_settings(self):
        client = FakeSupabaseClient(responses=[[{
            "user_id": USER_ID,
            "pomodoro_minutes": 30,
            "short_break_minutes": 5,
            "long_break_minutes": 15,
            "pomodoros_before_long_break": 4,
            "auto_start_breaks": False,
            "auto_start_pomodoros": True,
            "notifications": True,
            "dot_size": 50,
        }]])
        settings = await UserSettingsRepository(client).find_settings(USER_ID)
        assert settings.pomodoro_minutes == 30
        assert settings.auto_start_pomodoros is True

    async def test_missing_settings(self):
        client = FakeSupabaseClient(responses=[[]])
        assert await UserSettingsRepository(client).find_settings(USER_ID) is None


def test_factory_caches_repositories():
    repos = RepositoryFactory(FakeSupabaseClient())
    assert repos.timer_state is repos.timer_state
    assert isinstance(repos.sessions, SessionRepository)
    assert isinstance(repos.user_settings, UserSettingsRepository)
