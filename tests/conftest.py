"""Shared pytest fixtures for timer sync tests."""

import pytest

from app.services.timer.timer_session import TimerSession

from helpers import (
    FakeChangeFeed,
    FakeClock,
    FakeRecorder,
    InMemoryTimerStore,
    USER_ID,
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryTimerStore()


@pytest.fixture
def feed():
    return FakeChangeFeed()


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
async def make_session(store, feed, recorder, clock):
    """Factory for TimerSessions sharing the same store, feed and recorder.

    Tick interval is an hour so the background loop never fires; tests
    drive ticks with ``session._on_tick()``.
    """
    sessions = []

    async def factory(user_id=USER_ID, *, attach=True, **kwargs):
        kwargs.setdefault("tick_seconds", 3600)
        kwargs.setdefault("clock", clock)
        session = TimerSession(user_id, store, feed, recorder, **kwargs)
        sessions.append(session)
        if attach:
            await session.attach()
        return session

    yield factory

    for session in sessions:
        await session.close()


@pytest.fixture
async def session(make_session):
    """Attached session for a user with no stored timer."""
    return await make_session()
