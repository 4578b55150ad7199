"""Shared test helpers: in-memory collaborators and a controllable clock."""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from app.models.timer import RunState, TimerPhase, TimerSnapshot

T0 = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
USER_ID = "7d3c8f0e-1b2a-4c5d-9e8f-0a1b2c3d4e5f"


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class InMemoryTimerStore:
    """timer_state store: one snapshot per user, last write wins."""

    def __init__(self):
        self.rows: dict = {}
        self.writes: list = []
        self.fetches = 0
        self.fail_fetch = False
        self.fail_write = False

    async def fetch(self, user_id):
        self.fetches += 1
        if self.fail_fetch:
            raise ConnectionError("store unreachable")
        return self.rows.get(user_id)

    async def write(self, user_id, snapshot):
        if self.fail_write:
            raise ConnectionError("store unreachable")
        stored = snapshot.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        self.rows[user_id] = stored
        self.writes.append((user_id, stored))
        return stored


class FakeChangeFeed:
    """Change feed whose pushes are triggered by the test."""

    def __init__(self):
        self.subscriptions: dict = {}
        self.fail_subscribe = False
        self._next_handle = 0

    async def subscribe(self, user_id, on_change, on_resync=None):
        if self.fail_subscribe:
            raise ConnectionError("realtime unreachable")
        self._next_handle += 1
        self.subscriptions[self._next_handle] = (user_id, on_change, on_resync)
        return self._next_handle

    async def unsubscribe(self, handle):
        self.subscriptions.pop(handle, None)

    def publish(self, user_id, snapshot):
        for uid, on_change, _ in list(self.subscriptions.values()):
            if uid == user_id:
                on_change(snapshot)

    def reconnect(self, user_id):
        for uid, _, on_resync in list(self.subscriptions.values()):
            if uid == user_id and on_resync:
                on_resync()


class FakeRecorder:
    """Completion recorder that remembers every call."""

    def __init__(self):
        self.calls: list = []
        self.fail = False

    async def record(self, user_id, record):
        self.calls.append((user_id, record))
        if self.fail:
            raise ConnectionError("sessions table unreachable")
        return True

    def __len__(self):
        return len(self.calls)


class FakeSettingsSource:
    def __init__(self, settings=None, fail=False):
        self.settings = settings
        self.fail = fail

    async def find_settings(self, user_id):
        if self.fail:
            raise ConnectionError("settings unreachable")
        return self.settings


def running_snapshot(
    start: datetime,
    remaining: int,
    *,
    phase: TimerPhase = TimerPhase.WORK,
    total: int = 1500,
    interval_id="interval-1",
    completed: int = 0,
    last_recorded=None,
) -> TimerSnapshot:
    return TimerSnapshot(
        phase=phase,
        run_state=RunState.RUNNING,
        remaining_seconds=remaining,
        total_seconds=total,
        start_instant=start,
        end_instant=start + timedelta(seconds=remaining),
        completed_work_count=completed,
        active_interval_id=interval_id,
        last_recorded_interval_id=last_recorded,
    )


async def run_to_expiry(session, clock: FakeClock) -> None:
    """Jump the clock to the end of the running phase and tick once."""
    clock.advance(session.remaining_seconds)
    await session._on_tick()


async def wait_until(predicate, timeout: float = 1.0, step: float = 0.005) -> bool:
    """Yield to the event loop until `predicate()` holds or `timeout` passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(step)
    return True


async def settle(session) -> None:
    """Wait for push/resync handlers spawned by the change feed."""
    while session._background:
        await asyncio.gather(*list(session._background))


# ── Supabase query-builder fake ──────────────────────────────────────────


class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.ops: list = []

    def __getattr__(self, name):
        def op(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self
        return op

    async def execute(self):
        self.client.executed.append(self)
        return SimpleNamespace(data=self.client.responses.pop(0) if self.client.responses else [])


class FakeSupabaseClient:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.executed: list = []

    def table(self, name):
        return FakeQuery(self, name)
