"""Timer session - local countdown loop and reconciliation for one user.

Each process that shows a user's timer holds one TimerSession. The session
keeps a cached TimerSnapshot, derives the countdown from its end_instant on
every tick, writes every local command to the timer_state store, and
replaces its cache wholesale whenever the change feed delivers a snapshot
written by any process.

Tick handler, push handler and commands all run on the asyncio loop and
are serialized by one lock, so a handler never observes a half-applied
transition of another.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Set

from app.config import TIMER_TICK_SECONDS
from app.models.timer import (
    CompletionRecord,
    RunState,
    TimerPhase,
    TimerSettings,
    TimerSnapshot,
    TimerView,
)

from .phase_sequencer import DurationPolicy, advance, derive_interval_id, enter_phase

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
ViewListener = Callable[[TimerView], None]


class TimerStore(Protocol):
    async def fetch(self, user_id: str) -> Optional[TimerSnapshot]: ...

    async def write(self, user_id: str, snapshot: TimerSnapshot) -> TimerSnapshot: ...


class ChangeFeed(Protocol):
    async def subscribe(
        self,
        user_id: str,
        on_change: Callable[[TimerSnapshot], None],
        on_resync: Optional[Callable[[], None]] = None,
    ) -> Any: ...

    async def unsubscribe(self, handle: Any) -> None: ...


class CompletionRecorder(Protocol):
    async def record(self, user_id: str, record: CompletionRecord) -> bool: ...


class SettingsSource(Protocol):
    async def find_settings(self, user_id: str) -> Optional[TimerSettings]: ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimerSession:
    """Authoritative in-process view of one user's timer"""

    def __init__(
        self,
        user_id: str,
        store: TimerStore,
        feed: Optional[ChangeFeed],
        recorder: CompletionRecorder,
        *,
        settings: Optional[SettingsSource] = None,
        policy: Optional[DurationPolicy] = None,
        clock: Clock = utcnow,
        tick_seconds: float = TIMER_TICK_SECONDS,
    ):
        self.user_id = user_id
        self._store = store
        self._feed = feed
        self._recorder = recorder
        self._settings = settings
        self._policy = policy or DurationPolicy()
        self._clock = clock
        self._tick_seconds = tick_seconds

        self._snapshot = TimerSnapshot.initial(self._policy.work_seconds)
        self._lock = asyncio.Lock()
        self._tick_task: Optional[asyncio.Task] = None
        self._subscription: Any = None
        self._recorded_intervals: Set[str] = set()
        self._listeners: List[ViewListener] = []
        self._background: Set[asyncio.Task] = set()
        # Set while the stored snapshot is unknown (last fetch failed)
        self._needs_sync = False

    # ── observation ───────────────────────────────────────────────────

    @property
    def snapshot(self) -> TimerSnapshot:
        return self._snapshot

    @property
    def policy(self) -> DurationPolicy:
        return self._policy

    @property
    def remaining_seconds(self) -> int:
        """Seconds left right now"""
        return self._snapshot.remaining_at(self._clock())

    @property
    def is_ticking(self) -> bool:
        return self._tick_task is not None

    @property
    def is_synced(self) -> bool:
        return not self._needs_sync

    @property
    def has_listeners(self) -> bool:
        return bool(self._listeners)

    def view(self) -> TimerView:
        remaining = self.remaining_seconds
        total = self._snapshot.total_seconds
        return TimerView(
            snapshot=self._snapshot,
            remaining_seconds=remaining,
            progress=max(0.0, min(1.0, (total - remaining) / total)),
        )

    def add_listener(self, listener: ViewListener) -> Callable[[], None]:
        """Call `listener` with a fresh view on every tick and state change"""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        if not self._listeners:
            return
        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception as e:
                logger.error(f"Timer listener failed for user {self.user_id}: {e}")

    # ── lifecycle ─────────────────────────────────────────────────────

    async def attach(self) -> None:
        """
        Load settings, recover the stored snapshot and subscribe to changes.

        A snapshot left running past its end_instant is completed here,
        once, before any tick is scheduled.
        """
        await self._load_settings()
        async with self._lock:
            await self._sync_from_store()
        await self._subscribe()
        logger.info(f"Timer session attached for user {self.user_id}: {self._snapshot.phase.value}/{self._snapshot.run_state.value}")

    async def refresh(self) -> bool:
        """Fetch the stored snapshot and reconcile (reconnect / foreground)"""
        async with self._lock:
            return await self._sync_from_store()

    async def close(self) -> None:
        self._cancel_tick()
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        if self._subscription is not None and self._feed is not None:
            try:
                await self._feed.unsubscribe(self._subscription)
            except Exception as e:
                logger.warning(f"Error unsubscribing timer feed for user {self.user_id}: {e}")
            self._subscription = None
        self._listeners.clear()

    async def _load_settings(self) -> None:
        if self._settings is None:
            return
        try:
            settings = await self._settings.find_settings(self.user_id)
        except Exception as e:
            logger.warning(f"Could not load timer settings for user {self.user_id}, using defaults: {e}")
            return
        if settings is not None:
            self._policy = DurationPolicy.from_settings(settings)
            if self._snapshot.run_state == RunState.IDLE:
                self._snapshot = enter_phase(self._snapshot, self._snapshot.phase, self._policy)

    async def _subscribe(self) -> None:
        if self._feed is None:
            return
        try:
            self._subscription = await self._feed.subscribe(
                self.user_id,
                self._on_feed_change,
                self._on_feed_resync,
            )
        except Exception as e:
            # Local countdown keeps working; only other processes' writes go unseen
            logger.error(f"Failed to subscribe to timer changes for user {self.user_id}: {e}")

    def _on_feed_change(self, snapshot: TimerSnapshot) -> None:
        self._spawn(self.reconcile(snapshot))

    def _on_feed_resync(self) -> None:
        self._spawn(self.refresh())

    def _spawn(self, coro: Awaitable) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ── commands ──────────────────────────────────────────────────────
    #
    # Every command returns True once the remote write settled, False if
    # it failed. The local snapshot is updated either way. A command first
    # retries a fetch that failed earlier, so it acts on the stored state.

    async def start(self) -> bool:
        """Run the countdown from the current remaining time. No-op while running."""
        async with self._lock:
            await self._resync_if_needed()
            if self._snapshot.is_running:
                return True
            return await self._commit(self._started(self._snapshot, self._clock()))

    async def pause(self) -> bool:
        """Freeze the countdown at its current value. Only valid while running."""
        async with self._lock:
            await self._resync_if_needed()
            snapshot = self._snapshot
            if not snapshot.is_running:
                return True
            now = self._clock()
            remaining = snapshot.remaining_at(now)
            self._cancel_tick()
            if remaining <= 0:
                return await self._expire(now)
            return await self._commit(snapshot.evolve(
                run_state=RunState.PAUSED,
                remaining_seconds=remaining,
                start_instant=None,
                end_instant=None,
            ))

    async def reset(self) -> bool:
        """Back to a full, idle countdown of the current phase"""
        async with self._lock:
            await self._resync_if_needed()
            self._cancel_tick()
            return await self._commit(enter_phase(self._snapshot, self._snapshot.phase, self._policy))

    async def skip(self) -> bool:
        """Advance to the next phase now. A skipped work phase is not recorded."""
        async with self._lock:
            await self._resync_if_needed()
            self._cancel_tick()
            logger.info(f"Skipping {self._snapshot.phase.value} for user {self.user_id}")
            return await self._commit(advance(self._snapshot, self._policy, count_completion=False))

    async def switch_phase(self, phase: TimerPhase) -> bool:
        """Jump to `phase` with a full, idle countdown"""
        async with self._lock:
            await self._resync_if_needed()
            self._cancel_tick()
            return await self._commit(enter_phase(self._snapshot, phase, self._policy))

    # ── reconciliation ────────────────────────────────────────────────

    async def reconcile(self, incoming: TimerSnapshot) -> None:
        """Adopt a snapshot written by any process (remote always wins)"""
        async with self._lock:
            logger.debug(f"Reconciling timer for user {self.user_id}: {incoming.phase.value}/{incoming.run_state.value}")
            self._needs_sync = False
            await self._apply_remote(incoming)

    async def _sync_from_store(self) -> bool:
        try:
            remote = await self._store.fetch(self.user_id)
        except Exception as e:
            logger.error(f"Failed to fetch timer state for user {self.user_id}: {e}")
            self._needs_sync = True
            self._ensure_ticking()
            return False

        self._needs_sync = False
        if remote is None:
            logger.info(f"No stored timer for user {self.user_id}, creating default")
            return await self._commit(TimerSnapshot.initial(self._policy.work_seconds))

        await self._apply_remote(remote)
        return True

    async def _resync_if_needed(self) -> bool:
        """Retry a failed fetch. Returns True if the stored snapshot was adopted."""
        if not self._needs_sync:
            return False
        logger.info(f"Retrying timer state fetch for user {self.user_id}")
        return await self._sync_from_store()

    async def _apply_remote(self, remote: TimerSnapshot) -> None:
        self._cancel_tick()
        now = self._clock()
        if remote.is_expired_at(now):
            self._snapshot = remote
            await self._expire(now)
            return
        if remote.is_running:
            # Transmitted remaining_seconds is stale by the time it arrives
            remote = remote.evolve(remaining_seconds=remote.remaining_at(now))
        self._snapshot = remote
        self._ensure_ticking()
        self._notify()

    # ── countdown loop ────────────────────────────────────────────────

    def _ensure_ticking(self) -> None:
        if self._snapshot.is_running and self._tick_task is None:
            self._tick_task = asyncio.ensure_future(self._tick_loop())

    def _cancel_tick(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _tick_loop(self) -> None:
        me = asyncio.current_task()
        while self._tick_task is me:
            await asyncio.sleep(self._tick_seconds)
            async with self._lock:
                if self._tick_task is not me:
                    return
                await self._on_tick()

    async def _on_tick(self) -> None:
        if await self._resync_if_needed():
            return
        snapshot = self._snapshot
        if not snapshot.is_running:
            self._cancel_tick()
            return
        now = self._clock()
        remaining = snapshot.remaining_at(now)
        if remaining <= 0:
            await self._expire(now)
            return
        if remaining != snapshot.remaining_seconds:
            self._snapshot = snapshot.evolve(remaining_seconds=remaining)
        self._notify()

    # ── expiry ────────────────────────────────────────────────────────

    async def _expire(self, now: datetime) -> bool:
        """
        Complete the running phase.

        Records a finished work interval at most once per interval id, then
        moves to the next phase. Re-entry after the transition is a no-op.
        """
        snapshot = self._snapshot
        if not snapshot.is_running:
            return True
        self._cancel_tick()

        recorded_id = None
        if snapshot.phase == TimerPhase.WORK:
            interval_id = snapshot.active_interval_id or derive_interval_id(self.user_id, snapshot.start_instant)
            if self._already_recorded(interval_id):
                logger.info(f"Interval {interval_id} already recorded, advancing without recording")
            else:
                remote = await self._fetch_quietly()
                if remote is not None and remote.last_recorded_interval_id == interval_id:
                    logger.info(f"Interval {interval_id} completed by another session for user {self.user_id}")
                    await self._apply_remote(remote)
                    return True
                self._recorded_intervals.add(interval_id)
                await self._record_completion(snapshot, interval_id, min(now, snapshot.end_instant))
            recorded_id = interval_id

        upcoming = advance(snapshot, self._policy, count_completion=True, recorded_interval_id=recorded_id)
        logger.info(
            f"Timer {snapshot.phase.value} expired for user {self.user_id}, "
            f"next {upcoming.phase.value} (completed {upcoming.completed_work_count})"
        )
        if self._policy.auto_starts(upcoming.phase):
            upcoming = self._started(upcoming, now)
        return await self._commit(upcoming)

    def _already_recorded(self, interval_id: str) -> bool:
        return (
            interval_id in self._recorded_intervals
            or self._snapshot.last_recorded_interval_id == interval_id
        )

    async def _fetch_quietly(self) -> Optional[TimerSnapshot]:
        try:
            return await self._store.fetch(self.user_id)
        except Exception as e:
            logger.warning(f"Could not check stored timer before recording for user {self.user_id}: {e}")
            return None

    async def _record_completion(self, snapshot: TimerSnapshot, interval_id: str, ended_at: datetime) -> None:
        record = CompletionRecord(
            user_id=self.user_id,
            start_time=snapshot.start_instant,
            end_time=ended_at,
            duration=round(snapshot.total_seconds / 60),
            interval_id=interval_id,
        )
        try:
            await self._recorder.record(self.user_id, record)
            logger.info(f"Recorded work interval {interval_id} for user {self.user_id}")
        except Exception as e:
            logger.error(f"Failed to record work interval {interval_id} for user {self.user_id}: {e}")

    # ── helpers ───────────────────────────────────────────────────────

    def _started(self, snapshot: TimerSnapshot, now: datetime) -> TimerSnapshot:
        interval_id = snapshot.active_interval_id
        if snapshot.phase == TimerPhase.WORK and interval_id is None:
            interval_id = str(uuid.uuid4())
        return snapshot.evolve(
            run_state=RunState.RUNNING,
            start_instant=now,
            end_instant=now + timedelta(seconds=snapshot.remaining_seconds),
            active_interval_id=interval_id,
        )

    async def _commit(self, snapshot: TimerSnapshot) -> bool:
        """Adopt `snapshot` locally, then write it to the store"""
        self._snapshot = snapshot
        self._ensure_ticking()
        self._notify()
        if self._needs_sync:
            # The stored row is unknown; writing would overwrite it with a guess
            logger.warning(f"Timer state for user {self.user_id} not synced, keeping change local")
            return False
        try:
            stored = await self._store.write(self.user_id, snapshot)
        except Exception as e:
            logger.error(f"Failed to write timer state for user {self.user_id}: {e}")
            return False
        if stored is not None and self._snapshot is snapshot:
            self._snapshot = snapshot.model_copy(update={"updated_at": stored.updated_at})
        return True
