"""Registry of attached timer sessions, one per user"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

from app.config import TIMER_SESSION_IDLE_SECONDS, TIMER_SESSION_SWEEP_SECONDS
from app.infra.supabase.client import get_supabase_client
from app.infra.supabase.realtime import TimerStateChangeFeed
from app.infra.supabase.repositories import RepositoryFactory

from .timer_session import TimerSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], Awaitable[TimerSession]]


async def create_supabase_session(user_id: str) -> TimerSession:
    """Build a TimerSession backed by the Supabase store, feed and recorder"""
    client = await get_supabase_client()
    repos = RepositoryFactory(client)
    return TimerSession(
        user_id,
        store=repos.timer_state,
        feed=TimerStateChangeFeed(client),
        recorder=repos.sessions,
        settings=repos.user_settings,
    )


class TimerSessionManager:
    """
    Attaches sessions lazily and closes them once idle.

    A session is idle when nothing has requested it for `idle_seconds`
    and no stream is listening to it. Closing a running session is safe:
    the countdown lives in the stored end_instant, and the next attach
    completes an interval that ended meanwhile.
    """

    def __init__(
        self,
        factory: SessionFactory = create_supabase_session,
        *,
        idle_seconds: float = TIMER_SESSION_IDLE_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._factory = factory
        self._idle_seconds = idle_seconds
        self._monotonic = monotonic
        self._sessions: Dict[str, TimerSession] = {}
        self._last_used: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._sessions

    async def get(self, user_id: str) -> TimerSession:
        """Return the user's session, attaching it on first use"""
        async with self._lock:
            session = self._sessions.get(user_id)
            if session is None:
                session = await self._factory(user_id)
                await session.attach()
                self._sessions[user_id] = session
            self._last_used[user_id] = self._monotonic()
            return session

    async def evict_idle(self) -> int:
        """Close sessions that are idle. Returns how many were closed."""
        now = self._monotonic()
        async with self._lock:
            idle = [
                user_id for user_id, session in self._sessions.items()
                if not session.has_listeners
                and now - self._last_used.get(user_id, now) >= self._idle_seconds
            ]
            evicted = [self._pop(user_id) for user_id in idle]
        for session in evicted:
            await session.close()
        if evicted:
            logger.info(f"Evicted {len(evicted)} idle timer sessions, {len(self._sessions)} attached")
        return len(evicted)

    async def run_eviction(self, interval: float = TIMER_SESSION_SWEEP_SECONDS) -> None:
        """Sweep idle sessions every `interval` seconds until cancelled"""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.evict_idle()
            except Exception as e:
                logger.error(f"Error evicting idle timer sessions: {e}")

    async def close_all(self) -> None:
        async with self._lock:
            sessions, self._sessions = list(self._sessions.values()), {}
            self._last_used.clear()
        for session in sessions:
            await session.close()
        if sessions:
            logger.info(f"Closed {len(sessions)} timer sessions")

    def _pop(self, user_id: str) -> TimerSession:
        self._last_used.pop(user_id, None)
        return self._sessions.pop(user_id)


_session_manager: Optional[TimerSessionManager] = None


def get_session_manager() -> TimerSessionManager:
    """Get or create the process-wide session manager"""
    global _session_manager

    if _session_manager is None:
        _session_manager = TimerSessionManager()

    return _session_manager


def reset_session_manager():
    """Reset the session manager singleton (useful for testing)"""
    global _session_manager
    _session_manager = None
