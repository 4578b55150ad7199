"""Repository factory and exports"""
from supabase import AsyncClient  # type: ignore
from .timer_state import TimerStateRepository
from .sessions import SessionRepository
from .user_settings import UserSettingsRepository


class RepositoryFactory:
    """Factory for creating repository instances"""

    def __init__(self, client: AsyncClient):
        self._client = client
        self._timer_state: TimerStateRepository = None
        self._sessions: SessionRepository = None
        self._user_settings: UserSettingsRepository = None

    @property
    def timer_state(self) -> TimerStateRepository:
        """Get timer state repository"""
        if self._timer_state is None:
            self._timer_state = TimerStateRepository(self._client)
        return self._timer_state

    @property
    def sessions(self) -> SessionRepository:
        """Get completed sessions repository"""
        if self._sessions is None:
            self._sessions = SessionRepository(self._client)
        return self._sessions

    @property
    def user_settings(self) -> UserSettingsRepository:
        """Get user settings repository"""
        if self._user_settings is None:
            self._user_settings = UserSettingsRepository(self._client)
        return self._user_settings


__all__ = [
    'RepositoryFactory',
    'TimerStateRepository',
    'SessionRepository',
    'UserSettingsRepository',
]
