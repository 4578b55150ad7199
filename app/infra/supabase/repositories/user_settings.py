"""User timer settings repository"""
from typing import Optional

from supabase import AsyncClient  # type: ignore

from app.config import USER_SETTINGS_TABLE
from app.models.timer import TimerSettings

from .base import BaseRepository


class UserSettingsRepository(BaseRepository[TimerSettings]):
    """Read access to per-user timer preferences"""

    def __init__(self, client: AsyncClient, table_name: str = USER_SETTINGS_TABLE):
        super().__init__(client, table_name, TimerSettings)

    async def find_settings(self, user_id: str) -> Optional[TimerSettings]:
        return await self.find_by_user(user_id)
