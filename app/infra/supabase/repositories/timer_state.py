"""Timer state repository (one row per user)"""
from datetime import datetime, timezone
from typing import Optional

from supabase import AsyncClient  # type: ignore

from app.config import TIMER_STATE_TABLE
from app.models.timer import TimerSnapshot

from .base import BaseRepository


class TimerStateRepository(BaseRepository[TimerSnapshot]):
    """Repository for the canonical timer snapshot of each user"""

    def __init__(self, client: AsyncClient, table_name: str = TIMER_STATE_TABLE):
        super().__init__(client, table_name, TimerSnapshot)

    async def fetch(self, user_id: str) -> Optional[TimerSnapshot]:
        """Get the stored snapshot, or None when the user has no timer yet"""
        return await self.find_by_user(user_id)

    async def write(self, user_id: str, snapshot: TimerSnapshot) -> TimerSnapshot:
        """Replace the user's snapshot wholesale (last write wins)"""
        row = snapshot.model_dump(mode="json", exclude={"updated_at"})
        row["user_id"] = user_id
        row["updated_at"] = datetime.now(timezone.utc).isoformat()
        return await self.upsert(row, on_conflict="user_id")
