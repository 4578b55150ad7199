"""Completed work sessions repository"""
import logging

from supabase import AsyncClient  # type: ignore

from app.config import SESSIONS_TABLE
from app.models.timer import CompletionRecord

from .base import BaseRepository

logger = logging.getLogger(__name__)


class SessionRepository(BaseRepository[CompletionRecord]):
    """Repository for finished work intervals"""

    def __init__(self, client: AsyncClient, table_name: str = SESSIONS_TABLE):
        super().__init__(client, table_name, CompletionRecord)

    async def record(self, user_id: str, record: CompletionRecord) -> bool:
        """
        Store a finished work interval.

        Keyed by interval_id, so a second write for the same interval is
        ignored by the store.

        Returns:
            True if a new row was written, False if the interval was already recorded
        """
        row = record.model_dump(mode="json")
        row["user_id"] = user_id
        stored = await self.upsert(row, on_conflict="interval_id", ignore_duplicates=True)
        if stored is None:
            logger.info(f"Interval {record.interval_id} already recorded for user {user_id}")
            return False
        return True
