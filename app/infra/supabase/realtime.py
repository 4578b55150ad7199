"""Supabase Realtime change feed for timer_state rows"""
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError
from supabase import AsyncClient  # type: ignore

from app.config import TIMER_STATE_TABLE
from app.models.timer import TimerSnapshot

logger = logging.getLogger(__name__)

SnapshotHandler = Callable[[TimerSnapshot], None]
ResyncHandler = Callable[[], None]

# Channel states after which pushes may have been missed
_LOST_STATES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}


def extract_record(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Pull the new row out of a postgres_changes payload.

    Returns None for deletes and payloads without a row.
    """
    data = payload.get("data", payload)
    event = data.get("type") or data.get("eventType")
    if event == "DELETE":
        return None
    return data.get("record") or data.get("new")


class TimerStateChangeFeed:
    """Pushes every write of a user's timer_state row to the subscriber"""

    def __init__(self, client: AsyncClient, table_name: str = TIMER_STATE_TABLE, schema: str = "public"):
        self._client = client
        self._table_name = table_name
        self._schema = schema

    async def subscribe(
        self,
        user_id: str,
        on_change: SnapshotHandler,
        on_resync: Optional[ResyncHandler] = None,
    ) -> Any:
        """
        Subscribe to changes of one user's timer.

        Args:
            user_id: Owner of the timer_state row
            on_change: Called with every validated snapshot pushed by the store
            on_resync: Called when pushes may have been lost (re-subscribe
                after a drop, or an unreadable payload); the subscriber is
                expected to fetch and reconcile

        Returns:
            Channel handle for unsubscribe()
        """
        channel = self._client.channel(f"{self._table_name}:{user_id}")
        status = {"subscribed": False, "lost": False}

        def handle_change(payload: Dict[str, Any]) -> None:
            record = extract_record(payload)
            if record is None:
                return
            try:
                snapshot = TimerSnapshot.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Dropping invalid timer_state payload for user {user_id}: {e}")
                if on_resync:
                    on_resync()
                return
            on_change(snapshot)

        def handle_status(state: Any, error: Optional[Exception] = None) -> None:
            name = getattr(state, "value", state)
            if name == "SUBSCRIBED":
                if status["subscribed"] and status["lost"] and on_resync:
                    logger.info(f"Change feed for user {user_id} reconnected, resyncing")
                    on_resync()
                status["subscribed"] = True
                status["lost"] = False
            elif name in _LOST_STATES:
                status["lost"] = True
                logger.warning(f"Change feed for user {user_id} is {name}: {error}")

        channel.on_postgres_changes(
            "*",
            callback=handle_change,
            table=self._table_name,
            schema=self._schema,
            filter=f"user_id=eq.{user_id}",
        )
        await channel.subscribe(handle_status)
        logger.info(f"Subscribed to {self._table_name} changes for user {user_id}")
        return channel

    async def unsubscribe(self, handle: Any) -> None:
        await self._client.remove_channel(handle)
