"""Base repository for per-user tables"""
from typing import Any, Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel
from supabase import AsyncClient  # type: ignore

T = TypeVar('T', bound=BaseModel)


class BaseRepository(Generic[T]):
    """
    Base repository providing common database operations.
    Hides Supabase implementation details from the rest of the application.
    """

    def __init__(self, client: AsyncClient, table_name: str, model_class: Type[T]):
        self._client = client
        self._table_name = table_name
        self._model_class = model_class

    def _to_model(self, data: Dict[str, Any]) -> T:
        """Convert database dict to domain model"""
        return self._model_class.model_validate(data)

    async def find_by_user(self, user_id: str) -> Optional[T]:
        """Find the single row owned by a user"""
        response = await (
            self._client.table(self._table_name)
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )

        if not response.data:
            return None

        return self._to_model(response.data[0])

    async def upsert(
        self,
        data: Dict[str, Any],
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> Optional[T]:
        """
        Insert or replace a whole row.

        Returns the stored row, or None when ignore_duplicates skipped it.
        """
        response = await (
            self._client.table(self._table_name)
            .upsert(data, on_conflict=on_conflict, ignore_duplicates=ignore_duplicates)
            .execute()
        )

        if not response.data:
            if ignore_duplicates:
                return None
            raise ValueError(f"Failed to upsert into {self._table_name}")

        return self._to_model(response.data[0])

