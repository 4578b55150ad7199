"""Supabase async client singleton"""
from typing import Optional

from supabase import AsyncClient, acreate_client  # type: ignore

from app.config import SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL

_supabase_client: Optional[AsyncClient] = None


async def get_supabase_client() -> AsyncClient:
    """Get or create the Supabase client singleton (tables and realtime share it)"""
    global _supabase_client

    if _supabase_client is None:
        if not SUPABASE_URL or not SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        _supabase_client = await acreate_client(SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY)

    return _supabase_client


def reset_supabase_client():
    """Reset the Supabase client singleton (useful for testing)"""
    global _supabase_client
    _supabase_client = None
