"""Supabase infrastructure module"""
from .client import get_supabase_client, reset_supabase_client
from .realtime import TimerStateChangeFeed

__all__ = ['get_supabase_client', 'reset_supabase_client', 'TimerStateChangeFeed']
