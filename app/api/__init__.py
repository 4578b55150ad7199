# API module exports
from app.api import health, timer
from app.api.base import api_router

__all__ = ["health", "timer", "api_router"]
