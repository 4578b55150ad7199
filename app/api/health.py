"""Health check endpoints"""

from fastapi import APIRouter, Depends

from app.services.timer.session_manager import TimerSessionManager, get_session_manager

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("/")
async def health_check(manager: TimerSessionManager = Depends(get_session_manager)):
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "service": "pomodoro-sync",
        "attached_sessions": len(manager),
    }
