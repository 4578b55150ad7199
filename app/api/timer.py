"""Timer API endpoints"""
import asyncio
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from app.models.timer import TimerPhase, TimerView
from app.services.timer.session_manager import TimerSessionManager, get_session_manager
from app.services.timer.timer_session import TimerSession

router = APIRouter(prefix="/api/timer", tags=["timer"])


class SwitchPhaseRequest(BaseModel):
    phase: TimerPhase


class CommandResult(BaseModel):
    """Outcome of a timer command"""
    view: TimerView
    synced: bool  # False when the remote write failed; the local timer still moved


def require_user_id(current_user_id: Optional[str] = Cookie(None)) -> str:
    if not current_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return current_user_id


async def get_timer_session(
    user_id: str = Depends(require_user_id),
    manager: TimerSessionManager = Depends(get_session_manager),
) -> TimerSession:
    return await manager.get(user_id)


async def view_events(session: TimerSession) -> AsyncIterator[str]:
    """Server-sent events: the current view, then one event per tick or change"""
    queue: asyncio.Queue = asyncio.Queue(maxsize=1)

    def offer(view: TimerView) -> None:
        # A slow client only ever gets the latest view
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(view)

    remove = session.add_listener(offer)
    try:
        yield f"data: {session.view().model_dump_json()}\n\n"
        while True:
            view = await queue.get()
            yield f"data: {view.model_dump_json()}\n\n"
    finally:
        remove()


@router.get("", response_model=TimerView)
async def get_timer(session: TimerSession = Depends(get_timer_session)):
    """Current timer snapshot with freshly derived remaining time"""
    return session.view()


@router.get("/stream")
async def stream_timer(session: TimerSession = Depends(get_timer_session)):
    """Stream the timer view as it counts down and as other viewers change it"""
    return StreamingResponse(
        view_events(session),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )


@router.post("/start", response_model=CommandResult)
async def start_timer(session: TimerSession = Depends(get_timer_session)):
    synced = await session.start()
    return CommandResult(view=session.view(), synced=synced)


@router.post("/pause", response_model=CommandResult)
async def pause_timer(session: TimerSession = Depends(get_timer_session)):
    synced = await session.pause()
    return CommandResult(view=session.view(), synced=synced)


@router.post("/reset", response_model=CommandResult)
async def reset_timer(session: TimerSession = Depends(get_timer_session)):
    synced = await session.reset()
    return CommandResult(view=session.view(), synced=synced)


@router.post("/skip", response_model=CommandResult)
async def skip_timer(session: TimerSession = Depends(get_timer_session)):
    """Move to the next phase without recording the current one"""
    synced = await session.skip()
    return CommandResult(view=session.view(), synced=synced)


@router.post("/switch", response_model=CommandResult)
async def switch_timer_phase(
    request: SwitchPhaseRequest,
    session: TimerSession = Depends(get_timer_session),
):
    synced = await session.switch_phase(request.phase)
    return CommandResult(view=session.view(), synced=synced)
