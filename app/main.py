import logging

# Log configuration (before other imports)
# ruff: noqa: E402
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    force=True
)

import asyncio  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from app.api.base import api_router  # noqa: E402
from app.services.timer.session_manager import get_session_manager  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    manager = get_session_manager()
    eviction = asyncio.create_task(manager.run_eviction())
    yield
    eviction.cancel()
    # Stop tick loops and realtime channels of every attached timer
    await manager.close_all()


app = FastAPI(
    title="Pomodoro Sync API",
    description="Shared pomodoro timer kept in sync across every open viewer",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Specify your frontend URL in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include all API routes
app.include_router(api_router)


@app.get("/")
def read_root():
    return {
        "message": "Pomodoro Sync API",
        "docs": "/docs",
        "version": "1.0.0"
    }
