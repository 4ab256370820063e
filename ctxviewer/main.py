"""Context viewer FastAPI backend: main application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ctxviewer import config
from ctxviewer.compiler import CompilerError
from ctxviewer.db.file_watcher import file_watcher
from ctxviewer.observability import initialize as initialize_observability, shutdown as shutdown_observability
from ctxviewer.routers.settings import settings_router
from ctxviewer.routers.timeline import timeline_router
from ctxviewer.services.status import StatusBoard
from ctxviewer.services.timeline_data import TimelineData

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("ctxviewer")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Context viewer backend starting up")
    initialize_observability(app)

    # 1. Status sink + timeline owner
    board = StatusBoard(config.STATUS_HISTORY)
    timeline = TimelineData(status_sink=board)
    app.state.status_board = board
    app.state.timeline = timeline

    # 2. Optional log opened at startup
    if config.LOG_FILE:
        log_file = Path(config.LOG_FILE).expanduser()
        try:
            await timeline.open_file(log_file)
            await timeline.load_all()
        except (FileNotFoundError, CompilerError, aiosqlite.Error) as e:
            logger.error(f"Could not open {log_file} at startup: {e}")
        else:
            # 3. Start file watcher on the text log
            await file_watcher.follow(timeline)

    yield

    logger.info("Context viewer backend shutting down")
    await file_watcher.stop()
    shutdown_observability(app)


app = FastAPI(
    title="Context Viewer API",
    description="Backend API for the context log timeline viewer",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS: allow the frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        config.FRONTEND_ORIGIN,
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(timeline_router)
app.include_router(settings_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    timeline = getattr(app.state, "timeline", None)
    return {
        "status": "ok",
        "log": "open" if timeline is not None and timeline.is_open else "closed",
        "watcher": "running" if file_watcher.is_running else "stopped",
    }


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    run()
