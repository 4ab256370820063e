"""API router for the timeline of the open context log."""
from __future__ import annotations

import logging
from typing import Optional

import aiosqlite
from fastapi import APIRouter, HTTPException, Query, Request

from ctxviewer import config
from ctxviewer.compiler import CompilerError
from ctxviewer.db.file_watcher import file_watcher
from ctxviewer.models import (
    BookmarkItem,
    BookmarkPosition,
    OpenFileRequest,
    StatusResponse,
    TimelineFileInfo,
    TimelineSnapshot,
)
from ctxviewer.services.timeline_data import TimelineData
from ctxviewer.viewer_settings import settings_manager

logger = logging.getLogger("ctxviewer")

timeline_router = APIRouter(prefix="/api/timeline", tags=["timeline"])


def _timeline(request: Request) -> TimelineData:
    return request.app.state.timeline


def _require_open(request: Request) -> TimelineData:
    timeline = _timeline(request)
    if not timeline.is_open:
        raise HTTPException(status_code=409, detail="No context log is open")
    return timeline


def _file_info(timeline: TimelineData) -> TimelineFileInfo:
    return TimelineFileInfo(
        logFile=str(timeline.log_file) if timeline.log_file else None,
        databaseFile=str(timeline.database_file),
        logStart=timeline.log_start,
        logEnd=timeline.log_end,
        threads=list(timeline.threads),
        bookmarkCount=len(timeline.bookmarks),
        summaryBuckets=len(timeline.summary),
    )


@timeline_router.post("/open", response_model=TimelineFileInfo)
async def open_file(request: Request, body: OpenFileRequest):
    """Open a text log or compiled log and load its static lists."""
    timeline = _timeline(request)
    try:
        await timeline.open_file(body.path, compiler=body.compiler)
        await timeline.load_all()
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=f"File not found: {e}")
    except CompilerError as e:
        logger.error(f"Compile failed for {body.path}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except aiosqlite.Error as e:
        logger.error(f"Could not read compiled log for {body.path}: {e}")
        timeline.close()
        await file_watcher.stop()
        raise HTTPException(status_code=422, detail=f"Not a readable compiled log: {e}")

    await file_watcher.follow(timeline)
    if timeline.log_file is not None:
        settings_manager.remember_log_dir(timeline.log_file)
    return _file_info(timeline)


@timeline_router.get("/info", response_model=TimelineFileInfo)
def get_file_info(request: Request):
    return _file_info(_require_open(request))


@timeline_router.get("/events", response_model=TimelineSnapshot)
async def load_events(
    request: Request,
    start: Optional[float] = Query(None, description="Absolute window start, seconds"),
    length: Optional[float] = Query(None, gt=0, le=config.MAX_WINDOW_SECONDS),
    coalesce: Optional[float] = Query(None, ge=0),
    cutoff: Optional[float] = Query(None, ge=0),
):
    """Reconstruct the requested window and return the published snapshot.

    Omitted parameters fall back to the saved render settings.
    """
    timeline = _require_open(request)
    render = settings_manager.get().render
    result = await timeline.load_events(
        render.start if start is None else start,
        render.length if length is None else length,
        render.coalesce if coalesce is None else coalesce,
        render.cutoff if cutoff is None else cutoff,
    )
    return TimelineSnapshot.from_result(result)


@timeline_router.get("/snapshot", response_model=TimelineSnapshot)
def get_snapshot(request: Request):
    """Return the last published snapshot without loading."""
    return TimelineSnapshot.from_result(_timeline(request).snapshot)


@timeline_router.get("/bookmarks", response_model=list[BookmarkItem])
def list_bookmarks(request: Request):
    return [BookmarkItem.from_bookmark(b) for b in _require_open(request).bookmarks]


@timeline_router.get("/bookmarks/next", response_model=BookmarkPosition)
async def next_bookmark(request: Request, after: float = Query(...)):
    time = await _require_open(request).earliest_bookmark_after(after)
    return BookmarkPosition(time=time)


@timeline_router.get("/bookmarks/previous", response_model=BookmarkPosition)
async def previous_bookmark(request: Request, before: float = Query(...)):
    time = await _require_open(request).latest_bookmark_before(before)
    return BookmarkPosition(time=time)


@timeline_router.get("/threads", response_model=list[str])
def list_threads(request: Request):
    return list(_require_open(request).threads)


@timeline_router.get("/summary", response_model=list[int])
def get_summary(request: Request):
    return list(_require_open(request).summary)


@timeline_router.get("/status", response_model=StatusResponse)
def get_status(request: Request, limit: int = Query(20, ge=0, le=500)):
    board = request.app.state.status_board
    return StatusResponse(latest=board.latest, recent=board.recent(limit))
