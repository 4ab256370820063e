"""Pydantic models matching the frontend TypeScript types."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ctxviewer.timeline import Bookmark, Event, LoadResult


# ── Timeline models ────────────────────────────────────────────────

class TimelineEvent(BaseModel):
    id: int
    threadId: int
    threadIndex: int
    depth: int = 0
    startTime: float
    endTime: float
    startType: str
    endType: str
    startLocation: str = ""
    endLocation: str = ""
    startText: str = ""
    endText: str = ""

    @classmethod
    def from_event(cls, event: Event) -> TimelineEvent:
        return cls(
            id=event.id,
            threadId=event.thread_id,
            threadIndex=event.thread_index,
            depth=event.depth,
            startTime=event.start_time,
            endTime=event.end_time,
            startType=event.start_type.value,
            endType=event.end_type.value,
            startLocation=event.start_location,
            endLocation=event.end_location,
            startText=event.start_text,
            endText=event.end_text,
        )


class TimelineSnapshot(BaseModel):
    events: list[TimelineEvent] = Field(default_factory=list)
    threadIds: list[int] = Field(default_factory=list)
    windowStart: float = 0.0
    windowEnd: float = 0.0
    coalesce: float = 0.0
    cutoff: float = 0.0
    skippedRows: int = 0
    complete: bool = True

    @classmethod
    def from_result(cls, result: LoadResult) -> TimelineSnapshot:
        return cls(
            events=[TimelineEvent.from_event(e) for e in result.events],
            threadIds=list(result.thread_ids),
            windowStart=result.window_start,
            windowEnd=result.window_end,
            coalesce=result.coalesce,
            cutoff=result.cutoff,
            skippedRows=result.skipped_rows,
            complete=result.complete,
        )


class BookmarkItem(BaseModel):
    time: float
    label: str = ""

    @classmethod
    def from_bookmark(cls, bookmark: Bookmark) -> BookmarkItem:
        return cls(time=bookmark.time, label=bookmark.label)


class BookmarkPosition(BaseModel):
    time: Optional[float] = None


class OpenFileRequest(BaseModel):
    path: str
    compiler: Optional[str] = None


class TimelineFileInfo(BaseModel):
    logFile: Optional[str] = None
    databaseFile: str
    logStart: float = 0.0
    logEnd: float = 0.0
    threads: list[str] = Field(default_factory=list)
    bookmarkCount: int = 0
    summaryBuckets: int = 0


class StatusEntry(BaseModel):
    message: str
    at: float


class StatusResponse(BaseModel):
    latest: str = ""
    recent: list[StatusEntry] = Field(default_factory=list)
