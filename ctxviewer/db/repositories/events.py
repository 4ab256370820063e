"""SQLite reads against a compiled context log."""
from __future__ import annotations

from typing import AsyncIterator

import aiosqlite

from ctxviewer.timeline.events import EventType


class SqliteEventRepository:
    """Window queries plus the simple full-table reads the viewer needs."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def iter_window(
        self, start: float, end: float, cutoff: float = 0.0,
    ) -> AsyncIterator[aiosqlite.Row]:
        """Yield rows overlapping ``[start, end)`` in canonical order.

        Bounds are store-relative. Rows shorter than ``cutoff`` are dropped
        unless they are bookmarks.
        """
        query = """
            SELECT id, thread_id,
                   start_location, end_location,
                   start_time, end_time,
                   start_type, end_type,
                   start_text, end_text
            FROM events
            WHERE id IN (SELECT id FROM events_index WHERE end_time > ? AND start_time < ?)
            AND (
                (end_time - start_time) >= ? OR
                start_type = ?
            )
            ORDER BY start_time ASC, end_time DESC
        """
        async with self.db.execute(
            query, (start, end, cutoff, EventType.BMARK.value)
        ) as cur:
            async for row in cur:
                yield row

    async def iter_bookmarks(self) -> AsyncIterator[aiosqlite.Row]:
        async with self.db.execute(
            "SELECT start_time, start_text, end_text FROM events WHERE start_type = ? ORDER BY start_time",
            (EventType.BMARK.value,),
        ) as cur:
            async for row in cur:
                yield row

    async def get_log_bounds(self) -> tuple[float, float]:
        async with self.db.execute("SELECT start_time, end_time FROM settings") as cur:
            rows = await cur.fetchall()
        if not rows:
            return 0.0, 0.0
        last = rows[-1]
        return float(last[0] or 0.0), float(last[1] or 0.0)

    async def get_thread_labels(self) -> list[str]:
        async with self.db.execute(
            "SELECT node, process, thread FROM threads ORDER BY id"
        ) as cur:
            return [f"{r['node']}-{r['process']}-{r['thread']}" for r in await cur.fetchall()]

    async def get_summary(self) -> list[int]:
        async with self.db.execute("SELECT events FROM summary ORDER BY id") as cur:
            return [int(r[0] or 0) for r in await cur.fetchall()]

    async def earliest_bookmark_after(self, start_hint: float) -> float | None:
        async with self.db.execute(
            "SELECT min(start_time) FROM events WHERE start_time > ? AND start_type = ?",
            (start_hint, EventType.BMARK.value),
        ) as cur:
            row = await cur.fetchone()
        return None if not row or row[0] is None else float(row[0])

    async def latest_bookmark_before(self, end_hint: float) -> float | None:
        async with self.db.execute(
            "SELECT max(start_time) FROM events WHERE start_time < ? AND start_type = ?",
            (end_hint, EventType.BMARK.value),
        ) as cur:
            row = await cur.fetchone()
        return None if not row or row[0] is None else float(row[0])
