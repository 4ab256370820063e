"""Owner of the currently opened context log and its published timeline.

``TimelineData`` mirrors what the viewer front end needs: thread labels,
bookmarks, the coarse summary, log bounds and, most importantly, the
reconstructed event snapshot for the visible window.

Every ``load_events`` call builds its result in a private ``TimelineBuilder``
and only touches shared state in a single attribute assignment at the very
end. Overlapping loads therefore never see each other's partial work; when
two finish out of order the last one to publish wins.
"""
from __future__ import annotations

import logging
import time
from contextlib import aclosing
from pathlib import Path
from typing import Callable, Optional

import aiosqlite

from ctxviewer import config
from ctxviewer.compiler import recompile_reason, run_compiler, split_paths
from ctxviewer.db.connection import open_database
from ctxviewer.db.factory import get_event_repository
from ctxviewer.observability import record_event_load, record_skipped_row, start_span
from ctxviewer.timeline import Bookmark, Event, LoadResult, TimelineBuilder, assemble

logger = logging.getLogger("ctxviewer.timeline")

StatusSink = Callable[[str], None]
StopCheck = Callable[[], bool]


def _emit(sink: Optional[StatusSink], message: str) -> None:
    if sink is None:
        return
    try:
        sink(message)
    except Exception:
        logger.exception("Status sink raised while reporting %r", message)


class TimelineData:
    """Loads and publishes timeline data for one compiled log at a time."""

    def __init__(self, status_sink: Optional[StatusSink] = None):
        self._status_sink = status_sink
        self.log_file: Optional[Path] = None
        self.database_file: Optional[Path] = None
        self.log_start = 0.0
        self.log_end = 0.0
        self.bookmarks: list[Bookmark] = []
        self.threads: list[str] = []
        self.summary: list[int] = []
        self._snapshot = LoadResult()

    # ── Status ─────────────────────────────────────────────────────

    def set_status_sink(self, sink: Optional[StatusSink]) -> None:
        self._status_sink = sink

    def _set_status(self, message: str, sink: Optional[StatusSink] = None) -> None:
        _emit(sink if sink is not None else self._status_sink, message)

    # ── Published state ────────────────────────────────────────────

    @property
    def snapshot(self) -> LoadResult:
        return self._snapshot

    @property
    def is_open(self) -> bool:
        return self.database_file is not None

    def _require_database(self) -> Path:
        if self.database_file is None:
            raise RuntimeError("No context log is open")
        return self.database_file

    # ── Opening ────────────────────────────────────────────────────

    async def open_file(self, given_file: Path | str, *, compiler: str | None = None) -> Path:
        """Select a log to view, compiling a text log first when needed.

        Returns the compiled database path. Raises FileNotFoundError when the
        chosen file does not exist and CompilerError when compiling fails.
        """
        given = Path(given_file).expanduser()
        self._set_status(f"Loading: file {given}")

        log_file, database_file = split_paths(given)

        if given.suffix == config.LOG_SUFFIX:
            if not log_file.exists():
                raise FileNotFoundError(str(log_file))
            reason = await recompile_reason(log_file, database_file)
            if reason:
                self._set_status(reason)
                self._set_status("Recompiling")
                await run_compiler(log_file, self._set_status, command=compiler)
            opened_log: Optional[Path] = log_file
        else:
            opened_log = log_file if log_file.exists() else None

        if not database_file.exists():
            raise FileNotFoundError(str(database_file))

        self._reset(opened_log, database_file)
        logger.info("Opened %s", database_file)
        return database_file

    def close(self) -> None:
        """Forget the open log and publish an empty snapshot."""
        self._reset(None, None)

    def _reset(self, log_file: Optional[Path], database_file: Optional[Path]) -> None:
        self.log_file = log_file
        self.database_file = database_file
        self.bookmarks = []
        self.threads = []
        self.summary = []
        self.log_start = 0.0
        self.log_end = 0.0
        self._snapshot = LoadResult()

    async def load_all(self) -> None:
        await self.load_settings()
        await self.load_threads()
        await self.load_bookmarks()
        await self.load_summary()

    # ── Event reconstruction ───────────────────────────────────────

    async def load_events(
        self,
        render_start: float,
        render_length: float,
        coalesce: float = 0.0,
        cutoff: float = 0.0,
        *,
        status: Optional[StatusSink] = None,
        should_stop: Optional[StopCheck] = None,
        match_text: bool = True,
    ) -> LoadResult:
        """Reconstruct the visible window and publish it.

        Store failures end the row stream early; whatever was rebuilt so far
        is still published, flagged ``complete=False``. Rows that cannot be
        parsed are skipped. When ``should_stop`` returns True the pass is
        abandoned and the previous snapshot is returned untouched.
        """
        database_file = self._require_database()
        sink = status if status is not None else self._status_sink

        _emit(sink, "Loading: events")
        started = time.perf_counter()
        window_start = render_start
        window_end = render_start + render_length

        builder = TimelineBuilder(coalesce, match_text=match_text)
        skipped = 0
        complete = True

        _emit(sink, "Loading...")
        with start_span("timeline.load_events", {"coalesce": coalesce, "cutoff": cutoff}):
            try:
                async with open_database(database_file) as db:
                    repo = get_event_repository(db)
                    rows = repo.iter_window(
                        window_start - self.log_start,
                        window_end - self.log_start,
                        cutoff,
                    )
                    async with aclosing(rows):
                        async for row in rows:
                            try:
                                event = Event.from_row(row)
                            except ValueError as exc:
                                skipped += 1
                                record_skipped_row("malformed")
                                logger.warning("Skipping row: %s", exc)
                                continue

                            builder.add(event)
                            if builder.rows_seen % config.PROGRESS_INTERVAL == 0:
                                _emit(sink, f"Loading... ({builder.rows_seen // 1000}k rows)")
                                if should_stop is not None and should_stop():
                                    logger.info("Event load stopped after %d rows", builder.rows_seen)
                                    _emit(sink, "Loading: cancelled")
                                    record_event_load(
                                        "cancelled",
                                        (time.perf_counter() - started) * 1000,
                                        rows=builder.rows_seen,
                                    )
                                    return self._snapshot
            except aiosqlite.Error as exc:
                complete = False
                logger.error(f"Event query failed after {builder.rows_seen} rows: {exc}")
                _emit(sink, f"Loading: store error ({exc}), showing partial results")

            events, thread_ids = builder.finish()

            _emit(sink, "Sorting events")
            result = assemble(
                events,
                thread_ids,
                window_start=window_start,
                window_end=window_end,
                coalesce=coalesce,
                cutoff=cutoff,
                skipped_rows=skipped,
                complete=complete,
            )

        self._snapshot = result

        if skipped:
            _emit(sink, f"Loading: skipped {skipped} malformed rows")
        _emit(sink, "Loading: done")
        record_event_load(
            "ok" if complete else "partial",
            (time.perf_counter() - started) * 1000,
            rows=builder.rows_seen,
        )
        logger.debug(
            "Published %d events from %d rows across %d threads",
            len(result.events), builder.rows_seen, len(result.thread_ids),
        )
        return result

    # ── Simple reads ───────────────────────────────────────────────

    async def load_bookmarks(self) -> list[Bookmark]:
        self._set_status("Loading: bookmarks")
        database_file = self._require_database()

        n = 0
        new_bookmarks: list[Bookmark] = []
        async with open_database(database_file) as db:
            rows = get_event_repository(db).iter_bookmarks()
            async with aclosing(rows):
                async for row in rows:
                    if n % config.BOOKMARK_PROGRESS_INTERVAL == 0:
                        self._set_status(f"Loaded {n} bookmarks")
                    n += 1
                    new_bookmarks.append(Bookmark(float(row["start_time"]), row["start_text"] or ""))

        self.bookmarks = new_bookmarks
        return new_bookmarks

    async def load_settings(self) -> tuple[float, float]:
        self._set_status("Loading: settings")
        async with open_database(self._require_database()) as db:
            log_start, log_end = await get_event_repository(db).get_log_bounds()
        self.log_start, self.log_end = log_start, log_end
        return log_start, log_end

    async def load_threads(self) -> list[str]:
        self._set_status("Loading: threads")
        async with open_database(self._require_database()) as db:
            threads = await get_event_repository(db).get_thread_labels()
        self.threads = threads
        return threads

    async def load_summary(self) -> list[int]:
        self._set_status("Loading: summary")
        async with open_database(self._require_database()) as db:
            summary = await get_event_repository(db).get_summary()
        self.summary = summary
        return summary

    # ── Bookmark navigation ────────────────────────────────────────

    async def earliest_bookmark_after(self, start_hint: float) -> Optional[float]:
        async with open_database(self._require_database()) as db:
            return await get_event_repository(db).earliest_bookmark_after(start_hint)

    async def latest_bookmark_before(self, end_hint: float) -> Optional[float]:
        async with open_database(self._require_database()) as db:
            return await get_event_repository(db).latest_bookmark_before(end_hint)
