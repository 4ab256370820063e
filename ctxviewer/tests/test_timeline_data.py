import asyncio
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import aiosqlite

from ctxviewer import config
from ctxviewer.db.repositories.events import SqliteEventRepository
from ctxviewer.db.schema import create_schema
from ctxviewer.services import timeline_data as timeline_data_module
from ctxviewer.services.timeline_data import TimelineData
from ctxviewer.timeline import Bookmark, EventType


def _row(eid, thread_id, start, end, start_type="START", end_type="ENDOK", text="call"):
    return (eid, thread_id, f"app.py:{eid}", f"app.py:{eid + 1}", start, end, start_type, end_type, text, "")


async def _create_store(path: Path, rows, *, threads=(), summary=(), log_start=0.0, log_end=0.0) -> None:
    async with aiosqlite.connect(str(path)) as db:
        await create_schema(db, log_start=log_start, log_end=log_end)
        await db.executemany(
            """INSERT INTO events
                (id, thread_id, start_location, end_location, start_time, end_time,
                 start_type, end_type, start_text, end_text)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            rows,
        )
        await db.executemany(
            "INSERT INTO events_index (id, start_time, end_time) VALUES (?, ?, ?)",
            [(r[0], r[4], r[5]) for r in rows],
        )
        await db.executemany(
            "INSERT INTO threads (id, node, process, thread) VALUES (?, ?, ?, ?)",
            threads,
        )
        await db.executemany(
            "INSERT INTO summary (id, events) VALUES (?, ?)",
            list(enumerate(summary)),
        )
        await db.commit()


ROWS = [
    _row(1, 0, 0.0, 10.0),
    _row(2, 0, 2.0, 4.0),
    _row(3, 0, 3.0, 3.0, "BMARK", "BMARK", "checkpoint"),
    _row(4, 1, 1.0, 1.5),
    _row(5, 1, 1.55, 2.5),
    _row(6, 0, 7.0, 7.0, "BMARK", "BMARK", "later"),
    _row(7, 0, 20.0, 30.0),
]


class TimelineDataTestCase(unittest.IsolatedAsyncioTestCase):
    rows = ROWS
    log_start = 100.0

    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.database_file = self.tmp / "run.cbin"
        await _create_store(
            self.database_file,
            self.rows,
            threads=[(0, "node1", "1234", "main"), (1, "node1", "1234", "worker")],
            summary=[3, 0, 5],
            log_start=self.log_start,
            log_end=self.log_start + 30.0,
        )
        self.statuses: list[str] = []
        self.timeline = TimelineData(status_sink=self.statuses.append)
        await self.timeline.open_file(self.database_file)
        await self.timeline.load_settings()

    async def asyncTearDown(self) -> None:
        self._tmp.cleanup()


class LoadEventsTests(TimelineDataTestCase):
    async def test_window_is_reconstructed_and_published(self) -> None:
        result = await self.timeline.load_events(100.0, 15.0)

        self.assertIs(self.timeline.snapshot, result)
        self.assertTrue(result.complete)
        self.assertEqual(result.thread_ids, (0, 1))
        spans = [(e.id, e.thread_index, e.depth, e.start_type) for e in result.events]
        self.assertEqual(
            spans,
            [
                (1, 0, 0, EventType.START),
                (2, 0, 1, EventType.START),
                (4, 1, 0, EventType.START),
                (5, 1, 0, EventType.START),
                (3, 0, 0, EventType.BMARK),
                (6, 0, 0, EventType.BMARK),
            ],
        )

    async def test_coalesce_merges_adjacent_siblings(self) -> None:
        result = await self.timeline.load_events(100.0, 15.0, coalesce=0.1)

        worker = [e for e in result.events if e.thread_index == 1]
        self.assertEqual([(e.id, e.start_time, e.end_time) for e in worker], [(4, 1.0, 2.5)])

    async def test_cutoff_drops_short_intervals_but_keeps_bookmarks(self) -> None:
        result = await self.timeline.load_events(100.0, 15.0, cutoff=1.5)

        self.assertEqual(sorted(e.id for e in result.events), [1, 2, 3, 6])

    async def test_empty_window_publishes_empty_result(self) -> None:
        result = await self.timeline.load_events(200.0, 10.0)

        self.assertEqual(result.events, ())
        self.assertEqual(result.thread_ids, ())
        self.assertTrue(result.complete)
        self.assertIs(self.timeline.snapshot, result)

    async def test_status_messages_cover_the_load(self) -> None:
        self.statuses.clear()

        await self.timeline.load_events(100.0, 15.0)

        self.assertEqual(self.statuses[:2], ["Loading: events", "Loading..."])
        self.assertIn("Sorting events", self.statuses)
        self.assertEqual(self.statuses[-1], "Loading: done")

    async def test_per_call_sink_overrides_owner_sink(self) -> None:
        own: list[str] = []
        self.statuses.clear()

        await self.timeline.load_events(100.0, 15.0, status=own.append)

        self.assertIn("Loading: done", own)
        self.assertEqual(self.statuses, [])

    async def test_missing_sink_is_safe(self) -> None:
        timeline = TimelineData()
        await timeline.open_file(self.database_file)

        result = await timeline.load_events(0.0, 50.0)

        self.assertEqual(len(result.events), 7)

    async def test_failing_sink_does_not_change_the_outcome(self) -> None:
        def broken(message: str) -> None:
            raise RuntimeError("display gone")

        baseline = await self.timeline.load_events(100.0, 15.0, coalesce=0.1)
        with self.assertLogs("ctxviewer.timeline", level="ERROR"):
            result = await self.timeline.load_events(100.0, 15.0, coalesce=0.1, status=broken)

        self.assertEqual(result.events, baseline.events)

    async def test_progress_is_reported_and_stop_keeps_previous_snapshot(self) -> None:
        previous = await self.timeline.load_events(100.0, 15.0)
        self.statuses.clear()

        with patch.object(config, "PROGRESS_INTERVAL", 2):
            result = await self.timeline.load_events(100.0, 15.0, coalesce=0.1, should_stop=lambda: True)

        self.assertIs(result, previous)
        self.assertIs(self.timeline.snapshot, previous)
        self.assertIn("Loading... (0k rows)", self.statuses)
        self.assertEqual(self.statuses[-1], "Loading: cancelled")

    async def test_progress_without_stop_runs_to_completion(self) -> None:
        with patch.object(config, "PROGRESS_INTERVAL", 1):
            result = await self.timeline.load_events(100.0, 15.0, should_stop=lambda: False)

        self.assertEqual(len(result.events), 6)

    async def test_repeated_loads_are_structurally_identical(self) -> None:
        first = await self.timeline.load_events(100.0, 15.0, coalesce=0.1)
        second = await self.timeline.load_events(100.0, 15.0, coalesce=0.1)

        self.assertIsNot(first, second)
        self.assertEqual(first.events, second.events)
        self.assertEqual(first.thread_ids, second.thread_ids)

    async def test_overlapping_loads_publish_one_whole_result(self) -> None:
        wide, narrow = await asyncio.gather(
            self.timeline.load_events(100.0, 40.0),
            self.timeline.load_events(100.0, 2.0),
        )

        self.assertEqual(len(wide.events), 7)
        self.assertEqual(sorted(e.id for e in narrow.events), [1, 4, 5])
        self.assertIn(self.timeline.snapshot, (wide, narrow))
        self.assertTrue(self.timeline.snapshot is wide or self.timeline.snapshot is narrow)

    async def test_no_open_file_is_an_error(self) -> None:
        with self.assertRaises(RuntimeError):
            await TimelineData().load_events(0.0, 10.0)


class MalformedRowTests(TimelineDataTestCase):
    rows = ROWS[:3] + [_row(8, 0, 5.0, 6.0, "BOGUS", "ENDOK")]

    async def test_malformed_rows_are_skipped(self) -> None:
        with self.assertLogs("ctxviewer.timeline", level="WARNING"):
            result = await self.timeline.load_events(100.0, 15.0)

        self.assertEqual(sorted(e.id for e in result.events), [1, 2, 3])
        self.assertEqual(result.skipped_rows, 1)
        self.assertTrue(result.complete)
        self.assertIn("Loading: skipped 1 malformed rows", self.statuses)


class StoreFailureTests(TimelineDataTestCase):
    async def test_truncated_stream_publishes_partial_result(self) -> None:
        async def failing_window(repo, start, end, cutoff=0.0):
            yield {
                "id": 1, "thread_id": 0, "start_location": "", "end_location": "",
                "start_time": 0.0, "end_time": 10.0, "start_type": "START", "end_type": "ENDOK",
                "start_text": "call", "end_text": "",
            }
            yield {
                "id": 2, "thread_id": 0, "start_location": "", "end_location": "",
                "start_time": 2.0, "end_time": 4.0, "start_type": "START", "end_type": "ENDOK",
                "start_text": "call", "end_text": "",
            }
            raise aiosqlite.OperationalError("disk I/O error")

        with patch.object(SqliteEventRepository, "iter_window", failing_window):
            with self.assertLogs("ctxviewer.timeline", level="ERROR"):
                result = await self.timeline.load_events(100.0, 15.0)

        self.assertFalse(result.complete)
        self.assertEqual([(e.id, e.depth) for e in result.events], [(1, 0), (2, 1)])
        self.assertIs(self.timeline.snapshot, result)
        self.assertTrue(any("store error" in s for s in self.statuses))

    async def test_vanished_database_publishes_empty_result(self) -> None:
        os.remove(self.database_file)

        with self.assertLogs("ctxviewer.timeline", level="ERROR"):
            result = await self.timeline.load_events(100.0, 15.0)

        self.assertEqual(result.events, ())
        self.assertFalse(result.complete)


class SimpleReadTests(TimelineDataTestCase):
    async def test_load_all_populates_lists(self) -> None:
        await self.timeline.load_all()

        self.assertEqual((self.timeline.log_start, self.timeline.log_end), (100.0, 130.0))
        self.assertEqual(self.timeline.threads, ["node1-1234-main", "node1-1234-worker"])
        self.assertEqual(self.timeline.bookmarks, [Bookmark(3.0, "checkpoint"), Bookmark(7.0, "later")])
        self.assertEqual(self.timeline.summary, [3, 0, 5])
        self.assertIn("Loaded 0 bookmarks", self.statuses)
        self.assertIn("Loading: threads", self.statuses)

    async def test_bookmark_navigation(self) -> None:
        self.assertEqual(await self.timeline.earliest_bookmark_after(3.0), 7.0)
        self.assertIsNone(await self.timeline.earliest_bookmark_after(7.0))
        self.assertEqual(await self.timeline.latest_bookmark_before(7.0), 3.0)
        self.assertIsNone(await self.timeline.latest_bookmark_before(3.0))

    async def test_reopening_resets_published_state(self) -> None:
        await self.timeline.load_all()
        await self.timeline.load_events(100.0, 15.0)

        await self.timeline.open_file(self.database_file)

        self.assertEqual(self.timeline.snapshot.events, ())
        self.assertEqual(self.timeline.bookmarks, [])
        self.assertEqual(self.timeline.threads, [])


class OpenFileTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    async def asyncTearDown(self) -> None:
        self._tmp.cleanup()

    async def test_missing_files_raise(self) -> None:
        timeline = TimelineData()
        with self.assertRaises(FileNotFoundError):
            await timeline.open_file(self.tmp / "absent.ctxt")
        with self.assertRaises(FileNotFoundError):
            await timeline.open_file(self.tmp / "absent.cbin")
        self.assertFalse(timeline.is_open)

    async def test_failed_open_keeps_the_current_file(self) -> None:
        good_log = self.tmp / "good.ctxt"
        good_log.write_text("log\n")
        good_store = self.tmp / "good.cbin"
        await _create_store(good_store, ROWS)
        (self.tmp / "other.ctxt").write_text("log\n")

        timeline = TimelineData()
        await timeline.open_file(good_store)

        with self.assertRaises(FileNotFoundError):
            await timeline.open_file(self.tmp / "other.cbin")

        self.assertEqual(timeline.log_file, good_log)
        self.assertEqual(timeline.database_file, good_store)

    async def test_up_to_date_store_is_not_recompiled(self) -> None:
        log_file = self.tmp / "run.ctxt"
        log_file.write_text("log\n")
        database_file = self.tmp / "run.cbin"
        await _create_store(database_file, ROWS)
        stamp = database_file.stat().st_mtime
        os.utime(log_file, (stamp - 100, stamp - 100))

        with patch.object(timeline_data_module, "run_compiler") as compiler:
            opened = await TimelineData().open_file(log_file)

        compiler.assert_not_called()
        self.assertEqual(opened, database_file)

    async def test_missing_store_is_compiled(self) -> None:
        log_file = self.tmp / "run.ctxt"
        log_file.write_text("log\n")
        database_file = self.tmp / "run.cbin"
        calls: list[Path] = []

        async def fake_compiler(path, status, command=None):
            calls.append(path)
            status("Compiling: 100%")
            await _create_store(database_file, ROWS)

        statuses: list[str] = []
        timeline = TimelineData(status_sink=statuses.append)
        with patch.object(timeline_data_module, "run_compiler", fake_compiler):
            opened = await timeline.open_file(log_file)

        self.assertEqual(calls, [log_file])
        self.assertEqual(opened, database_file)
        self.assertEqual(timeline.log_file, log_file)
        self.assertIn("Compiled log not found, compiling", statuses)
        self.assertIn("Compiling: 100%", statuses)


if __name__ == "__main__":
    unittest.main()
