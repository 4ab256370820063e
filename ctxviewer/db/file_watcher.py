"""File watcher service using watchfiles.

Monitors the open text log and re-opens it (recompiling when needed) when
it changes on disk.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiosqlite
from watchfiles import Change, awatch

from ctxviewer import config
from ctxviewer.compiler import CompilerError

logger = logging.getLogger("ctxviewer.watcher")


class FileWatcher:
    """Background watcher that reloads the timeline when its log changes.

    Uses `watchfiles` (Rust-accelerated) for efficient watching.
    """

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self, timeline, log_file: Path) -> None:
        """Start watching ``log_file`` in a background task."""
        if self._running:
            logger.warning("File watcher already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._watch_loop(timeline, log_file))
        logger.info(f"File watcher started for {log_file}")

    async def stop(self) -> None:
        """Stop the file watcher."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    async def follow(self, timeline) -> None:
        """Re-target the watcher at the text log ``timeline`` has open now."""
        await self.stop()
        if config.WATCH_ENABLED and timeline.log_file is not None:
            await self.start(timeline, timeline.log_file)

    @property
    def is_running(self) -> bool:
        return self._running

    async def _watch_loop(self, timeline, log_file: Path) -> None:
        if not log_file.parent.exists():
            logger.warning(f"Log directory {log_file.parent} does not exist, nothing to watch")
            self._running = False
            return

        try:
            async for changes in awatch(log_file.parent):
                if not self._running:
                    break
                if self._is_relevant(changes, log_file):
                    logger.info(f"{log_file.name} changed, reloading")
                    await self.reload(timeline, log_file)
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        finally:
            self._running = False

    async def reload(self, timeline, log_file: Path) -> None:
        current = timeline.log_file
        if current is not None and Path(current).resolve() != log_file.resolve():
            logger.info(f"{log_file.name} is no longer open, not reloading")
            return
        try:
            await timeline.open_file(log_file)
            await timeline.load_all()
        except (FileNotFoundError, CompilerError, aiosqlite.Error) as e:
            logger.error(f"Error reloading {log_file}: {e}")

    @staticmethod
    def _is_relevant(changes: set[tuple[Change, str]], log_file: Path) -> bool:
        target = log_file.resolve()
        for change_type, path_str in changes:
            if change_type not in (Change.modified, Change.added):
                continue
            if Path(path_str).resolve() == target:
                return True
        return False


# Singleton instance
file_watcher = FileWatcher()
