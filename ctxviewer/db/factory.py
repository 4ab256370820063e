"""Repository factory."""
from __future__ import annotations

from typing import Any

import aiosqlite

from ctxviewer.db.repositories.events import SqliteEventRepository


def get_event_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteEventRepository(db)
    raise TypeError(f"Unsupported database connection type: {type(db)!r}")
