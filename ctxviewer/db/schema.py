"""Schema of a compiled context log (``.cbin``).

The store is written by the external log compiler; the viewer only reads it.
The DDL lives here so version checks and test fixtures agree on table and
column names.
"""
from __future__ import annotations

import logging

import aiosqlite

from ctxviewer import config

logger = logging.getLogger("ctxviewer.db")

_TABLES = """
-- ── Log-wide settings ──────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS settings (
    version     INTEGER NOT NULL,
    start_time  REAL NOT NULL DEFAULT 0,
    end_time    REAL NOT NULL DEFAULT 0
);

-- ── Threads (node / process / thread triples) ──────────────────────
CREATE TABLE IF NOT EXISTS threads (
    id       INTEGER PRIMARY KEY,
    node     TEXT NOT NULL DEFAULT '',
    process  TEXT NOT NULL DEFAULT '',
    thread   TEXT NOT NULL DEFAULT ''
);

-- ── Interval records ───────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS events (
    id              INTEGER PRIMARY KEY,
    thread_id       INTEGER NOT NULL,
    start_location  TEXT,
    end_location    TEXT,
    start_time      REAL,
    end_time        REAL,
    start_type      TEXT,
    end_type        TEXT,
    start_text      TEXT,
    end_text        TEXT
);

CREATE INDEX IF NOT EXISTS idx_events_start_type ON events(start_type, start_time);

-- Window lookups go through a narrow (id, start, end) table
CREATE TABLE IF NOT EXISTS events_index (
    id          INTEGER PRIMARY KEY,
    start_time  REAL NOT NULL,
    end_time    REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_index_span ON events_index(start_time, end_time);

-- ── Coarse per-bucket event counts ─────────────────────────────────
CREATE TABLE IF NOT EXISTS summary (
    id      INTEGER PRIMARY KEY,
    events  INTEGER NOT NULL DEFAULT 0
);
"""


async def create_schema(
    db: aiosqlite.Connection,
    *,
    version: int | None = None,
    log_start: float = 0.0,
    log_end: float = 0.0,
) -> None:
    """Create an empty store stamped with ``version`` (defaults to DB_VERSION)."""
    await db.executescript(_TABLES)
    await db.execute("DELETE FROM settings")
    await db.execute(
        "INSERT INTO settings (version, start_time, end_time) VALUES (?, ?, ?)",
        (config.DB_VERSION if version is None else version, log_start, log_end),
    )
    await db.commit()
    logger.info("Created compiled log schema (version %s)", version or config.DB_VERSION)
