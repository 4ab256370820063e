"""Connections to compiled context logs.

Every read opens its own short-lived connection, so overlapping loads never
share a cursor.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Union

import aiosqlite

from ctxviewer import config

logger = logging.getLogger("ctxviewer.db")

PathLike = Union[str, Path]


@asynccontextmanager
async def open_database(path: PathLike) -> AsyncIterator[aiosqlite.Connection]:
    """Open a read-only connection to a compiled log.

    A missing file raises aiosqlite.Error instead of creating an empty store.
    """
    uri = Path(path).resolve().as_uri() + "?mode=ro"
    conn = await aiosqlite.connect(uri, uri=True)
    try:
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA busy_timeout=5000")
        yield conn
    finally:
        await conn.close()


async def read_version(path: PathLike) -> int | None:
    """Return the store's schema version, or None when it cannot be read."""
    try:
        async with open_database(path) as db:
            async with db.execute("SELECT version FROM settings LIMIT 1") as cur:
                row = await cur.fetchone()
    except aiosqlite.Error as e:
        logger.warning(f"Error getting version from {path}: {e}")
        return None
    if not row or row[0] is None:
        logger.warning(f"No version row in {path}")
        return None
    return int(row[0])


async def version_check(path: PathLike) -> bool:
    version = await read_version(path)
    if version is None:
        return False
    if version != config.DB_VERSION:
        logger.info(f"Incompatible binary version: {version} != {config.DB_VERSION}")
        return False
    return True
