"""Boundary to the external log compiler.

A text log (``.ctxt``) is compiled into a SQLite store (``.cbin``) by a
separate executable. The viewer only decides when a recompile is needed and
relays the compiler's progress lines.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from ctxviewer import config
from ctxviewer.db.connection import version_check

logger = logging.getLogger("ctxviewer.compiler")

StatusSink = Callable[[str], None]


class CompilerError(RuntimeError):
    """The compiler could not be started or reported failure."""


def split_paths(given: Path) -> tuple[Path, Path]:
    """Return the (log, database) pair that shares ``given``'s stem."""
    root = given.with_suffix("")
    return (
        root.with_suffix(config.LOG_SUFFIX),
        root.with_suffix(config.DATABASE_SUFFIX),
    )


async def recompile_reason(log_file: Path, database_file: Path) -> Optional[str]:
    """Say why ``database_file`` must be rebuilt from ``log_file``, or None."""
    log_stat = log_file.stat()
    try:
        database_stat = database_file.stat()
    except FileNotFoundError:
        return "Compiled log not found, compiling"
    if log_stat.st_mtime_ns > database_stat.st_mtime_ns:
        return "Compiled log is out of date, recompiling"
    if not await version_check(database_file):
        return "Compiled log is from an old version of context, recompiling"
    return None


async def run_compiler(
    log_file: Path,
    status: StatusSink,
    command: str | None = None,
) -> None:
    """Run the compiler on ``log_file``, forwarding its stdout to ``status``."""
    program = command or config.COMPILER_COMMAND
    logger.info("Running %s on %s", program, log_file)
    try:
        process = await asyncio.create_subprocess_exec(
            program,
            str(log_file),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as exc:
        raise CompilerError(f"Could not start {program}: {exc}") from exc

    if process.stdout is None:
        raise CompilerError(f"{program} produced no output stream")
    while True:
        raw = await process.stdout.readline()
        line = raw.decode("utf-8", errors="replace").strip("\r\n")
        if not line:
            break
        status(line)

    # drain anything left after an early blank line so the child can exit
    await process.stdout.read()
    return_code = await process.wait()
    if return_code != 0:
        raise CompilerError(f"{program} exited with status {return_code}")
    logger.info("Compiled %s", log_file)
