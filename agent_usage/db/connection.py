"""SQLite connection lifecycle.

One connection is opened per command invocation and closed when it ends;
callers pass it explicitly instead of sharing a module-level handle.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from agent_usage.db.sqlite_migrations import run_migrations

logger = logging.getLogger("agent_usage.db")


async def open_connection(db_path: Path | str) -> aiosqlite.Connection:
    """Open (creating if needed) and migrate the usage database at ``db_path``."""
    path = str(db_path)
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(path)
    conn.row_factory = aiosqlite.Row
    try:
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA busy_timeout=5000")
        await run_migrations(conn)
    except Exception:
        await conn.close()
        raise
    logger.info("Database connection established: %s", path)
    return conn


async def close_connection(conn: aiosqlite.Connection) -> None:
    await conn.close()
    logger.info("Database connection closed")


@asynccontextmanager
async def connect(db_path: Path | str) -> AsyncIterator[aiosqlite.Connection]:
    conn = await open_connection(db_path)
    try:
        yield conn
    finally:
        await close_connection(conn)
