"""Database schema creation and versioning.

All CREATE TABLE statements for the usage store. Uses IF NOT EXISTS for
idempotent runs; upgrades only ever add nullable/defaulted columns.
"""
from __future__ import annotations

import logging
import sqlite3

import aiosqlite

logger = logging.getLogger("agent_usage.db")

SCHEMA_VERSION = 2

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── Sessions ───────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS sessions (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id           TEXT UNIQUE,
    source                TEXT NOT NULL,
    project_path          TEXT,
    model                 TEXT,
    provider              TEXT,
    started_at            INTEGER NOT NULL,
    ended_at              INTEGER,
    input_tokens          INTEGER DEFAULT 0,
    output_tokens         INTEGER DEFAULT 0,
    total_tokens          INTEGER DEFAULT 0,
    cost                  REAL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_sessions_external_id ON sessions(external_id);
CREATE INDEX IF NOT EXISTS idx_sessions_source_started ON sessions(source, started_at DESC);

-- ── Transcript messages ────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS messages (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id  INTEGER NOT NULL REFERENCES sessions(id),
    role        TEXT NOT NULL,
    content     TEXT,
    timestamp   INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_messages_session_id ON messages(session_id);

-- ── Tool invocations ───────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS tool_calls (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id  INTEGER NOT NULL REFERENCES sessions(id),
    tool_name   TEXT NOT NULL,
    arguments   TEXT,
    result      TEXT,
    timestamp   INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tool_calls_session_id ON tool_calls(session_id);

-- ── Key/value metadata (last sync per source) ──────────────────────
CREATE TABLE IF NOT EXISTS metadata (
    key         TEXT PRIMARY KEY,
    value       TEXT,
    updated_at  INTEGER
);
"""


async def _column_exists(db: aiosqlite.Connection, table: str, column: str) -> bool:
    async with db.execute(f"PRAGMA table_info({table})") as cur:
        rows = await cur.fetchall()
    return any(row[1] == column for row in rows)


async def _ensure_column(db: aiosqlite.Connection, table: str, column: str, definition: str) -> None:
    if await _column_exists(db, table, column):
        return
    logger.info("Adding column %s.%s", table, column)
    await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


async def _current_version(db: aiosqlite.Connection) -> int:
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
    except sqlite3.OperationalError:
        return 0
    return row[0] if row and row[0] else 0


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables and add missing columns. Idempotent."""
    current_version = await _current_version(db)
    if current_version >= SCHEMA_VERSION:
        logger.debug("Schema is up to date (version %s)", current_version)
        return

    logger.info("Running migrations: %s → %s", current_version, SCHEMA_VERSION)

    await db.executescript(_TABLES)

    # Token split columns added after the first release.
    await _ensure_column(db, "sessions", "cache_creation_tokens", "INTEGER DEFAULT 0")
    await _ensure_column(db, "sessions", "cache_read_tokens", "INTEGER DEFAULT 0")
    await _ensure_column(db, "sessions", "reasoning_tokens", "INTEGER DEFAULT 0")

    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info("Migrations complete (schema version %s)", SCHEMA_VERSION)
