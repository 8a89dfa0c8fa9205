"""SQLite implementation of the key/value metadata store."""
from __future__ import annotations

import logging

import aiosqlite

from agent_usage.models import Source

logger = logging.getLogger("agent_usage.db")

_LAST_SYNC_PREFIX = "last_sync_"


def last_sync_key(source: Source) -> str:
    return f"{_LAST_SYNC_PREFIX}{Source(source).value}"


class SqliteMetadataRepository:
    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def set_value(self, key: str, value: str, updated_at: int) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO metadata (key, value, updated_at) VALUES (?, ?, ?)",
            (key, value, updated_at),
        )
        await self.db.commit()

    async def get_value(self, key: str) -> str | None:
        async with self.db.execute("SELECT value FROM metadata WHERE key = ?", (key,)) as cur:
            row = await cur.fetchone()
        return row[0] if row else None

    async def set_last_sync_time(self, source: Source, timestamp: int) -> None:
        await self.set_value(last_sync_key(source), str(timestamp), timestamp)

    async def get_last_sync_time(self, source: Source) -> int:
        """Epoch seconds of the last sync for ``source``; 0 if never synced."""
        value = await self.get_value(last_sync_key(source))
        if not value:
            return 0
        try:
            return int(value)
        except ValueError:
            logger.warning("Ignoring unparsable %s value: %r", last_sync_key(source), value)
            return 0
