"""Repository factory keyed on the connection type."""
from __future__ import annotations

from typing import Any

import aiosqlite

from agent_usage.db.repositories import (
    SqliteAnalyticsRepository,
    SqliteMetadataRepository,
    SqliteSessionRepository,
)


def _require_sqlite(db: Any) -> None:
    if not isinstance(db, aiosqlite.Connection):
        raise TypeError(f"Unsupported database connection: {type(db).__name__}")


def get_session_repository(db: Any):
    _require_sqlite(db)
    return SqliteSessionRepository(db)


def get_analytics_repository(db: Any):
    _require_sqlite(db)
    return SqliteAnalyticsRepository(db)


def get_metadata_repository(db: Any):
    _require_sqlite(db)
    return SqliteMetadataRepository(db)
