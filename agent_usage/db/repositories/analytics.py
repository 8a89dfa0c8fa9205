"""SQLite implementation of the windowed usage aggregation queries."""
from __future__ import annotations

import logging
from typing import Any, Optional

import aiosqlite

from agent_usage.db.repositories.sessions import SESSION_COLUMNS, session_from_row
from agent_usage.models import (
    AggregatedStats,
    DailySummary,
    ModelUsage,
    PerSourceStats,
    Source,
    StoredSession,
    UsageTotals,
    WeeklySummary,
)

logger = logging.getLogger("agent_usage.analytics")

# Unterminated sessions and clock-skewed ones (ended <= started) count as zero.
_DURATION_SUM = (
    "COALESCE(SUM(CASE WHEN {p}ended_at IS NOT NULL AND {p}ended_at > {p}started_at "
    "THEN {p}ended_at - {p}started_at ELSE 0 END), 0)"
)


def _duration_sum(prefix: str = "") -> str:
    return _DURATION_SUM.format(p=prefix)


def _window(source: Optional[Source], since: int, prefix: str = "") -> tuple[str, list[Any]]:
    """WHERE clause selecting sessions started at/after ``since``, optionally for one source."""
    clauses = [f"{prefix}started_at >= ?"]
    params: list[Any] = [since]
    if source is not None:
        clauses.insert(0, f"{prefix}source = ?")
        params.insert(0, Source(source).value)
    return " AND ".join(clauses), params


class SqliteAnalyticsRepository:
    """Read-only aggregate queries over persisted sessions.

    Every windowed query takes ``source=None`` to cover all sources.
    """

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def _fetch_scalar(self, query: str, params: list[Any]) -> int:
        async with self.db.execute(query, params) as cur:
            row = await cur.fetchone()
        return (row[0] or 0) if row else 0

    async def get_last_session(self, source: Optional[Source], since: int) -> StoredSession | None:
        where, params = _window(source, since, "s.")
        query = f"SELECT {SESSION_COLUMNS} FROM sessions s WHERE {where} ORDER BY s.started_at DESC, s.id DESC LIMIT 1"
        async with self.db.execute(query, params) as cur:
            row = await cur.fetchone()
        return session_from_row(row) if row else None

    async def get_top_models(self, source: Optional[Source], since: int, limit: int) -> list[ModelUsage]:
        where, params = _window(source, since)
        query = f"""
            SELECT model, COUNT(*) AS session_count
            FROM sessions
            WHERE {where} AND model IS NOT NULL AND model != ''
            GROUP BY model
            ORDER BY session_count DESC, model ASC
            LIMIT ?
        """
        async with self.db.execute(query, [*params, limit]) as cur:
            rows = await cur.fetchall()
        return [ModelUsage(model=r["model"], sessionCount=r["session_count"]) for r in rows]

    async def get_aggregated_stats(self, source: Optional[Source], since: int) -> AggregatedStats:
        where, params = _window(source, since)
        query = f"""
            SELECT
                {_duration_sum()} AS total_time,
                COALESCE(SUM(input_tokens), 0) AS total_input,
                COALESCE(SUM(output_tokens), 0) AS total_output,
                COALESCE(SUM(cache_creation_tokens), 0) AS total_cache_creation,
                COALESCE(SUM(cache_read_tokens), 0) AS total_cache_read,
                COALESCE(SUM(total_tokens), 0) AS total_tokens,
                COALESCE(SUM(cost), 0) AS total_cost,
                COUNT(*) AS session_count
            FROM sessions
            WHERE {where}
        """
        async with self.db.execute(query, params) as cur:
            row = await cur.fetchone()
        if not row:
            return AggregatedStats()
        return AggregatedStats(
            totalSessionTime=row["total_time"],
            totalInputTokens=row["total_input"],
            totalOutputTokens=row["total_output"],
            totalCacheCreation=row["total_cache_creation"],
            totalCacheRead=row["total_cache_read"],
            totalTokens=row["total_tokens"],
            totalCost=float(row["total_cost"]),
            sessionCount=row["session_count"],
        )

    async def get_message_count(self, source: Optional[Source], since: int) -> int:
        where, params = _window(source, since, "s.")
        return await self._fetch_scalar(
            f"SELECT COUNT(m.id) FROM messages m JOIN sessions s ON m.session_id = s.id WHERE {where}",
            params,
        )

    async def get_tool_call_count(self, source: Optional[Source], since: int) -> int:
        where, params = _window(source, since, "s.")
        return await self._fetch_scalar(
            f"SELECT COUNT(t.id) FROM tool_calls t JOIN sessions s ON t.session_id = s.id WHERE {where}",
            params,
        )

    async def get_unique_projects(self, source: Optional[Source], since: int) -> int:
        where, params = _window(source, since)
        return await self._fetch_scalar(
            f"""SELECT COUNT(DISTINCT project_path) FROM sessions
                WHERE {where} AND project_path IS NOT NULL AND project_path != ''""",
            params,
        )

    async def get_sessions_in_period(self, source: Optional[Source], since: int) -> list[StoredSession]:
        where, params = _window(source, since, "s.")
        query = f"SELECT {SESSION_COLUMNS} FROM sessions s WHERE {where} ORDER BY s.started_at DESC"
        async with self.db.execute(query, params) as cur:
            return [session_from_row(r) for r in await cur.fetchall()]

    async def get_daily_summaries(self, source: Optional[Source], since: int) -> list[DailySummary]:
        where, params = _window(source, since)
        query = f"""
            SELECT date(started_at, 'unixepoch') AS day,
                COUNT(*) AS sessions,
                {_duration_sum()} AS total_time,
                COALESCE(SUM(total_tokens), 0) AS total_tokens
            FROM sessions
            WHERE {where}
            GROUP BY day
            ORDER BY day DESC
        """
        async with self.db.execute(query, params) as cur:
            rows = await cur.fetchall()
        return [
            DailySummary(
                date=r["day"],
                sessionCount=r["sessions"],
                totalTime=r["total_time"],
                totalTokens=r["total_tokens"],
            )
            for r in rows
        ]

    async def get_weekly_summaries(self, source: Optional[Source], since: int) -> list[WeeklySummary]:
        where, params = _window(source, since)
        query = f"""
            SELECT strftime('%Y/%m/%d', datetime(MIN(started_at), 'unixepoch')) AS week_start,
                COUNT(*) AS sessions,
                {_duration_sum()} AS total_time,
                COALESCE(SUM(total_tokens), 0) AS total_tokens
            FROM sessions
            WHERE {where}
            GROUP BY strftime('%Y-W%W', started_at, 'unixepoch')
            ORDER BY week_start DESC
        """
        async with self.db.execute(query, params) as cur:
            rows = await cur.fetchall()
        return [
            WeeklySummary(
                weekStart=r["week_start"],
                sessionCount=r["sessions"],
                totalTime=r["total_time"],
                totalTokens=r["total_tokens"],
            )
            for r in rows
        ]

    async def get_recent_sessions(self, limit: int) -> list[StoredSession]:
        """Most recent sessions across all sources, ignoring any window."""
        query = f"SELECT {SESSION_COLUMNS} FROM sessions s ORDER BY s.started_at DESC, s.id DESC LIMIT ?"
        async with self.db.execute(query, (limit,)) as cur:
            return [session_from_row(r) for r in await cur.fetchall()]

    async def get_per_source_stats(self, since: int) -> list[PerSourceStats]:
        query = f"""
            SELECT s.source,
                COUNT(*) AS session_count,
                COALESCE(SUM(s.input_tokens), 0) AS total_input,
                COALESCE(SUM(s.output_tokens), 0) AS total_output,
                COALESCE(SUM(s.cache_creation_tokens), 0) AS total_cache_creation,
                COALESCE(SUM(s.cache_read_tokens), 0) AS total_cache_read,
                COALESCE(SUM(s.total_tokens), 0) AS total_tokens,
                COALESCE(SUM(s.cost), 0) AS total_cost,
                {_duration_sum("s.")} AS total_time,
                COALESCE(SUM(m.message_count), 0) AS total_messages
            FROM sessions s
            LEFT JOIN (
                SELECT session_id, COUNT(*) AS message_count FROM messages GROUP BY session_id
            ) m ON m.session_id = s.id
            WHERE s.started_at >= ?
            GROUP BY s.source
            ORDER BY session_count DESC, s.source ASC
        """
        async with self.db.execute(query, (since,)) as cur:
            rows = await cur.fetchall()
        return [
            PerSourceStats(
                source=r["source"],
                sessionCount=r["session_count"],
                totalInputTokens=r["total_input"],
                totalOutputTokens=r["total_output"],
                totalCacheCreation=r["total_cache_creation"],
                totalCacheRead=r["total_cache_read"],
                totalTokens=r["total_tokens"],
                totalCost=float(r["total_cost"]),
                totalTime=r["total_time"],
                totalMessages=r["total_messages"],
            )
            for r in rows
        ]

    async def get_usage_totals(self, source: Source) -> UsageTotals:
        """Lifetime session count and input/output token sums for ``source``."""
        query = """
            SELECT COUNT(*), COALESCE(SUM(input_tokens), 0), COALESCE(SUM(output_tokens), 0)
            FROM sessions WHERE source = ?
        """
        async with self.db.execute(query, (Source(source).value,)) as cur:
            row = await cur.fetchone()
        return UsageTotals(
            source=source,
            totalSessions=row[0] if row else 0,
            totalInputTokens=row[1] if row else 0,
            totalOutputTokens=row[2] if row else 0,
        )
