"""Windowed usage statistics composed from the analytics repository."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from agent_usage import config
from agent_usage.date_utils import period_start
from agent_usage.db.factory import get_analytics_repository, get_metadata_repository
from agent_usage.models import (
    AggregatedStats,
    PerSourceStats,
    Period,
    Source,
    StoredSession,
    UsageStats,
    UsageTotals,
)


def _apply_totals(stats: UsageStats, totals: AggregatedStats) -> None:
    stats.totalSessionTime = totals.totalSessionTime
    stats.totalInputTokens = totals.totalInputTokens
    stats.totalOutputTokens = totals.totalOutputTokens
    stats.totalCacheCreation = totals.totalCacheCreation
    stats.totalCacheRead = totals.totalCacheRead
    stats.totalTokens = totals.totalTokens
    stats.totalCost = totals.totalCost
    stats.sessionCount = totals.sessionCount


class UsageStatsService:
    """Resolves a period to its lookback window and runs the read-only queries.

    ``now`` defaults to the wall clock at query time.
    """

    def __init__(
        self,
        db: Any,
        *,
        top_models_limit: int = config.TOP_MODELS_LIMIT,
        recent_sessions_limit: int = config.RECENT_SESSIONS_LIMIT,
    ):
        self.analytics_repo = get_analytics_repository(db)
        self.metadata_repo = get_metadata_repository(db)
        self.top_models_limit = top_models_limit
        self.recent_sessions_limit = recent_sessions_limit

    async def get_usage_stats(self, source: Source, period: Period, now: datetime | None = None) -> UsageStats:
        source = Source(source)
        period = Period(period)
        since = period_start(period, now)
        repo = self.analytics_repo

        stats = UsageStats(
            lastSession=await repo.get_last_session(source, since),
            topModels=await repo.get_top_models(source, since, self.top_models_limit),
            totalMessages=await repo.get_message_count(source, since),
            totalToolCalls=await repo.get_tool_call_count(source, since),
            uniqueProjects=await repo.get_unique_projects(source, since),
            lastSyncTime=await self.metadata_repo.get_last_sync_time(source),
        )
        _apply_totals(stats, await repo.get_aggregated_stats(source, since))

        if period is Period.WEEK:
            stats.dailySummaries = await repo.get_daily_summaries(source, since)
        elif period is Period.MONTH:
            stats.weeklySummaries = await repo.get_weekly_summaries(source, since)
        return stats

    async def get_usage_stats_all(self, period: Period, now: datetime | None = None) -> UsageStats:
        since = period_start(Period(period), now)
        repo = self.analytics_repo

        last_sync = 0
        for source in Source:
            last_sync = max(last_sync, await self.metadata_repo.get_last_sync_time(source))

        stats = UsageStats(
            recentSessions=await repo.get_recent_sessions(self.recent_sessions_limit),
            topModels=await repo.get_top_models(None, since, self.top_models_limit),
            totalMessages=await repo.get_message_count(None, since),
            totalToolCalls=await repo.get_tool_call_count(None, since),
            uniqueProjects=await repo.get_unique_projects(None, since),
            lastSyncTime=last_sync,
        )
        _apply_totals(stats, await repo.get_aggregated_stats(None, since))
        return stats

    async def get_per_source_stats(self, period: Period, now: datetime | None = None) -> list[PerSourceStats]:
        return await self.analytics_repo.get_per_source_stats(period_start(Period(period), now))

    async def get_sessions_in_period(
        self, source: Source, period: Period, now: datetime | None = None
    ) -> list[StoredSession]:
        return await self.analytics_repo.get_sessions_in_period(Source(source), period_start(Period(period), now))

    async def get_usage(self, source: Source) -> UsageTotals:
        return await self.analytics_repo.get_usage_totals(Source(source))
