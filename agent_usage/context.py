"""Per-invocation application context.

One context is built at the start of a command (or server lifespan) and
handed to every component that needs configuration or storage.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import aiosqlite

from agent_usage.config import Settings, load_settings
from agent_usage.db.connection import close_connection, open_connection
from agent_usage.db.factory import get_session_repository
from agent_usage.db.repositories import SqliteSessionRepository
from agent_usage.db.sync_engine import SyncEngine
from agent_usage.models import Source, SyncSummary
from agent_usage.services.usage_stats import UsageStatsService

logger = logging.getLogger("agent_usage")


@dataclass
class AppContext:
    settings: Settings
    db: aiosqlite.Connection
    sync_engine: SyncEngine
    stats: UsageStatsService
    sessions: SqliteSessionRepository

    def enabled_sources(self) -> list[Source]:
        enabled = []
        if self.settings.codex_enabled:
            enabled.append(Source.CODEX)
        if self.settings.claude_enabled:
            enabled.append(Source.CLAUDE)
        return enabled

    def sessions_dir(self, source: Source):
        if Source(source) is Source.CODEX:
            return self.settings.codex_sessions_dir
        return self.settings.claude_sessions_dir

    async def sync(self, source: Source) -> SyncSummary:
        return await self.sync_engine.sync_source(source, self.sessions_dir(source))

    async def sync_enabled_sources(self) -> list[SyncSummary]:
        return [await self.sync(source) for source in self.enabled_sources()]


async def build_context(settings: Settings | None = None) -> AppContext:
    settings = settings or load_settings()
    db = await open_connection(settings.db_path)
    return AppContext(
        settings=settings,
        db=db,
        sync_engine=SyncEngine(db),
        stats=UsageStatsService(
            db,
            top_models_limit=settings.top_models_limit,
            recent_sessions_limit=settings.recent_sessions_limit,
        ),
        sessions=get_session_repository(db),
    )


@asynccontextmanager
async def open_context(settings: Settings | None = None) -> AsyncIterator[AppContext]:
    ctx = await build_context(settings)
    try:
        yield ctx
    finally:
        await close_connection(ctx.db)
