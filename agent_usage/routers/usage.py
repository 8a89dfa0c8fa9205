"""Usage router: windowed stats, session listings and sync over HTTP."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from agent_usage.context import AppContext
from agent_usage.models import Period, Source

usage_router = APIRouter(prefix="/api/usage", tags=["usage"])


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _parse_source(value: str | None) -> Source | None:
    raw = (value or "").strip().lower()
    if not raw or raw == "all":
        return None
    try:
        return Source(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown source: {value}")


def _parse_period(value: str | None) -> Period:
    raw = (value or "week").strip().lower()
    try:
        return Period(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown period: {value}")


def _require_source(value: str | None) -> Source:
    source = _parse_source(value)
    if source is None:
        raise HTTPException(status_code=400, detail="A single source is required")
    return source


@usage_router.get("/stats")
async def get_stats(
    source: str | None = None,
    period: str = "week",
    ctx: AppContext = Depends(get_context),
) -> dict[str, Any]:
    resolved_source = _parse_source(source)
    resolved_period = _parse_period(period)
    if resolved_source is None:
        stats = await ctx.stats.get_usage_stats_all(resolved_period)
    else:
        stats = await ctx.stats.get_usage_stats(resolved_source, resolved_period)
    return stats.model_dump()


@usage_router.get("/sources")
async def get_sources(period: str = "week", ctx: AppContext = Depends(get_context)) -> list[dict[str, Any]]:
    rows = await ctx.stats.get_per_source_stats(_parse_period(period))
    return [row.model_dump() for row in rows]


@usage_router.get("/totals/{source}")
async def get_totals(source: str, ctx: AppContext = Depends(get_context)) -> dict[str, Any]:
    totals = await ctx.stats.get_usage(_require_source(source))
    return totals.model_dump()


@usage_router.get("/sessions")
async def list_sessions(
    source: str | None = None,
    period: str | None = None,
    ctx: AppContext = Depends(get_context),
) -> list[dict[str, Any]]:
    if period is None:
        sessions = await ctx.sessions.list_all()
        resolved_source = _parse_source(source)
        if resolved_source is not None:
            sessions = [s for s in sessions if s.source is resolved_source]
    else:
        sessions = await ctx.stats.get_sessions_in_period(_require_source(source), _parse_period(period))
    return [s.model_dump() for s in sessions]


@usage_router.get("/sessions/{session_id}/messages")
async def get_session_messages(session_id: int, ctx: AppContext = Depends(get_context)) -> list[dict[str, Any]]:
    return [m.model_dump() for m in await ctx.sessions.get_messages(session_id)]


@usage_router.get("/sessions/{session_id}/tool-calls")
async def get_session_tool_calls(session_id: int, ctx: AppContext = Depends(get_context)) -> list[dict[str, Any]]:
    return [t.model_dump() for t in await ctx.sessions.get_tool_calls(session_id)]


@usage_router.post("/sync")
async def trigger_sync(source: str | None = None, ctx: AppContext = Depends(get_context)) -> list[dict[str, Any]]:
    resolved_source = _parse_source(source)
    if resolved_source is None:
        summaries = await ctx.sync_enabled_sources()
    else:
        summaries = [await ctx.sync(resolved_source)]
    return [s.model_dump() for s in summaries]
