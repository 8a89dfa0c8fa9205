"""agent-usage command line.

Usage:
  agent-usage sync [--source codex|claude|all] [--dir PATH]
  agent-usage stats [--source codex|claude|all] [--period day|week|month] [--no-sync]
  agent-usage usage [--source codex|claude|all] [--no-sync]
  agent-usage sessions [--source codex|claude|all] [--period day|week|month] [--id ID] [--find SESSION_ID]
  agent-usage info
  agent-usage serve
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from agent_usage.config import load_settings
from agent_usage.context import AppContext, open_context
from agent_usage.date_utils import epoch_to_iso
from agent_usage.models import Period, Source, SyncSummary, UsageStats
from agent_usage.parsers.platforms.registry import find_latest_session, find_session_by_id

logger = logging.getLogger("agent_usage")

_SOURCE_CHOICES = [s.value for s in Source] + ["all"]
_PERIOD_CHOICES = [p.value for p in Period]


def _format_duration(seconds: int) -> str:
    hours, rest = divmod(max(0, int(seconds)), 3600)
    minutes = rest // 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _sources(ctx: AppContext, value: str | None) -> list[Source]:
    if not value or value == "all":
        return ctx.enabled_sources()
    return [Source(value)]


def _optional_path(path: Path | None) -> str | None:
    return str(path) if path is not None else None


def _sync_failed(summaries: list[SyncSummary]) -> bool:
    files_seen = sum(s.filesSeen for s in summaries)
    handled = sum(s.processed + s.unidentified for s in summaries)
    return files_seen > 0 and handled == 0


def _print_stats(stats: UsageStats, label: str, period: Period) -> None:
    print(f"{label} usage ({period.value})")
    print(f"  Sessions:        {stats.sessionCount}")
    print(f"  Time:            {_format_duration(stats.totalSessionTime)}")
    print(f"  Input tokens:    {stats.totalInputTokens}")
    print(f"  Output tokens:   {stats.totalOutputTokens}")
    if stats.totalCacheCreation or stats.totalCacheRead:
        print(f"  Cache tokens:    {stats.totalCacheCreation} created / {stats.totalCacheRead} read")
    print(f"  Total tokens:    {stats.totalTokens}")
    print(f"  Estimated cost:  ${stats.totalCost:.4f}")
    print(f"  Messages:        {stats.totalMessages}")
    print(f"  Tool calls:      {stats.totalToolCalls}")
    print(f"  Projects:        {stats.uniqueProjects}")
    if stats.topModels:
        print("  Top models:")
        for item in stats.topModels:
            print(f"    {item.model}: {item.sessionCount}")
    if stats.lastSession:
        last = stats.lastSession
        print(f"  Last session:    {epoch_to_iso(last.startedAt)} {last.projectPath or ''}".rstrip())
    for day in stats.dailySummaries:
        print(f"    {day.date}  sessions={day.sessionCount} time={_format_duration(day.totalTime)} tokens={day.totalTokens}")
    for week in stats.weeklySummaries:
        print(
            f"    week of {week.weekStart}  sessions={week.sessionCount} "
            f"time={_format_duration(week.totalTime)} tokens={week.totalTokens}"
        )
    for session in stats.recentSessions:
        print(f"    {epoch_to_iso(session.startedAt)} [{session.source.value}] {session.model or '-'} {session.projectPath or ''}".rstrip())
    print(f"  Last sync:       {epoch_to_iso(stats.lastSyncTime) or 'never'}")


async def _cmd_sync(ctx: AppContext, args: argparse.Namespace) -> int:
    summaries = []
    for source in _sources(ctx, args.source):
        directory = Path(args.dir).expanduser() if args.dir else ctx.sessions_dir(source)
        summaries.append(await ctx.sync_engine.sync_source(source, directory))

    if args.json:
        _print_json([s.model_dump(mode="json") for s in summaries])
    else:
        for s in summaries:
            print(
                f"{s.source.value}: inserted={s.inserted} backfilled={s.backfilled} "
                f"skipped={s.alreadyTracked} errors={s.errors}"
            )
    return 1 if _sync_failed(summaries) else 0


async def _cmd_stats(ctx: AppContext, args: argparse.Namespace) -> int:
    period = Period(args.period)
    if ctx.settings.autosync and not args.no_sync:
        await ctx.sync_enabled_sources()

    if args.source == "all":
        stats = await ctx.stats.get_usage_stats_all(period)
        per_source = await ctx.stats.get_per_source_stats(period)
        if args.json:
            _print_json({
                "stats": stats.model_dump(mode="json"),
                "sources": [row.model_dump(mode="json") for row in per_source],
            })
            return 0
        _print_stats(stats, "All sources", period)
        for row in per_source:
            print(
                f"  {row.source.value}: sessions={row.sessionCount} tokens={row.totalTokens} "
                f"cost=${row.totalCost:.4f} time={_format_duration(row.totalTime)} messages={row.totalMessages}"
            )
        return 0

    stats = await ctx.stats.get_usage_stats(Source(args.source), period)
    if args.json:
        _print_json(stats.model_dump(mode="json"))
    else:
        _print_stats(stats, args.source, period)
    return 0


async def _cmd_usage(ctx: AppContext, args: argparse.Namespace) -> int:
    sources = _sources(ctx, args.source)
    if ctx.settings.autosync and not args.no_sync:
        for source in sources:
            await ctx.sync(source)
    totals = [await ctx.stats.get_usage(source) for source in sources]
    if args.json:
        _print_json([t.model_dump(mode="json") for t in totals])
        return 0
    for t in totals:
        print(
            f"{t.source.value}: sessions={t.totalSessions} "
            f"input_tokens={t.totalInputTokens} output_tokens={t.totalOutputTokens}"
        )
    return 0


async def _cmd_sessions(ctx: AppContext, args: argparse.Namespace) -> int:
    if args.find:
        return _find_session_file(ctx, args)

    if args.id is not None:
        messages = await ctx.sessions.get_messages(args.id)
        tool_calls = await ctx.sessions.get_tool_calls(args.id)
        if args.json:
            _print_json({
                "messages": [m.model_dump() for m in messages],
                "toolCalls": [t.model_dump() for t in tool_calls],
            })
            return 0
        for m in messages:
            print(f"[{epoch_to_iso(m.timestamp)}] {m.role}: {m.content}")
        for t in tool_calls:
            print(f"[{epoch_to_iso(t.timestamp)}] tool {t.toolName} {t.arguments}")
        return 0

    if args.period:
        sessions = []
        for source in _sources(ctx, args.source):
            sessions.extend(await ctx.stats.get_sessions_in_period(source, Period(args.period)))
    else:
        wanted = set(_sources(ctx, args.source))
        sessions = [s for s in await ctx.sessions.list_all() if s.source in wanted]

    if args.json:
        _print_json([s.model_dump(mode="json") for s in sessions])
        return 0
    for s in sessions:
        print(
            f"{s.id:>5} {epoch_to_iso(s.startedAt)} [{s.source.value}] {s.externalId} "
            f"model={s.model or '-'} tokens={s.totalTokens} messages={s.messageCount} "
            f"time={_format_duration(s.durationSeconds)}"
        )
    return 0


def _find_session_file(ctx: AppContext, args: argparse.Namespace) -> int:
    matches = []
    for source in _sources(ctx, args.source):
        path = find_session_by_id(ctx.sessions_dir(source), args.find)
        if path is not None:
            matches.append({"source": source.value, "path": str(path)})
    if args.json:
        _print_json(matches)
    else:
        for match in matches:
            print(f"{match['source']}: {match['path']}")
    if not matches:
        logger.error("No session log named %s found", args.find)
        return 1
    return 0


async def _cmd_info(ctx: AppContext, args: argparse.Namespace) -> int:
    info = {
        "dbPath": str(ctx.settings.db_path),
        "sessionCount": await ctx.sessions.count(),
        "sources": [
            {
                "source": source.value,
                "enabled": source in ctx.enabled_sources(),
                "sessionsDir": str(ctx.sessions_dir(source)),
                "lastSync": await ctx.sync_engine.metadata_repo.get_last_sync_time(source),
                "latestFile": _optional_path(find_latest_session(ctx.sessions_dir(source))),
            }
            for source in Source
        ],
    }
    if args.json:
        _print_json(info)
        return 0
    print(f"Database: {info['dbPath']}")
    print(f"Sessions: {info['sessionCount']}")
    for entry in info["sources"]:
        state = "enabled" if entry["enabled"] else "disabled"
        print(f"{entry['source']}: {state} dir={entry['sessionsDir']} last_sync={epoch_to_iso(entry['lastSync']) or 'never'}")
        if entry["latestFile"]:
            print(f"  latest: {entry['latestFile']}")
    return 0


_COMMANDS = {
    "sync": _cmd_sync,
    "stats": _cmd_stats,
    "usage": _cmd_usage,
    "sessions": _cmd_sessions,
    "info": _cmd_info,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agent-usage", description="Track AI coding-agent usage from session logs")
    parser.add_argument("--db", default="", help="Database path (default: AGENT_USAGE_DB_PATH)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Import session logs into the database")
    sync.add_argument("--source", choices=_SOURCE_CHOICES, default="all")
    sync.add_argument("--dir", default="", help="Session directory (single source only)")

    stats = sub.add_parser("stats", help="Show usage statistics for a period")
    stats.add_argument("--source", choices=_SOURCE_CHOICES, default="all")
    stats.add_argument("--period", choices=_PERIOD_CHOICES, default="week")
    stats.add_argument("--no-sync", action="store_true", help="Skip the automatic sync")

    usage = sub.add_parser("usage", help="Show lifetime token totals")
    usage.add_argument("--source", choices=_SOURCE_CHOICES, default="all")
    usage.add_argument("--no-sync", action="store_true", help="Skip the automatic sync")

    sessions = sub.add_parser("sessions", help="List stored sessions")
    sessions.add_argument("--source", choices=_SOURCE_CHOICES, default="all")
    sessions.add_argument("--period", choices=_PERIOD_CHOICES, default=None)
    sessions.add_argument("--id", type=int, default=None, help="Show messages and tool calls of one session")
    sessions.add_argument("--find", default="", metavar="SESSION_ID", help="Print the log file path of a session id")

    sub.add_parser("info", help="Show database and source configuration")
    sub.add_parser("serve", help="Run the HTTP API")
    return parser


async def _run(args: argparse.Namespace) -> int:
    settings = load_settings(db_path=Path(args.db).expanduser() if args.db else None)
    async with open_context(settings) as ctx:
        return await _COMMANDS[args.command](ctx, args)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)

    if args.command == "sync" and args.dir and args.source == "all":
        parser.error("--dir requires a single --source")
    if args.command == "serve":
        from agent_usage.main import run

        run(load_settings(db_path=Path(args.db).expanduser() if args.db else None))
        return 0
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
