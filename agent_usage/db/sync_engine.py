"""Session log → DB sync engine.

Parses session files with the source's registered parser and reconciles
each parsed session against the store. Stored scalar fields are written
once on insert and never updated; a later parse can only add the
transcript of a session that was first captured without one.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable

from agent_usage import observability as otel
from agent_usage.date_utils import to_epoch, utc_now
from agent_usage.db.factory import get_metadata_repository, get_session_repository
from agent_usage.models import ParsedSession, Source, SyncOutcome, SyncSummary
from agent_usage.parsers.jsonl import SessionFileError
from agent_usage.parsers.platforms.registry import find_session_files, get_parser

logger = logging.getLogger("agent_usage.sync")


class SyncEngine:
    """Reconciles parsed sessions into the store.

    Reconciliation is a check-then-insert sequence, so every write runs
    under one lock; the UNIQUE(external_id) constraint catches any insert
    that still races past the existence check.
    """

    def __init__(self, db: Any):
        self.db = db
        self.session_repo = get_session_repository(db)
        self.metadata_repo = get_metadata_repository(db)
        self._write_lock = asyncio.Lock()

    async def reconcile(self, parsed: ParsedSession) -> SyncOutcome:
        async with self._write_lock:
            try:
                outcome = await self._reconcile(parsed)
                await self.db.commit()
            except sqlite3.IntegrityError:
                await self.db.rollback()
                logger.debug("Session %s inserted concurrently; treating as tracked", parsed.externalId)
                return SyncOutcome.ALREADY_TRACKED
            except sqlite3.Error as exc:
                await self.db.rollback()
                logger.error("Failed to store session %s: %s", parsed.externalId, exc)
                return SyncOutcome.ERROR
        if outcome is SyncOutcome.INSERTED:
            otel.record_token_cost(
                source=parsed.source.value,
                model=parsed.model,
                token_input=parsed.tokens.input,
                token_output=parsed.tokens.output,
                cost_usd=parsed.cost,
            )
        return outcome

    async def _reconcile(self, parsed: ParsedSession) -> SyncOutcome:
        existing = await self.session_repo.get_by_external_id(parsed.externalId)
        if existing is None:
            session_id = await self.session_repo.insert_session(parsed)
            await self.session_repo.insert_messages(session_id, parsed.messages)
            await self.session_repo.insert_tool_calls(session_id, parsed.toolCalls)
            return SyncOutcome.INSERTED

        if existing.messageCount == 0 and parsed.messages:
            added = await self.session_repo.insert_messages(existing.id, parsed.messages)
            logger.info("Backfilled %d messages for session %s", added, parsed.externalId)
            return SyncOutcome.BACKFILLED

        return SyncOutcome.ALREADY_TRACKED

    async def sync_files(self, source: Source, paths: Iterable[Path]) -> SyncSummary:
        """Parse and reconcile each file, continuing past per-file failures."""
        source = Source(source)
        parser = get_parser(source)
        summary = SyncSummary(source=source)
        parsed_files = 0

        for path in paths:
            summary.filesSeen += 1
            try:
                parsed = parser.parse(Path(path))
            except SessionFileError as exc:
                logger.warning("Skipping %s: %s", exc.path, exc.reason)
                otel.record_parser_failure(source.value)
                summary.errors += 1
                continue
            except Exception:
                logger.exception("Failed to parse %s", path)
                otel.record_parser_failure(source.value)
                summary.errors += 1
                continue

            parsed_files += 1
            if not parsed.externalId:
                logger.debug("Skipping %s: no session id", path)
                summary.unidentified += 1
                continue

            outcome = await self.reconcile(parsed)
            summary.record(outcome)
            otel.record_sync_outcome(source.value, outcome.value)

        if parsed_files:
            async with self._write_lock:
                await self.metadata_repo.set_last_sync_time(source, to_epoch(utc_now()))
        return summary

    async def sync_source(self, source: Source, sessions_dir: Path | None = None) -> SyncSummary:
        """Sync every ``*.jsonl`` file below ``sessions_dir`` (the source default if omitted)."""
        source = Source(source)
        directory = Path(sessions_dir) if sessions_dir else get_parser(source).default_dir
        t0 = time.monotonic()
        with otel.start_span("agent_usage.sync", {"source": source.value, "dir": str(directory)}):
            files = find_session_files(directory)
            if not files:
                logger.info("No %s session files found in %s", source.value, directory)
            summary = await self.sync_files(source, files)
        otel.record_sync_latency(source.value, (time.monotonic() - t0) * 1000)
        logger.info(
            "Synced %s: files=%d inserted=%d backfilled=%d already_tracked=%d errors=%d unidentified=%d",
            source.value,
            summary.filesSeen,
            summary.inserted,
            summary.backfilled,
            summary.alreadyTracked,
            summary.errors,
            summary.unidentified,
        )
        return summary
