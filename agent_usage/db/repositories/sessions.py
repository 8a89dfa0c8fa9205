"""SQLite implementation of SessionRepository."""
from __future__ import annotations

from typing import Any, Iterable

import aiosqlite

from agent_usage.date_utils import to_epoch, to_optional_epoch
from agent_usage.models import (
    ParsedSession,
    SessionMessage,
    StoredMessage,
    StoredSession,
    StoredToolCall,
    ToolCallRecord,
)

MESSAGE_COUNT_SUBQUERY = (
    "COALESCE((SELECT COUNT(*) FROM messages m WHERE m.session_id = s.id), 0) AS message_count"
)

SESSION_COLUMNS = f"""
    s.id, s.external_id, s.source, s.project_path, s.model, s.provider,
    s.started_at, s.ended_at, s.input_tokens, s.output_tokens,
    s.cache_creation_tokens, s.cache_read_tokens, s.reasoning_tokens,
    s.total_tokens, s.cost, {MESSAGE_COUNT_SUBQUERY}
"""


def session_from_row(row: Any) -> StoredSession:
    """Map a row selected with ``SESSION_COLUMNS`` onto a StoredSession."""
    return StoredSession(
        id=row["id"],
        externalId=row["external_id"] or "",
        source=row["source"],
        projectPath=row["project_path"],
        model=row["model"],
        provider=row["provider"],
        startedAt=row["started_at"] or 0,
        endedAt=row["ended_at"],
        inputTokens=row["input_tokens"] or 0,
        outputTokens=row["output_tokens"] or 0,
        cacheCreationTokens=row["cache_creation_tokens"] or 0,
        cacheReadTokens=row["cache_read_tokens"] or 0,
        reasoningTokens=row["reasoning_tokens"] or 0,
        totalTokens=row["total_tokens"] or 0,
        cost=row["cost"] or 0.0,
        messageCount=row["message_count"] or 0,
    )


class SqliteSessionRepository:
    """Session rows plus their message and tool-call child rows.

    Write methods do not commit; the caller owns the transaction so a
    session and its children land (or roll back) together.
    """

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_by_external_id(self, external_id: str) -> StoredSession | None:
        async with self.db.execute(
            f"SELECT {SESSION_COLUMNS} FROM sessions s WHERE s.external_id = ?",
            (external_id,),
        ) as cur:
            row = await cur.fetchone()
        return session_from_row(row) if row else None

    async def count_messages(self, session_id: int) -> int:
        async with self.db.execute(
            "SELECT COUNT(*) FROM messages WHERE session_id = ?", (session_id,)
        ) as cur:
            row = await cur.fetchone()
        return row[0] if row else 0

    async def insert_session(self, session: ParsedSession) -> int:
        tokens = session.tokens
        async with self.db.execute(
            """INSERT INTO sessions (
                external_id, source, project_path, model, provider,
                started_at, ended_at,
                input_tokens, output_tokens, cache_creation_tokens,
                cache_read_tokens, reasoning_tokens, total_tokens, cost
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                session.externalId,
                session.source.value,
                session.projectPath,
                session.model,
                session.provider,
                to_epoch(session.startedAt),
                to_optional_epoch(session.endedAt),
                tokens.input,
                tokens.output,
                tokens.cacheCreation,
                tokens.cacheRead,
                tokens.reasoning,
                tokens.total,
                session.cost,
            ),
        ) as cur:
            return cur.lastrowid

    async def insert_messages(self, session_id: int, messages: Iterable[SessionMessage]) -> int:
        rows = [
            (session_id, m.role, m.content, to_epoch(m.timestamp))
            for m in messages
        ]
        if rows:
            await self.db.executemany(
                "INSERT INTO messages (session_id, role, content, timestamp) VALUES (?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    async def insert_tool_calls(self, session_id: int, tool_calls: Iterable[ToolCallRecord]) -> int:
        rows = [
            (session_id, t.toolName, t.arguments, t.result, to_epoch(t.timestamp))
            for t in tool_calls
        ]
        if rows:
            await self.db.executemany(
                """INSERT INTO tool_calls (session_id, tool_name, arguments, result, timestamp)
                   VALUES (?, ?, ?, ?, ?)""",
                rows,
            )
        return len(rows)

    async def list_all(self) -> list[StoredSession]:
        async with self.db.execute(
            f"SELECT {SESSION_COLUMNS} FROM sessions s ORDER BY s.started_at DESC"
        ) as cur:
            return [session_from_row(r) for r in await cur.fetchall()]

    async def count(self) -> int:
        async with self.db.execute("SELECT COUNT(*) FROM sessions") as cur:
            row = await cur.fetchone()
        return row[0] if row else 0

    async def get_messages(self, session_id: int) -> list[StoredMessage]:
        async with self.db.execute(
            """SELECT id, session_id, role, content, timestamp
               FROM messages WHERE session_id = ? ORDER BY timestamp, id""",
            (session_id,),
        ) as cur:
            rows = await cur.fetchall()
        return [
            StoredMessage(
                id=r["id"],
                sessionId=r["session_id"],
                role=r["role"],
                content=r["content"] or "",
                timestamp=r["timestamp"],
            )
            for r in rows
        ]

    async def get_tool_calls(self, session_id: int) -> list[StoredToolCall]:
        async with self.db.execute(
            """SELECT id, session_id, tool_name, arguments, result, timestamp
               FROM tool_calls WHERE session_id = ? ORDER BY timestamp, id""",
            (session_id,),
        ) as cur:
            rows = await cur.fetchall()
        return [
            StoredToolCall(
                id=r["id"],
                sessionId=r["session_id"],
                toolName=r["tool_name"],
                arguments=r["arguments"] or "",
                result=r["result"] or "",
                timestamp=r["timestamp"],
            )
            for r in rows
        ]
