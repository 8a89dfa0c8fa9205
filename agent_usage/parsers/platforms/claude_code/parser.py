"""Parse Claude Code JSONL transcripts into ParsedSession models."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from agent_usage.models import ParsedSession, SessionMessage, Source
from agent_usage.parsers.jsonl import int_field, read_entries, str_field
from agent_usage.pricing import estimate_cost

_PROVIDER = "anthropic"

# message.usage key -> TokenUsage field
_USAGE_FIELDS = {
    "input_tokens": "input",
    "output_tokens": "output",
    "cache_creation_input_tokens": "cacheCreation",
    "cache_read_input_tokens": "cacheRead",
}


def _block_text(block: Any) -> list[str]:
    block_type = str_field(block, "type")
    if block_type == "text":
        text = str_field(block, "text")
        return [text] if text else []
    if block_type == "thinking":
        thinking = str_field(block, "thinking")
        return [thinking] if thinking else []
    if block_type == "tool_use":
        name = str_field(block, "name")
        return [f"[tool_use:{name}]" if name else "[tool_use]"]
    if block_type == "tool_result":
        return [str_field(block, "content") or "[tool_result]"]
    return [value for value in (str_field(block, "text"), str_field(block, "content")) if value]


def extract_content(raw: Any) -> str:
    """Flatten a string, typed-block array or ``{"text"|"content": ...}`` object."""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, list):
        parts: list[str] = []
        for block in raw:
            parts.extend(_block_text(block))
        return "\n".join(parts)
    if isinstance(raw, dict):
        return str_field(raw, "text") or str_field(raw, "content")
    return ""


def _accumulate_usage(session: ParsedSession, usage: Any) -> None:
    if not isinstance(usage, dict):
        return
    for key, field in _USAGE_FIELDS.items():
        value = int_field(usage, key)
        if value:
            setattr(session.tokens, field, getattr(session.tokens, field) + value)


def parse_session_file(path: Path) -> ParsedSession:
    """Parse a Claude Code transcript.

    Identity (``sessionId``/``session_id``, ``cwd``/``project_path``) is
    taken from the first record that carries it. ``message.usage`` is
    per-turn, so token counts are summed across records.
    """
    entries = read_entries(path)
    session = ParsedSession(source=Source.CLAUDE, provider=_PROVIDER)

    first_ts: datetime | None = None
    last_ts: datetime | None = None

    for entry in entries:
        data = entry.data
        ts = entry.timestamp
        if first_ts is None:
            first_ts = ts
        if ts is not None:
            last_ts = ts

        session_id = str_field(data, "sessionId") or str_field(data, "session_id")
        if session_id and not session.externalId:
            session.externalId = session_id
        project = str_field(data, "cwd") or str_field(data, "project_path")
        if project and not session.projectPath:
            session.projectPath = project
        top_model = str_field(data, "model")
        if top_model and not session.model:
            session.model = top_model

        message = data.get("message")
        if isinstance(message, dict):
            content = extract_content(message.get("content"))
            role = str_field(message, "role")
            model = str_field(message, "model")
            if model:
                session.model = model
            _accumulate_usage(session, message.get("usage"))
        else:
            content = extract_content(data.get("content"))
            role = str_field(data, "role")

        if entry.type == "user":
            direct_input = str_field(data, "input")
            if direct_input:
                session.messages.append(SessionMessage(role="user", content=direct_input, timestamp=ts))
            elif content:
                session.messages.append(SessionMessage(role=role or "user", content=content, timestamp=ts))

        elif entry.type == "assistant":
            if content:
                session.messages.append(SessionMessage(role=role or "assistant", content=content, timestamp=ts))

        elif entry.type == "system":
            continue

        elif content and role:
            session.messages.append(SessionMessage(role=role, content=content, timestamp=ts))

    session.startedAt = first_ts
    session.endedAt = last_ts
    tokens = session.tokens
    tokens.total = tokens.input + tokens.output + tokens.cacheCreation + tokens.cacheRead
    session.cost = estimate_cost(tokens, Source.CLAUDE)
    return session
