"""Parse Codex rollout JSONL logs into ParsedSession models."""
from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from agent_usage.date_utils import parse_timestamp
from agent_usage.models import ParsedSession, SessionMessage, Source, ToolCallRecord
from agent_usage.parsers.jsonl import int_field, read_entries, str_field
from agent_usage.pricing import estimate_cost

_TEXT_CONTENT_TYPES = {"output_text", "input_text"}
_INPUT_ROLES = {"user", "developer"}
_CHARS_PER_TOKEN = 4

# token_count usage key -> TokenUsage field
_TOKEN_COUNT_FIELDS = {
    "input_tokens": "input",
    "cached_input_tokens": "cacheRead",
    "output_tokens": "output",
    "reasoning_output_tokens": "reasoning",
    "total_tokens": "total",
}


def _message_text(content: Any) -> str:
    if not isinstance(content, list):
        return ""
    parts = []
    for item in content:
        if str_field(item, "type") in _TEXT_CONTENT_TYPES:
            parts.append(str_field(item, "text"))
    return "".join(parts)


def _tool_arguments(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def _apply_session_meta(session: ParsedSession, payload: dict[str, Any]) -> datetime | None:
    session_id = str_field(payload, "id")
    if session_id and not session.externalId:
        session.externalId = session_id
    cwd = str_field(payload, "cwd")
    if cwd:
        session.projectPath = cwd
    provider = str_field(payload, "model_provider")
    if provider:
        session.provider = provider
    originator = str_field(payload, "originator")
    if originator:
        session.model = originator
    return parse_timestamp(payload.get("timestamp"))


def _apply_token_count(session: ParsedSession, payload: dict[str, Any]) -> None:
    info = payload.get("info")
    usage = info.get("total_token_usage") if isinstance(info, dict) else None
    if not isinstance(usage, dict):
        return
    for key, field in _TOKEN_COUNT_FIELDS.items():
        value = int_field(usage, key)
        if value is not None:
            setattr(session.tokens, field, value)


def estimate_tokens(session: ParsedSession) -> None:
    """Fill input/output/total from transcript length at four characters per token."""
    input_chars = 0
    output_chars = 0
    for message in session.messages:
        if message.role in _INPUT_ROLES:
            input_chars += len(message.content)
        else:
            output_chars += len(message.content)

    session.tokens.input = input_chars // _CHARS_PER_TOKEN
    session.tokens.output = output_chars // _CHARS_PER_TOKEN
    session.tokens.total = session.tokens.input + session.tokens.output


def parse_session_file(path: Path) -> ParsedSession:
    """Parse a Codex session log.

    ``session_meta`` supplies identity, ``turn_context`` the authoritative
    model, ``response_item`` messages the transcript and ``event_msg``
    tool calls plus running token totals. Without a non-zero
    ``token_count`` total the tokens are estimated from the transcript.
    """
    entries = read_entries(path)
    session = ParsedSession(source=Source.CODEX)

    first_ts: datetime | None = None
    last_ts: datetime | None = None
    meta_started_at: datetime | None = None

    for entry in entries:
        ts = entry.timestamp
        if first_ts is None:
            first_ts = ts
        last_ts = ts

        payload = entry.data.get("payload")
        if not isinstance(payload, dict):
            continue

        if entry.type == "session_meta":
            meta_started_at = _apply_session_meta(session, payload) or meta_started_at

        elif entry.type == "turn_context":
            model = str_field(payload, "model")
            if model:
                session.model = model

        elif entry.type == "response_item":
            if str_field(payload, "type") != "message":
                continue
            content = _message_text(payload.get("content"))
            if content:
                session.messages.append(
                    SessionMessage(role=str_field(payload, "role"), content=content, timestamp=ts)
                )

        elif entry.type == "event_msg":
            event_type = str_field(payload, "type")
            if event_type == "tool_use":
                # Results are never correlated back onto the call.
                session.toolCalls.append(
                    ToolCallRecord(
                        toolName=str_field(payload, "name"),
                        arguments=_tool_arguments(payload.get("input")),
                        timestamp=ts,
                    )
                )
            elif event_type == "token_count":
                _apply_token_count(session, payload)

    session.startedAt = first_ts or meta_started_at
    session.endedAt = last_ts

    if session.tokens.total == 0:
        estimate_tokens(session)
    session.cost = estimate_cost(session.tokens, Source.CODEX)
    return session
