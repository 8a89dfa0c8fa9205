"""Line-level decoding shared by the session log parsers."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from agent_usage.date_utils import parse_timestamp

logger = logging.getLogger("agent_usage.parsers")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard JSON constant {name}")


class SessionFileError(Exception):
    """A session log could not be read at all."""

    def __init__(self, path: Path | str, reason: str):
        super().__init__(f"failed to read session file {path}: {reason}")
        self.path = str(path)
        self.reason = reason


@dataclass
class LogEntry:
    data: dict[str, Any]
    timestamp: datetime | None

    @property
    def type(self) -> str:
        value = self.data.get("type")
        return value if isinstance(value, str) else ""


def read_entries(path: Path) -> list[LogEntry]:
    """Decode every JSON-object line of ``path``.

    Blank lines, lines that are not a JSON object and lines using the
    non-standard NaN/Infinity constants are skipped. An
    unparsable ``timestamp`` leaves that entry's timestamp as None.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise SessionFileError(path, exc.strerror or str(exc)) from exc

    entries: list[LogEntry] = []
    skipped = 0
    for line in raw.split("\n"):
        line = line.strip()
        if not line:
            continue
        try:
            data = json.loads(line, parse_constant=_reject_constant)
        except ValueError:
            skipped += 1
            continue
        if not isinstance(data, dict):
            skipped += 1
            continue
        entries.append(LogEntry(data=data, timestamp=parse_timestamp(data.get("timestamp"))))

    if skipped:
        logger.debug("Skipped %d malformed lines in %s", skipped, path)
    return entries


def str_field(payload: Any, key: str) -> str:
    """String value of ``payload[key]``; empty for missing or non-string values."""
    if not isinstance(payload, dict):
        return ""
    value = payload.get(key)
    return value if isinstance(value, str) else ""


def int_field(payload: Any, key: str) -> int | None:
    """Integer value of a JSON number field; None when absent or not numeric."""
    if not isinstance(payload, dict):
        return None
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)
