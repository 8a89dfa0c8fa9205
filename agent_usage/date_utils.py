"""Timestamp parsing and lookback-window helpers."""
from __future__ import annotations

import calendar
import re
from datetime import datetime, timedelta, timezone
from typing import Any

from agent_usage.models import Period

# RFC3339 with optional fractional seconds of any precision (nanosecond logs included).
_RFC3339_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an RFC3339 timestamp; None when absent or malformed."""
    if not isinstance(value, str):
        return None
    match = _RFC3339_RE.match(value.strip())
    if not match:
        return None
    day, clock, fraction, offset = match.groups()
    token = f"{day}T{clock}"
    if fraction:
        token += "." + fraction[:6].ljust(6, "0")
    token += "+00:00" if offset in ("Z", "z") else offset
    try:
        return datetime.fromisoformat(token)
    except ValueError:
        return None


def to_epoch(value: datetime | None) -> int:
    """Whole epoch seconds, floored; 0 for an absent timestamp."""
    if value is None:
        return 0
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return calendar.timegm(dt.astimezone(timezone.utc).timetuple())


def to_optional_epoch(value: datetime | None) -> int | None:
    if value is None:
        return None
    return to_epoch(value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def period_start(period: Period, now: datetime | None = None) -> int:
    """Epoch seconds at the start of the lookback window ending at ``now``."""
    current = now or utc_now()
    return to_epoch(current - timedelta(days=period.lookback_days))


def epoch_to_iso(value: int | None) -> str:
    if not value:
        return ""
    dt = datetime.fromtimestamp(value, tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")
