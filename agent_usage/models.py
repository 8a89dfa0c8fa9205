"""Pydantic models shared by the parsers, the store and the display layer."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Source(str, Enum):
    CODEX = "codex"
    CLAUDE = "claude"


class Period(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def lookback_days(self) -> int:
        return _PERIOD_LOOKBACK_DAYS[self]


_PERIOD_LOOKBACK_DAYS = {Period.DAY: 1, Period.WEEK: 7, Period.MONTH: 30}


class SyncOutcome(str, Enum):
    INSERTED = "inserted"
    BACKFILLED = "backfilled"
    ALREADY_TRACKED = "already_tracked"
    ERROR = "error"


# ── Parsed (ephemeral) session ─────────────────────────────────────

class TokenUsage(BaseModel):
    input: int = 0
    output: int = 0
    cacheCreation: int = 0
    cacheRead: int = 0
    reasoning: int = 0
    total: int = 0


class SessionMessage(BaseModel):
    role: str = ""
    content: str = ""
    timestamp: Optional[datetime] = None


class ToolCallRecord(BaseModel):
    toolName: str = ""
    arguments: str = ""
    result: str = ""
    timestamp: Optional[datetime] = None


class ParsedSession(BaseModel):
    externalId: str = ""
    source: Source
    projectPath: str = ""
    model: str = ""
    provider: str = ""
    startedAt: Optional[datetime] = None
    endedAt: Optional[datetime] = None
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    cost: float = 0.0
    messages: list[SessionMessage] = Field(default_factory=list)
    toolCalls: list[ToolCallRecord] = Field(default_factory=list)


# ── Stored (persistent) rows ───────────────────────────────────────

class StoredSession(BaseModel):
    id: int
    externalId: str = ""
    source: Source
    projectPath: Optional[str] = None
    model: Optional[str] = None
    provider: Optional[str] = None
    startedAt: int = 0
    endedAt: Optional[int] = None
    inputTokens: int = 0
    outputTokens: int = 0
    cacheCreationTokens: int = 0
    cacheReadTokens: int = 0
    reasoningTokens: int = 0
    totalTokens: int = 0
    cost: float = 0.0
    messageCount: int = 0

    @property
    def durationSeconds(self) -> int:
        if self.endedAt is None or self.endedAt <= self.startedAt:
            return 0
        return self.endedAt - self.startedAt


class StoredMessage(BaseModel):
    id: int
    sessionId: int
    role: str
    content: str = ""
    timestamp: int = 0


class StoredToolCall(BaseModel):
    id: int
    sessionId: int
    toolName: str
    arguments: str = ""
    result: str = ""
    timestamp: int = 0


# ── Aggregation results ────────────────────────────────────────────

class ModelUsage(BaseModel):
    model: str
    sessionCount: int = 0


class AggregatedStats(BaseModel):
    totalSessionTime: int = 0
    totalInputTokens: int = 0
    totalOutputTokens: int = 0
    totalCacheCreation: int = 0
    totalCacheRead: int = 0
    totalTokens: int = 0
    totalCost: float = 0.0
    sessionCount: int = 0


class DailySummary(BaseModel):
    date: str
    sessionCount: int = 0
    totalTime: int = 0
    totalTokens: int = 0


class WeeklySummary(BaseModel):
    weekStart: str
    sessionCount: int = 0
    totalTime: int = 0
    totalTokens: int = 0


class PerSourceStats(BaseModel):
    source: Source
    sessionCount: int = 0
    totalInputTokens: int = 0
    totalOutputTokens: int = 0
    totalCacheCreation: int = 0
    totalCacheRead: int = 0
    totalTokens: int = 0
    totalCost: float = 0.0
    totalTime: int = 0
    totalMessages: int = 0


class UsageTotals(BaseModel):
    source: Source
    totalSessions: int = 0
    totalInputTokens: int = 0
    totalOutputTokens: int = 0


class UsageStats(BaseModel):
    lastSession: Optional[StoredSession] = None
    recentSessions: list[StoredSession] = Field(default_factory=list)
    topModels: list[ModelUsage] = Field(default_factory=list)
    dailySummaries: list[DailySummary] = Field(default_factory=list)
    weeklySummaries: list[WeeklySummary] = Field(default_factory=list)
    totalSessionTime: int = 0
    totalInputTokens: int = 0
    totalOutputTokens: int = 0
    totalCacheCreation: int = 0
    totalCacheRead: int = 0
    totalTokens: int = 0
    totalCost: float = 0.0
    totalMessages: int = 0
    totalToolCalls: int = 0
    uniqueProjects: int = 0
    sessionCount: int = 0
    lastSyncTime: int = 0


# ── Sync ───────────────────────────────────────────────────────────

class SyncSummary(BaseModel):
    source: Source
    filesSeen: int = 0
    inserted: int = 0
    backfilled: int = 0
    alreadyTracked: int = 0
    errors: int = 0
    unidentified: int = 0

    def record(self, outcome: SyncOutcome) -> None:
        if outcome is SyncOutcome.INSERTED:
            self.inserted += 1
        elif outcome is SyncOutcome.BACKFILLED:
            self.backfilled += 1
        elif outcome is SyncOutcome.ALREADY_TRACKED:
            self.alreadyTracked += 1
        else:
            self.errors += 1

    @property
    def processed(self) -> int:
        return self.inserted + self.backfilled + self.alreadyTracked
