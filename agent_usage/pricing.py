"""Static per-source price tables and cost estimation."""
from __future__ import annotations

from agent_usage.models import Source, TokenUsage

_PER_MILLION = 1_000_000

# USD per million tokens, keyed by TokenUsage field. Components missing
# from a table are not charged for that source.
PRICE_TABLES: dict[Source, dict[str, float]] = {
    Source.CODEX: {
        "input": 3.0,
        "output": 15.0,
    },
    Source.CLAUDE: {
        "input": 3.0,
        "cacheCreation": 3.75,
        "cacheRead": 0.30,
        "output": 15.0,
    },
}


def estimate_cost(tokens: TokenUsage, source: Source) -> float:
    """Best-effort USD cost of ``tokens`` at the static rates for ``source``."""
    cost = 0.0
    for component, rate in PRICE_TABLES[source].items():
        cost += getattr(tokens, component) * rate / _PER_MILLION
    return cost
