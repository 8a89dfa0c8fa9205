"""Observability helpers."""

from agent_usage.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_sync_outcome,
    record_sync_latency,
    record_parser_failure,
    record_token_cost,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_sync_outcome",
    "record_sync_latency",
    "record_parser_failure",
    "record_token_cost",
]
