"""Prometheus metrics for the chain-sync client."""

from .registry import (
    REGISTRY,
    generate_metrics,
    handler_duration_seconds,
    handler_errors,
    instructions_dispatched,
    messages_dropped,
    queries_total,
    requests_in_flight,
    requests_sent,
    tip_block_no,
    tip_slot,
)

__all__ = [
    "REGISTRY",
    "generate_metrics",
    "handler_duration_seconds",
    "handler_errors",
    "instructions_dispatched",
    "messages_dropped",
    "queries_total",
    "requests_in_flight",
    "requests_sent",
    "tip_block_no",
    "tip_slot",
]
