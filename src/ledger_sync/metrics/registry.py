"""
Metric registry using prometheus_client.

Provides pre-defined metrics for a chain-sync client.
Exposes metrics in Prometheus text format via the /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for ledger-sync metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Chain Position
# -----------------------------------------------------------------------------

tip_slot = Gauge(
    "ledger_sync_tip_slot",
    "Slot of the remote tip reported by the latest instruction",
    registry=REGISTRY,
)

tip_block_no = Gauge(
    "ledger_sync_tip_block_no",
    "Block height of the remote tip reported by the latest instruction",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Pipeline
# -----------------------------------------------------------------------------

requests_in_flight = Gauge(
    "ledger_sync_requests_in_flight",
    "RequestNext messages sent but not yet answered",
    registry=REGISTRY,
)

requests_sent = Counter(
    "ledger_sync_request_next_sent_total",
    "Total RequestNext messages sent",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Dispatch
# -----------------------------------------------------------------------------

instructions_dispatched = Counter(
    "ledger_sync_instructions_total",
    "Instructions delivered to handlers",
    ["kind"],
    registry=REGISTRY,
)

messages_dropped = Counter(
    "ledger_sync_messages_dropped_total",
    "RequestNext responses dropped because they could not be classified",
    registry=REGISTRY,
)

handler_errors = Counter(
    "ledger_sync_handler_errors_total",
    "Handler invocations that raised",
    ["kind"],
    registry=REGISTRY,
)

handler_duration_seconds = Histogram(
    "ledger_sync_handler_duration_seconds",
    "Time spent in a handler invocation",
    ["kind"],
    registry=REGISTRY,
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1, 5),
)

# -----------------------------------------------------------------------------
# One-shot Requests
# -----------------------------------------------------------------------------

queries_total = Counter(
    "ledger_sync_queries_total",
    "One-shot requests by method and outcome",
    ["method", "outcome"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output.
    """
    return generate_latest(REGISTRY)
