"""
Metric registry using prometheus_client.

Provides pre-defined metrics for the relayer.
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

# Create a dedicated registry for relayer metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Watching
# -----------------------------------------------------------------------------

events_observed = Counter(
    "state_sync_events_observed_total",
    "Write events observed on source chains",
    ["chain"],
    registry=REGISTRY,
)

watcher_cursor = Gauge(
    "state_sync_watcher_next_block",
    "Next block each watcher will scan",
    ["chain"],
    registry=REGISTRY,
)

queue_depth = Gauge(
    "state_sync_queue_depth",
    "Observed events waiting for the dispatcher",
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Proofs
# -----------------------------------------------------------------------------

proofs_requested = Counter(
    "state_sync_proofs_requested_total",
    "Proof requests sent to the proof service",
    registry=REGISTRY,
)

proof_outcomes = Counter(
    "state_sync_proof_outcomes_total",
    "Proof requests by outcome",
    ["outcome"],
    registry=REGISTRY,
)

proof_latency = Histogram(
    "state_sync_proof_latency_seconds",
    "Time from proof request to proof available",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Delivery
# -----------------------------------------------------------------------------

pipelines_in_flight = Gauge(
    "state_sync_pipelines_in_flight",
    "Relay pipelines currently running",
    registry=REGISTRY,
)

submissions = Counter(
    "state_sync_submissions_total",
    "Submitted relay pipelines per destination, by outcome",
    ["destination", "outcome"],
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)
