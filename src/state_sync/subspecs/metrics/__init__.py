"""
Metrics module for observability.

Provides counters, gauges, and histograms for tracking relayer behavior.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    events_observed,
    generate_metrics,
    pipelines_in_flight,
    proof_latency,
    proof_outcomes,
    proofs_requested,
    queue_depth,
    submissions,
    watcher_cursor,
)

__all__ = [
    "REGISTRY",
    "events_observed",
    "generate_metrics",
    "pipelines_in_flight",
    "proof_latency",
    "proof_outcomes",
    "proofs_requested",
    "queue_depth",
    "submissions",
    "watcher_cursor",
]
