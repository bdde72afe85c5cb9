"""
Prometheus metrics for the sync loop.
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

CYCLES = Counter(
    "node_life_support_cycles_total",
    "Completed or aborted sync cycles",
    ["result"],
)
NODE_SYNCS = Counter(
    "node_life_support_node_syncs_total",
    "Per-node sync outcomes",
    ["result"],
)
PATCH_ERRORS = Counter(
    "node_life_support_patch_errors_total",
    "Failed patches by record",
    ["step"],
)
CYCLE_LATENCY = Histogram(
    "node_life_support_cycle_duration_seconds",
    "Wall time of one sync cycle",
    buckets=(0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
)
LAST_SUCCESS = Gauge(
    "node_life_support_last_successful_cycle_timestamp_seconds",
    "Unix time of the last cycle that listed nodes successfully",
)


def start_metrics_server(port: int) -> bool:
    """Serve /metrics on ``port``. Returns False when disabled (port 0)."""
    if port <= 0:
        return False
    start_http_server(port)
    logger.info(f"Metrics server listening on :{port}")
    return True
