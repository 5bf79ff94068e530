"""
Metrics utilities for the Storage Watcher.

This module defines the Prometheus metrics recorded by watchers and
storage backends, and a helper to expose them over HTTP.
"""

import structlog
from prometheus_client import Counter, Histogram, start_http_server

logger = structlog.get_logger(__name__)

# Watcher metrics
WATCHER_TICKS = Counter(
    "watcher_ticks_total",
    "Total number of metadata checks performed by watchers",
    ["uri"],
)
WATCHER_EVENTS = Counter(
    "watcher_events_total",
    "Total number of change events delivered to listeners",
    ["uri", "event"],
)
WATCHER_STOPS = Counter(
    "watcher_stops_total",
    "Total number of watcher terminations",
    ["uri", "reason"],
)

# Storage metrics
STORAGE_FETCH_TIME = Histogram(
    "watcher_fetch_time_seconds",
    "Time spent fetching object metadata in seconds",
    ["storage_type"],
)


def start_metrics_server(port: int) -> None:
    """
    Expose the default Prometheus registry on the given port.

    Args:
        port: TCP port for the metrics endpoint
    """
    start_http_server(port)
    logger.info("Metrics server started", port=port)
