"""
Prometheus metrics for procflow.

Exposes engine metrics via an HTTP /metrics endpoint for Prometheus scraping.

Environment Variables:
    METRICS_ENABLED: Enable metrics server (true/false) - default: false
    METRICS_PORT: HTTP port for /metrics endpoint - default: 8080

Usage:
    from procflow.metrics import start_metrics_server, track_action

    start_metrics_server(enabled=True, port=8080)
    track_action("send_payment_success_email", "succeeded")
"""

import logging
import threading
from contextlib import contextmanager
from typing import Generator, Optional

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

EVENTS_APPENDED: Optional[Counter] = None
ACTIONS_TOTAL: Optional[Counter] = None
CONDITION_ERRORS: Optional[Counter] = None
FORCED_ACTIONS: Optional[Counter] = None
CORRUPT_PROCESSES: Optional[Counter] = None
REPLAY_DURATION: Optional[Histogram] = None

_metrics_initialized = False
_metrics_lock = threading.Lock()


def init_metrics() -> None:
    """
    Initialize metrics (call once at startup).

    Until this is called every track_* helper is a no-op.
    """
    global EVENTS_APPENDED, ACTIONS_TOTAL, CONDITION_ERRORS
    global FORCED_ACTIONS, CORRUPT_PROCESSES, REPLAY_DURATION
    global _metrics_initialized

    with _metrics_lock:
        if _metrics_initialized:
            return

        EVENTS_APPENDED = Counter(
            "procflow_events_appended_total",
            "Total number of events appended to process event logs",
            labelnames=["event_type"],
        )
        ACTIONS_TOTAL = Counter(
            "procflow_actions_total",
            "Action executions by outcome",
            labelnames=["action", "outcome"],
        )
        CONDITION_ERRORS = Counter(
            "procflow_condition_errors_total",
            "Conditions that raised and were treated as not met",
            labelnames=["event_type"],
        )
        FORCED_ACTIONS = Counter(
            "procflow_forced_actions_total",
            "Actions reset to pending through the force path",
            labelnames=["action"],
        )
        CORRUPT_PROCESSES = Counter(
            "procflow_corrupt_processes_total",
            "Replays that failed with a corruption error",
        )
        REPLAY_DURATION = Histogram(
            "procflow_replay_duration_seconds",
            "Duration of process replays in seconds",
            buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
        )

        _metrics_initialized = True
        logger.info("Prometheus metrics initialized")


def start_metrics_server(enabled: bool, port: int) -> None:
    """
    Start Prometheus metrics HTTP server in a daemon thread.

    Args:
        enabled: Whether to start the server (METRICS_ENABLED)
        port: HTTP port for /metrics (METRICS_PORT)
    """
    if not enabled:
        logger.info("Metrics server disabled (METRICS_ENABLED=false)")
        return

    init_metrics()

    try:
        start_http_server(port, addr="0.0.0.0")
        logger.info(f"Metrics server started on http://0.0.0.0:{port}/metrics")
    except OSError as e:
        logger.error(f"Failed to start metrics server: {e}")


def track_event(event_type: str) -> None:
    if EVENTS_APPENDED is not None:
        EVENTS_APPENDED.labels(event_type=event_type).inc()


def track_action(action: str, outcome: str) -> None:
    if ACTIONS_TOTAL is not None:
        ACTIONS_TOTAL.labels(action=action, outcome=outcome).inc()


def track_condition_error(event_type: str) -> None:
    if CONDITION_ERRORS is not None:
        CONDITION_ERRORS.labels(event_type=event_type).inc()


def track_forced_action(action: str) -> None:
    if FORCED_ACTIONS is not None:
        FORCED_ACTIONS.labels(action=action).inc()


def track_corruption() -> None:
    if CORRUPT_PROCESSES is not None:
        CORRUPT_PROCESSES.inc()


@contextmanager
def track_replay_duration() -> Generator[None, None, None]:
    if REPLAY_DURATION is None:
        yield
        return

    with REPLAY_DURATION.time():
        yield
