from __future__ import annotations

"""Infrastructure layer for metrics endpoints."""

from .metrics import (
    PROBES_SENT_TOTAL,
    PROBE_SEND_FAILURES_TOTAL,
    PROBE_REPLIES_TOTAL,
    UNEXPECTED_PACKETS_TOTAL,
    PROBE_RTT_MS,
    SESSIONS_STARTED_TOTAL,
    SESSION_FAILURES_TOTAL,
    start_metrics_server,
)

__all__ = [
    "PROBES_SENT_TOTAL",
    "PROBE_SEND_FAILURES_TOTAL",
    "PROBE_REPLIES_TOTAL",
    "UNEXPECTED_PACKETS_TOTAL",
    "PROBE_RTT_MS",
    "SESSIONS_STARTED_TOTAL",
    "SESSION_FAILURES_TOTAL",
    "start_metrics_server",
]
