from __future__ import annotations

"""Prometheus metrics initialization and management."""

import logging

from prometheus_client import Counter, Histogram, start_http_server

# Probe metrics
PROBES_SENT_TOTAL = Counter("echoprobe_probes_sent_total", "Echo requests transmitted")
PROBE_SEND_FAILURES_TOTAL = Counter("echoprobe_probe_send_failures_total", "Echo requests that failed to send")
PROBE_REPLIES_TOTAL = Counter("echoprobe_probe_replies_total", "Matching echo replies received")
UNEXPECTED_PACKETS_TOTAL = Counter("echoprobe_unexpected_packets_total", "Datagrams that were not replies for the session")
PROBE_RTT_MS = Histogram(
    "echoprobe_probe_rtt_ms",
    "Echo round-trip time ms",
    buckets=(1, 2, 5, 10, 20, 50, 100, 200, 500, 1000, 2000),
)

# Session metrics
SESSIONS_STARTED_TOTAL = Counter("echoprobe_sessions_started_total", "Sessions that reached ready")
SESSION_FAILURES_TOTAL = Counter("echoprobe_session_failures_total", "Sessions that failed", ["reason"])


def start_metrics_server(addr: str = "127.0.0.1", port: int = 8000) -> bool:
    """Start the Prometheus metrics HTTP endpoint in a background thread.

    Security:
        - Default binds to 127.0.0.1 (localhost only)
        - Set addr="0.0.0.0" to expose it on all interfaces

    Returns:
        True if the server started, False otherwise.
    """
    try:
        start_http_server(port, addr=addr)
    except OSError as exc:
        logging.error(f"Failed to start metrics server: {exc}")
        return False
    logging.info(f"Metrics server started on http://{addr}:{port}")
    return True
