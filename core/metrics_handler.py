"""
Metrics handler - updates Prometheus metrics.

Single Responsibility: Count session events and forward them unchanged.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from infrastructure import (
    PROBES_SENT_TOTAL,
    PROBE_SEND_FAILURES_TOTAL,
    PROBE_REPLIES_TOTAL,
    UNEXPECTED_PACKETS_TOTAL,
    PROBE_RTT_MS,
    SESSIONS_STARTED_TOTAL,
    SESSION_FAILURES_TOTAL,
)

if TYPE_CHECKING:
    from core.errors import PingError, SendError
    from core.ping_types import Address
    from core.session import PingSession
    from sink_protocols import PingEventSink


class MetricsEventSink:
    """
    Event sink decorator that updates Prometheus metrics.
    
    Wraps the caller's real sink; every event is counted, then delegated.
    """

    def __init__(self, inner: PingEventSink) -> None:
        self.inner = inner

    def on_started(self, session: PingSession, address: Address) -> None:
        SESSIONS_STARTED_TOTAL.inc()
        self.inner.on_started(session, address)

    def on_failed(self, session: PingSession, error: PingError) -> None:
        SESSION_FAILURES_TOTAL.labels(reason=error.reason or "unknown").inc()
        self.inner.on_failed(session, error)

    def on_sent(self, session: PingSession, packet: bytes, sequence_number: int) -> None:
        PROBES_SENT_TOTAL.inc()
        self.inner.on_sent(session, packet, sequence_number)

    def on_send_failed(self, session: PingSession, packet: bytes, sequence_number: int, error: SendError) -> None:
        PROBE_SEND_FAILURES_TOTAL.inc()
        self.inner.on_send_failed(session, packet, sequence_number, error)

    def on_received(self, session: PingSession, packet: bytes, sequence_number: int, round_trip_time: float) -> None:
        PROBE_REPLIES_TOTAL.inc()
        PROBE_RTT_MS.observe(round_trip_time * 1000.0)
        self.inner.on_received(session, packet, sequence_number, round_trip_time)

    def on_unexpected_packet(self, session: PingSession, packet: bytes) -> None:
        UNEXPECTED_PACKETS_TOTAL.inc()
        self.inner.on_unexpected_packet(session, packet)
