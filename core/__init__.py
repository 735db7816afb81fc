"""
Core of the ICMP Echo probing engine.

This package provides:
- PingSession: Session state machine (core.session)
- PeriodicScheduler: Event-loop timer driving periodic sends
- MetricsEventSink: Prometheus-counting sink decorator (core.metrics_handler)

Data models and the error taxonomy are re-exported here. ``core.session``
and ``core.metrics_handler`` are imported directly by callers because they
depend on the ``services`` and ``infrastructure`` packages.
"""

from .errors import (
    PingError,
    ResolutionError,
    SocketError,
    SendError,
    DecodeError,
    SessionStateError,
)
from .ping_types import (
    Address,
    AddressStyle,
    EchoRequest,
    EchoReply,
    SessionState,
)
from .scheduler import PeriodicScheduler

__all__ = [
    # Errors
    "PingError",
    "ResolutionError",
    "SocketError",
    "SendError",
    "DecodeError",
    "SessionStateError",
    # Data models
    "Address",
    "AddressStyle",
    "EchoRequest",
    "EchoReply",
    "SessionState",
    # Scheduling
    "PeriodicScheduler",
]
