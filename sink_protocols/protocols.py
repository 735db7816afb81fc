"""
Ping event sink protocol.

Defines the observer interface a ``PingSession`` reports to. The session
depends on this abstraction rather than on any concrete front end, so the
same engine drives the CLI, a metrics decorator or a test recorder.
"""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING, runtime_checkable

if TYPE_CHECKING:
    from core.errors import PingError, SendError
    from core.ping_types import Address
    from core.session import PingSession


@runtime_checkable
class PingEventSink(Protocol):
    """
    Protocol defining the six events of a ping session.
    
    A session holds exactly one sink for its lifetime. Events are delivered
    on the event loop thread, in the order the underlying notifications occur.
    No event is delivered after ``PingSession.stop()`` returns.
    """

    def on_started(self, session: PingSession, address: Address) -> None:
        """
        Socket is open and the session is ready.
        
        The caller should begin sending (a session created with an interval
        sends its first request straight after this returns).
        """
        ...

    def on_failed(self, session: PingSession, error: PingError) -> None:
        """
        Session entered the failed state and is now inert.
        
        ``error`` is a ``ResolutionError`` or a ``SocketError``.
        """
        ...

    def on_sent(self, session: PingSession, packet: bytes, sequence_number: int) -> None:
        """One Echo Request was transmitted."""
        ...

    def on_send_failed(self, session: PingSession, packet: bytes, sequence_number: int, error: SendError) -> None:
        """Transmission of one Echo Request failed; the session stays ready."""
        ...

    def on_received(self, session: PingSession, packet: bytes, sequence_number: int, round_trip_time: float) -> None:
        """
        A matching Echo Reply arrived.
        
        ``packet`` is the ICMP message (no IP header) and ``round_trip_time``
        is measured in seconds from the matching send.
        """
        ...

    def on_unexpected_packet(self, session: PingSession, packet: bytes) -> None:
        """A datagram arrived that is not a reply to this session."""
        ...
