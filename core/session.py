"""
Ping session: the engine's aggregate root.

Sequences resolution -> socket setup -> ready -> (send/receive) -> stopped
or failed, and reports everything through a ``PingEventSink``.

All work happens on the event loop thread. ``stop()`` is synchronous: it
cancels a pending resolution, the send timer and the socket reader before
returning, and every callback re-checks the session state so that a
notification queued before the stop is dropped.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import os
from collections import OrderedDict
from typing import Any, Callable, TYPE_CHECKING

from config import (
    DNS_SERVERS,
    DNS_TIMEOUT,
    INTERVAL,
    MAX_OUTSTANDING_REQUESTS,
    PAYLOAD_SIZE,
    RESOLVER_BACKEND,
)
from core.errors import DecodeError, PingError, ResolutionError, SendError, SessionStateError, SocketError
from core.ping_types import Address, AddressStyle, EchoRequest, SessionState
from core.scheduler import PeriodicScheduler
from services.address_resolver import create_resolver
from services.packet_codec import (
    decode_echo_reply,
    default_payload,
    encode_echo_request,
    extract_icmp_message,
)
from services.probe_socket import ProbeSocket

if TYPE_CHECKING:
    from sink_protocols import PingEventSink

_session_ids = itertools.count()


def _default_identifier() -> int:
    """Identifier derived from the process id, distinct per session."""
    return (os.getpid() + next(_session_ids)) & 0xFFFF


class PingSession:
    """One ICMP Echo probing session against a single host."""

    def __init__(
        self,
        host_name: str,
        sink: PingEventSink,
        *,
        address_style: AddressStyle = AddressStyle.ANY,
        interval: float | None = INTERVAL,
        payload_size: int = PAYLOAD_SIZE,
        resolver: Any = None,
        socket_factory: Callable[[], ProbeSocket] = ProbeSocket,
        identifier: int | None = None,
        max_outstanding: int = MAX_OUTSTANDING_REQUESTS,
    ) -> None:
        if interval is not None and interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        if max_outstanding < 1:
            raise ValueError("max_outstanding must be at least 1")

        self.host_name = host_name
        self.sink = sink
        self._address_style = address_style
        self._interval = interval
        self._payload_size = payload_size
        self._resolver = resolver or create_resolver(RESOLVER_BACKEND, DNS_SERVERS, DNS_TIMEOUT)
        self._socket_factory = socket_factory
        self._identifier = (identifier if identifier is not None else _default_identifier()) & 0xFFFF
        self._max_outstanding = max_outstanding

        self._state = SessionState.IDLE
        self._address: Address | None = None
        self._socket: ProbeSocket | None = None
        self._scheduler: PeriodicScheduler | None = None
        self._resolve_task: asyncio.Task | None = None
        self._next_sequence_number = 0
        self._outstanding: OrderedDict[int, EchoRequest] = OrderedDict()

    # ── read-only state ──────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def address(self) -> Address | None:
        return self._address

    @property
    def identifier(self) -> int:
        return self._identifier

    @property
    def next_sequence_number(self) -> int:
        return self._next_sequence_number

    @property
    def outstanding_count(self) -> int:
        return len(self._outstanding)

    @property
    def interval(self) -> float | None:
        return self._interval

    @property
    def address_style(self) -> AddressStyle:
        return self._address_style

    @address_style.setter
    def address_style(self, value: AddressStyle) -> None:
        if self._state is not SessionState.IDLE:
            raise SessionStateError(f"Cannot change address style while {self._state.value}")
        self._address_style = value

    # ── lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Begin resolving the host. Results arrive through the sink.

        Must be called from a running event loop.
        """
        if self._state is not SessionState.IDLE:
            raise SessionStateError(f"Session already {self._state.value}")

        loop = asyncio.get_running_loop()
        self._state = SessionState.RESOLVING
        logging.info(f"Resolving {self.host_name} (style={self._address_style.value})")
        self._resolve_task = loop.create_task(self._resolve(), name=f"resolve-{self.host_name}")

    async def _resolve(self) -> None:
        try:
            address = await self._resolver.resolve(self.host_name, self._address_style)
        except ResolutionError as exc:
            if self._state is SessionState.RESOLVING:
                self._resolve_task = None
                self._fail(exc)
            return
        except Exception as exc:
            # Injected resolvers may raise anything; CancelledError still propagates
            if self._state is SessionState.RESOLVING:
                self._resolve_task = None
                error = ResolutionError(f"Cannot resolve {self.host_name}: {exc}", reason=ResolutionError.HOST_NOT_FOUND)
                error.__cause__ = exc
                self._fail(error)
            return

        if self._state is not SessionState.RESOLVING:
            return
        self._resolve_task = None
        self._open(address)

    def _open(self, address: Address) -> None:
        try:
            sock = self._socket_factory()
            sock.open(address, self._handle_datagram, self._handle_socket_error)
        except SocketError as exc:
            self._fail(exc)
            return
        except Exception as exc:
            error = SocketError(f"Cannot create ICMP socket: {exc}", reason=SocketError.CREATION_FAILED)
            error.__cause__ = exc
            self._fail(error)
            return

        self._address = address
        self._socket = sock
        if sock.kernel_identifier is not None:
            # Datagram ICMP sockets overwrite the identifier on send
            self._identifier = sock.kernel_identifier
        self._state = SessionState.READY
        logging.info(f"Pinging {self.host_name} ({address}) id={self._identifier}")

        self.sink.on_started(self, address)
        if self._state is not SessionState.READY or self._interval is None:
            return

        # First request goes out immediately, the scheduler drives the rest
        self.send()
        if self._state is SessionState.READY:
            self._scheduler = PeriodicScheduler()
            self._scheduler.arm(self._interval, self._send_periodic)

    def stop(self) -> None:
        """End the session. Synchronous and idempotent."""
        if self._state is SessionState.STOPPED:
            return
        previous = self._state
        self._teardown()
        self._state = SessionState.STOPPED
        logging.info(f"Session for {self.host_name} stopped (was {previous.value})")

    def _fail(self, error: PingError) -> None:
        self._teardown()
        self._state = SessionState.FAILED
        logging.error(f"Session for {self.host_name} failed: {error}")
        self.sink.on_failed(self, error)

    def _teardown(self) -> None:
        if self._scheduler is not None:
            self._scheduler.cancel()
            self._scheduler = None

        task, self._resolve_task = self._resolve_task, None
        if task is not None and not task.done():
            task.cancel()

        if self._socket is not None:
            self._socket.close()
            self._socket = None

        self._outstanding.clear()

    # ── sending ──────────────────────────────────────────────────────────

    def send(self, payload: bytes | None = None) -> int:
        """Transmit one Echo Request and return its sequence number.

        Failures are reported through ``on_send_failed``; the session stays
        ready either way.
        """
        if self._state is not SessionState.READY or self._socket is None or self._address is None:
            raise SessionStateError(f"Cannot send while {self._state.value}")

        sequence_number = self._next_sequence_number
        self._next_sequence_number = (sequence_number + 1) & 0xFFFF

        if payload is None:
            payload = default_payload(sequence_number, self._payload_size)
        packet = encode_echo_request(self._identifier, sequence_number, payload, self._address.family)

        try:
            self._socket.send(packet)
        except SendError as exc:
            logging.warning(f"#{sequence_number} send failed: {exc}")
            self.sink.on_send_failed(self, packet, sequence_number, exc)
            return sequence_number

        self._remember(EchoRequest(
            identifier=self._identifier,
            sequence_number=sequence_number,
            payload=bytes(payload),
            send_time=asyncio.get_running_loop().time(),
        ))
        logging.debug(f"#{sequence_number} sent ({len(packet)} bytes)")
        self.sink.on_sent(self, packet, sequence_number)
        return sequence_number

    def _send_periodic(self) -> None:
        if self._state is SessionState.READY:
            self.send()

    def _remember(self, request: EchoRequest) -> None:
        self._outstanding.pop(request.sequence_number, None)
        self._outstanding[request.sequence_number] = request
        while len(self._outstanding) > self._max_outstanding:
            # Oldest request is considered lost
            self._outstanding.popitem(last=False)

    # ── receiving ────────────────────────────────────────────────────────

    def _handle_datagram(self, data: bytes, source: str | None) -> None:
        if self._state is not SessionState.READY or self._address is None:
            return

        family = self._address.family
        try:
            reply = decode_echo_reply(data, family, source)
        except DecodeError as exc:
            logging.debug(f"Unexpected packet from {source} ({exc.reason}): {exc}")
            self.sink.on_unexpected_packet(self, bytes(data))
            return

        if reply.identifier != self._identifier:
            logging.debug(f"Unexpected packet from {source}: identifier {reply.identifier} != {self._identifier}")
            self.sink.on_unexpected_packet(self, bytes(data))
            return

        request = self._outstanding.pop(reply.sequence_number, None)
        if request is None:
            logging.debug(f"Unexpected packet from {source}: #{reply.sequence_number} not outstanding")
            self.sink.on_unexpected_packet(self, bytes(data))
            return

        round_trip_time = asyncio.get_running_loop().time() - request.send_time
        logging.debug(f"#{reply.sequence_number} received from {source} in {round_trip_time * 1000:.3f} ms")
        self.sink.on_received(self, extract_icmp_message(data, family), reply.sequence_number, round_trip_time)

    def _handle_socket_error(self, error: SocketError) -> None:
        if self._state is SessionState.READY:
            self._fail(error)

    def __repr__(self) -> str:
        return f"<PingSession host={self.host_name!r} state={self._state.value} id={self._identifier}>"


def start_session(
    host_name: str,
    address_style: AddressStyle,
    sink: PingEventSink,
    **kwargs: Any,
) -> PingSession:
    """Create a session, start it and hand it to the caller."""
    session = PingSession(host_name, sink, address_style=address_style, **kwargs)
    session.start()
    return session
