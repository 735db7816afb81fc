"""
Probe socket: one ICMP socket bound to a resolved address family.

IPv4 uses a raw socket, which delivers the IP header in front of every
received ICMP message. IPv6 uses an ICMPv6 datagram socket, which delivers
bare ICMPv6 messages and rewrites the echo identifier to a kernel-assigned
value (see ``kernel_identifier``).
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Callable, Optional

from core.errors import SendError, SocketError
from core.ping_types import Address

RECEIVE_BUFFER_SIZE = 65535

DatagramCallback = Callable[[bytes, Optional[str]], None]
ErrorCallback = Callable[[SocketError], None]


class ProbeSocket:
    """Non-blocking ICMP socket driven by the event loop's reader callbacks."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._sock: socket.socket | None = None
        self._address: Address | None = None
        self._on_datagram: DatagramCallback | None = None
        self._on_error: ErrorCallback | None = None
        self._kernel_identifier: int | None = None
        self._fd = -1

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    @property
    def kernel_identifier(self) -> int | None:
        """Echo identifier the kernel stamps on outgoing requests, if any."""
        return self._kernel_identifier

    def _create_socket(self, family: int) -> socket.socket:
        if family == socket.AF_INET6:
            return socket.socket(socket.AF_INET6, socket.SOCK_DGRAM, socket.IPPROTO_ICMPV6)
        return socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP)

    def open(self, address: Address, on_datagram: DatagramCallback, on_error: ErrorCallback) -> None:
        """Create the socket for ``address.family`` and start watching it.

        Raises:
            SocketError: permission-denied without raw socket privilege,
                creation-failed for any other OS error.
        """
        if self._sock is not None:
            raise SocketError("Probe socket already open", reason=SocketError.CREATION_FAILED)

        loop = self._loop or asyncio.get_running_loop()
        try:
            sock = self._create_socket(address.family)
        except PermissionError as exc:
            raise SocketError(
                "Opening an ICMP socket requires elevated privileges",
                reason=SocketError.PERMISSION_DENIED,
            ) from exc
        except OSError as exc:
            raise SocketError(f"Cannot create ICMP socket: {exc}", reason=SocketError.CREATION_FAILED) from exc

        try:
            sock.setblocking(False)
            if sock.type == socket.SOCK_DGRAM:
                bind_host = "::" if address.family == socket.AF_INET6 else "0.0.0.0"
                sock.bind((bind_host, 0))
                port = sock.getsockname()[1] & 0xFFFF
                # Some stacks (Darwin) leave the port at 0 and keep our identifier
                self._kernel_identifier = port or None
            loop.add_reader(sock.fileno(), self._handle_readable)
        except OSError as exc:
            sock.close()
            self._kernel_identifier = None
            raise SocketError(f"Cannot prepare ICMP socket: {exc}", reason=SocketError.CREATION_FAILED) from exc

        self._loop = loop
        self._sock = sock
        self._fd = sock.fileno()
        self._address = address
        self._on_datagram = on_datagram
        self._on_error = on_error
        logging.debug(f"Probe socket open for {address} (fd={sock.fileno()})")

    def send(self, packet: bytes) -> int:
        """Transmit one packet without blocking.

        Raises:
            SendError: the send failed or was truncated; nothing is retried.
        """
        if self._sock is None or self._address is None:
            raise SendError("Probe socket is not open", reason=SendError.SEND_FAILED)

        try:
            sent = self._sock.sendto(packet, self._address.sockaddr)
        except OSError as exc:
            raise SendError(f"sendto failed: {exc}", reason=SendError.SEND_FAILED) from exc

        if sent != len(packet):
            raise SendError(f"Sent {sent} of {len(packet)} bytes", reason=SendError.PARTIAL_SEND)
        return sent

    def _handle_readable(self) -> None:
        """One non-blocking receive per readiness notification."""
        if self._sock is None:
            return

        try:
            data, source = self._sock.recvfrom(RECEIVE_BUFFER_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            # Any other receive error leaves the descriptor unusable
            logging.error(f"Probe socket receive failed (errno={exc.errno}): {exc}")
            if self._on_error is not None:
                self._on_error(SocketError(f"recvfrom failed: {exc}", reason=SocketError.DESCRIPTOR_INVALID))
            return

        source_host = source[0] if isinstance(source, tuple) and source else None
        if self._on_datagram is not None:
            self._on_datagram(data, source_host)

    def close(self) -> None:
        """Release the socket. Safe to call more than once."""
        sock, self._sock = self._sock, None
        self._on_datagram = None
        self._on_error = None
        if sock is None:
            return

        if self._loop is not None:
            try:
                self._loop.remove_reader(self._fd)
            except (ValueError, OSError) as exc:
                logging.debug(f"remove_reader failed: {exc}")
        sock.close()
        self._fd = -1
        logging.debug("Probe socket closed")
