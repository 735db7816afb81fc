"""
Data models for the probing engine.

Contains the address family configuration, resolved addresses, the
request/reply records and the session state enum.
"""

from __future__ import annotations

import socket
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AddressStyle(Enum):
    """Which resolved address family a session accepts."""
    ANY = "any"
    ICMPV4 = "ipv4"
    ICMPV6 = "ipv6"

    @classmethod
    def from_flags(cls, force_ipv4: bool = False, force_ipv6: bool = False) -> AddressStyle:
        """Map the two command-line force flags onto a style.

        A single explicit family wins; no flags or both flags mean ANY.
        """
        if force_ipv4 and not force_ipv6:
            return cls.ICMPV4
        if force_ipv6 and not force_ipv4:
            return cls.ICMPV6
        return cls.ANY

    @classmethod
    def from_name(cls, name: str) -> AddressStyle:
        return cls(name.strip().lower())

    @property
    def family(self) -> int | None:
        """Socket family required by this style, or None for any."""
        if self is AddressStyle.ICMPV4:
            return socket.AF_INET
        if self is AddressStyle.ICMPV6:
            return socket.AF_INET6
        return None


@dataclass(frozen=True)
class Address:
    """Family-tagged endpoint produced by resolution."""
    family: int
    host: str
    sockaddr: tuple[Any, ...]

    @property
    def is_ipv6(self) -> bool:
        return self.family == socket.AF_INET6

    def __str__(self) -> str:
        return self.host


@dataclass
class EchoRequest:
    """Outstanding Echo Request owned by a session."""
    identifier: int
    sequence_number: int
    payload: bytes
    send_time: float


@dataclass(frozen=True)
class EchoReply:
    """Echo Reply decoded from a received datagram."""
    icmp_type: int
    identifier: int
    sequence_number: int
    payload: bytes
    source_address: str | None = None


class SessionState(Enum):
    """Lifecycle states of a ping session."""
    IDLE = "idle"
    RESOLVING = "resolving"
    READY = "ready"
    STOPPED = "stopped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.STOPPED, SessionState.FAILED)
