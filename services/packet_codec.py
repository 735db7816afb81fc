"""
ICMP / ICMPv6 Echo packet codec.

Wire layout shared by both families::

    type (1) | code (1) | checksum (2) | identifier (2) | sequence (2) | payload (N)

All multi-byte fields are in network byte order. Only the IPv4 checksum is
computed here; the ICMPv6 checksum covers a pseudo-header and is filled in by
the kernel, so it is left as zero on encode and not verified on decode.
"""

from __future__ import annotations

import socket
import struct

from core.errors import DecodeError
from core.ping_types import EchoReply

ICMPV4_ECHO_REPLY = 0
ICMPV4_ECHO_REQUEST = 8
ICMPV6_ECHO_REQUEST = 128
ICMPV6_ECHO_REPLY = 129

ICMP_HEADER = struct.Struct("!BBHHH")
ICMP_HEADER_SIZE = ICMP_HEADER.size  # 8 bytes

IPV4_MIN_HEADER_SIZE = 20
IPV4_PROTOCOL_ICMP = 1

_FILLER_SUFFIX = " bottles of beer on the wall"


def internet_checksum(data: bytes) -> int:
    """RFC 1071 one's-complement checksum of ``data``."""
    if len(data) % 2:
        data = data + b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


def _echo_types(family: int) -> tuple[int, int]:
    """Return (request_type, reply_type) for an address family."""
    if family == socket.AF_INET:
        return ICMPV4_ECHO_REQUEST, ICMPV4_ECHO_REPLY
    if family == socket.AF_INET6:
        return ICMPV6_ECHO_REQUEST, ICMPV6_ECHO_REPLY
    raise ValueError(f"Unsupported address family: {family}")


def _encode_echo(icmp_type: int, identifier: int, sequence_number: int, payload: bytes, family: int) -> bytes:
    if not 0 <= identifier <= 0xFFFF:
        raise ValueError(f"identifier out of range: {identifier}")
    if not 0 <= sequence_number <= 0xFFFF:
        raise ValueError(f"sequence number out of range: {sequence_number}")

    message = ICMP_HEADER.pack(icmp_type, 0, 0, identifier, sequence_number) + bytes(payload)
    if family == socket.AF_INET:
        checksum = internet_checksum(message)
        message = message[:2] + struct.pack("!H", checksum) + message[4:]
    return message


def encode_echo_request(identifier: int, sequence_number: int, payload: bytes, family: int) -> bytes:
    """Build an Echo Request for ``family`` (AF_INET or AF_INET6)."""
    request_type, _ = _echo_types(family)
    return _encode_echo(request_type, identifier, sequence_number, payload, family)


def encode_echo_reply(identifier: int, sequence_number: int, payload: bytes, family: int) -> bytes:
    """Build an Echo Reply; used to answer or simulate probes."""
    _, reply_type = _echo_types(family)
    return _encode_echo(reply_type, identifier, sequence_number, payload, family)


def extract_icmp_message(buffer: bytes, family: int) -> bytes:
    """Return the ICMP portion of a received buffer.

    IPv4 raw sockets deliver the IP header in front of the ICMP message; its
    length in 32-bit words is the low nibble of the first byte. IPv6 sockets
    deliver the bare ICMPv6 message.
    """
    if family == socket.AF_INET6:
        return bytes(buffer)

    if len(buffer) < IPV4_MIN_HEADER_SIZE:
        raise DecodeError(f"IPv4 packet too short: {len(buffer)} bytes", reason=DecodeError.TRUNCATED)

    version = buffer[0] >> 4
    header_length = (buffer[0] & 0x0F) * 4
    if version != 4 or header_length < IPV4_MIN_HEADER_SIZE:
        raise DecodeError(
            f"Invalid IPv4 header (version={version}, length={header_length})",
            reason=DecodeError.BAD_IP_HEADER,
        )
    if buffer[9] != IPV4_PROTOCOL_ICMP:
        raise DecodeError(f"IPv4 protocol {buffer[9]} is not ICMP", reason=DecodeError.BAD_IP_HEADER)
    if len(buffer) < header_length:
        raise DecodeError("IPv4 header exceeds packet length", reason=DecodeError.TRUNCATED)
    return bytes(buffer[header_length:])


def checksum_is_valid(message: bytes) -> bool:
    """Check an ICMPv4 message's checksum field against its contents."""
    if len(message) < ICMP_HEADER_SIZE:
        return False
    received = struct.unpack_from("!H", message, 2)[0]
    zeroed = message[:2] + b"\x00\x00" + message[4:]
    return internet_checksum(zeroed) == received


def decode_echo_reply(buffer: bytes, family: int, source_address: str | None = None) -> EchoReply:
    """Decode and validate an Echo Reply.

    Raises:
        DecodeError: the buffer is truncated, fails checksum validation or
            is some other kind of ICMP message.
    """
    message = extract_icmp_message(buffer, family)
    if len(message) < ICMP_HEADER_SIZE:
        raise DecodeError(f"ICMP message too short: {len(message)} bytes", reason=DecodeError.TRUNCATED)

    if family == socket.AF_INET and not checksum_is_valid(message):
        raise DecodeError("ICMP checksum mismatch", reason=DecodeError.BAD_CHECKSUM)

    icmp_type, code, _, identifier, sequence_number = ICMP_HEADER.unpack_from(message)
    _, reply_type = _echo_types(family)
    if icmp_type != reply_type or code != 0:
        raise DecodeError(
            f"ICMP type={icmp_type} code={code} is not an echo reply",
            reason=DecodeError.NOT_ECHO_REPLY,
        )

    return EchoReply(
        icmp_type=icmp_type,
        identifier=identifier,
        sequence_number=sequence_number,
        payload=message[ICMP_HEADER_SIZE:],
        source_address=source_address,
    )


def default_payload(sequence_number: int, size: int = 56) -> bytes:
    """Implementation-defined filler used when the caller supplies no payload."""
    countdown = 99 - (sequence_number % 100)
    text = f"{countdown:>28}{_FILLER_SUFFIX}".encode("ascii")
    if size <= len(text):
        return text[:size]
    return text + b"\x00" * (size - len(text))
