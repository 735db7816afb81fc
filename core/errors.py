"""
Error taxonomy for the probing engine.

Fatal errors (``ResolutionError``, ``SocketError``) end a session and are
reported once through ``on_failed``. ``SendError`` and ``DecodeError`` are
reported per occurrence and leave the session running.
"""

from __future__ import annotations


class PingError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason

    def __str__(self) -> str:
        message = super().__str__()
        if self.reason and self.reason not in message:
            return f"{message} ({self.reason})"
        return message


class ResolutionError(PingError):
    """Host name could not be turned into a usable address."""

    HOST_NOT_FOUND = "host-not-found"
    NO_MATCHING_FAMILY = "no-matching-family"


class SocketError(PingError):
    """Probe socket could not be opened or became unusable."""

    PERMISSION_DENIED = "permission-denied"
    CREATION_FAILED = "creation-failed"
    DESCRIPTOR_INVALID = "descriptor-invalid"


class SendError(PingError):
    """A single Echo Request could not be transmitted."""

    SEND_FAILED = "send-failed"
    PARTIAL_SEND = "partial-send"


class DecodeError(PingError):
    """A received datagram is not a valid Echo Reply."""

    TRUNCATED = "truncated"
    BAD_IP_HEADER = "bad-ip-header"
    BAD_CHECKSUM = "bad-checksum"
    NOT_ECHO_REPLY = "not-echo-reply"


class SessionStateError(PingError):
    """Operation is not allowed in the session's current state."""
