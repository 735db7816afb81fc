from __future__ import annotations

import asyncio
import socket
import struct
import sys
import unittest
from pathlib import Path

# Allow running this file directly: `python tests/test_session.py`
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from core.errors import ResolutionError, SendError, SessionStateError, SocketError
from core.ping_types import Address, AddressStyle, SessionState
from core.session import PingSession, start_session
from services.address_resolver import select_address
from services.packet_codec import encode_echo_reply, internet_checksum
from sink_protocols import PingEventSink

V4 = Address(socket.AF_INET, "192.0.2.1", ("192.0.2.1", 0))
V6 = Address(socket.AF_INET6, "2001:db8::1", ("2001:db8::1", 0, 0, 0))


def ipv4_wrap(message: bytes) -> bytes:
    header = bytearray(20)
    header[0] = 0x45
    struct.pack_into("!H", header, 2, 20 + len(message))
    header[9] = 1
    return bytes(header) + message


class RecordingSink:
    """Event sink that records every event in order."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    def names(self) -> list[str]:
        return [event[0] for event in self.events]

    def of(self, name: str) -> list[tuple]:
        return [event for event in self.events if event[0] == name]

    def on_started(self, session, address):
        self.events.append(("started", address))

    def on_failed(self, session, error):
        self.events.append(("failed", error))

    def on_sent(self, session, packet, sequence_number):
        self.events.append(("sent", sequence_number, packet))

    def on_send_failed(self, session, packet, sequence_number, error):
        self.events.append(("send_failed", sequence_number, error))

    def on_received(self, session, packet, sequence_number, round_trip_time):
        self.events.append(("received", sequence_number, packet, round_trip_time))

    def on_unexpected_packet(self, session, packet):
        self.events.append(("unexpected", packet))


class FakeResolver:
    def __init__(self, candidates=(V4,), error=None, gate: asyncio.Event | None = None) -> None:
        self.candidates = list(candidates)
        self.error = error
        self.gate = gate
        self.calls: list[tuple[str, AddressStyle]] = []

    async def resolve(self, host_name, address_style):
        self.calls.append((host_name, address_style))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return select_address(host_name, self.candidates, address_style)


class FakeProbeSocket:
    def __init__(self, kernel_identifier=None, open_error=None) -> None:
        self.kernel_identifier = kernel_identifier
        self.open_error = open_error
        self.send_error: SendError | None = None
        self.sent: list[bytes] = []
        self.address = None
        self.closed = False
        self.on_datagram = None
        self.on_error = None

    def open(self, address, on_datagram, on_error):
        if self.open_error is not None:
            raise self.open_error
        self.address = address
        self.on_datagram = on_datagram
        self.on_error = on_error

    def send(self, packet):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(packet)
        return len(packet)

    def close(self):
        self.closed = True

    def deliver(self, data, source="192.0.2.1"):
        self.on_datagram(data, source)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    def make_session(self, resolver=None, sock=None, **kwargs) -> PingSession:
        self.sink = RecordingSink()
        self.resolver = resolver or FakeResolver()
        self.sock = sock or FakeProbeSocket()
        kwargs.setdefault("interval", None)
        kwargs.setdefault("identifier", 0x4242)
        session = PingSession(
            "target.example",
            self.sink,
            resolver=self.resolver,
            socket_factory=lambda: self.sock,
            **kwargs,
        )
        self.addCleanup(session.stop)
        return session

    def reply(self, sequence_number, identifier=0x4242, payload=b"pong"):
        return ipv4_wrap(encode_echo_reply(identifier, sequence_number, payload, socket.AF_INET))


class TestSessionLifecycle(SessionTestCase):
    async def test_start_sends_first_ping_before_any_timer(self):
        session = self.make_session(interval=60.0)
        self.assertEqual(session.state, SessionState.IDLE)

        session.start()
        self.assertEqual(session.state, SessionState.RESOLVING)
        await settle()

        self.assertEqual(session.state, SessionState.READY)
        self.assertEqual(self.sink.names(), ["started", "sent"])
        self.assertEqual(self.sink.events[0][1], V4)
        self.assertEqual(self.sink.events[1][1], 0)
        self.assertEqual(session.address, V4)
        self.assertEqual(self.resolver.calls, [("target.example", AddressStyle.ANY)])

    async def test_timer_drives_subsequent_sends(self):
        session = self.make_session(interval=0.01)
        session.start()
        await asyncio.sleep(0.08)
        session.stop()

        sequences = [event[1] for event in self.sink.of("sent")]
        self.assertGreaterEqual(len(sequences), 3)
        self.assertEqual(sequences, list(range(len(sequences))))

    async def test_no_events_after_stop(self):
        session = self.make_session(interval=0.01)
        session.start()
        await asyncio.sleep(0.03)

        session.stop()
        count = len(self.sink.events)
        self.assertTrue(self.sock.closed)
        self.assertEqual(session.state, SessionState.STOPPED)

        # A datagram notification already queued before stop returned
        self.sock.deliver(self.reply(0))
        await asyncio.sleep(0.05)
        self.assertEqual(len(self.sink.events), count)

    async def test_stop_during_resolution_drops_completion(self):
        gate = asyncio.Event()
        session = self.make_session(resolver=FakeResolver(gate=gate), interval=0.01)
        session.start()
        await settle()

        session.stop()
        gate.set()
        await asyncio.sleep(0.03)

        self.assertEqual(self.sink.events, [])
        self.assertEqual(session.state, SessionState.STOPPED)
        self.assertIsNone(self.sock.address)

    async def test_stop_is_idempotent_from_any_state(self):
        session = self.make_session()
        session.stop()
        session.stop()
        self.assertEqual(session.state, SessionState.STOPPED)
        with self.assertRaises(SessionStateError):
            session.start()

    async def test_sink_may_stop_inside_started(self):
        session = self.make_session(interval=0.01)
        self.sink.on_started = lambda s, address: s.stop()
        session.start()
        await asyncio.sleep(0.03)

        self.assertEqual(self.sink.events, [])
        self.assertEqual(self.sock.sent, [])

    async def test_address_style_is_fixed_after_start(self):
        session = self.make_session()
        session.address_style = AddressStyle.ICMPV4
        session.start()
        with self.assertRaises(SessionStateError):
            session.address_style = AddressStyle.ICMPV6
        await settle()
        self.assertEqual(self.resolver.calls[0][1], AddressStyle.ICMPV4)

    async def test_start_session_helper(self):
        self.sink = RecordingSink()
        session = start_session(
            "target.example",
            AddressStyle.ANY,
            self.sink,
            resolver=FakeResolver(),
            socket_factory=FakeProbeSocket,
            interval=None,
        )
        self.addCleanup(session.stop)
        await settle()
        self.assertEqual(self.sink.names(), ["started"])

    def test_sink_protocol(self):
        self.assertIsInstance(RecordingSink(), PingEventSink)


class TestSessionFailures(SessionTestCase):
    async def test_forced_ipv4_against_ipv6_only_host(self):
        session = self.make_session(resolver=FakeResolver(candidates=[V6]), address_style=AddressStyle.ICMPV4)
        session.start()
        await settle()

        self.assertEqual(self.sink.names(), ["failed"])
        error = self.sink.events[0][1]
        self.assertIsInstance(error, ResolutionError)
        self.assertEqual(error.reason, ResolutionError.NO_MATCHING_FAMILY)
        self.assertEqual(session.state, SessionState.FAILED)

    async def test_socket_open_failure(self):
        sock = FakeProbeSocket(open_error=SocketError("denied", reason=SocketError.PERMISSION_DENIED))
        session = self.make_session(sock=sock, interval=0.01)
        session.start()
        await asyncio.sleep(0.03)

        self.assertEqual(self.sink.names(), ["failed"])
        self.assertEqual(self.sink.events[0][1].reason, SocketError.PERMISSION_DENIED)
        self.assertEqual(session.state, SessionState.FAILED)

    async def test_resolver_crash_fails_session(self):
        crash = OSError("resolver backend crashed")
        session = self.make_session(resolver=FakeResolver(error=crash))
        session.start()
        await settle()

        self.assertEqual(self.sink.names(), ["failed"])
        error = self.sink.events[0][1]
        self.assertIsInstance(error, ResolutionError)
        self.assertEqual(error.reason, ResolutionError.HOST_NOT_FOUND)
        self.assertIs(error.__cause__, crash)
        self.assertEqual(session.state, SessionState.FAILED)

    async def test_socket_factory_crash_fails_session(self):
        def broken_factory():
            raise RuntimeError("no sockets today")

        session = PingSession(
            "target.example",
            RecordingSink(),
            resolver=FakeResolver(),
            socket_factory=broken_factory,
            interval=None,
        )
        self.addCleanup(session.stop)
        session.start()
        await settle()

        self.assertEqual(session.sink.names(), ["failed"])
        self.assertEqual(session.sink.events[0][1].reason, SocketError.CREATION_FAILED)
        self.assertEqual(session.state, SessionState.FAILED)

    async def test_fatal_socket_error_tears_down_before_reporting(self):
        session = self.make_session(interval=0.01)
        observed = {}

        def on_failed(s, error):
            observed["closed"] = self.sock.closed
            observed["state"] = s.state
            self.sink.events.append(("failed", error))

        self.sink.on_failed = on_failed
        session.start()
        await settle()

        self.sock.on_error(SocketError("bad fd", reason=SocketError.DESCRIPTOR_INVALID))
        count = len(self.sink.of("sent"))
        await asyncio.sleep(0.05)

        self.assertEqual(observed, {"closed": True, "state": SessionState.FAILED})
        self.assertEqual(len(self.sink.of("failed")), 1)
        self.assertEqual(len(self.sink.of("sent")), count)
        with self.assertRaises(SessionStateError):
            session.send()

    async def test_send_failure_keeps_session_ready(self):
        session = self.make_session()
        session.start()
        await settle()

        self.sock.send_error = SendError("no route", reason=SendError.SEND_FAILED)
        self.assertEqual(session.send(), 0)
        self.sock.send_error = None
        self.assertEqual(session.send(), 1)

        self.assertEqual(self.sink.names(), ["started", "send_failed", "sent"])
        self.assertEqual(self.sink.events[1][1], 0)
        self.assertEqual(session.state, SessionState.READY)
        self.assertEqual(session.outstanding_count, 1)

    async def test_send_before_ready_is_rejected(self):
        session = self.make_session()
        with self.assertRaises(SessionStateError):
            session.send()


class TestSessionMatching(SessionTestCase):
    async def asyncSetUp(self):
        self.session = self.make_session()
        self.session.start()
        await settle()

    async def test_lost_reply_is_silent(self):
        for _ in range(3):
            self.session.send()
        self.sock.deliver(self.reply(0))
        self.sock.deliver(self.reply(2))

        received = self.sink.of("received")
        self.assertEqual([event[1] for event in received], [0, 2])
        self.assertEqual(self.sink.of("unexpected"), [])
        self.assertEqual(self.session.outstanding_count, 1)

    async def test_received_packet_is_icmp_message_with_rtt(self):
        self.session.send(b"ping")
        self.sock.deliver(self.reply(0, payload=b"ping"))

        _, sequence_number, packet, rtt = self.sink.of("received")[0]
        self.assertEqual(sequence_number, 0)
        self.assertEqual(packet, encode_echo_reply(0x4242, 0, b"ping", socket.AF_INET))
        self.assertGreaterEqual(rtt, 0.0)

    async def test_sent_packet_carries_identifier_and_payload(self):
        self.session.send(b"custom")
        packet = self.sock.sent[0]
        self.assertEqual(struct.unpack_from("!BBHHH", packet)[3:], (0x4242, 0))
        self.assertEqual(packet[8:], b"custom")

    async def test_default_payload_is_used(self):
        self.session.send()
        self.assertEqual(len(self.sock.sent[0]), 8 + 56)

    async def test_foreign_identifier_is_unexpected(self):
        self.session.send()
        self.sock.deliver(self.reply(0, identifier=0x1111))

        self.assertEqual(self.sink.of("received"), [])
        self.assertEqual(len(self.sink.of("unexpected")), 1)
        self.assertEqual(self.session.outstanding_count, 1)

    async def test_duplicate_reply_is_unexpected(self):
        self.session.send()
        self.sock.deliver(self.reply(0))
        self.sock.deliver(self.reply(0))

        self.assertEqual(len(self.sink.of("received")), 1)
        self.assertEqual(len(self.sink.of("unexpected")), 1)

    async def test_unrelated_icmp_type_is_unexpected(self):
        self.session.send()
        unreachable = bytearray(struct.pack("!BBHI", 3, 1, 0, 0) + b"\x00" * 28)
        struct.pack_into("!H", unreachable, 2, internet_checksum(bytes(unreachable)))
        datagram = ipv4_wrap(bytes(unreachable))

        self.sock.deliver(datagram)

        self.assertEqual(self.sink.of("unexpected"), [("unexpected", datagram)])
        self.assertEqual(self.session.state, SessionState.READY)

    async def test_garbage_is_unexpected(self):
        self.sock.deliver(b"\x01\x02")
        self.assertEqual(len(self.sink.of("unexpected")), 1)
        self.assertEqual(self.session.state, SessionState.READY)

    async def test_sequence_numbers_wrap_at_16_bits(self):
        self.session._next_sequence_number = 65534
        sequences = [self.session.send() for _ in range(3)]
        self.assertEqual(sequences, [65534, 65535, 0])
        self.assertEqual(self.session.next_sequence_number, 1)


class TestSessionIdentifiers(SessionTestCase):
    async def test_kernel_identifier_is_adopted(self):
        session = self.make_session(resolver=FakeResolver(candidates=[V6]), sock=FakeProbeSocket(kernel_identifier=777))
        session.start()
        await settle()
        self.assertEqual(session.identifier, 777)

        session.send()
        self.sock.deliver(encode_echo_reply(777, 0, b"x", socket.AF_INET6), "2001:db8::1")
        self.assertEqual([event[1] for event in self.sink.of("received")], [0])

    async def test_default_identifier_fits_16_bits(self):
        first = PingSession("a", RecordingSink(), resolver=FakeResolver(), interval=None)
        second = PingSession("b", RecordingSink(), resolver=FakeResolver(), interval=None)
        self.assertTrue(0 <= first.identifier <= 0xFFFF)
        self.assertNotEqual(first.identifier, second.identifier)

    async def test_outstanding_window_is_bounded(self):
        session = self.make_session(max_outstanding=2)
        session.start()
        await settle()
        for _ in range(3):
            session.send()

        self.assertEqual(session.outstanding_count, 2)
        self.sock.deliver(self.reply(0))
        self.assertEqual(self.sink.of("received"), [])
        self.assertEqual(len(self.sink.of("unexpected")), 1)


if __name__ == "__main__":
    unittest.main()
