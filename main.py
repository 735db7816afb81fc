from __future__ import annotations

import asyncio
import logging
import signal
from typing import Any

from rich.console import Console
from rich.markup import escape

from config import ENABLE_METRICS, INTERVAL, METRICS_ADDR, METRICS_PORT, TARGET_HOST
from core.errors import PingError, SendError, SocketError
from core.metrics_handler import MetricsEventSink
from core.ping_types import Address, AddressStyle
from core.session import PingSession, start_session
from infrastructure import start_metrics_server


class PingerApp:
    """Command-line front end: prints one line per session event."""

    def __init__(
        self,
        host_name: str = TARGET_HOST,
        address_style: AddressStyle = AddressStyle.ANY,
        interval: float = INTERVAL,
        console: Console | None = None,
    ) -> None:
        self.host_name = host_name
        self.address_style = address_style
        self.interval = interval
        self.console = console or Console()
        self.session: PingSession | None = None
        self.stop_event: asyncio.Event | None = None
        self.exit_code = 0

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def handler(sig: int, frame: Any) -> None:
            self.console.print("\n[bold red]stop[/bold red]")
            # Wake the event loop; the finally block in run() stops the session
            if self.stop_event is not None:
                loop.call_soon_threadsafe(self.stop_event.set)

        signal.signal(signal.SIGINT, handler)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, handler)

    async def run(self) -> int:
        self.stop_event = asyncio.Event()
        self._install_signal_handlers()

        sink: Any = self
        if ENABLE_METRICS:
            start_metrics_server(METRICS_ADDR, METRICS_PORT)
            sink = MetricsEventSink(self)

        self.session = start_session(
            self.host_name,
            self.address_style,
            sink,
            interval=self.interval,
        )
        try:
            await self.stop_event.wait()
        finally:
            self.session.stop()
        return self.exit_code

    # ── event sink ───────────────────────────────────────────────────────

    def on_started(self, session: PingSession, address: Address) -> None:
        self.console.print(f"[bold green]pinging {address}[/bold green]")

    def on_failed(self, session: PingSession, error: PingError) -> None:
        self.console.print(f"[bold red]failed: {escape(str(error))}[/bold red]")
        if isinstance(error, SocketError) and error.reason == SocketError.PERMISSION_DENIED:
            self.console.print("[yellow]Raw ICMP sockets need root or CAP_NET_RAW (IPv6 needs net.ipv4.ping_group_range).[/yellow]")
        self.exit_code = 1
        # No need to stop the session, it tore itself down
        if self.stop_event is not None:
            self.stop_event.set()

    def on_sent(self, session: PingSession, packet: bytes, sequence_number: int) -> None:
        self.console.print(f"#{sequence_number} sent")

    def on_send_failed(self, session: PingSession, packet: bytes, sequence_number: int, error: SendError) -> None:
        self.console.print(f"[yellow]#{sequence_number} send failed: {escape(str(error))}[/yellow]")

    def on_received(self, session: PingSession, packet: bytes, sequence_number: int, round_trip_time: float) -> None:
        self.console.print(
            f"#{sequence_number} received, size={len(packet)} time={round_trip_time * 1000:.3f} ms"
        )

    def on_unexpected_packet(self, session: PingSession, packet: bytes) -> None:
        logging.debug(f"unexpected packet, size={len(packet)}")
        self.console.print(f"[dim]unexpected packet, size={len(packet)}[/dim]")


async def run_async_main(
    host_name: str = TARGET_HOST,
    address_style: AddressStyle = AddressStyle.ANY,
    interval: float = INTERVAL,
) -> int:
    app = PingerApp(host_name, address_style, interval)
    return await app.run()


__all__ = ["PingerApp", "run_async_main"]
