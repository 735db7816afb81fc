"""
Command-line entry point for echoprobe.
"""

import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: ``echoprobe [-4] [-6] [-i INTERVAL] [host]``."""
    import argparse
    import asyncio
    import logging
    import os

    from core.ping_types import AddressStyle

    # Parse CLI args BEFORE config is imported so env var overrides take effect
    parser = argparse.ArgumentParser(
        description="Send ICMP Echo Requests to a host and report every reply",
        prog="echoprobe",
    )
    parser.add_argument(
        "-4",
        dest="force_ipv4",
        action="store_true",
        help="Use only IPv4 addresses of the host",
    )
    parser.add_argument(
        "-6",
        dest="force_ipv6",
        action="store_true",
        help="Use only IPv6 addresses of the host",
    )
    parser.add_argument(
        "--interval",
        "-i",
        type=float,
        help="Seconds between echo requests (default: 1)",
    )
    parser.add_argument(
        "host",
        nargs="?",
        help="Host name or address to ping (default: TARGET_HOST or 1.1.1.1)",
    )
    args = parser.parse_args(argv)

    # Set env vars BEFORE config module is imported by other modules
    if args.host:
        os.environ["TARGET_HOST"] = args.host
    if args.interval is not None:
        os.environ["INTERVAL"] = str(args.interval)
    if args.force_ipv4 or args.force_ipv6:
        os.environ["ADDRESS_STYLE"] = AddressStyle.from_flags(args.force_ipv4, args.force_ipv6).value

    from config import (
        ADDRESS_STYLE,
        INTERVAL,
        LOG_DIR,
        LOG_FILE,
        LOG_LEVEL,
        LOG_TRUNCATE_ON_START,
        TARGET_HOST,
    )

    # Create log directory if it doesn't exist
    os.makedirs(LOG_DIR, exist_ok=True)

    logging.basicConfig(
        filename=LOG_FILE,
        filemode='w' if LOG_TRUNCATE_ON_START else 'a',
        level=getattr(logging, LOG_LEVEL.upper()),
        format="%(asctime)s %(levelname)s %(message)s",
        encoding="utf-8",
    )

    from main import run_async_main

    exit_code = asyncio.run(
        run_async_main(TARGET_HOST, AddressStyle.from_name(ADDRESS_STYLE), INTERVAL)
    )
    sys.exit(exit_code)
