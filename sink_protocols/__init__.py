"""
Event sink package for the probing engine.

This package provides:
- protocols: Observer interface a session reports its events to
"""

from .protocols import PingEventSink

__all__ = [
    "PingEventSink",
]
