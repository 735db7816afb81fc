"""Configuration package: validated settings exposed as module constants."""

from .settings import (
    VERSION,
    TARGET_HOST,
    INTERVAL,
    ADDRESS_STYLE,
    PAYLOAD_SIZE,
    MAX_OUTSTANDING_REQUESTS,
    RESOLVER_BACKEND,
    DNS_SERVERS,
    DNS_TIMEOUT,
    ENABLE_METRICS,
    METRICS_ADDR,
    METRICS_PORT,
    LOG_DIR,
    LOG_FILE,
    LOG_LEVEL,
    LOG_TRUNCATE_ON_START,
)
from .settings_model import Settings

__all__ = [
    "Settings",
    "VERSION",
    "TARGET_HOST",
    "INTERVAL",
    "ADDRESS_STYLE",
    "PAYLOAD_SIZE",
    "MAX_OUTSTANDING_REQUESTS",
    "RESOLVER_BACKEND",
    "DNS_SERVERS",
    "DNS_TIMEOUT",
    "ENABLE_METRICS",
    "METRICS_ADDR",
    "METRICS_PORT",
    "LOG_DIR",
    "LOG_FILE",
    "LOG_LEVEL",
    "LOG_TRUNCATE_ON_START",
]
