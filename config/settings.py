"""
Application configuration settings.

All configuration variables are defined here and can be overridden via environment variables.
Values are validated by ``Settings`` and re-exported as module-level constants.
"""

from .settings_model import Settings

_settings = Settings()

# ─────────────────────────────────────────────────────────────────────────────
# Version
# ─────────────────────────────────────────────────────────────────────────────

VERSION = _settings.VERSION

# ─────────────────────────────────────────────────────────────────────────────
# Core Settings
# ─────────────────────────────────────────────────────────────────────────────

TARGET_HOST = _settings.TARGET_HOST
INTERVAL = _settings.INTERVAL
ADDRESS_STYLE = _settings.ADDRESS_STYLE

# ─────────────────────────────────────────────────────────────────────────────
# Probe Settings
# ─────────────────────────────────────────────────────────────────────────────

# Default filler size; 56 bytes + 8 byte ICMP header = classic 64 byte probe
PAYLOAD_SIZE = _settings.PAYLOAD_SIZE
MAX_OUTSTANDING_REQUESTS = _settings.MAX_OUTSTANDING_REQUESTS

# ─────────────────────────────────────────────────────────────────────────────
# Resolver Settings
# ─────────────────────────────────────────────────────────────────────────────

RESOLVER_BACKEND = _settings.RESOLVER_BACKEND  # "system" uses getaddrinfo, "dns" uses dnspython
DNS_SERVERS = list(_settings.DNS_SERVERS)
DNS_TIMEOUT = _settings.DNS_TIMEOUT

# ─────────────────────────────────────────────────────────────────────────────
# Metrics
# ─────────────────────────────────────────────────────────────────────────────

ENABLE_METRICS = _settings.ENABLE_METRICS
METRICS_ADDR = _settings.METRICS_ADDR
METRICS_PORT = _settings.METRICS_PORT

# ─────────────────────────────────────────────────────────────────────────────
# Logging
# ─────────────────────────────────────────────────────────────────────────────

LOG_DIR = _settings.LOG_DIR
LOG_FILE = _settings.LOG_FILE
LOG_LEVEL = _settings.LOG_LEVEL

# If True, truncate (clear) log file at startup
LOG_TRUNCATE_ON_START = _settings.LOG_TRUNCATE_ON_START
