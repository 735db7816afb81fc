"""Probing engine services: resolution, packet codec and probe socket."""

from .address_resolver import SystemResolver, DNSResolver, create_resolver
from .probe_socket import ProbeSocket

__all__ = [
    "SystemResolver",
    "DNSResolver",
    "create_resolver",
    "ProbeSocket",
]
