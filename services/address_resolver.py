from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from typing import Any, Iterable

import dns.exception
import dns.resolver

from core.errors import ResolutionError
from core.ping_types import Address, AddressStyle


def _literal_address(host_name: str) -> Address | None:
    """Return an Address for a numeric host, or None for a name."""
    try:
        addr = ipaddress.ip_address(host_name.strip("[]"))
    except ValueError:
        return None
    if addr.version == 6:
        return Address(socket.AF_INET6, str(addr), (str(addr), 0, 0, 0))
    return Address(socket.AF_INET, str(addr), (str(addr), 0))


def select_address(host_name: str, candidates: Iterable[Address], address_style: AddressStyle) -> Address:
    """Apply the address style policy to resolved candidates.

    ANY takes the first candidate; a forced family takes the first candidate
    of that family.
    """
    candidates = list(candidates)
    if not candidates:
        raise ResolutionError(f"No addresses found for {host_name}", reason=ResolutionError.HOST_NOT_FOUND)

    wanted = address_style.family
    for candidate in candidates:
        if wanted is None or candidate.family == wanted:
            return candidate

    raise ResolutionError(
        f"{host_name} has no {address_style.value} address",
        reason=ResolutionError.NO_MATCHING_FAMILY,
    )


class SystemResolver:
    """Resolve host names through the operating system (getaddrinfo)."""

    async def resolve(self, host_name: str, address_style: AddressStyle = AddressStyle.ANY) -> Address:
        literal = _literal_address(host_name)
        if literal is not None:
            return select_address(host_name, [literal], address_style)

        loop = asyncio.get_running_loop()
        try:
            # socket.getaddrinfo is blocking, run in executor
            infos = await loop.run_in_executor(
                None,
                lambda: socket.getaddrinfo(host_name, None, socket.AF_UNSPEC, socket.SOCK_DGRAM),
            )
        except (OSError, UnicodeError) as exc:
            # gaierror for lookup failures, UnicodeError for invalid IDNA labels
            raise ResolutionError(
                f"Cannot resolve {host_name}: {getattr(exc, 'strerror', None) or exc}",
                reason=ResolutionError.HOST_NOT_FOUND,
            ) from exc

        candidates: list[Address] = []
        seen: set[tuple[int, str]] = set()
        for family, _, _, _, sockaddr in infos:
            if family not in (socket.AF_INET, socket.AF_INET6):
                continue
            key = (family, sockaddr[0])
            if key in seen:
                continue
            seen.add(key)
            candidates.append(Address(family, sockaddr[0], tuple(sockaddr)))

        address = select_address(host_name, candidates, address_style)
        logging.debug(f"Resolved {host_name} -> {address} ({len(candidates)} candidates)")
        return address


class DNSResolver:
    """Resolve host names with direct A/AAAA queries via dnspython."""

    RECORD_TYPES = ("A", "AAAA")

    def __init__(self, nameservers: list[str] | None = None, timeout: float = 2.0) -> None:
        # Explicit nameservers skip reading /etc/resolv.conf
        self._resolver = dns.resolver.Resolver(configure=not nameservers)
        if nameservers:
            self._resolver.nameservers = list(nameservers)
        self._resolver.timeout = timeout
        self._resolver.lifetime = timeout

    def _query(self, host_name: str, record_type: str) -> list[str]:
        try:
            answer = self._resolver.resolve(host_name, record_type)
        except dns.resolver.NoAnswer:
            return []
        return [rdata.address for rdata in answer]

    def _query_all(self, host_name: str, address_style: AddressStyle) -> list[Address]:
        record_types: tuple[str, ...] = self.RECORD_TYPES
        if address_style is AddressStyle.ICMPV4:
            record_types = ("A",)
        elif address_style is AddressStyle.ICMPV6:
            record_types = ("AAAA",)

        candidates: list[Address] = []
        for record_type in record_types:
            for host in self._query(host_name, record_type):
                literal = _literal_address(host)
                if literal is not None:
                    candidates.append(literal)
        return candidates

    async def resolve(self, host_name: str, address_style: AddressStyle = AddressStyle.ANY) -> Address:
        literal = _literal_address(host_name)
        if literal is not None:
            return select_address(host_name, [literal], address_style)

        loop = asyncio.get_running_loop()
        try:
            candidates = await loop.run_in_executor(
                None,
                lambda: self._query_all(host_name, address_style),
            )
        except dns.resolver.NXDOMAIN as exc:
            raise ResolutionError(f"{host_name}: NXDOMAIN", reason=ResolutionError.HOST_NOT_FOUND) from exc
        except dns.exception.DNSException as exc:
            raise ResolutionError(f"{host_name}: {exc}", reason=ResolutionError.HOST_NOT_FOUND) from exc

        if not candidates and address_style is not AddressStyle.ANY:
            if await self._has_other_family(host_name):
                raise ResolutionError(
                    f"{host_name} has no {address_style.value} address",
                    reason=ResolutionError.NO_MATCHING_FAMILY,
                )

        address = select_address(host_name, candidates, address_style)
        logging.debug(f"Resolved {host_name} -> {address} via DNS")
        return address

    async def _has_other_family(self, host_name: str) -> bool:
        """Distinguish 'no such host' from 'host exists in the other family'."""
        loop = asyncio.get_running_loop()
        try:
            others = await loop.run_in_executor(
                None,
                lambda: self._query_all(host_name, AddressStyle.ANY),
            )
        except dns.exception.DNSException:
            return False
        return bool(others)


def create_resolver(backend: str = "system", servers: list[str] | None = None, timeout: float = 2.0) -> Any:
    """Build the resolver for a RESOLVER_BACKEND value."""
    if backend == "dns":
        return DNSResolver(nameservers=servers, timeout=timeout)
    if backend == "system":
        return SystemResolver()
    raise ValueError(f"Unknown resolver backend: {backend}")
