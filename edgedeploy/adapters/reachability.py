"""Domain reachability checks comparing public IP with DNS resolution."""

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Callable, Sequence

import httpx

from .interfaces import DomainReachabilityPort, ReachabilityResult

logger = logging.getLogger(__name__)

AddressResolver = Callable[[str], Sequence[str]]


def reachability_resolve_ipv4(domain_name: str) -> tuple[str, ...]:
    """Resolve IPv4 addresses of a domain.

    Args:
        domain_name: Domain to resolve.

    Returns:
        tuple[str, ...]: Sorted unique addresses; empty when resolution fails.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    try:
        address_info = socket.getaddrinfo(domain_name, None, family=socket.AF_INET, type=socket.SOCK_STREAM)
    except socket.gaierror:
        return ()
    return tuple(sorted({str(entry[4][0]) for entry in address_info}))


class PublicAddressReachabilityChecker(DomainReachabilityPort):
    """Reachability checker using plain-text public IP echo services."""

    def __init__(
        self,
        public_ip_endpoints: Sequence[str],
        http_client: httpx.Client | None = None,
        resolver: AddressResolver | None = None,
    ):
        """Initialize reachability checker.

        Args:
            public_ip_endpoints: Endpoints returning this machine's public IP as text.
            http_client: Optional preconfigured httpx client.
            resolver: Optional domain-to-addresses resolver.

        Raises:
            ValueError: Raised when no public IP endpoint is configured.
        """

        normalized_endpoints = tuple(endpoint.strip() for endpoint in public_ip_endpoints if endpoint.strip())
        if not normalized_endpoints:
            raise ValueError("public_ip_endpoints must not be empty")
        self._public_ip_endpoints = normalized_endpoints
        self._http_client = http_client or httpx.Client(timeout=5.0)
        self._resolver = resolver or reachability_resolve_ipv4
        self._cached_server_ip: str | None = None

    def reachability_check(self, domain_name: str) -> ReachabilityResult:
        server_ip = self.reachability_public_ip()
        domain_ips = tuple(self._resolver(domain_name))
        result = ReachabilityResult(domain=domain_name, server_ip=server_ip, domain_ips=domain_ips)
        logger.info(
            "Reachability for %s: server_ip=%s domain_ips=%s",
            domain_name,
            server_ip,
            ",".join(domain_ips) or "none",
        )
        return result

    def reachability_public_ip(self) -> str:
        """Return this machine's public IP, trying each endpoint in order.

        Returns:
            str: Public IP address, or `unknown` when every endpoint failed.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        if self._cached_server_ip is not None:
            return self._cached_server_ip

        for endpoint in self._public_ip_endpoints:
            try:
                response = self._http_client.get(endpoint)
                response.raise_for_status()
                candidate = response.text.strip()
                ipaddress.ip_address(candidate)
            except (httpx.HTTPError, ValueError) as error:
                logger.debug("Public IP lookup via %s failed: %s", endpoint, error)
                continue
            self._cached_server_ip = candidate
            return candidate
        return "unknown"
