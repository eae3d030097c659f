"""Typed interfaces for adapter-layer responsibilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence

from edgedeploy.domain import Domain, HealthSignal, IssuedCertificate, ServiceSpec, ServiceStatus


@dataclass(frozen=True)
class ReachabilityResult:
    """Result contract for one domain reachability check.

    Attributes:
        domain: Checked domain name.
        server_ip: Public IP address of this machine, or `unknown`.
        domain_ips: IPv4 addresses the domain resolves to.
    """

    domain: str
    server_ip: str
    domain_ips: tuple[str, ...]

    def reachability_matches(self) -> bool:
        """Return whether the domain resolves to this machine.

        Returns:
            bool: True when the public IP is among the resolved addresses.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        return self.server_ip != "unknown" and self.server_ip in self.domain_ips


@dataclass(frozen=True)
class EndpointCheck:
    """Result contract for one public endpoint smoke test.

    Attributes:
        url: Tested URL.
        reachable: Whether the endpoint answered with a non-error status.
        detail: Status code or transport error text.
    """

    url: str
    reachable: bool
    detail: str


class CertificateAuthorityClientPort(Protocol):
    """Port definition for requesting certificates through an HTTP-01 challenge."""

    def ca_source_name(self) -> str:
        """Return certificate authority client identifier for diagnostics.

        Returns:
            str: Human-readable client identifier.

        Raises:
            RuntimeError: Raised when source metadata is unavailable.
        """

    def ca_issue_certificate(self, domain: Domain, email: str) -> IssuedCertificate:
        """Request one certificate for the domain and return its PEM material.

        Args:
            domain: Domain to certify; its challenge path must be served on port 80.
            email: Registration email for the certificate authority account.

        Returns:
            IssuedCertificate: Issued certificate chain and private key bytes.

        Raises:
            ChallengeFailedError: Raised when the challenge is rejected.
            DomainUnreachableError: Raised when the authority cannot reach the domain.
            RateLimitedError: Raised when the authority rate limits the request.
        """


class ChallengeListenerPort(Protocol):
    """Port definition for the temporary HTTP-01 challenge listener."""

    def listener_start(self) -> bool:
        """Start serving challenge tokens.

        Returns:
            bool: True when this listener serves the port, False when another
            server (the running proxy) already holds it and serves the same webroot.

        Raises:
            ChallengeFailedError: Raised when the listener cannot be started.
        """

    def listener_stop(self) -> None:
        """Stop serving challenge tokens. Safe to call when not started."""


class ServiceRunnerPort(Protocol):
    """Port definition for starting and inspecting the managed service group."""

    def runner_check_prerequisites(self) -> None:
        """Verify that the container runtime and compose tooling are usable.

        Raises:
            RuntimeUnavailableError: Raised when tooling is missing or not running.
        """

    def runner_pull(self) -> None:
        """Pull images of the service group.

        Raises:
            CommandExecutionError: Raised when the pull command fails.
        """

    def runner_stop(self) -> None:
        """Stop and remove the running service group.

        Raises:
            CommandExecutionError: Raised when the stop command fails.
        """

    def runner_start(self) -> None:
        """Start the full service group in the background.

        Raises:
            CommandExecutionError: Raised when the start command fails.
        """

    def runner_status(self) -> list[ServiceStatus]:
        """Return runtime status rows for the service group.

        Returns:
            list[ServiceStatus]: One row per container.

        Raises:
            CommandExecutionError: Raised when the status command fails.
        """

    def runner_logs(self, services: Sequence[str] = (), tail: int | None = None, follow: bool = False) -> str:
        """Return or stream recent log output of the service group.

        Args:
            services: Optional service names to restrict output to.
            tail: Optional number of trailing lines per service.
            follow: Stream logs to the terminal until interrupted.

        Returns:
            str: Captured log text; empty when streaming.

        Raises:
            CommandExecutionError: Raised when the logs command fails.
        """


class HealthProbePort(Protocol):
    """Port definition for reading one service health signal."""

    def probe_check(self, service: ServiceSpec) -> HealthSignal:
        """Return the current health signal of one service.

        Args:
            service: Declared service and its health target.

        Returns:
            HealthSignal: Healthy, unhealthy or unknown.

        Raises:
            RuntimeError: Implementations report transient failures as `UNKNOWN` instead.
        """


class ProxyReloaderPort(Protocol):
    """Port definition for gracefully reloading the reverse proxy."""

    def proxy_reload(self) -> None:
        """Ask the proxy to reload configuration without dropping connections.

        Raises:
            CommandExecutionError: Raised when the reload signal fails.
        """


class DomainReachabilityPort(Protocol):
    """Port definition for checking whether a domain points at this machine."""

    def reachability_check(self, domain_name: str) -> ReachabilityResult:
        """Compare this machine's public IP with the domain's DNS records.

        Args:
            domain_name: Domain to resolve.

        Returns:
            ReachabilityResult: Public and resolved addresses.

        Raises:
            RuntimeError: Implementations report lookup failures as empty results.
        """
