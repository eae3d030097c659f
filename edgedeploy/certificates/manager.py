"""Certificate lifecycle manager for HTTP-01 issuance and renewal."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from edgedeploy.adapters import (
    CertificateAuthorityClientPort,
    ChallengeListenerPort,
    CommandExecutionError,
    DomainReachabilityPort,
    ProxyReloaderPort,
)
from edgedeploy.domain import (
    Certificate,
    DeploymentError,
    Domain,
    DomainUnreachableError,
    FailureDetail,
    FailureKind,
)

from .interfaces import CertificateResult, CertificateStorePort

logger = logging.getLogger(__name__)

REACHABILITY_POLICIES = ("ignore", "warn", "fail")


@dataclass(frozen=True)
class CertificateManagerConfig:
    """Configuration values for certificate lifecycle management.

    Attributes:
        domains: Declared domains in processing order.
        certificate_email: Registration email for the certificate authority.
        renewal_threshold_days: Renew certificates expiring within this many days.
        reachability_policy: `ignore`, `warn` or `fail` on DNS/public IP mismatch.
    """

    domains: tuple[Domain, ...]
    certificate_email: str
    renewal_threshold_days: int = 30
    reachability_policy: str = "warn"


class CertificateManager:
    """Ensures every configured domain has a valid certificate in the shared store."""

    def __init__(
        self,
        store: CertificateStorePort,
        ca_client: CertificateAuthorityClientPort,
        config: CertificateManagerConfig,
        challenge_listener: ChallengeListenerPort | None = None,
        proxy_reloader: ProxyReloaderPort | None = None,
        reachability_checker: DomainReachabilityPort | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize certificate manager dependencies.

        Args:
            store: Shared certificate store.
            ca_client: Certificate authority client.
            config: Certificate lifecycle configuration.
            challenge_listener: Optional temporary port-80 listener opened around each request.
            proxy_reloader: Optional proxy reloader signaled after successful renewals.
            reachability_checker: Optional checker used unless policy is `ignore`.
            clock: Optional provider of the current UTC time.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or config values are invalid.
        """

        if store is None:
            raise ValueError("store must not be None")
        if ca_client is None:
            raise ValueError("ca_client must not be None")
        if config.renewal_threshold_days < 0:
            raise ValueError("config.renewal_threshold_days must be >= 0")
        if config.reachability_policy not in REACHABILITY_POLICIES:
            raise ValueError(f"config.reachability_policy must be one of {', '.join(REACHABILITY_POLICIES)}")

        self._store = store
        self._ca_client = ca_client
        self._config = config
        self._challenge_listener = challenge_listener
        self._proxy_reloader = proxy_reloader
        self._reachability_checker = reachability_checker
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def certificate_domain_by_name(self, domain_name: str) -> Domain:
        """Return the configured domain with the given name.

        Args:
            domain_name: Domain name.

        Returns:
            Domain: Configured domain.

        Raises:
            KeyError: Raised when the domain is not configured.
        """

        normalized_name = domain_name.strip().lower().rstrip(".")
        for domain in self._config.domains:
            if domain.name == normalized_name:
                return domain
        raise KeyError(normalized_name)

    def certificate_needs_issuance(self, certificate: Certificate | None) -> bool:
        """Return whether a certificate is absent or expires within the renewal threshold.

        Args:
            certificate: Installed certificate, or None.

        Returns:
            bool: True when a new certificate must be requested.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        if certificate is None:
            return True
        renew_before = self._clock() + timedelta(days=self._config.renewal_threshold_days)
        return certificate.expires_at_utc <= renew_before

    def certificate_ensure(self, domain: Domain, force: bool = False) -> CertificateResult:
        """Ensure one domain has a valid, non-expiring-soon certificate.

        A valid certificate outside the renewal threshold is kept as-is and no
        challenge is performed unless `force` is set. Failures leave any
        previously installed certificate untouched.

        Args:
            domain: Domain to ensure.
            force: Request a new certificate even when the current one is valid.

        Returns:
            CertificateResult: `issued`, `skipped` or `failed` outcome.

        Raises:
            RuntimeError: Failures are returned as results, not raised.
        """

        existing_certificate = self._store.store_read(domain)
        if not force and not self.certificate_needs_issuance(existing_certificate):
            logger.info(
                "Certificate for %s is valid until %s; skipping",
                domain.name,
                existing_certificate.expires_at_utc.isoformat(),
            )
            return CertificateResult(domain=domain.name, status="skipped", certificate=existing_certificate)

        if not self._config.certificate_email.strip():
            return CertificateResult(
                domain=domain.name,
                status="failed",
                certificate=existing_certificate,
                failure=FailureDetail(
                    kind=FailureKind.MISSING_CONFIG,
                    target="certificate_email",
                    detail="certificate_email is required to request certificates",
                ),
            )

        try:
            self._certificate_check_reachability(domain)
            issued = self._certificate_request(domain)
            installed_certificate = self._store.store_install(domain, issued)
        except DeploymentError as error:
            logger.error("Certificate request for %s failed (%s): %s", domain.name, error.kind.value, error)
            return CertificateResult(
                domain=domain.name,
                status="failed",
                certificate=existing_certificate,
                failure=FailureDetail(kind=error.kind, target=domain.name, detail=str(error)),
            )
        except (OSError, ValueError) as error:
            logger.error("Installing certificate for %s failed: %s", domain.name, error)
            return CertificateResult(
                domain=domain.name,
                status="failed",
                certificate=existing_certificate,
                failure=FailureDetail(
                    kind=FailureKind.CHALLENGE_FAILED,
                    target=domain.name,
                    detail=f"issued certificate could not be installed: {error}",
                ),
            )

        logger.info("Certificate issued for %s", domain.name)
        return CertificateResult(domain=domain.name, status="issued", certificate=installed_certificate)

    def certificate_renew_all(self, force: bool = False) -> list[CertificateResult]:
        """Ensure certificates for every configured domain and reload the proxy on change.

        Domains are processed in declared order; one failure never stops the
        rest. When at least one certificate was issued the proxy is reloaded
        gracefully; a reload failure is logged and does not fail the batch.

        Args:
            force: Request new certificates even when current ones are valid.

        Returns:
            list[CertificateResult]: One result per configured domain.

        Raises:
            RuntimeError: Failures are returned as results, not raised.
        """

        results = [self.certificate_ensure(domain, force=force) for domain in self._config.domains]
        issued_count = sum(1 for result in results if result.status == "issued")
        failed_count = sum(1 for result in results if result.status == "failed")
        logger.info(
            "Certificate renewal finished: issued=%s skipped=%s failed=%s",
            issued_count,
            len(results) - issued_count - failed_count,
            failed_count,
        )

        if issued_count > 0:
            self._certificate_signal_reload()
        return results

    def _certificate_request(self, domain: Domain):
        if self._challenge_listener is None:
            return self._ca_client.ca_issue_certificate(domain=domain, email=self._config.certificate_email)

        if not self._challenge_listener.listener_start():
            logger.info("Challenge for %s is answered by the server already bound to the challenge port", domain.name)
        try:
            return self._ca_client.ca_issue_certificate(domain=domain, email=self._config.certificate_email)
        finally:
            self._challenge_listener.listener_stop()

    def _certificate_check_reachability(self, domain: Domain) -> None:
        """Apply the configured reachability policy before requesting a certificate.

        Args:
            domain: Domain about to be challenged.

        Returns:
            None: Logs or raises as side effect.

        Raises:
            DomainUnreachableError: Raised under the `fail` policy when DNS does not point here.
        """

        policy = self._config.reachability_policy
        if policy == "ignore" or self._reachability_checker is None:
            return

        result = self._reachability_checker.reachability_check(domain.name)
        if result.reachability_matches():
            logger.info("%s correctly points to this server (%s)", domain.name, result.server_ip)
            return

        message = (
            f"{domain.name} may not point to this server: server_ip={result.server_ip}, "
            f"domain_ips={','.join(result.domain_ips) or 'none'}"
        )
        if policy == "fail":
            raise DomainUnreachableError(message, target=domain.name)
        logger.warning("%s. Make sure DNS is configured correctly.", message)

    def _certificate_signal_reload(self) -> None:
        if self._proxy_reloader is None:
            return
        try:
            self._proxy_reloader.proxy_reload()
        except (CommandExecutionError, RuntimeError) as error:
            # Certificates on disk are already valid; the next reload picks them up.
            logger.warning("Proxy reload after renewal failed: %s", error)
