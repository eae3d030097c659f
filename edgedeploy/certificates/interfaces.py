"""Typed interfaces for certificate-layer services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from edgedeploy.domain import Certificate, Domain, FailureDetail, IssuedCertificate


@dataclass(frozen=True)
class CertificateResult:
    """Outcome of one `EnsureCertificate` call.

    Attributes:
        domain: Domain name.
        status: `issued`, `skipped` (valid certificate kept) or `failed`.
        certificate: Installed or existing certificate, when available.
        failure: Structured failure when status is `failed`.
    """

    domain: str
    status: str
    certificate: Certificate | None = None
    failure: FailureDetail | None = None

    def certificate_result_succeeded(self) -> bool:
        """Return whether a usable certificate is in place after the call.

        Returns:
            bool: True for `issued` and `skipped` results.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        return self.status in ("issued", "skipped")

    def certificate_result_as_dict(self) -> dict[str, object]:
        """Return JSON-friendly result payload.

        Returns:
            dict[str, object]: Domain, status, paths/expiry or failure payload.
        """

        payload: dict[str, object] = {"domain": self.domain, "status": self.status}
        if self.certificate is not None:
            payload["fullchain_path"] = str(self.certificate.fullchain_path)
            payload["privkey_path"] = str(self.certificate.privkey_path)
            payload["expires_at_utc"] = self.certificate.expires_at_utc.isoformat()
        if self.failure is not None:
            payload["failure"] = self.failure.failure_as_dict()
        return payload


class CertificateStorePort(Protocol):
    """Port definition for the shared certificate store."""

    def store_read(self, domain: Domain) -> Certificate | None:
        """Return the certificate installed in a domain certificate directory.

        Args:
            domain: Configured domain.

        Returns:
            Certificate | None: Installed certificate, or None when absent or unreadable.

        Raises:
            RuntimeError: Implementations report unreadable material as None.
        """

    def store_install(self, domain: Domain, issued: IssuedCertificate) -> Certificate:
        """Atomically install an issued certificate pair into the domain certificate directory.

        Args:
            domain: Configured domain.
            issued: Issued PEM material.

        Returns:
            Certificate: Installed certificate.

        Raises:
            ValueError: Raised when the issued chain cannot be parsed or belongs to another domain.
            OSError: Raised when files cannot be written; the previous pair stays installed.
        """
