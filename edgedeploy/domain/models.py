"""Typed domain models shared across runtime layers.

This module provides immutable data contracts for certificates, managed
services and health signals exchanged between the certificate, adapter and
job layers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path


class HealthSignal(str, Enum):
    """Health status reported by one managed service probe."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Domain:
    """DNS name that requires its own certificate.

    Attributes:
        name: Fully qualified domain name.
        challenge_path: Webroot directory served for HTTP-01 challenge tokens.
        certificate_directory: Live directory holding `fullchain.pem` and `privkey.pem`,
            kept by the store as a symlink to the current version.
        tls_required: Whether the proxy terminates TLS for this domain.
    """

    name: str
    challenge_path: Path
    certificate_directory: Path
    tls_required: bool = True


@dataclass(frozen=True)
class Certificate:
    """Installed certificate pair for one domain.

    Attributes:
        domain: Domain name the certificate was issued for.
        fullchain_path: Path to the PEM certificate chain.
        privkey_path: Path to the PEM private key.
        expires_at_utc: Leaf certificate `notAfter` timestamp in UTC.
    """

    domain: str
    fullchain_path: Path
    privkey_path: Path
    expires_at_utc: datetime

    def certificate_is_valid_at(self, moment_utc: datetime) -> bool:
        """Return whether the certificate has not expired at the given moment.

        Args:
            moment_utc: Timezone-aware UTC timestamp.

        Returns:
            bool: True when `expires_at_utc` is later than `moment_utc`.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        return self.expires_at_utc > moment_utc


@dataclass(frozen=True)
class IssuedCertificate:
    """PEM material returned by a certificate authority before installation.

    Attributes:
        domain: Domain name the certificate was issued for.
        fullchain_pem: Certificate chain bytes.
        privkey_pem: Private key bytes.
    """

    domain: str
    fullchain_pem: bytes
    privkey_pem: bytes


@dataclass(frozen=True)
class ServiceSpec:
    """Declared member of the managed service group.

    Attributes:
        name: Service name as known to the service runner.
        health_target: URL, `container:<name>` reference or shell command.
        readiness_timeout_seconds: Optional per-service readiness window.
    """

    name: str
    health_target: str
    readiness_timeout_seconds: float | None = None


@dataclass(frozen=True)
class ServiceStatus:
    """Runtime status row reported by the service runner.

    Attributes:
        name: Compose service name.
        state: Runtime state text (`running`, `exited`, ...).
        health: Container health text (`healthy`, `starting`, ...) or blank.
        container_name: Container name, when different from the service name.
    """

    name: str
    state: str
    health: str = ""
    container_name: str = ""
