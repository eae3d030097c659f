"""Project-native failure taxonomy for certificate and deployment workflows."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureKind(str, Enum):
    """Known failure kinds surfaced in structured results."""

    MISSING_CONFIG = "MissingConfig"
    MISSING_CERTIFICATE = "MissingCertificate"
    CHALLENGE_FAILED = "ChallengeFailed"
    DOMAIN_UNREACHABLE = "DomainUnreachable"
    RATE_LIMITED = "RateLimited"
    DEPLOYMENT_IN_PROGRESS = "DeploymentInProgress"
    TIMED_OUT = "TimedOut"
    RUNTIME_UNAVAILABLE = "RuntimeUnavailable"
    SERVICE_START_FAILED = "ServiceStartFailed"


@dataclass(frozen=True)
class FailureDetail:
    """Structured failure entry for user-visible results.

    Attributes:
        kind: Failure kind.
        target: Affected domain, service or configuration key.
        detail: Human-readable diagnostic message.
    """

    kind: FailureKind
    target: str
    detail: str

    def failure_as_dict(self) -> dict[str, str]:
        """Return JSON-friendly failure payload.

        Returns:
            dict[str, str]: Failure kind, target and detail.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        return {"kind": self.kind.value, "target": self.target, "detail": self.detail}


class DeploymentError(Exception):
    """Base exception for typed certificate and deployment failures.

    Attributes:
        kind: Failure kind carried by the exception.
        target: Affected domain, service or configuration key.
    """

    kind: FailureKind = FailureKind.CHALLENGE_FAILED

    def __init__(self, message: str, target: str = ""):
        super().__init__(message)
        self.target = target

    def error_as_failure(self) -> FailureDetail:
        """Convert the exception into a structured failure entry.

        Returns:
            FailureDetail: Failure payload with kind, target and message.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        return FailureDetail(kind=self.kind, target=self.target, detail=str(self))


class ChallengeFailedError(DeploymentError):
    """HTTP-01 challenge was rejected or could not be served."""

    kind = FailureKind.CHALLENGE_FAILED


class DomainUnreachableError(DeploymentError):
    """Domain does not resolve to, or cannot reach, this machine."""

    kind = FailureKind.DOMAIN_UNREACHABLE


class RateLimitedError(DeploymentError):
    """Certificate authority rejected the request because of rate limits."""

    kind = FailureKind.RATE_LIMITED


class DeploymentInProgressError(DeploymentError):
    """Another deployment for the same service group is already in flight."""

    kind = FailureKind.DEPLOYMENT_IN_PROGRESS


class RuntimeUnavailableError(DeploymentError):
    """Container runtime or compose tooling is not usable."""

    kind = FailureKind.RUNTIME_UNAVAILABLE


class ServiceStartFailedError(DeploymentError):
    """Service runner failed to start the service group."""

    kind = FailureKind.SERVICE_START_FAILED
