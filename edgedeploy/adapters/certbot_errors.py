"""Certificate authority failure semantics extracted from certbot output."""

from __future__ import annotations

import logging
from typing import Final

from edgedeploy.domain import (
    ChallengeFailedError,
    DeploymentError,
    DomainUnreachableError,
    FailureKind,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

CERTBOT_RATE_LIMIT_MARKERS: Final[tuple[str, ...]] = (
    "urn:ietf:params:acme:error:ratelimited",
    "too many certificates",
    "too many failed authorizations",
    "too many new orders",
    "rate limit",
)

CERTBOT_UNREACHABLE_MARKERS: Final[tuple[str, ...]] = (
    "urn:ietf:params:acme:error:dns",
    "urn:ietf:params:acme:error:connection",
    "dns problem",
    "nxdomain",
    "no valid a records",
    "connection refused",
    "timeout during connect",
    "fetching http://",
)

CERTBOT_CHALLENGE_MARKERS: Final[tuple[str, ...]] = (
    "urn:ietf:params:acme:error:unauthorized",
    "invalid response from",
    "challenge failed",
    "some challenges have failed",
)

CERTBOT_FAILURE_DEFAULT_MESSAGES: Final[dict[FailureKind, str]] = {
    FailureKind.RATE_LIMITED: "Certificate authority rate limit reached. Please try again later.",
    FailureKind.DOMAIN_UNREACHABLE: (
        "Certificate authority could not reach the domain. Check that DNS points to this server "
        "and that port 80 is open."
    ),
    FailureKind.CHALLENGE_FAILED: "HTTP-01 challenge validation failed.",
}

_FAILURE_EXCEPTIONS: Final[dict[FailureKind, type[DeploymentError]]] = {
    FailureKind.RATE_LIMITED: RateLimitedError,
    FailureKind.DOMAIN_UNREACHABLE: DomainUnreachableError,
    FailureKind.CHALLENGE_FAILED: ChallengeFailedError,
}


def certbot_classify_failure(output: str) -> FailureKind:
    """Classify certbot failure output into a certificate failure kind.

    Rate-limit markers win over reachability markers, which win over
    challenge markers. Output matching no marker is logged and reported as a
    challenge failure.

    Args:
        output: Combined certbot stdout and stderr text.

    Returns:
        FailureKind: `RateLimited`, `DomainUnreachable` or `ChallengeFailed`.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    normalized_output = output.lower()
    if any(marker in normalized_output for marker in CERTBOT_RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMITED
    if any(marker in normalized_output for marker in CERTBOT_UNREACHABLE_MARKERS):
        return FailureKind.DOMAIN_UNREACHABLE
    if not any(marker in normalized_output for marker in CERTBOT_CHALLENGE_MARKERS):
        logger.warning("Unrecognized certbot failure output: %s", _certbot_last_line(output) or "<empty>")
    return FailureKind.CHALLENGE_FAILED


def certbot_error_for_output(domain_name: str, output: str) -> DeploymentError:
    """Build the typed exception for a failed certbot run.

    Args:
        domain_name: Domain the certificate was requested for.
        output: Combined certbot stdout and stderr text.

    Returns:
        DeploymentError: Typed exception carrying the domain as target.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    failure_kind = certbot_classify_failure(output)
    detail_line = _certbot_extract_detail_line(output)
    message = CERTBOT_FAILURE_DEFAULT_MESSAGES[failure_kind]
    if detail_line:
        message = f"{message} Detail: {detail_line}"
    return _FAILURE_EXCEPTIONS[failure_kind](message, target=domain_name)


def _certbot_extract_detail_line(output: str) -> str:
    for line in output.splitlines():
        stripped_line = line.strip()
        if stripped_line.lower().startswith("detail:"):
            return stripped_line.split(":", 1)[1].strip()
    return ""


def _certbot_last_line(output: str) -> str:
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    return lines[-1] if lines else ""
