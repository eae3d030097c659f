"""Typed interfaces for job-layer orchestration responsibilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from edgedeploy.adapters import EndpointCheck
from edgedeploy.domain import FailureDetail

if TYPE_CHECKING:
    from .health_poller import HealthPollResult


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a side-effect-free deployment validation.

    Attributes:
        failures: Every failure found, in check order.
    """

    failures: tuple[FailureDetail, ...] = ()

    def validation_is_valid(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class DeploymentResult:
    """Result contract for deployment workflow execution.

    Attributes:
        job_name: Job identifier.
        status: Final execution state (`started`, `success`, `failed`, `cancelled`).
        service_group: Deployed service group name.
        failures: Structured failures; empty on success.
        timeline: Ordered stage timeline events.
        health: Readiness polling outcome when polling ran.
        captured_logs: Recent log tail per still-unhealthy service after a timeout.
        endpoint_checks: Informational public endpoint smoke test results.
    """

    job_name: str
    status: str
    service_group: str = ""
    failures: tuple[FailureDetail, ...] = ()
    timeline: list[dict[str, object]] = field(default_factory=list)
    health: HealthPollResult | None = None
    captured_logs: dict[str, str] = field(default_factory=dict)
    endpoint_checks: tuple[EndpointCheck, ...] = ()

    def deployment_succeeded(self) -> bool:
        """Return whether the job reached its successful terminal state.

        Returns:
            bool: True for `success`, and for `started` when no polling was requested.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        return self.status in ("success", "started")

    def deployment_as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "job_name": self.job_name,
            "status": self.status,
            "service_group": self.service_group,
            "failures": [failure.failure_as_dict() for failure in self.failures],
            "timeline": list(self.timeline),
        }
        if self.health is not None:
            payload["health"] = self.health.poll_result_as_dict()
        if self.captured_logs:
            payload["captured_logs"] = dict(self.captured_logs)
        if self.endpoint_checks:
            payload["endpoint_checks"] = [
                {"url": check.url, "reachable": check.reachable, "detail": check.detail}
                for check in self.endpoint_checks
            ]
        return payload


class JobOrchestratorPort(Protocol):
    """Port definition for orchestrating deployment jobs."""

    def job_supported_names(self) -> tuple[str, ...]:
        """Return the set of workflow names this orchestrator can execute.

        Returns:
            tuple[str, ...]: Deterministic list of supported job names.

        Raises:
            RuntimeError: Raised when supported job metadata is unavailable.
        """

    def job_execute(self, job_name: str) -> DeploymentResult:
        """Execute one named workflow in the job layer.

        Args:
            job_name: Workflow name.

        Returns:
            DeploymentResult: Final execution status payload.

        Raises:
            ValueError: Raised when the job name is unsupported.
        """
