"""Job-layer deployment orchestrator with health gating and stage timeline reporting."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Sequence

import httpx
from dotenv import dotenv_values

from edgedeploy.adapters import (
    CommandExecutionError,
    ServiceRunnerPort,
    probe_smoke_test_endpoints,
)
from edgedeploy.certificates import CertificateStorePort
from edgedeploy.domain import (
    DeploymentError,
    DeploymentInProgressError,
    Domain,
    FailureDetail,
    FailureKind,
    ServiceSpec,
    ServiceStartFailedError,
    ServiceStatus,
    domain_record_stage_event,
)

from .deployment_lock import DeploymentLockRegistry
from .health_poller import HealthPoller, HealthPollResult, PollPhase
from .interfaces import DeploymentResult, JobOrchestratorPort, ValidationResult

logger = logging.getLogger(__name__)

SMOKE_TEST_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class DeploymentOrchestratorConfig:
    """Configuration values for deployment orchestration.

    Attributes:
        service_group_name: Identity of the managed service group.
        domains: Declared domains; TLS-required ones need a valid certificate.
        certificate_email: Registration email for the certificate authority.
        services: Declared services gating deployment success.
        compose_file: Compose file describing the service group.
        compose_env_file: Env file passed to compose; blank disables the check.
        required_environment_keys: Keys that must hold a non-blank value.
        pull_images: Pull images before starting (best effort).
        log_tail_lines: Log lines captured per unhealthy service on timeout.
        public_endpoints: URLs smoke-tested after a healthy deployment.
    """

    service_group_name: str
    domains: tuple[Domain, ...]
    certificate_email: str
    services: tuple[ServiceSpec, ...]
    compose_file: str
    compose_env_file: str = ""
    required_environment_keys: tuple[str, ...] = ()
    pull_images: bool = True
    log_tail_lines: int = 20
    public_endpoints: tuple[str, ...] = ()


class DeploymentOrchestrator(JobOrchestratorPort):
    """Validates, starts and health-gates one service group.

    `deploy` runs the full attempt (validate, start, poll, report); `start`
    returns right after the start commands without waiting for readiness.
    """

    _DEPLOY_JOB_NAME = "deploy"
    _START_JOB_NAME = "start"

    def __init__(
        self,
        service_runner: ServiceRunnerPort,
        certificate_store: CertificateStorePort,
        health_poller: HealthPoller,
        config: DeploymentOrchestratorConfig,
        lock_registry: DeploymentLockRegistry | None = None,
        endpoint_client: httpx.Client | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize deployment orchestrator dependencies.

        Args:
            service_runner: Adapter controlling the service group.
            certificate_store: Shared certificate store, read-only here.
            health_poller: Readiness poller.
            config: Deployment configuration; completeness is checked by `job_validate`.
            lock_registry: Optional deployment lock registry.
            endpoint_client: Optional httpx client for endpoint smoke tests.
            clock: Optional provider of the current UTC time.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or config values are invalid.
        """

        if service_runner is None:
            raise ValueError("service_runner must not be None")
        if certificate_store is None:
            raise ValueError("certificate_store must not be None")
        if health_poller is None:
            raise ValueError("health_poller must not be None")
        if config.log_tail_lines <= 0:
            raise ValueError("config.log_tail_lines must be > 0")

        self._service_runner = service_runner
        self._certificate_store = certificate_store
        self._health_poller = health_poller
        self._config = config
        self._lock_registry = lock_registry or DeploymentLockRegistry()
        self._endpoint_client = endpoint_client
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def job_supported_names(self) -> tuple[str, ...]:
        return (self._DEPLOY_JOB_NAME, self._START_JOB_NAME)

    def job_execute(self, job_name: str) -> DeploymentResult:
        """Execute one named deployment workflow.

        Args:
            job_name: `deploy` (health-gated) or `start` (returns after start).

        Returns:
            DeploymentResult: Final execution status payload.

        Raises:
            ValueError: Raised when job name is unsupported.
        """

        normalized_job_name = job_name.strip()
        if normalized_job_name == self._DEPLOY_JOB_NAME:
            return self.job_run()
        if normalized_job_name == self._START_JOB_NAME:
            return self.job_deploy()
        raise ValueError(f"unsupported job_name={normalized_job_name}")

    def job_validate(self, config: DeploymentOrchestratorConfig | None = None) -> ValidationResult:
        """Check configuration completeness and certificate presence without side effects.

        Every failure is collected; certificate checks run even when other
        fields are incomplete.

        Args:
            config: Optional configuration to validate; defaults to the orchestrator's own.

        Returns:
            ValidationResult: All failures found, empty when deployment may proceed.

        Raises:
            RuntimeError: Failures are returned, not raised.
        """

        config = config or self._config
        failures: list[FailureDetail] = []

        def missing(target: str, detail: str) -> None:
            failures.append(FailureDetail(kind=FailureKind.MISSING_CONFIG, target=target, detail=detail))

        if not config.service_group_name.strip():
            missing("service_group_name", "service_group_name must not be blank")
        if not config.domains:
            missing("domains", "at least one domain must be configured")
        if not config.certificate_email.strip():
            missing("certificate_email", "certificate_email must not be blank")
        if not config.services:
            missing("services", "at least one service must be declared")
        for service in config.services:
            if not service.health_target.strip():
                missing(f"services.{service.name}.health_target", f"health_target of {service.name} must not be blank")
        if not config.compose_file.strip() or not Path(config.compose_file).is_file():
            missing("compose_file", f"compose file not found: {config.compose_file or '<blank>'}")
        failures.extend(self._job_validate_environment(config))

        now_utc = self._clock()
        for domain in config.domains:
            if not domain.tls_required:
                continue
            certificate = self._certificate_store.store_read(domain)
            if certificate is None:
                failures.append(
                    FailureDetail(
                        kind=FailureKind.MISSING_CERTIFICATE,
                        target=domain.name,
                        detail=f"no certificate installed for {domain.name}",
                    )
                )
            elif not certificate.certificate_is_valid_at(now_utc):
                failures.append(
                    FailureDetail(
                        kind=FailureKind.MISSING_CERTIFICATE,
                        target=domain.name,
                        detail=f"certificate for {domain.name} expired at {certificate.expires_at_utc.isoformat()}",
                    )
                )

        for failure in failures:
            logger.error("Validation failed (%s) for %s: %s", failure.kind.value, failure.target, failure.detail)
        return ValidationResult(failures=tuple(failures))

    def job_deploy(self) -> DeploymentResult:
        """Start the service group and return immediately after the start commands.

        Returns:
            DeploymentResult: `started` on success, otherwise `failed` with failures.

        Raises:
            RuntimeError: Failures are returned, not raised.
        """

        timeline: list[dict[str, object]] = []
        validation_failures = self._job_run_validation(timeline)
        if validation_failures:
            return self._job_result(self._START_JOB_NAME, "failed", timeline, failures=validation_failures)

        try:
            with self._lock_registry.lock_acquire(self._config.service_group_name):
                failures = self._job_start_locked(timeline)
        except DeploymentInProgressError as error:
            return self._job_in_progress_result(self._START_JOB_NAME, timeline, error)

        if failures:
            return self._job_result(self._START_JOB_NAME, "failed", timeline, failures=failures)
        return self._job_result(self._START_JOB_NAME, "started", timeline)

    def job_run(self) -> DeploymentResult:
        """Run one full deployment attempt gated on service health.

        Returns:
            DeploymentResult: `success`, `failed` or `cancelled` outcome with stage timeline.

        Raises:
            RuntimeError: Failures are returned, not raised.
        """

        timeline: list[dict[str, object]] = []
        validation_failures = self._job_run_validation(timeline)
        if validation_failures:
            return self._job_result(self._DEPLOY_JOB_NAME, "failed", timeline, failures=validation_failures)

        try:
            with self._lock_registry.lock_acquire(self._config.service_group_name):
                start_failures = self._job_start_locked(timeline)
                if start_failures:
                    return self._job_result(self._DEPLOY_JOB_NAME, "failed", timeline, failures=start_failures)

                domain_record_stage_event(timeline, "poll", "started")
                poll_result = self._health_poller.poller_wait_until_healthy(self._config.services)
                domain_record_stage_event(
                    timeline, "poll", poll_result.phase.value, poll_result.poll_result_as_dict()
                )
                return self._job_finish_poll(timeline, poll_result)
        except DeploymentInProgressError as error:
            return self._job_in_progress_result(self._DEPLOY_JOB_NAME, timeline, error)

    def job_stop(self) -> None:
        """Stop the service group.

        Raises:
            CommandExecutionError: Raised when the runner cannot stop the group.
        """

        logger.info("Stopping service group %s", self._config.service_group_name)
        self._service_runner.runner_stop()

    def job_status(self) -> list[ServiceStatus]:
        return self._service_runner.runner_status()

    def job_logs(self, tail: int | None = None, follow: bool = False, services: Sequence[str] = ()) -> str:
        return self._service_runner.runner_logs(services=services, tail=tail, follow=follow)

    def _job_validate_environment(self, config: DeploymentOrchestratorConfig) -> list[FailureDetail]:
        env_file = config.compose_env_file.strip()
        if not env_file:
            if not config.required_environment_keys:
                return []
            return [
                FailureDetail(
                    kind=FailureKind.MISSING_CONFIG,
                    target="compose_env_file",
                    detail="compose_env_file is required when required_environment_keys are set",
                )
            ]
        if not Path(env_file).is_file():
            return [
                FailureDetail(
                    kind=FailureKind.MISSING_CONFIG,
                    target="compose_env_file",
                    detail=f"environment file not found: {env_file}",
                )
            ]

        env_values = dotenv_values(env_file)
        failures: list[FailureDetail] = []
        for key in config.required_environment_keys:
            value = env_values.get(key) or os.environ.get(key) or ""
            if not value.strip():
                failures.append(
                    FailureDetail(
                        kind=FailureKind.MISSING_CONFIG,
                        target=key,
                        detail=f"{key} is not set in {env_file}",
                    )
                )
        return failures

    def _job_run_validation(self, timeline: list[dict[str, object]]) -> tuple[FailureDetail, ...]:
        domain_record_stage_event(timeline, "validate", "started")
        validation = self.job_validate()
        if validation.validation_is_valid():
            domain_record_stage_event(timeline, "validate", "completed")
            return ()
        domain_record_stage_event(
            timeline,
            "validate",
            "failed",
            {"failures": [failure.failure_as_dict() for failure in validation.failures]},
        )
        return validation.failures

    def _job_start_locked(self, timeline: list[dict[str, object]]) -> tuple[FailureDetail, ...]:
        """Run prerequisite, pull, stop and start steps while holding the deployment lock.

        Args:
            timeline: Stage timeline to append to.

        Returns:
            tuple[FailureDetail, ...]: Failures; empty when the start commands succeeded.

        Raises:
            RuntimeError: Failures are returned, not raised.
        """

        group_name = self._config.service_group_name
        domain_record_stage_event(timeline, "deploy", "started", {"service_group": group_name})
        try:
            self._service_runner.runner_check_prerequisites()
            self._job_replace_previous_deployment()
            self._job_start_services(group_name)
        except DeploymentError as error:
            logger.error("Deploying service group %s failed (%s): %s", group_name, error.kind.value, error)
            domain_record_stage_event(timeline, "deploy", "failed", {"kind": error.kind.value})
            return (error.error_as_failure(),)

        logger.info("Service group %s started", group_name)
        domain_record_stage_event(timeline, "deploy", "completed")
        return ()

    def _job_replace_previous_deployment(self) -> None:
        if self._config.pull_images:
            try:
                self._service_runner.runner_pull()
            except CommandExecutionError as error:
                logger.warning("Image pull failed, continuing with local images: %s", error)

        try:
            self._service_runner.runner_stop()
        except CommandExecutionError as error:
            logger.warning("No previous deployment stopped: %s", error)

    def _job_start_services(self, group_name: str) -> None:
        try:
            self._service_runner.runner_start()
        except CommandExecutionError as error:
            raise ServiceStartFailedError(error.output.strip() or str(error), target=group_name) from error

    def _job_finish_poll(self, timeline: list[dict[str, object]], poll_result: HealthPollResult) -> DeploymentResult:
        if poll_result.phase is PollPhase.HEALTHY:
            endpoint_checks = self._job_smoke_test(timeline)
            return self._job_result(
                self._DEPLOY_JOB_NAME,
                "success",
                timeline,
                health=poll_result,
                endpoint_checks=endpoint_checks,
            )

        if poll_result.phase is PollPhase.CANCELLED:
            return self._job_result(self._DEPLOY_JOB_NAME, "cancelled", timeline, health=poll_result)

        captured_logs = self._job_capture_logs(poll_result.unhealthy_services)
        failures = tuple(
            FailureDetail(
                kind=FailureKind.TIMED_OUT,
                target=service_name,
                detail=f"{service_name} did not become healthy within {poll_result.elapsed_seconds:.0f}s",
            )
            for service_name in poll_result.unhealthy_services
        )
        return self._job_result(
            self._DEPLOY_JOB_NAME,
            "failed",
            timeline,
            failures=failures,
            health=poll_result,
            captured_logs=captured_logs,
        )

    def _job_capture_logs(self, service_names: Sequence[str]) -> dict[str, str]:
        captured_logs: dict[str, str] = {}
        for service_name in service_names:
            try:
                captured_logs[service_name] = self._service_runner.runner_logs(
                    services=(service_name,),
                    tail=self._config.log_tail_lines,
                )
            except CommandExecutionError as error:
                logger.warning("Could not capture logs for %s: %s", service_name, error)
                captured_logs[service_name] = f"logs unavailable: {error}"
        return captured_logs

    def _job_smoke_test(self, timeline: list[dict[str, object]]):
        if not self._config.public_endpoints:
            return ()
        domain_record_stage_event(timeline, "smoke_test", "started")
        if self._endpoint_client is not None:
            checks = probe_smoke_test_endpoints(self._config.public_endpoints, self._endpoint_client)
        else:
            with httpx.Client(timeout=SMOKE_TEST_TIMEOUT_SECONDS, follow_redirects=True) as http_client:
                checks = probe_smoke_test_endpoints(self._config.public_endpoints, http_client)
        unreachable = [check.url for check in checks if not check.reachable]
        domain_record_stage_event(
            timeline, "smoke_test", "completed", {"unreachable": unreachable} if unreachable else None
        )
        return tuple(checks)

    def _job_in_progress_result(
        self,
        job_name: str,
        timeline: list[dict[str, object]],
        error: DeploymentInProgressError,
    ) -> DeploymentResult:
        logger.error("%s", error)
        domain_record_stage_event(timeline, "deploy", "rejected", {"kind": error.kind.value})
        return self._job_result(job_name, "failed", timeline, failures=(error.error_as_failure(),))

    def _job_result(
        self,
        job_name: str,
        status: str,
        timeline: list[dict[str, object]],
        failures: tuple[FailureDetail, ...] = (),
        health: HealthPollResult | None = None,
        captured_logs: dict[str, str] | None = None,
        endpoint_checks: tuple = (),
    ) -> DeploymentResult:
        return DeploymentResult(
            job_name=job_name,
            status=status,
            service_group=self._config.service_group_name,
            failures=failures,
            timeline=timeline,
            health=health,
            captured_logs=captured_logs or {},
            endpoint_checks=endpoint_checks,
        )
