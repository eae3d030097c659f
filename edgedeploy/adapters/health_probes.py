"""Health probe adapters for HTTP, container and command health targets."""

from __future__ import annotations

import logging
import shlex
from typing import Final, Sequence

import httpx

from edgedeploy.domain import HealthSignal, ServiceSpec

from .commands import CommandExecutor, adapter_run_command
from .errors import CommandExecutionError
from .interfaces import EndpointCheck, HealthProbePort, ServiceRunnerPort

logger = logging.getLogger(__name__)

CONTAINER_TARGET_PREFIX: Final[str] = "container:"
_HTTP_TARGET_PREFIXES: Final[tuple[str, ...]] = ("http://", "https://")


class ServiceHealthProbe(HealthProbePort):
    """Health probe dispatching on the shape of `ServiceSpec.health_target`.

    - `http://` / `https://` targets are healthy on any status below 400.
    - `container:<name>` targets read the container health reported by the runner.
    - Anything else is a shell command that is healthy when it exits with 0.

    Transport errors, runner failures and command timeouts report `UNKNOWN`.
    Commands that are blank or cannot be split report `UNHEALTHY`.
    """

    def __init__(
        self,
        service_runner: ServiceRunnerPort,
        request_timeout_seconds: float = 5.0,
        http_client: httpx.Client | None = None,
        command_executor: CommandExecutor | None = None,
    ):
        """Initialize health probe.

        Args:
            service_runner: Runner used to read container health.
            request_timeout_seconds: Timeout for one HTTP request or command.
            http_client: Optional preconfigured httpx client.
            command_executor: Optional `subprocess.run` compatible callable.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when dependencies or timeouts are invalid.
        """

        if service_runner is None:
            raise ValueError("service_runner must not be None")
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be > 0")

        self._service_runner = service_runner
        self._request_timeout_seconds = request_timeout_seconds
        self._http_client = http_client or httpx.Client(timeout=request_timeout_seconds, follow_redirects=True)
        self._command_executor = command_executor

    def probe_check(self, service: ServiceSpec) -> HealthSignal:
        target = service.health_target.strip()
        if target.startswith(_HTTP_TARGET_PREFIXES):
            return self._probe_http(target)
        if target.startswith(CONTAINER_TARGET_PREFIX):
            container_name = target[len(CONTAINER_TARGET_PREFIX):].strip() or service.name
            return self._probe_container(container_name)
        return self._probe_command(target)

    def _probe_http(self, url: str) -> HealthSignal:
        try:
            response = self._http_client.get(url)
        except httpx.HTTPError as error:
            logger.debug("Health request to %s failed: %s", url, error)
            return HealthSignal.UNKNOWN
        if response.status_code < 400:
            return HealthSignal.HEALTHY
        return HealthSignal.UNHEALTHY

    def _probe_container(self, container_name: str) -> HealthSignal:
        try:
            statuses = self._service_runner.runner_status()
        except (CommandExecutionError, RuntimeError) as error:
            logger.debug("Container status lookup failed: %s", error)
            return HealthSignal.UNKNOWN

        for status in statuses:
            if container_name not in (status.name, status.container_name):
                continue
            health = status.health.strip().lower()
            if health == "healthy":
                return HealthSignal.HEALTHY
            if health == "unhealthy" or status.state.strip().lower() in ("exited", "dead"):
                return HealthSignal.UNHEALTHY
            return HealthSignal.UNKNOWN
        return HealthSignal.UNKNOWN

    def _probe_command(self, command: str) -> HealthSignal:
        try:
            command_vector = shlex.split(command)
        except ValueError as error:
            logger.warning("Health command %r cannot be parsed: %s", command, error)
            return HealthSignal.UNHEALTHY
        if not command_vector or not command_vector[0]:
            logger.warning("Health command %r names no program", command)
            return HealthSignal.UNHEALTHY

        try:
            adapter_run_command(
                command_vector,
                executor=self._command_executor,
                timeout_seconds=self._request_timeout_seconds,
            )
        except CommandExecutionError as error:
            if error.returncode is None:
                return HealthSignal.UNKNOWN
            return HealthSignal.UNHEALTHY
        return HealthSignal.HEALTHY


def probe_smoke_test_endpoints(endpoints: Sequence[str], http_client: httpx.Client) -> list[EndpointCheck]:
    """Request each public endpoint once and report reachability.

    Args:
        endpoints: Public URLs to test.
        http_client: httpx client used for requests.

    Returns:
        list[EndpointCheck]: One result per endpoint, in input order.

    Raises:
        RuntimeError: This helper does not raise runtime errors.
    """

    results: list[EndpointCheck] = []
    for url in endpoints:
        try:
            response = http_client.get(url)
        except httpx.HTTPError as error:
            logger.warning("Endpoint %s not responding: %s", url, error)
            results.append(EndpointCheck(url=url, reachable=False, detail=type(error).__name__))
            continue
        reachable = response.status_code < 400
        if not reachable:
            logger.warning("Endpoint %s answered HTTP %s", url, response.status_code)
        results.append(EndpointCheck(url=url, reachable=reachable, detail=f"HTTP {response.status_code}"))
    return results
