"""Docker Compose service runner adapter for the managed service group."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Callable, Final, Sequence

from edgedeploy.domain import RuntimeUnavailableError, ServiceStatus

from .commands import CommandExecutor, adapter_run_command
from .errors import CommandExecutionError
from .interfaces import ServiceRunnerPort

logger = logging.getLogger(__name__)


class DockerComposeServiceRunner(ServiceRunnerPort):
    """Service runner backed by the `docker compose` v2 CLI."""

    _DOCKER_BINARY: Final[str] = "docker"

    def __init__(
        self,
        project_name: str,
        compose_file: str,
        env_file: str | None = None,
        command_executor: CommandExecutor | None = None,
        binary_locator: Callable[[str], str | None] | None = None,
        command_timeout_seconds: float = 600.0,
    ):
        """Initialize compose runner.

        Args:
            project_name: Compose project name identifying the service group.
            compose_file: Compose file path.
            env_file: Optional env file passed with `--env-file`.
            command_executor: Optional `subprocess.run` compatible callable.
            binary_locator: Optional `shutil.which` compatible callable.
            command_timeout_seconds: Timeout for pull/up/down commands.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when project name or compose file is blank.
        """

        normalized_project_name = project_name.strip()
        normalized_compose_file = compose_file.strip()
        if not normalized_project_name:
            raise ValueError("project_name must not be blank")
        if not normalized_compose_file:
            raise ValueError("compose_file must not be blank")
        if command_timeout_seconds <= 0:
            raise ValueError("command_timeout_seconds must be > 0")

        self._project_name = normalized_project_name
        self._compose_file = normalized_compose_file
        self._env_file = (env_file or "").strip() or None
        self._command_executor = command_executor
        self._binary_locator = binary_locator or shutil.which
        self._command_timeout_seconds = command_timeout_seconds

    def runner_compose_command(self, *arguments: str) -> list[str]:
        """Build a compose argument vector scoped to this service group.

        Args:
            arguments: Compose subcommand and its arguments.

        Returns:
            list[str]: Complete argument vector.

        Raises:
            RuntimeError: This method does not raise runtime errors.
        """

        command = [self._DOCKER_BINARY, "compose", "--project-name", self._project_name]
        if self._env_file is not None:
            command.extend(["--env-file", self._env_file])
        command.extend(["-f", self._compose_file])
        command.extend(arguments)
        return command

    def runner_check_prerequisites(self) -> None:
        """Verify docker is installed, running and ships compose v2.

        Raises:
            RuntimeUnavailableError: Raised when any prerequisite is missing.
        """

        if self._binary_locator(self._DOCKER_BINARY) is None:
            raise RuntimeUnavailableError("Docker is not installed", target=self._DOCKER_BINARY)
        try:
            adapter_run_command([self._DOCKER_BINARY, "info"], executor=self._command_executor, timeout_seconds=30)
        except CommandExecutionError as error:
            raise RuntimeUnavailableError("Docker is not running", target=self._DOCKER_BINARY) from error
        try:
            adapter_run_command(
                [self._DOCKER_BINARY, "compose", "version"],
                executor=self._command_executor,
                timeout_seconds=30,
            )
        except CommandExecutionError as error:
            raise RuntimeUnavailableError("Docker Compose v2 is not available", target="docker compose") from error
        if not Path(self._compose_file).is_file():
            raise RuntimeUnavailableError(
                f"Docker compose file {self._compose_file} not found",
                target=self._compose_file,
            )

    def runner_pull(self) -> None:
        logger.info("Pulling images for service group %s", self._project_name)
        adapter_run_command(
            self.runner_compose_command("pull"),
            executor=self._command_executor,
            timeout_seconds=self._command_timeout_seconds,
        )

    def runner_stop(self) -> None:
        logger.info("Stopping service group %s", self._project_name)
        adapter_run_command(
            self.runner_compose_command("down", "--remove-orphans"),
            executor=self._command_executor,
            timeout_seconds=self._command_timeout_seconds,
        )

    def runner_start(self) -> None:
        logger.info("Starting service group %s", self._project_name)
        adapter_run_command(
            self.runner_compose_command("up", "-d"),
            executor=self._command_executor,
            timeout_seconds=self._command_timeout_seconds,
        )

    def runner_status(self) -> list[ServiceStatus]:
        """Return container status rows parsed from `compose ps` JSON output.

        Returns:
            list[ServiceStatus]: One row per container, including stopped ones.

        Raises:
            CommandExecutionError: Raised when the status command fails.
            RuntimeError: Raised when output is not valid JSON.
        """

        completed = adapter_run_command(
            self.runner_compose_command("ps", "--all", "--format", "json"),
            executor=self._command_executor,
            timeout_seconds=60,
        )
        return runner_parse_ps_output(completed.stdout or "")

    def runner_logs(self, services: Sequence[str] = (), tail: int | None = None, follow: bool = False) -> str:
        arguments = ["logs", "--no-color"]
        if tail is not None:
            arguments.extend(["--tail", str(tail)])
        if follow:
            arguments.append("--follow")
        arguments.extend(services)
        completed = adapter_run_command(
            self.runner_compose_command(*arguments),
            executor=self._command_executor,
            timeout_seconds=None if follow else 120,
            capture_output=not follow,
        )
        return "" if follow else (completed.stdout or "")


def runner_parse_ps_output(output: str) -> list[ServiceStatus]:
    """Parse `docker compose ps --format json` output.

    Compose releases print either one JSON array or one JSON object per line;
    both shapes are accepted.

    Args:
        output: Raw command stdout.

    Returns:
        list[ServiceStatus]: Parsed status rows.

    Raises:
        RuntimeError: Raised when output is not valid JSON.
    """

    stripped_output = output.strip()
    if not stripped_output:
        return []

    try:
        if stripped_output.startswith("["):
            rows = json.loads(stripped_output)
        else:
            rows = [json.loads(line) for line in stripped_output.splitlines() if line.strip()]
    except json.JSONDecodeError as error:
        raise RuntimeError("docker compose ps returned invalid JSON") from error

    statuses: list[ServiceStatus] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        statuses.append(
            ServiceStatus(
                name=str(row.get("Service") or row.get("Name") or ""),
                state=str(row.get("State") or ""),
                health=str(row.get("Health") or ""),
                container_name=str(row.get("Name") or ""),
            )
        )
    return statuses
