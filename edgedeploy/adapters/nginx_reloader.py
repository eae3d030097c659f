"""Reverse proxy reload adapter using `nginx -s reload` inside the proxy container."""

from __future__ import annotations

import logging

from .commands import CommandExecutor, adapter_run_command
from .interfaces import ProxyReloaderPort

logger = logging.getLogger(__name__)


class DockerNginxReloader(ProxyReloaderPort):
    """Graceful nginx reload through `docker exec`."""

    def __init__(self, container_name: str, command_executor: CommandExecutor | None = None):
        """Initialize proxy reloader.

        Args:
            container_name: Name of the running nginx container.
            command_executor: Optional `subprocess.run` compatible callable.

        Raises:
            ValueError: Raised when container name is blank.
        """

        normalized_container_name = container_name.strip()
        if not normalized_container_name:
            raise ValueError("container_name must not be blank")
        self._container_name = normalized_container_name
        self._command_executor = command_executor

    def proxy_reload(self) -> None:
        """Send the reload signal; nginx finishes in-flight requests on old workers.

        Raises:
            CommandExecutionError: Raised when the container is not running or nginx rejects the config.
        """

        adapter_run_command(
            ["docker", "exec", self._container_name, "nginx", "-s", "reload"],
            executor=self._command_executor,
            timeout_seconds=30,
        )
        logger.info("Reloaded proxy configuration in %s", self._container_name)
