"""Temporary HTTP-01 challenge listener running uvicorn in a background thread."""

from __future__ import annotations

import errno
import logging
import socket
import threading
import time
from typing import Callable

import uvicorn
from fastapi import FastAPI

from edgedeploy.domain import ChallengeFailedError

from .interfaces import ChallengeListenerPort

logger = logging.getLogger(__name__)


class UvicornChallengeListener(ChallengeListenerPort):
    """Challenge listener serving the challenge application for the duration of one request."""

    def __init__(
        self,
        application: FastAPI,
        host: str = "0.0.0.0",
        port: int = 80,
        startup_timeout_seconds: float = 5.0,
        clock: Callable[[], float] | None = None,
    ):
        """Initialize challenge listener.

        Args:
            application: ASGI application serving challenge tokens.
            host: Bind host.
            port: Bind port.
            startup_timeout_seconds: Maximum wait for the server to bind.
            clock: Optional monotonic clock.

        Returns:
            None: Initializer does not return a value.

        Raises:
            ValueError: Raised when configuration values are invalid.
        """

        if application is None:
            raise ValueError("application must not be None")
        if port < 1 or port > 65535:
            raise ValueError("port must be in 1..65535")
        if startup_timeout_seconds <= 0:
            raise ValueError("startup_timeout_seconds must be > 0")

        self._application = application
        self._host = host
        self._port = port
        self._startup_timeout_seconds = startup_timeout_seconds
        self._clock = clock or time.monotonic
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    def listener_is_running(self) -> bool:
        """Return whether the listener thread is serving requests.

        Returns:
            bool: True when the server has started and its thread is alive.
        """

        return (
            self._server is not None
            and self._thread is not None
            and self._thread.is_alive()
            and bool(self._server.started)
        )

    def listener_start(self) -> bool:
        """Start uvicorn and wait until the port is bound.

        When another process already listens on the port nothing is started:
        the running proxy serves the challenge webroot certbot writes into.

        Returns:
            bool: True when this listener serves the port, False when it is already served.

        Raises:
            ChallengeFailedError: Raised when the server does not start in time (no privilege, bad host).
        """

        if self.listener_is_running():
            return True
        if listener_port_in_use(self._host, self._port):
            logger.info(
                "Port %s:%s is already served; challenge tokens go through the running proxy",
                self._host,
                self._port,
            )
            return False

        config = uvicorn.Config(
            self._application,
            host=self._host,
            port=self._port,
            log_level="warning",
            lifespan="off",
        )
        server = uvicorn.Server(config)
        thread = threading.Thread(target=server.run, name="challenge-listener", daemon=True)
        self._server = server
        self._thread = thread
        thread.start()

        deadline = self._clock() + self._startup_timeout_seconds
        while self._clock() < deadline:
            if server.started:
                logger.info("Challenge listener serving on %s:%s", self._host, self._port)
                return True
            if not thread.is_alive():
                break
            time.sleep(0.05)

        self.listener_stop()
        raise ChallengeFailedError(
            f"challenge listener could not bind {self._host}:{self._port}",
            target=f"{self._host}:{self._port}",
        )

    def listener_stop(self) -> None:
        server = self._server
        thread = self._thread
        self._server = None
        self._thread = None
        if server is None or thread is None:
            return
        server.should_exit = True
        thread.join(timeout=self._startup_timeout_seconds)
        logger.info("Challenge listener on %s:%s stopped", self._host, self._port)


def listener_port_in_use(host: str, port: int) -> bool:
    """Return whether another socket already listens on the address.

    Args:
        host: Bind host.
        port: Bind port.

    Returns:
        bool: True only for `EADDRINUSE`; other bind errors are left to the server start.
    """

    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as bind_socket:
        bind_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            bind_socket.bind((host, port))
        except OSError as error:
            return error.errno == errno.EADDRINUSE
    return False
