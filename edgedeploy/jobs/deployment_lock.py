"""Per-service-group deployment locks guarding against concurrent deployments."""

from __future__ import annotations

import fcntl
import logging
import os
import re
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from edgedeploy.domain import DeploymentInProgressError

logger = logging.getLogger(__name__)

_UNSAFE_FILE_CHARACTERS = re.compile(r"[^A-Za-z0-9_.-]")


class DeploymentLockRegistry:
    """Non-blocking deployment locks keyed by service group name.

    In-process callers are serialized through a shared `threading.Lock` per
    group; separate processes are serialized through an `flock` on
    `<lock_directory>/<group>.lock` when a lock directory is configured.
    """

    _process_locks: dict[str, threading.Lock] = {}
    _process_locks_guard = threading.Lock()

    def __init__(self, lock_directory: str | None = None):
        """Initialize lock registry.

        Args:
            lock_directory: Optional directory for cross-process lock files.
        """

        normalized_directory = (lock_directory or "").strip()
        self._lock_directory = Path(normalized_directory) if normalized_directory else None

    @classmethod
    def _lock_for_group(cls, service_group_name: str) -> threading.Lock:
        with cls._process_locks_guard:
            group_lock = cls._process_locks.get(service_group_name)
            if group_lock is None:
                group_lock = threading.Lock()
                cls._process_locks[service_group_name] = group_lock
            return group_lock

    @contextmanager
    def lock_acquire(self, service_group_name: str) -> Iterator[None]:
        """Hold the deployment lock for a service group.

        Args:
            service_group_name: Service group identity.

        Yields:
            None: Lock is held for the duration of the block.

        Raises:
            DeploymentInProgressError: Raised immediately when another deployment holds the lock.
        """

        group_lock = self._lock_for_group(service_group_name)
        if not group_lock.acquire(blocking=False):
            raise DeploymentInProgressError(
                f"a deployment of {service_group_name} is already in progress",
                target=service_group_name,
            )
        try:
            with self._lock_file(service_group_name):
                yield
        finally:
            group_lock.release()

    @contextmanager
    def _lock_file(self, service_group_name: str) -> Iterator[None]:
        if self._lock_directory is None:
            yield
            return

        self._lock_directory.mkdir(parents=True, exist_ok=True)
        lock_path = self._lock_directory / f"{_UNSAFE_FILE_CHARACTERS.sub('_', service_group_name)}.lock"
        file_descriptor = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            try:
                fcntl.flock(file_descriptor, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as error:
                raise DeploymentInProgressError(
                    f"a deployment of {service_group_name} is already in progress (lock file {lock_path})",
                    target=service_group_name,
                ) from error
            logger.debug("Acquired deployment lock %s", lock_path)
            try:
                yield
            finally:
                fcntl.flock(file_descriptor, fcntl.LOCK_UN)
        finally:
            os.close(file_descriptor)
