"""Subprocess execution helper shared by command-line tool adapters."""

from __future__ import annotations

import logging
import subprocess
from typing import Callable, Sequence

from .errors import CommandExecutionError

logger = logging.getLogger(__name__)

CommandExecutor = Callable[..., "subprocess.CompletedProcess[str]"]


def adapter_run_command(
    command: Sequence[str],
    executor: CommandExecutor | None = None,
    timeout_seconds: float | None = None,
    capture_output: bool = True,
) -> "subprocess.CompletedProcess[str]":
    """Run one external command and raise a typed error on failure.

    Args:
        command: Argument vector.
        executor: Optional `subprocess.run` compatible callable.
        timeout_seconds: Optional wall-clock timeout.
        capture_output: Capture stdout/stderr instead of inheriting the terminal.

    Returns:
        subprocess.CompletedProcess[str]: Completed process with text output.

    Raises:
        CommandExecutionError: Raised when the command is missing, times out or exits non-zero.
        ValueError: Raised when the command vector is empty.
    """

    run = executor or subprocess.run
    command_vector = [str(argument) for argument in command]
    if not command_vector:
        raise ValueError("command must not be empty")
    logger.debug("Running command: %s", " ".join(command_vector))
    try:
        completed = run(
            command_vector,
            capture_output=capture_output,
            text=True,
            timeout=timeout_seconds,
            check=False,
        )
    except FileNotFoundError as error:
        raise CommandExecutionError(
            f"command not found: {command_vector[0]}",
            command=command_vector,
        ) from error
    except OSError as error:
        raise CommandExecutionError(
            f"command could not be started: {command_vector[0]}: {error}",
            command=command_vector,
        ) from error
    except subprocess.TimeoutExpired as error:
        raise CommandExecutionError(
            f"command timed out after {timeout_seconds}s: {' '.join(command_vector)}",
            command=command_vector,
            output=_adapter_combine_output(error.stdout, error.stderr),
        ) from error

    if completed.returncode != 0:
        raise CommandExecutionError(
            f"command exited with status {completed.returncode}: {' '.join(command_vector)}",
            command=command_vector,
            returncode=completed.returncode,
            output=_adapter_combine_output(completed.stdout, completed.stderr),
        )
    return completed


def _adapter_combine_output(stdout: str | bytes | None, stderr: str | bytes | None) -> str:
    parts: list[str] = []
    for stream in (stdout, stderr):
        if not stream:
            continue
        parts.append(stream.decode("utf-8", errors="replace") if isinstance(stream, bytes) else stream)
    return "\n".join(parts)
