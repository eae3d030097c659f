"""Project-native typed exceptions for external command failures."""

from __future__ import annotations

from typing import Sequence


class CommandExecutionError(RuntimeError):
    """External command exited with a failure status.

    Attributes:
        command: Executed argument vector.
        returncode: Process exit status, or None when the process never ran.
        output: Combined stdout and stderr text.
    """

    def __init__(self, message: str, command: Sequence[str], returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.command = tuple(command)
        self.returncode = returncode
        self.output = output
