"""Custom exception hierarchy for memocmd."""

from __future__ import annotations

from typing import Any


class MemocmdError(Exception):
    """Base for all memocmd errors."""


class CommandError(MemocmdError):
    """A managed command did not complete successfully."""

    def __init__(self, command: str, message: str) -> None:
        super().__init__(message)
        self.command = command


class AlreadyCancelledError(CommandError):
    """The cancellation token was cancelled before any work began."""

    def __init__(self, command: str) -> None:
        super().__init__(command, f"Signal already aborted: {command!r}")


class AbortedError(CommandError):
    """The cancellation token fired while the command was outstanding."""

    def __init__(self, command: str, reason: Any = None) -> None:
        message = f"Command aborted: {command!r}"
        if reason is not None:
            message += f" ({reason})"
        super().__init__(command, message)
        self.reason = reason


class SpawnError(CommandError):
    """The command could not be started or failed asynchronously."""

    def __init__(self, command: str, cause: BaseException) -> None:
        super().__init__(command, f"Failed to run {command!r}: {cause}")


class NonZeroExitError(CommandError):
    """The command ran and exited with a non-zero code."""

    def __init__(self, command: str, exit_code: int) -> None:
        super().__init__(command, f"Command {command!r} exited with code {exit_code}")
        self.exit_code = exit_code
