"""memocmd — cancellable, memoizable shell commands."""

from importlib.metadata import version, PackageNotFoundError

from memocmd.cancellation import CancelSource, CancelToken
from memocmd.exceptions import (
    AbortedError,
    AlreadyCancelledError,
    CommandError,
    MemocmdError,
    NonZeroExitError,
    SpawnError,
)
from memocmd.processes import CommandGroup, ManagedCommand, MemoizedCommand

try:
    __version__ = version("memocmd")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development

__all__ = [
    "AbortedError",
    "AlreadyCancelledError",
    "CancelSource",
    "CancelToken",
    "CommandError",
    "CommandGroup",
    "ManagedCommand",
    "MemocmdError",
    "MemoizedCommand",
    "NonZeroExitError",
    "SpawnError",
]
