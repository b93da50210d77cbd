"""Process management — shell commands as cancellable units of work.

This package provides:
- ManagedCommand: spawn a command per run, cancellable through a CancelToken
- MemoizedCommand: queued, token-memoized view of a ManagedCommand
- CommandGroup: run a batch of commands that succeed or fail together
"""

from memocmd.processes.command import ManagedCommand, MemoizedCommand, PendingRequest
from memocmd.processes.group import CommandGroup
from memocmd.processes.spawn import ProcessHandle, ShellProcessHandle, Spawner, spawn_shell

__all__ = [
    "CommandGroup",
    "ManagedCommand",
    "MemoizedCommand",
    "PendingRequest",
    "ProcessHandle",
    "ShellProcessHandle",
    "Spawner",
    "spawn_shell",
]
