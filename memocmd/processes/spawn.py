"""Spawning shell commands as OS processes.

A spawner turns a command string into a ProcessHandle. The handle reports
exactly one terminal event to its listeners:

  - "error": the process could not be started (callback gets the exception)
  - "close": the process exited (callback gets the integer exit code)

ManagedCommand only talks to this interface, so tests substitute a fake
spawner and never start real processes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Protocol

from memocmd.config import settings

_logger = logging.getLogger(__name__)

ERROR = "error"
CLOSE = "close"

# Strong references to in-flight spawn tasks; the loop only keeps weak ones
_spawn_tasks: set[asyncio.Task] = set()


class ProcessHandle(Protocol):
    def on(self, event: str, callback: Callable[[Any], None]) -> None: ...

    def kill(self) -> None: ...

    def remove_all_listeners(self) -> None: ...


Spawner = Callable[[str], ProcessHandle]


class ShellProcessHandle:
    """A command started through the system shell.

    The process is created in a background task, in its own session so that
    kill() takes down everything the shell started, not only the shell.
    """

    def __init__(
        self,
        command: str,
        shell_executable: str | None = None,
        cwd: str | Path | None = None,
    ) -> None:
        self.command = command
        self._shell_executable = shell_executable
        self._cwd = cwd
        self._listeners: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self._process: asyncio.subprocess.Process | None = None
        self._killed = False
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"spawn-{command[:40]}"
        )
        _spawn_tasks.add(self._task)
        self._task.add_done_callback(_spawn_tasks.discard)

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        self._listeners[event].append(callback)

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    def kill(self) -> None:
        """Forcibly terminate the process. Safe to call more than once."""
        self._killed = True
        proc = self._process
        if proc is None or proc.returncode is not None:
            # Not started yet: _run kills it as soon as it exists
            return
        try:
            if sys.platform != "win32":
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except ProcessLookupError:
            pass

    async def _run(self) -> None:
        kwargs: dict[str, Any] = {}
        if sys.platform != "win32":
            kwargs["start_new_session"] = True
        if self._shell_executable:
            kwargs["executable"] = self._shell_executable
        try:
            self._process = await asyncio.create_subprocess_shell(
                self.command,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=self._cwd,
                **kwargs,
            )
        except Exception as e:
            _logger.debug("Could not start %r: %s", self.command, e)
            self._emit(ERROR, e)
            return

        _logger.debug("Started %r (pid %d)", self.command, self._process.pid)
        if self._killed:
            self.kill()
        exit_code = await self._process.wait()
        self._emit(CLOSE, exit_code)

    def _emit(self, event: str, payload: Any) -> None:
        for callback in list(self._listeners.get(event, ())):
            callback(payload)


def spawn_shell(command: str) -> ShellProcessHandle:
    """Default spawner: run ``command`` through the configured shell."""
    return ShellProcessHandle(
        command,
        shell_executable=settings.shell_executable,
        cwd=settings.cwd,
    )
