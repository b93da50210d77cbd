"""Shared test fixtures — FakeSpawner for testing without real processes."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Callable

import pytest


class FakeProcessHandle:
    """Process handle that never starts anything. Tests drive its events."""

    def __init__(self, command: str, exit_code: int | None = None, error: Exception | None = None):
        self.command = command
        self.listeners: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self.kill_count = 0
        self.remove_count = 0
        if error is not None:
            asyncio.get_running_loop().call_soon(self.fail, error)
        elif exit_code is not None:
            asyncio.get_running_loop().call_soon(self.close, exit_code)

    def on(self, event: str, callback: Callable[[Any], None]) -> None:
        self.listeners[event].append(callback)

    def kill(self) -> None:
        self.kill_count += 1

    def remove_all_listeners(self) -> None:
        self.remove_count += 1
        self.listeners.clear()

    def close(self, exit_code: int) -> None:
        for callback in list(self.listeners.get("close", ())):
            callback(exit_code)

    def fail(self, error: Exception) -> None:
        for callback in list(self.listeners.get("error", ())):
            callback(error)


class FakeSpawner:
    """Spawner that records calls. No processes are started.

    ``outcomes`` maps a command to an exit code or an exception; commands not
    listed use ``default``. An outcome of None leaves the handle pending until
    the test calls ``handle.close()`` or ``handle.fail()``.
    """

    def __init__(self, default: int | Exception | None = 0, outcomes: dict[str, Any] | None = None):
        self.default = default
        self.outcomes = outcomes or {}
        self.handles: list[FakeProcessHandle] = []

    def __call__(self, command: str) -> FakeProcessHandle:
        outcome = self.outcomes.get(command, self.default)
        if isinstance(outcome, Exception):
            handle = FakeProcessHandle(command, error=outcome)
        else:
            handle = FakeProcessHandle(command, exit_code=outcome)
        self.handles.append(handle)
        return handle

    @property
    def calls(self) -> list[str]:
        return [h.command for h in self.handles]

    @property
    def last(self) -> FakeProcessHandle:
        return self.handles[-1]


async def settle() -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def spawner():
    return FakeSpawner()


@pytest.fixture
def pending_spawner():
    return FakeSpawner(default=None)


@pytest.fixture
def spawner_factory():
    def _factory(default: int | Exception | None = 0, outcomes: dict[str, Any] | None = None) -> FakeSpawner:
        return FakeSpawner(default=default, outcomes=outcomes)
    return _factory
