"""ManagedCommand — one shell command as a cancellable unit of work.

A ManagedCommand spawns its command on every run(). memoize() returns a
MemoizedCommand around it: token-bearing runs are queued and executed one at
a time, and once a run succeeds for a token, later runs with that same token
object return immediately without spawning.

Invariants:
  - ManagedCommand: any number of concurrent executions, each with its own
    handle, tracked in a set of live handles.
  - MemoizedCommand: at most one queued execution in flight; the active slot
    stays occupied from dequeue until that execution has cleaned up.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from memocmd.cancellation import CancelToken
from memocmd.config import settings
from memocmd.exceptions import (
    AbortedError,
    CommandError,
    NonZeroExitError,
    SpawnError,
)
from memocmd.processes.spawn import CLOSE, ERROR, ProcessHandle, Spawner, spawn_shell
from memocmd.types import CommandId, CommandStatus

_logger = logging.getLogger(__name__)


class ManagedCommand:
    """A shell command that can be run, cancelled and observed."""

    def __init__(
        self,
        command_id: CommandId,
        command: str,
        *,
        spawner: Spawner | None = None,
    ) -> None:
        self._id = command_id
        self._command = command
        self._spawner = spawner or spawn_shell
        self._running: set[ProcessHandle] = set()

    @property
    def id(self) -> CommandId:
        return self._id

    @property
    def command(self) -> str:
        return self._command

    @property
    def memoization_enabled(self) -> bool:
        return False

    @property
    def running(self) -> int:
        """Number of executions currently holding a live process."""
        return len(self._running)

    async def run(self, token: CancelToken | None = None) -> None:
        """Spawn the command and wait for it to exit successfully.

        Raises AlreadyCancelledError if ``token`` has already fired, AbortedError
        if it fires while the process runs, SpawnError if the process cannot be
        started and NonZeroExitError if it exits with a non-zero code.
        """
        if token is not None:
            token.raise_if_cancelled(self._command)
        await self._exec(token)

    def memoize(self) -> MemoizedCommand:
        """Return a memoized view of this command. ``self`` is left unchanged."""
        return MemoizedCommand(self)

    def status(self) -> CommandStatus:
        return CommandStatus(
            id=str(self._id),
            command=self._command,
            running=self.running,
        )

    async def _exec(self, token: CancelToken | None = None) -> None:
        """Spawn once and settle on the first terminal event."""
        if token is not None and token.cancelled:
            # Fired while the request waited in a queue
            raise AbortedError(self._command, token.reason)

        outcome: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        handle: ProcessHandle | None = None
        cleaned_up = False

        def cleanup() -> None:
            nonlocal cleaned_up
            if cleaned_up:
                return
            cleaned_up = True
            if handle is not None:
                handle.remove_all_listeners()
                handle.kill()
                self._running.discard(handle)
            if token is not None:
                token.remove_listener(on_cancel)

        def settle(error: BaseException | None = None) -> None:
            if outcome.done():
                return
            cleanup()
            if error is None:
                outcome.set_result(None)
            else:
                outcome.set_exception(error)

        def on_cancel(reason: Any) -> None:
            _logger.debug("Aborting %r: %s", self._command, reason)
            settle(AbortedError(self._command, reason))

        def on_error(exc: BaseException) -> None:
            error = SpawnError(self._command, exc)
            error.__cause__ = exc
            settle(error)

        def on_close(exit_code: int) -> None:
            _logger.debug("%r exited with code %s", self._command, exit_code)
            settle(None if exit_code == 0 else NonZeroExitError(self._command, exit_code))

        if token is not None:
            token.add_listener(on_cancel)

        try:
            handle = self._spawner(self._command)
        except Exception as e:
            on_error(e)
        else:
            self._running.add(handle)
            handle.on(ERROR, on_error)
            # A handle may emit while a listener is being registered
            if not outcome.done():
                handle.on(CLOSE, on_close)
            _logger.debug("Spawned %r for command %s", self._command, self._id)

        try:
            await outcome
        finally:
            # The awaiting task may have been cancelled before any event fired
            cleanup()

    def __repr__(self) -> str:
        return f"ManagedCommand(id={self._id!r}, command={self._command!r})"


@dataclass
class PendingRequest:
    """A token-bearing run() waiting for its turn in a MemoizedCommand queue."""

    token: CancelToken
    future: asyncio.Future[None] = field(
        default_factory=lambda: asyncio.get_running_loop().create_future()
    )


class MemoizedCommand:
    """Memoized view of a ManagedCommand.

    Requests carrying a token run strictly one at a time in arrival order.
    A success for a token is remembered (by token identity) and resolves every
    queued request holding that token without spawning again. Failures are
    never remembered.

    share_failures controls what happens to queued requests holding the token
    of a failed execution: True fails them with the same error, False leaves
    them queued so they get their own attempt later.
    """

    def __init__(
        self,
        inner: ManagedCommand,
        *,
        share_failures: bool | None = None,
    ) -> None:
        self._inner = inner
        self._share_failures = (
            settings.share_failures if share_failures is None else share_failures
        )
        self._queue: deque[PendingRequest] = deque()
        self._active: asyncio.Task[None] | None = None
        self._executing: PendingRequest | None = None
        self._completed: set[CancelToken] = set()

    @property
    def id(self) -> CommandId:
        return self._inner.id

    @property
    def command(self) -> str:
        return self._inner.command

    @property
    def memoization_enabled(self) -> bool:
        return True

    @property
    def share_failures(self) -> bool:
        return self._share_failures

    @property
    def active(self) -> bool:
        """Whether a queued request is executing right now."""
        return self._active is not None

    @property
    def pending(self) -> int:
        return len(self._queue)

    def has_completed(self, token: CancelToken) -> bool:
        return token in self._completed

    def memoize(self) -> MemoizedCommand:
        return self

    async def run(self, token: CancelToken | None = None) -> None:
        if token is not None:
            token.raise_if_cancelled(self.command)
        if token is None:
            # Nothing to memoize on
            await self._inner._exec()
            return
        if token in self._completed:
            _logger.debug("%r already completed for %r", self.command, token)
            return

        request = PendingRequest(token)
        self._queue.append(request)
        _logger.debug("Queued %r (%d pending)", self.command, len(self._queue))
        self._drain()
        try:
            await request.future
        except asyncio.CancelledError:
            self._abandon(request)
            raise

    def status(self) -> CommandStatus:
        return CommandStatus(
            id=str(self.id),
            command=self.command,
            memoized=True,
            running=self._inner.running,
            pending=self.pending,
            completed_tokens=len(self._completed),
        )

    def _drain(self) -> None:
        if self._active is not None:
            return
        while self._queue:
            request = self._queue.popleft()
            if request.future.done():
                # Caller stopped waiting before its turn came
                continue
            self._executing = request
            self._active = asyncio.get_running_loop().create_task(
                self._execute(request), name=f"memoized-{self.id}"
            )
            return

    def _abandon(self, request: PendingRequest) -> None:
        """Stop the running execution once nobody waits for its token."""
        current = self._executing
        if current is None or self._active is None or current.token is not request.token:
            return
        if not current.future.done():
            return
        if any(r.token is current.token and not r.future.done() for r in self._queue):
            # A co-token waiter still wants the outcome
            return
        _logger.debug("Cancelling abandoned execution of %r", self.command)
        self._active.cancel()

    async def _execute(self, request: PendingRequest) -> None:
        try:
            await self._inner._exec(request.token)
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as e:
            self._fail(request, e)
        else:
            self._succeed(request)
        finally:
            self._active = None
            self._executing = None
            self._drain()

    def _succeed(self, request: PendingRequest) -> None:
        token = request.token
        self._completed.add(token)
        _set_result(request.future)
        for waiter in self._take_waiters(token):
            _set_result(waiter.future)

    def _fail(self, request: PendingRequest, error: Exception) -> None:
        _set_exception(request.future, error)
        if not self._share_failures or not isinstance(error, CommandError):
            return
        for waiter in self._take_waiters(request.token):
            _set_exception(waiter.future, error)

    def _take_waiters(self, token: CancelToken) -> list[PendingRequest]:
        """Remove and return queued requests holding ``token``."""
        waiters = [r for r in self._queue if r.token is token]
        if waiters:
            self._queue = deque(r for r in self._queue if r.token is not token)
            _logger.debug(
                "Settling %d queued request(s) for %r with shared outcome",
                len(waiters), self.command,
            )
        return waiters

    def __repr__(self) -> str:
        return f"MemoizedCommand({self._inner!r})"


def _set_result(future: asyncio.Future[None]) -> None:
    if not future.done():
        future.set_result(None)


def _set_exception(future: asyncio.Future[None], error: BaseException) -> None:
    if not future.done():
        future.set_exception(error)
