"""CommandGroup — run a batch of commands under one cancellation token."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Iterator, Protocol

from memocmd.cancellation import CancelToken
from memocmd.exceptions import AbortedError
from memocmd.types import CommandId, CommandStatus

_logger = logging.getLogger(__name__)


class Runnable(Protocol):
    """Anything CommandGroup can run: ManagedCommand or MemoizedCommand."""

    @property
    def id(self) -> CommandId: ...

    @property
    def command(self) -> str: ...

    async def run(self, token: CancelToken | None = None) -> None: ...

    def status(self) -> CommandStatus: ...


class CommandGroup:
    """Ordered collection of commands that succeed or fail together."""

    def __init__(self, commands: Iterable[Runnable] | None = None) -> None:
        self._commands: list[Runnable] = list(commands or [])

    def add(self, command: Runnable) -> Runnable:
        self._commands.append(command)
        return command

    def get(self, command_id: CommandId) -> Runnable | None:
        for command in self._commands:
            if command.id == command_id:
                return command
        return None

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[Runnable]:
        return iter(self._commands)

    def list_commands(self) -> list[dict[str, Any]]:
        """Return status rows for every command, in insertion order."""
        return [c.status().model_dump() for c in self._commands]

    async def run_all(self, token: CancelToken | None = None) -> None:
        """Run every command concurrently and wait until all have succeeded.

        Fails with the first member error, or with AbortedError as soon as
        ``token`` fires. Members still outstanding at that point are cancelled,
        which kills their processes.
        """
        label = ", ".join(c.command for c in self._commands)
        if token is not None:
            token.raise_if_cancelled(label)
        if not self._commands:
            return

        loop = asyncio.get_running_loop()
        tasks = [
            loop.create_task(c.run(token), name=f"group-{c.id}")
            for c in self._commands
        ]
        batch = asyncio.gather(*tasks)
        aborted: asyncio.Future[None] = loop.create_future()
        batch.add_done_callback(_consume)
        aborted.add_done_callback(_consume)

        def on_cancel(reason: Any) -> None:
            if not aborted.done():
                aborted.set_exception(AbortedError(label, reason))

        if token is not None:
            token.add_listener(on_cancel)

        _logger.debug("Running %d commands", len(tasks))
        try:
            await asyncio.wait({batch, aborted}, return_when=asyncio.FIRST_COMPLETED)
            if batch.done():
                batch.result()
            else:
                aborted.result()
        finally:
            if token is not None:
                token.remove_listener(on_cancel)
            if not aborted.done():
                aborted.cancel()
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Collect stragglers so their errors are not reported as unhandled
            await asyncio.gather(*tasks, return_exceptions=True)


def _consume(future: asyncio.Future) -> None:
    # Only the first failure is raised; mark the rest as retrieved
    if not future.cancelled():
        future.exception()
