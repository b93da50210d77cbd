"""Cancellation tokens — one-shot signals shared across a batch of commands.

A CancelSource owns the ability to cancel; the CancelToken it hands out can
only be observed. Commands check the token eagerly before doing any work and
subscribe to it while a process is running.

Usage:
    source = CancelSource()
    await command.run(source.token)
    ...
    source.cancel("shutting down")

Tokens are compared by identity: they double as the memoization key for
MemoizedCommand, so two distinct tokens never share a cached result.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from memocmd.exceptions import AlreadyCancelledError

_logger = logging.getLogger(__name__)

CancelListener = Callable[[Any], None]


class CancelToken:
    """Read-only side of a cancellation signal."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Any = None
        self._listeners: list[CancelListener] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Any:
        return self._reason

    def add_listener(self, callback: CancelListener) -> None:
        """Call ``callback(reason)`` once when the token is cancelled.

        Has no effect on a token that has already fired.
        """
        if self._cancelled:
            return
        self._listeners.append(callback)

    def remove_listener(self, callback: CancelListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def raise_if_cancelled(self, command: str = "") -> None:
        if self._cancelled:
            raise AlreadyCancelledError(command)

    def _fire(self, reason: Any) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener(reason)
            except Exception:
                _logger.exception("Cancellation listener %r failed", listener)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"<CancelToken {state} at {id(self):#x}>"


class CancelSource:
    """Owner of a CancelToken."""

    def __init__(self) -> None:
        self.token = CancelToken()

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def cancel(self, reason: Any = None) -> None:
        """Fire the token. Later calls are no-ops."""
        self.token._fire(reason)
