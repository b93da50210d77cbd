"""Tests for cancellation tokens."""

import pytest

from memocmd.cancellation import CancelSource, CancelToken
from memocmd.exceptions import AlreadyCancelledError


def test_new_token_is_not_cancelled():
    source = CancelSource()
    assert isinstance(source.token, CancelToken)
    assert not source.cancelled
    assert not source.token.cancelled
    assert source.token.reason is None


def test_cancel_sets_state_and_reason():
    source = CancelSource()
    source.cancel("shutdown")
    assert source.cancelled
    assert source.token.cancelled
    assert source.token.reason == "shutdown"


def test_listeners_fire_once_in_order():
    source = CancelSource()
    fired = []
    source.token.add_listener(lambda reason: fired.append(("a", reason)))
    source.token.add_listener(lambda reason: fired.append(("b", reason)))

    source.cancel("stop")
    source.cancel("again")

    assert fired == [("a", "stop"), ("b", "stop")]
    assert source.token.reason == "stop"


def test_removed_listener_does_not_fire():
    source = CancelSource()
    fired = []

    def listener(reason):
        fired.append(reason)

    source.token.add_listener(listener)
    source.token.remove_listener(listener)
    source.token.remove_listener(listener)  # unknown listener is fine
    source.cancel()

    assert fired == []


def test_listener_added_after_cancel_is_ignored():
    source = CancelSource()
    source.cancel()
    fired = []
    source.token.add_listener(fired.append)
    assert fired == []


def test_failing_listener_does_not_block_others():
    source = CancelSource()
    fired = []

    def broken(reason):
        raise RuntimeError("boom")

    source.token.add_listener(broken)
    source.token.add_listener(fired.append)
    source.cancel("x")

    assert fired == ["x"]


def test_raise_if_cancelled():
    source = CancelSource()
    source.token.raise_if_cancelled("echo hi")
    source.cancel()
    with pytest.raises(AlreadyCancelledError, match="Signal already aborted"):
        source.token.raise_if_cancelled("echo hi")


def test_tokens_compare_by_identity():
    a = CancelSource().token
    b = CancelSource().token
    assert a != b
    assert len({a, b, a}) == 2
