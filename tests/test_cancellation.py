"""Tests for the cancellation token."""

from __future__ import annotations

import threading
from typing import List

import pytest

from resilient_fetch.cancellation import CancelToken
from resilient_fetch.errors import CancellationError


def test_new_token_is_not_cancelled() -> None:
    token = CancelToken()

    assert token.cancelled is False
    assert token.wait(0.01) is False
    token.raise_if_cancelled()


def test_cancel_runs_callbacks_once() -> None:
    token = CancelToken()
    fired: List[str] = []
    token.on_cancel(lambda: fired.append("a"))
    token.on_cancel(lambda: fired.append("b"))

    token.cancel()
    token.cancel()

    assert token.cancelled is True
    assert fired == ["a", "b"]


def test_unregistered_callback_does_not_run() -> None:
    token = CancelToken()
    fired: List[str] = []
    unregister = token.on_cancel(lambda: fired.append("x"))

    unregister()
    token.cancel()

    assert fired == []


def test_callback_registered_after_cancel_runs_immediately() -> None:
    token = CancelToken()
    token.cancel()
    fired: List[str] = []

    token.on_cancel(lambda: fired.append("late"))

    assert fired == ["late"]


def test_failing_callback_does_not_block_others() -> None:
    token = CancelToken()
    fired: List[str] = []

    def broken() -> None:
        raise RuntimeError("boom")

    token.on_cancel(broken)
    token.on_cancel(lambda: fired.append("ok"))
    token.cancel()

    assert fired == ["ok"]


def test_cancel_from_another_thread_wakes_waiter() -> None:
    token = CancelToken()
    timer = threading.Timer(0.01, token.cancel)
    timer.start()
    try:
        assert token.wait(5.0) is True
    finally:
        timer.cancel()


def test_raise_if_cancelled_carries_details() -> None:
    token = CancelToken()
    token.cancel()

    with pytest.raises(CancellationError, match="stopped") as info:
        token.raise_if_cancelled("stopped", path="/x")

    assert info.value.path == "/x"
