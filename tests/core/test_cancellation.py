# tests/core/test_cancellation.py
"""Tests for CancellationToken."""

from __future__ import annotations

import threading
import time

import pytest

from rebound.contracts.errors import CancelledError
from rebound.core.cancellation import CancellationToken


class TestCancel:
    def test_new_token_is_active(self) -> None:
        token = CancellationToken()

        assert not token.cancelled
        assert token.reason is None

    def test_first_cancel_wins(self) -> None:
        token = CancellationToken()

        assert token.cancel("first") is True
        assert token.cancel("second") is False

        assert token.cancelled
        assert token.reason == "first"

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled()

        token.cancel("stop")

        with pytest.raises(CancelledError, match="stop"):
            token.raise_if_cancelled()

    def test_repr_shows_state(self) -> None:
        token = CancellationToken()
        assert "active" in repr(token)

        token.cancel("done")
        assert "done" in repr(token)


class TestCallbacks:
    def test_callback_runs_once_on_cancel(self) -> None:
        token = CancellationToken()
        calls: list[str] = []
        token.add_callback(lambda: calls.append("fired"))

        token.cancel()
        token.cancel()

        assert calls == ["fired"]

    def test_callback_on_cancelled_token_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        calls: list[str] = []

        token.add_callback(lambda: calls.append("fired"))

        assert calls == ["fired"]

    def test_unregistered_callback_does_not_run(self) -> None:
        token = CancellationToken()
        calls: list[str] = []
        unregister = token.add_callback(lambda: calls.append("fired"))

        unregister()
        token.cancel()

        assert calls == []


class TestWaiting:
    def test_sleep_completes_when_not_cancelled(self) -> None:
        token = CancellationToken()

        start = time.monotonic()
        token.sleep(0.02)

        assert time.monotonic() - start >= 0.015

    def test_sleep_interrupted_by_cancel(self) -> None:
        token = CancellationToken()
        threading.Timer(0.02, token.cancel, kwargs={"reason": "interrupt"}).start()

        start = time.monotonic()
        with pytest.raises(CancelledError, match="interrupt"):
            token.sleep(5.0)

        assert time.monotonic() - start < 1.0

    def test_sleep_on_cancelled_token_raises_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CancelledError):
            token.sleep(0)

    def test_wait_returns_cancelled_state(self) -> None:
        token = CancellationToken()

        assert token.wait(0.01) is False
        token.cancel()
        assert token.wait(0.01) is True


class TestLinkedTokens:
    def test_parent_cancel_propagates_to_child(self) -> None:
        parent = CancellationToken()
        child = CancellationToken.linked(parent)

        parent.cancel("parent stop")

        assert child.cancelled
        assert child.reason == "parent stop"

    def test_child_cancel_leaves_parent_active(self) -> None:
        parent = CancellationToken()
        child = CancellationToken.linked(parent)

        child.cancel()

        assert not parent.cancelled

    def test_any_parent_cancels_child(self) -> None:
        first = CancellationToken()
        second = CancellationToken()
        child = CancellationToken.linked(first, None, second)

        second.cancel()

        assert child.cancelled

    def test_closed_child_detaches_from_parent(self) -> None:
        parent = CancellationToken()
        child = CancellationToken.linked(parent)

        child.close()
        parent.cancel()

        assert not child.cancelled


class TestDeadline:
    def test_deadline_fires(self) -> None:
        token = CancellationToken.with_deadline(0.02)

        assert token.wait(2.0) is True
        assert token.reason == "deadline of 0.02s exceeded"

    def test_closing_stops_the_timer(self) -> None:
        with CancellationToken.with_deadline(0.02) as token:
            pass

        time.sleep(0.05)
        assert not token.cancelled

    def test_parent_cancel_beats_deadline(self) -> None:
        parent = CancellationToken()

        with CancellationToken.with_deadline(10.0, parent=parent) as token:
            parent.cancel("caller")

            assert token.cancelled
            assert token.reason == "caller"

    def test_negative_deadline_rejected(self) -> None:
        with pytest.raises(ValueError, match="deadline must be >= 0"):
            CancellationToken.with_deadline(-1.0)
