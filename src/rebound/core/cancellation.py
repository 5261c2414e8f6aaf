# src/rebound/core/cancellation.py
"""One-shot, broadcast cancellation signal.

A CancellationToken wraps a threading.Event. Any thread may cancel it once;
every waiter (attempt waits, backoff sleeps, dispatcher workers, and any
operation that chooses to poll it) observes the same signal.

Deadlines are modelled as tokens that cancel themselves when a timer fires,
so a batch-level deadline goes through exactly the same code path as a
caller pressing Ctrl-C:

    with CancellationToken.with_deadline(30.0, parent=caller_token) as token:
        results = dispatcher.dispatch(items, token)

Tokens can be linked: a child token is cancelled whenever any parent is,
but cancelling the child leaves the parents untouched.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from types import TracebackType
from typing import Self

from rebound.contracts.errors import CancelledError


class CancellationToken:
    """Thread-safe cancellation signal.

    Example:
        token = CancellationToken()

        def operation(token: CancellationToken) -> bytes:
            for chunk in stream():
                token.raise_if_cancelled()
                ...

        # From another thread
        token.cancel("user requested stop")
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_callback_id = 0
        self._timer: threading.Timer | None = None
        self._unlink: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called (or a parent/deadline fired)."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Reason passed to the first cancel() call."""
        with self._lock:
            return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """Signal cancellation to every waiter.

        Only the first call has any effect; later calls return False.
        Registered callbacks run on the cancelling thread, outside the lock.

        Args:
            reason: Optional human-readable reason, surfaced in CancelledError

        Returns:
            True if this call cancelled the token
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()
            timer = self._timer
            self._timer = None

        if timer is not None:
            timer.cancel()
        for callback in callbacks:
            callback()
        return True

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` when the token is cancelled.

        If the token is already cancelled the callback runs immediately on
        the calling thread.

        Returns:
            A function that unregisters the callback (no-op once it has run)
        """
        with self._lock:
            if not self._event.is_set():
                callback_id = self._next_callback_id
                self._next_callback_id += 1
                self._callbacks[callback_id] = callback

                def unregister() -> None:
                    with self._lock:
                        self._callbacks.pop(callback_id, None)

                return unregister

        callback()
        return lambda: None

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses.

        Returns:
            True if the token is cancelled
        """
        return self._event.wait(timeout)

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first.

        Raises:
            CancelledError: If the token is (or becomes) cancelled
        """
        if self._event.wait(max(0.0, seconds)):
            raise CancelledError("Cancelled during wait", reason=self.reason)

    def raise_if_cancelled(self) -> None:
        """Raise CancelledError if the token has been cancelled."""
        if self._event.is_set():
            raise CancelledError(reason=self.reason)

    # -------------------------------------------------------------------------
    # Linked and deadline tokens
    # -------------------------------------------------------------------------

    @classmethod
    def linked(cls, *parents: CancellationToken | None) -> CancellationToken:
        """Create a token cancelled whenever any non-None parent is cancelled."""
        token = cls()
        for parent in parents:
            if parent is None:
                continue
            unregister = parent.add_callback(lambda p=parent: token.cancel(p.reason))
            token._unlink.append(unregister)
        return token

    @classmethod
    def with_deadline(cls, seconds: float, parent: CancellationToken | None = None) -> CancellationToken:
        """Create a token that cancels itself after ``seconds``.

        The deadline is an ordinary cancellation fired by a daemon timer.
        Call close() (or use the token as a context manager) to stop the
        timer when the guarded work finishes early.

        Args:
            seconds: Time until automatic cancellation (>= 0)
            parent: Optional token whose cancellation also cancels this one
        """
        if seconds < 0:
            raise ValueError(f"deadline must be >= 0 seconds, got {seconds}")
        token = cls.linked(parent)
        timer = threading.Timer(seconds, token.cancel, kwargs={"reason": f"deadline of {seconds}s exceeded"})
        timer.daemon = True
        with token._lock:
            token._timer = timer
        timer.start()
        return token

    def close(self) -> None:
        """Stop the deadline timer and detach from parents.

        Does not cancel the token.
        """
        with self._lock:
            timer = self._timer
            self._timer = None
            unlink = self._unlink
            self._unlink = []
        if timer is not None:
            timer.cancel()
        for unregister in unlink:
            unregister()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        state = f"cancelled, reason={self.reason!r}" if self.cancelled else "active"
        return f"<CancellationToken {state}>"
