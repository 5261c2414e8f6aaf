# src/rebound/engine/clock.py
"""Time sources for attempt timestamps and batch timing.

Only timestamps go through a Clock. Timeouts, backoff sleeps and deadlines
wait on real time (threading.Event / CancellationToken), so a ManualClock
makes Attempt.started_at and the dispatcher's elapsed_seconds predictable
without changing how long anything actually waits.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """Anything with a monotonic() reading in seconds."""

    def monotonic(self) -> float: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to.

    Readings may come from several dispatcher workers at once, so reads and
    moves are serialized. With ``tick`` set, every reading advances the clock
    by that amount afterwards, which gives each attempt of a sequential run a
    distinct, known timestamp:

        clock = ManualClock(start=10.0, tick=1.0)
        loop = RetryLoop(op, policy, clock=clock)
        # attempts start at 10.0, 11.0, 12.0 ...
    """

    def __init__(self, start: float = 0.0, *, tick: float = 0.0) -> None:
        if tick < 0:
            raise ValueError(f"tick must be >= 0, got {tick}")
        self._now = start
        self._tick = tick
        self._lock = threading.Lock()

    def monotonic(self) -> float:
        with self._lock:
            reading = self._now
            self._now += self._tick
            return reading

    def advance(self, seconds: float) -> None:
        """Move forward by ``seconds``. Monotonic clocks never go back."""
        if seconds < 0:
            raise ValueError(f"Clock cannot move backwards (advance by {seconds})")
        with self._lock:
            self._now += seconds


class Stopwatch:
    """Elapsed time on a Clock, measured from construction."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self.started_at = clock.monotonic()

    def elapsed(self) -> float:
        return self._clock.monotonic() - self.started_at


DEFAULT_CLOCK: Clock = SystemClock()
