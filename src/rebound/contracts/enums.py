# src/rebound/contracts/enums.py
"""Status values shared between the retry loop, classifiers and dispatcher."""

from enum import StrEnum


class Disposition(StrEnum):
    """What the engine should do about a failed attempt.

    Attached to every Failure by the classifier. The retry loop branches on
    this value alone; it never inspects exception types itself.
    """

    RETRYABLE = "retryable"
    FATAL = "fatal"
    CANCELLED = "cancelled"


class LoopState(StrEnum):
    """Lifecycle of a single RetryLoop.

    IDLE -> ATTEMPTING -> {SUCCEEDED, RETRYING, FAILED, CANCELLED}
    RETRYING -> ATTEMPTING
    """

    IDLE = "idle"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (LoopState.SUCCEEDED, LoopState.FAILED, LoopState.CANCELLED)
