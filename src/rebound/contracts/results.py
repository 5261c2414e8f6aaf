# src/rebound/contracts/results.py
"""Outcome records produced by attempts, retry loops and batch dispatch.

Outcome is a tagged union: Success(value) or Failure(error, disposition).
Callers branch with ``isinstance`` or the ``ok`` property rather than by
catching exceptions, so a batch of results can be inspected uniformly.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from rebound.contracts.enums import Disposition

if TYPE_CHECKING:
    from rebound.core.cancellation import CancellationToken

# An operation is invoked with the cancellation token it may observe.
type Operation[T] = Callable[[CancellationToken], T]


@dataclass(frozen=True, slots=True)
class Success[T]:
    """Operation produced a value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Failure:
    """Operation (or the wait for it) ended in an error.

    Attributes:
        error: The engine-level error (OperationError, AttemptTimeoutError,
            ExhaustedError or CancelledError)
        disposition: How the failure was classified
    """

    error: BaseException
    disposition: Disposition

    @property
    def ok(self) -> bool:
        return False


type Outcome[T] = Success[T] | Failure


@dataclass(frozen=True, slots=True)
class Attempt[T]:
    """One try of an operation.

    Ephemeral: created by the AttemptExecutor, consumed by the RetryLoop,
    never persisted.

    Attributes:
        index: 1-based attempt number within one retry loop
        started_at: Clock monotonic time when the attempt began
        outcome: Success or classified Failure
        started: False when cancellation arrived before the operation was called
    """

    index: int
    started_at: float
    outcome: Outcome[T]
    started: bool = True


@dataclass(frozen=True, slots=True)
class BatchItem[T]:
    """Input to the dispatcher.

    Attributes:
        index: Caller-assigned position; results are keyed and ordered by it
        operation: Work to run, invoked with the batch's cancellation token
    """

    index: int
    operation: Operation[T]


@dataclass(frozen=True, slots=True)
class BatchResult[T]:
    """Terminal outcome of one BatchItem.

    Attributes:
        index: Index of the BatchItem this result belongs to
        outcome: Success(value) or Failure(error)
        attempts: Attempts made (0 when the item was cancelled before starting)
        completion_index: Order in which the item finished, None if never started
    """

    index: int
    outcome: Outcome[T]
    attempts: int = 0
    completion_index: int | None = None

    @property
    def ok(self) -> bool:
        return self.outcome.ok

    @property
    def value(self) -> T:
        """Success value. Raises the captured error for failed items."""
        if isinstance(self.outcome, Success):
            return self.outcome.value
        raise self.outcome.error

    @property
    def error(self) -> BaseException | None:
        if isinstance(self.outcome, Failure):
            return self.outcome.error
        return None

    def to_dict(self) -> dict[str, Any]:
        """Summary without the value payload, for logs and reports."""
        summary: dict[str, Any] = {
            "index": self.index,
            "ok": self.ok,
            "attempts": self.attempts,
            "completion_index": self.completion_index,
        }
        if isinstance(self.outcome, Failure):
            summary["disposition"] = str(self.outcome.disposition)
            summary["error_type"] = type(self.outcome.error).__name__
            summary["error"] = str(self.outcome.error)
        return summary
