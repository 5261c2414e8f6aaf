# src/rebound/pooling/dispatcher.py
"""Throttled dispatcher: run a batch of independent operations on a bounded pool.

Each of up to ``policy.concurrency_limit`` workers repeatedly claims the
next unclaimed item from a lock-protected claim queue and runs it through
its own RetryLoop. Results are collected by an OutcomeAggregator and
returned in input order, whatever order the items finished in.

- One item's failure (even fatal) never affects its siblings
- dispatch() waits for every item to reach a terminal state
- When the cancellation token fires, in-flight loops stop waiting and
  report CANCELLED; unclaimed items are reported CANCELLED without starting
- concurrency_limit=1 is sequential execution through the same code path
- Operations hold a worker slot until they return. An attempt abandoned
  after a timeout keeps its slot, so the next attempt (of any item) waits
  rather than running alongside it
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from threading import BoundedSemaphore, Lock
from types import TracebackType
from typing import Any, Self

from rebound.contracts.enums import Disposition
from rebound.contracts.errors import AttemptError, CancelledError, ExhaustedError
from rebound.contracts.policy import Policy
from rebound.contracts.results import BatchItem, BatchResult, Failure, Operation, Outcome, Success
from rebound.core.cancellation import CancellationToken
from rebound.core.logging import get_logger
from rebound.engine.classifier import Classifier, resolve_classifier
from rebound.engine.clock import DEFAULT_CLOCK, Clock, Stopwatch
from rebound.engine.retry import RetryHook, RetryLoop
from rebound.pooling.aggregator import OutcomeAggregator

logger = get_logger(__name__)


class _ClaimQueue[T]:
    """Items awaiting a worker. claim() is atomic: no item is handed out twice."""

    def __init__(self, items: Sequence[BatchItem[T]]) -> None:
        self._items = items
        self._next = 0
        self._lock = Lock()

    def claim(self) -> BatchItem[T] | None:
        with self._lock:
            if self._next >= len(self._items):
                return None
            item = self._items[self._next]
            self._next += 1
            return item


def as_batch_items[T](items: Sequence[BatchItem[T] | Operation[T]]) -> list[BatchItem[T]]:
    """Accept BatchItems or bare operations; bare operations are indexed by position."""
    return [
        item if isinstance(item, BatchItem) else BatchItem(index=position, operation=item)
        for position, item in enumerate(items)
    ]


class ThrottledDispatcher:
    """Bounded-concurrency fan-out executor for independent operations.

    The dispatcher is synchronous from the caller's perspective: dispatch()
    blocks until every item has a BatchResult.

    Usage:
        with ThrottledDispatcher(Policy(concurrency_limit=4, max_attempts=3)) as dispatcher:
            results = dispatcher.dispatch(
                [BatchItem(index=i, operation=make_call(host)) for i, host in enumerate(hosts)],
                cancel_token=token,
            )

        for result in results:
            print(result.index, result.ok, result.attempts)

        stats = dispatcher.get_stats()
    """

    def __init__(
        self,
        policy: Policy,
        *,
        classifier: Classifier | Callable[[BaseException], Disposition] | None = None,
        on_retry: RetryHook | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            policy: Shared by every item's RetryLoop; concurrency_limit sizes the pool
            classifier: Failure classifier shared by all items
            on_retry: Callback before each backoff sleep of any item
            clock: Time source for attempt timestamps and batch timing
        """
        self._policy = policy
        self._classifier = resolve_classifier(classifier)
        self._on_retry = on_retry
        self._clock = clock or DEFAULT_CLOCK

        self._thread_pool = ThreadPoolExecutor(
            max_workers=policy.concurrency_limit,
            thread_name_prefix="rebound-worker",
        )

        # Bounds running operations, including ones whose attempt timed out
        self._slots = BoundedSemaphore(policy.concurrency_limit)

        # Serialize dispatch calls: one batch owns the pool at a time
        self._batch_lock = Lock()

        # Concurrency and outcome tracking
        self._stats_lock = Lock()
        self._active_workers = 0
        self._max_concurrent = 0
        self._succeeded = 0
        self._failed = 0
        self._cancelled = 0
        self._items = 0
        self._elapsed_seconds = 0.0

    @property
    def concurrency_limit(self) -> int:
        return self._policy.concurrency_limit

    @property
    def policy(self) -> Policy:
        return self._policy

    def _increment_active_workers(self) -> None:
        with self._stats_lock:
            self._active_workers += 1
            if self._active_workers > self._max_concurrent:
                self._max_concurrent = self._active_workers

    def _decrement_active_workers(self) -> None:
        with self._stats_lock:
            self._active_workers -= 1

    def _count_outcome(self, outcome: Outcome[Any]) -> None:
        with self._stats_lock:
            if isinstance(outcome, Success):
                self._succeeded += 1
            elif outcome.disposition is Disposition.CANCELLED:
                self._cancelled += 1
            else:
                self._failed += 1

    def _reset_batch_stats(self, items: int) -> None:
        with self._stats_lock:
            self._max_concurrent = 0
            self._succeeded = 0
            self._failed = 0
            self._cancelled = 0
            self._items = items
            self._elapsed_seconds = 0.0

    def get_stats(self) -> dict[str, Any]:
        """Statistics for the most recent dispatch.

        Returns:
            Dict with concurrency_limit, items, succeeded, failed, cancelled,
            max_concurrent_reached and elapsed_seconds
        """
        with self._stats_lock:
            return {
                "concurrency_limit": self._policy.concurrency_limit,
                "items": self._items,
                "succeeded": self._succeeded,
                "failed": self._failed,
                "cancelled": self._cancelled,
                "max_concurrent_reached": self._max_concurrent,
                "elapsed_seconds": self._elapsed_seconds,
            }

    def shutdown(self, wait: bool = True) -> None:
        """Shutdown the worker pool.

        Args:
            wait: If True, wait for running workers to finish
        """
        self._thread_pool.shutdown(wait=wait)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)

    def dispatch[T](
        self,
        items: Sequence[BatchItem[T] | Operation[T]],
        cancel_token: CancellationToken | None = None,
        *,
        deadline: float | None = None,
    ) -> list[BatchResult[T]]:
        """Run every item to a terminal state.

        Note: dispatch calls on one dispatcher are serialized. Concurrent
        calls block until the previous batch completes.

        Args:
            items: BatchItems (or bare operations, indexed by position)
            cancel_token: Shared cancellation signal for the whole batch
            deadline: Seconds after which the batch is cancelled, as if
                cancel_token had fired

        Returns:
            One BatchResult per item, in input order

        Raises:
            AggregationIntegrityError: Duplicate indices, or a result was lost
        """
        batch = as_batch_items(items)
        if not batch:
            return []

        with self._batch_lock:
            if deadline is None:
                return self._dispatch_locked(batch, cancel_token)
            with CancellationToken.with_deadline(deadline, parent=cancel_token) as token:
                return self._dispatch_locked(batch, token)

    def _dispatch_locked[T](
        self,
        batch: list[BatchItem[T]],
        cancel_token: CancellationToken | None,
    ) -> list[BatchResult[T]]:
        aggregator: OutcomeAggregator[T] = OutcomeAggregator(item.index for item in batch)
        queue = _ClaimQueue(batch)
        workers = min(self._policy.concurrency_limit, len(batch))

        self._reset_batch_stats(len(batch))
        stopwatch = Stopwatch(self._clock)
        logger.info(
            "batch_dispatched",
            items=len(batch),
            workers=workers,
            max_attempts=self._policy.max_attempts,
        )

        futures = [self._thread_pool.submit(self._worker, queue, aggregator, cancel_token) for _ in range(workers)]
        # Worker exceptions are engine bugs: re-raise them here
        for future in futures:
            future.result()

        results = aggregator.results()

        with self._stats_lock:
            self._elapsed_seconds = stopwatch.elapsed()
        stats = self.get_stats()
        if cancel_token is not None and cancel_token.cancelled:
            logger.warning(
                "batch_cancelled",
                reason=cancel_token.reason,
                succeeded=stats["succeeded"],
                failed=stats["failed"],
                cancelled=stats["cancelled"],
            )
        else:
            logger.info(
                "batch_completed",
                succeeded=stats["succeeded"],
                failed=stats["failed"],
                max_concurrent=stats["max_concurrent_reached"],
                elapsed_seconds=round(stats["elapsed_seconds"], 3),
            )
        return results

    def _worker[T](
        self,
        queue: _ClaimQueue[T],
        aggregator: OutcomeAggregator[T],
        cancel_token: CancellationToken | None,
    ) -> None:
        while (item := queue.claim()) is not None:
            if cancel_token is not None and cancel_token.cancelled:
                outcome: Outcome[T] = Failure(
                    error=CancelledError("Cancelled before start", reason=cancel_token.reason),
                    disposition=Disposition.CANCELLED,
                )
                aggregator.record(item.index, outcome, attempts=0, started=False)
                self._count_outcome(outcome)
                continue

            loop = RetryLoop(
                item.operation,
                self._policy,
                classifier=self._classifier,
                cancel_token=cancel_token,
                on_retry=self._on_retry,
                name=f"item[{item.index}]",
                clock=self._clock,
                slots=self._slots,
            )
            self._increment_active_workers()
            try:
                outcome = self._run_item(loop)
            finally:
                self._decrement_active_workers()

            aggregator.record(item.index, outcome, attempts=loop.attempts_made, started=loop.attempts_made > 0)
            self._count_outcome(outcome)

    @staticmethod
    def _run_item[T](loop: RetryLoop[T]) -> Outcome[T]:
        # Per-item failures are data; anything else is an engine bug and propagates
        try:
            return Success(loop.run())
        except CancelledError as e:
            return Failure(error=e, disposition=Disposition.CANCELLED)
        except ExhaustedError as e:
            return Failure(error=e, disposition=e.last_error.disposition)
        except AttemptError as e:
            return Failure(error=e, disposition=e.disposition)


def run_batch[T](
    items: Sequence[BatchItem[T] | Operation[T]],
    policy: Policy,
    classifier: Classifier | Callable[[BaseException], Disposition] | None = None,
    cancel_token: CancellationToken | None = None,
    *,
    deadline: float | None = None,
    on_retry: RetryHook | None = None,
) -> list[BatchResult[T]]:
    """Dispatch a batch across ``policy.concurrency_limit`` workers.

    Args:
        items: BatchItems (or bare operations, indexed by position)
        policy: Shared retry/timeout/concurrency parameters
        classifier: Failure classifier (default: DefaultClassifier)
        cancel_token: Shared cancellation signal
        deadline: Optional batch-level deadline in seconds
        on_retry: Optional callback before each backoff sleep

    Returns:
        One BatchResult per item, in input order. Per-item errors are
        captured in the results, never raised.
    """
    with ThrottledDispatcher(policy, classifier=classifier, on_retry=on_retry) as dispatcher:
        return dispatcher.dispatch(items, cancel_token, deadline=deadline)
