# src/rebound/engine/attempt.py
"""AttemptExecutor: run one invocation of an operation under a deadline.

Produces an Attempt whose outcome is Success(value) or a classified Failure.

Waiting model:
    With no timeout and no cancellation token the operation runs inline on
    the calling thread. Otherwise it runs on a daemon thread and the caller
    waits on a single wake-up event that is set by whichever comes first:

        operation finished ──┐
        token cancelled ─────┼──► wake.wait(timeout) ──► outcome
        timeout elapsed ─────┘

    Cancellation and timeouts only stop the *wait*. An operation that
    ignores its token keeps running on its thread until it returns; its
    late result is discarded.

Worker slots:
    When the executor is given a semaphore (the dispatcher shares one sized
    to concurrency_limit) every operation holds a slot from just before it
    starts until it actually returns, even after its attempt was abandoned.
    The next attempt waits for a free slot; that wait observes cancellation
    but not the per-attempt timeout, which bounds only the operation.
"""

from __future__ import annotations

import concurrent.futures
import threading
from concurrent.futures import Future
from typing import Any

from rebound.contracts.enums import Disposition
from rebound.contracts.errors import AttemptTimeoutError, CancelledError, OperationError
from rebound.contracts.results import Attempt, Failure, Operation, Outcome, Success
from rebound.core.cancellation import CancellationToken
from rebound.core.logging import get_logger
from rebound.engine.classifier import Classifier
from rebound.engine.clock import DEFAULT_CLOCK, Clock

logger = get_logger(__name__)

# Errors captured from an operation. KeyboardInterrupt/SystemExit propagate.
_CAPTURED = (Exception, concurrent.futures.CancelledError)

# How often a slot wait re-checks the cancellation token
_SLOT_POLL_SECONDS = 0.01


class AttemptExecutor:
    """Runs single attempts and classifies their failures.

    Example:
        executor = AttemptExecutor(DefaultClassifier())
        attempt = executor.execute(fetch, index=1, timeout=5.0, cancel_token=token)

        if isinstance(attempt.outcome, Failure):
            print(attempt.outcome.disposition)
    """

    def __init__(
        self,
        classifier: Classifier,
        *,
        clock: Clock | None = None,
        slots: threading.BoundedSemaphore | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            classifier: Maps operation errors (and timeouts) to dispositions
            clock: Time source for Attempt.started_at (default: monotonic)
            slots: Semaphore every running operation must hold (None: unbounded)
        """
        self._classifier = classifier
        self._clock = clock or DEFAULT_CLOCK
        self._slots = slots

    def execute[T](
        self,
        operation: Operation[T],
        *,
        index: int = 1,
        timeout: float | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> Attempt[T]:
        """Run ``operation`` once.

        Args:
            operation: Callable invoked with the cancellation token
            index: 1-based attempt number (recorded on errors and the Attempt)
            timeout: Seconds to wait for the operation, None for unbounded
            cancel_token: Token that stops the wait when cancelled

        Returns:
            Attempt with Success or classified Failure outcome
        """
        started_at = self._clock.monotonic()

        # Never start work once cancellation has been requested
        if (cancel_token is not None and cancel_token.cancelled) or not self._acquire_slot(cancel_token):
            return Attempt(index=index, started_at=started_at, outcome=self._cancelled(cancel_token, index), started=False)

        outcome: Outcome[T]
        if timeout is None and cancel_token is None:
            outcome = self._run_inline(operation, index)
        else:
            outcome = self._run_watched(operation, index, timeout, cancel_token)

        return Attempt(index=index, started_at=started_at, outcome=outcome)

    def _run_inline[T](self, operation: Operation[T], index: int) -> Outcome[T]:
        try:
            return Success(operation(CancellationToken()))
        except _CAPTURED as exc:
            return self._failure_from_exception(exc, index, None)
        finally:
            self._release_slot()

    def _run_watched[T](
        self,
        operation: Operation[T],
        index: int,
        timeout: float | None,
        cancel_token: CancellationToken | None,
    ) -> Outcome[T]:
        token = cancel_token if cancel_token is not None else CancellationToken()
        future: Future[T] = Future()
        wake = threading.Event()
        future.add_done_callback(lambda _: wake.set())
        unregister = token.add_callback(wake.set)

        def runner() -> None:
            try:
                future.set_result(operation(token))
            except _CAPTURED as exc:
                future.set_exception(exc)
            finally:
                # Held until the operation really returns, not until the wait ends
                self._release_slot()

        thread = threading.Thread(target=runner, name=f"rebound-attempt-{index}", daemon=True)
        try:
            try:
                thread.start()
            except RuntimeError:
                self._release_slot()
                raise
            wake.wait(timeout)
        finally:
            unregister()

        # A finished operation wins over a simultaneous cancel or timeout
        if future.done():
            exc = future.exception()
            if exc is None:
                return Success(future.result())
            return self._failure_from_exception(exc, index, cancel_token)

        if token.cancelled:
            logger.debug("attempt_abandoned", attempt=index, reason=token.reason)
            return self._cancelled(token, index)

        assert timeout is not None, "wait returned without completion, cancellation or timeout"
        logger.debug("attempt_timed_out", attempt=index, timeout=timeout)
        timeout_error = AttemptTimeoutError(timeout, attempt=index)
        disposition = self._classifier.classify(timeout_error)
        if disposition is Disposition.CANCELLED:
            return self._cancelled(token, index, cause=timeout_error)
        timeout_error.disposition = disposition
        return Failure(error=timeout_error, disposition=disposition)

    def _acquire_slot(self, cancel_token: CancellationToken | None) -> bool:
        """Wait for a free worker slot. False if cancelled first (no slot held)."""
        if self._slots is None:
            return True
        if cancel_token is None:
            self._slots.acquire()
            return True
        while not self._slots.acquire(timeout=_SLOT_POLL_SECONDS):
            if cancel_token.cancelled:
                return False
        if cancel_token.cancelled:
            self._slots.release()
            return False
        return True

    def _release_slot(self) -> None:
        if self._slots is not None:
            self._slots.release()

    def _failure_from_exception(
        self,
        exc: BaseException,
        index: int,
        cancel_token: CancellationToken | None,
    ) -> Failure:
        disposition = self._classifier.classify(exc)
        if disposition is Disposition.CANCELLED:
            return self._cancelled(cancel_token, index, cause=exc)
        return Failure(error=OperationError(exc, disposition=disposition, attempt=index), disposition=disposition)

    @staticmethod
    def _cancelled(
        cancel_token: CancellationToken | None,
        index: int,
        *,
        cause: BaseException | None = None,
    ) -> Failure:
        reason = cancel_token.reason if cancel_token is not None and cancel_token.cancelled else None
        error = CancelledError(f"Attempt {index} cancelled", reason=reason)
        if cause is not None:
            error.__cause__ = cause
        return Failure(error=error, disposition=Disposition.CANCELLED)
