# src/rebound/engine/retry.py
"""RetryLoop: drive attempts until success, fatal failure, exhaustion or cancellation.

Built on tenacity:
- stop_after_attempt(policy.max_attempts) bounds the attempts
- BackoffScheduler is the wait strategy
- the retry predicate reads the Disposition attached by the classifier
- sleeping goes through the cancellation token, so a cancel during backoff
  ends the loop immediately

State machine::

    IDLE -> ATTEMPTING -> SUCCEEDED                      (value returned)
                       -> FAILED     fatal               (OperationError raised)
                       -> FAILED     retryable, last     (ExhaustedError raised)
                       -> CANCELLED                      (CancelledError raised)
                       -> RETRYING -> ATTEMPTING         (after backoff)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from tenacity import RetryError, Retrying, retry_if_exception, stop_after_attempt

from rebound.contracts.enums import Disposition, LoopState
from rebound.contracts.errors import AttemptError, CancelledError, ExhaustedError
from rebound.contracts.policy import Policy
from rebound.contracts.results import Operation, Outcome, Success
from rebound.core.logging import get_logger
from rebound.engine.attempt import AttemptExecutor
from rebound.engine.backoff import BackoffScheduler
from rebound.engine.classifier import Classifier, resolve_classifier

if TYPE_CHECKING:
    import random
    import threading

    from tenacity import RetryCallState

    from rebound.core.cancellation import CancellationToken
    from rebound.engine.clock import Clock

logger = get_logger(__name__)

# on_retry(attempt_index, error, delay_seconds), called before each backoff sleep
RetryHook = Callable[[int, AttemptError, float], None]


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, AttemptError) and error.disposition is Disposition.RETRYABLE


class RetryLoop[T]:
    """Single-use retry state machine for one operation.

    Example:
        loop = RetryLoop(fetch, Policy(max_attempts=3, base_delay=0.1), cancel_token=token)
        value = loop.run()
        print(loop.attempts_made, loop.delays)
    """

    def __init__(
        self,
        operation: Operation[T],
        policy: Policy,
        *,
        classifier: Classifier | Callable[[BaseException], Disposition] | None = None,
        cancel_token: CancellationToken | None = None,
        on_retry: RetryHook | None = None,
        name: str | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        slots: threading.BoundedSemaphore | None = None,
    ) -> None:
        """Initialize loop.

        Args:
            operation: Callable invoked with the cancellation token
            policy: Attempts, backoff and per-attempt timeout
            classifier: Failure classifier (default: DefaultClassifier)
            cancel_token: Signal that ends the loop from any state
            on_retry: Callback before each backoff sleep
            name: Operation name for log events (default: operation.__name__)
            clock: Time source for attempt timestamps
            rng: Random source for jitter
            slots: Worker slots shared with sibling loops; each attempt holds
                one for as long as its operation runs
        """
        self._operation = operation
        self._policy = policy
        self._executor = AttemptExecutor(resolve_classifier(classifier), clock=clock, slots=slots)
        self._scheduler = BackoffScheduler(policy, rng=rng)
        self._token = cancel_token
        self._on_retry = on_retry
        self._name = name or getattr(operation, "__name__", type(operation).__name__)
        self._log = logger.bind(operation=self._name)

        self._state = LoopState.IDLE
        self._attempts_made = 0
        self._delays: list[float] = []

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def attempts_made(self) -> int:
        """Attempts actually started (an attempt refused due to cancellation is not counted)."""
        return self._attempts_made

    @property
    def delays(self) -> list[float]:
        """Backoff delays waited (or being waited) so far, in order."""
        return list(self._delays)

    def run(self) -> T:
        """Run the loop to a terminal state.

        Returns:
            The operation's value on success

        Raises:
            OperationError: Fatal failure (the operation's error is ``.cause``)
            AttemptTimeoutError: Timeout the classifier marked fatal
            ExhaustedError: Every attempt failed with a retryable error
            CancelledError: Cancellation observed before, during or between attempts
            RuntimeError: If the loop has already been run
        """
        if self._state is not LoopState.IDLE:
            raise RuntimeError(f"RetryLoop for {self._name} already ran (state={self._state})")

        last_error: AttemptError | None = None

        try:
            for attempt_state in Retrying(
                stop=stop_after_attempt(self._policy.max_attempts),
                wait=self._scheduler,
                retry=retry_if_exception(_is_retryable),
                sleep=self._sleep,
                before_sleep=self._before_sleep,
                reraise=False,  # RetryError is converted to ExhaustedError below
            ):
                with attempt_state:
                    outcome = self._attempt(attempt_state.retry_state.attempt_number)
                    if isinstance(outcome, Success):
                        self._state = LoopState.SUCCEEDED
                        if self._attempts_made > 1:
                            self._log.info("retry_succeeded", attempts=self._attempts_made)
                        return outcome.value
                    last_error = outcome.error
                    raise outcome.error

        except RetryError as e:
            # RetryError means at least one attempt failed, so last_error is set
            assert isinstance(last_error, AttemptError), "RetryError without a recorded attempt failure"
            self._state = LoopState.FAILED
            self._log.error(
                "retries_exhausted",
                attempts=self._attempts_made,
                error_type=type(last_error).__name__,
                error=str(last_error),
            )
            raise ExhaustedError(self._attempts_made, last_error) from e

        except CancelledError as e:
            self._state = LoopState.CANCELLED
            e.attempts = self._attempts_made
            self._log.info("retry_loop_cancelled", attempts=self._attempts_made, reason=e.reason)
            raise

        except AttemptError as e:
            self._state = LoopState.FAILED
            self._log.error(
                "attempt_failed_fatal",
                attempt=e.attempt,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise

        # Retrying always returns or raises
        raise RuntimeError("Unexpected state in retry loop")  # pragma: no cover

    def _attempt(self, index: int) -> Outcome[T]:
        if self._token is not None and self._token.cancelled:
            raise CancelledError("Cancelled before attempt", reason=self._token.reason)

        self._state = LoopState.ATTEMPTING
        attempt = self._executor.execute(
            self._operation,
            index=index,
            timeout=self._policy.per_attempt_timeout,
            cancel_token=self._token,
        )
        if attempt.started:
            self._attempts_made = index
        return attempt.outcome

    def _sleep(self, seconds: float) -> None:
        self._delays.append(float(seconds))
        if self._token is not None:
            self._token.sleep(seconds)
        elif seconds > 0:
            time.sleep(seconds)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        self._state = LoopState.RETRYING
        error = retry_state.outcome.exception() if retry_state.outcome is not None else None
        assert isinstance(error, AttemptError), "retry scheduled without an attempt failure"
        delay = retry_state.next_action.sleep if retry_state.next_action is not None else 0.0
        self._log.warning(
            "retry_scheduled",
            attempt=retry_state.attempt_number,
            max_attempts=self._policy.max_attempts,
            delay=round(delay, 3),
            error_type=type(error).__name__,
            error=str(error),
        )
        if self._on_retry is not None:
            self._on_retry(retry_state.attempt_number, error, delay)


def run_with_retry[T](
    operation: Operation[T],
    policy: Policy,
    classifier: Classifier | Callable[[BaseException], Disposition] | None = None,
    cancel_token: CancellationToken | None = None,
    *,
    on_retry: RetryHook | None = None,
    name: str | None = None,
) -> T:
    """Invoke ``operation`` with retry, backoff, per-attempt timeout and cancellation.

    Args:
        operation: Callable invoked as ``operation(cancel_token)``
        policy: Retry/timeout parameters
        classifier: Failure classifier (default: DefaultClassifier)
        cancel_token: Optional cancellation signal
        on_retry: Optional callback ``(attempt_index, error, delay)`` before each backoff
        name: Operation name used in log events

    Returns:
        The operation's value

    Raises:
        OperationError, AttemptTimeoutError, ExhaustedError, CancelledError
    """
    loop = RetryLoop(
        operation,
        policy,
        classifier=classifier,
        cancel_token=cancel_token,
        on_retry=on_retry,
        name=name,
    )
    return loop.run()
