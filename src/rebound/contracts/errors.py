# src/rebound/contracts/errors.py
"""Exception hierarchy for the invocation engine.

Hierarchy::

    ReboundError
    ├── ConfigurationError          invalid Policy or settings
    ├── AttemptError                a single attempt failed (carries disposition)
    │   ├── OperationError          wraps whatever the operation raised
    │   └── AttemptTimeoutError     attempt deadline exceeded
    ├── ExhaustedError              retry budget used up
    ├── CancelledError              cancellation preempted a wait or attempt
    └── AggregationIntegrityError   batch results missing or duplicated

A single-operation caller sees exactly one of OperationError,
AttemptTimeoutError, ExhaustedError or CancelledError when a call does not
succeed. Batch callers never see per-item errors raised; they are captured
in each item's BatchResult.
"""

from __future__ import annotations

from rebound.contracts.enums import Disposition


class ReboundError(Exception):
    """Base class for all engine errors."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(ReboundError, ValueError):
    """Raised when a Policy is constructed with out-of-range values.

    Subclasses ValueError so callers validating generic input can catch it
    without importing the engine's hierarchy.

    Attributes:
        field: Name of the offending field, when a single field is at fault
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


# =============================================================================
# Attempt failures
# =============================================================================


class AttemptError(ReboundError):
    """A single attempt failed.

    Attributes:
        disposition: Classification assigned by the classifier
        attempt: 1-based index of the attempt that failed
    """

    def __init__(self, message: str, *, disposition: Disposition, attempt: int) -> None:
        super().__init__(message)
        self.disposition = disposition
        self.attempt = attempt


class OperationError(AttemptError):
    """The operation itself raised.

    The original exception is available as ``cause`` and is also chained
    as ``__cause__`` so tracebacks show both.
    """

    def __init__(self, cause: BaseException, *, disposition: Disposition, attempt: int) -> None:
        super().__init__(
            f"Attempt {attempt} failed ({disposition}): {type(cause).__name__}: {cause}",
            disposition=disposition,
            attempt=attempt,
        )
        self.cause = cause
        self.__cause__ = cause


class AttemptTimeoutError(AttemptError, TimeoutError):
    """The attempt did not finish within the per-attempt timeout.

    Also a builtin TimeoutError so classifiers written against the standard
    library recognize it. The operation may still be running: only the
    engine stopped waiting for it.
    """

    def __init__(self, timeout: float, *, attempt: int, disposition: Disposition = Disposition.RETRYABLE) -> None:
        super().__init__(
            f"Attempt {attempt} timed out after {timeout}s",
            disposition=disposition,
            attempt=attempt,
        )
        self.timeout = timeout


# =============================================================================
# Terminal loop failures
# =============================================================================


class ExhaustedError(ReboundError):
    """Raised when every permitted attempt failed with a retryable error.

    Attributes:
        attempts: Number of attempts made (equals Policy.max_attempts)
        last_error: The AttemptError from the final attempt
    """

    def __init__(self, attempts: int, last_error: AttemptError) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Attempts exhausted after {attempts} attempt(s): {last_error}")


class CancelledError(ReboundError):
    """Raised when the cancellation signal preempted an attempt or a backoff wait.

    Attributes:
        reason: Reason given when the token was cancelled, if any
        attempts: Attempts made before cancellation was observed
    """

    def __init__(self, message: str = "Operation cancelled", *, reason: str | None = None, attempts: int = 0) -> None:
        super().__init__(message if reason is None else f"{message}: {reason}")
        self.reason = reason
        self.attempts = attempts


class AggregationIntegrityError(ReboundError):
    """Batch results do not correspond one-to-one with the submitted items.

    Indicates a bug in the dispatcher (or duplicate indices supplied by the
    caller); never produced by a failing operation.
    """
