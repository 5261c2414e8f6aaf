"""
rebound: Resilient invocation of fallible external calls.

Wraps any caller-supplied operation with bounded retry, exponential
backoff, per-attempt timeouts and cooperative cancellation, and fans
batches of independent operations out across a throttled worker pool.
"""

__version__ = "0.1.0"

from rebound.contracts import (
    AggregationIntegrityError,
    Attempt,
    AttemptError,
    AttemptTimeoutError,
    BatchItem,
    BatchResult,
    CancelledError,
    ConfigurationError,
    Disposition,
    ExhaustedError,
    Failure,
    LoopState,
    Operation,
    OperationError,
    Outcome,
    Policy,
    ReboundError,
    Success,
)
from rebound.core.cancellation import CancellationToken
from rebound.engine import (
    BackoffScheduler,
    Classifier,
    DefaultClassifier,
    FunctionClassifier,
    PredicateClassifier,
    RetryLoop,
    run_with_retry,
)
from rebound.pooling import OutcomeAggregator, ThrottledDispatcher, run_batch

__all__ = [
    "AggregationIntegrityError",
    "Attempt",
    "AttemptError",
    "AttemptTimeoutError",
    "BackoffScheduler",
    "BatchItem",
    "BatchResult",
    "CancellationToken",
    "CancelledError",
    "Classifier",
    "ConfigurationError",
    "DefaultClassifier",
    "Disposition",
    "ExhaustedError",
    "Failure",
    "FunctionClassifier",
    "LoopState",
    "Operation",
    "OperationError",
    "OutcomeAggregator",
    "Outcome",
    "Policy",
    "PredicateClassifier",
    "ReboundError",
    "RetryLoop",
    "Success",
    "ThrottledDispatcher",
    "__version__",
    "run_batch",
    "run_with_retry",
]
