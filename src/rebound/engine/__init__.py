# src/rebound/engine/__init__.py
"""Single-operation engine.

Components, leaves first:
- Classifier: error -> Disposition
- BackoffScheduler: attempt index -> delay (tenacity wait strategy)
- AttemptExecutor: one invocation under timeout and cancellation
- RetryLoop / run_with_retry: attempts until a terminal state, via tenacity
"""

from rebound.engine.attempt import AttemptExecutor
from rebound.engine.backoff import BackoffScheduler, delay_for
from rebound.engine.classifier import (
    DEFAULT_RETRYABLE_TYPES,
    RETRYABLE_STATUS_CODES,
    Classifier,
    DefaultClassifier,
    FunctionClassifier,
    PredicateClassifier,
    is_retryable_status,
    resolve_classifier,
)
from rebound.engine.clock import DEFAULT_CLOCK, Clock, ManualClock, Stopwatch, SystemClock
from rebound.engine.retry import RetryHook, RetryLoop, run_with_retry

__all__ = [
    "DEFAULT_CLOCK",
    "DEFAULT_RETRYABLE_TYPES",
    "RETRYABLE_STATUS_CODES",
    "AttemptExecutor",
    "BackoffScheduler",
    "Classifier",
    "Clock",
    "DefaultClassifier",
    "FunctionClassifier",
    "ManualClock",
    "PredicateClassifier",
    "RetryHook",
    "RetryLoop",
    "Stopwatch",
    "SystemClock",
    "delay_for",
    "is_retryable_status",
    "resolve_classifier",
    "run_with_retry",
]
