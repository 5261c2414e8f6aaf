# src/rebound/engine/classifier.py
"""Failure classification: map an error to a Disposition.

The retry loop never decides "retry or give up" by catching particular
exception types. It asks a Classifier, and branches on the Disposition it
returns. Callers substitute their own classifier per call:

    run_with_retry(op, policy, classifier=PredicateClassifier(lambda e: isinstance(e, BusyError)))

Capacity status codes follow the usual HTTP conventions:
- 408: Request Timeout
- 429: Too Many Requests
- 502/503/504: Gateway and availability errors
- 529: Overloaded (Azure, some other providers)
"""

from __future__ import annotations

import concurrent.futures
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import httpx

from rebound.contracts.enums import Disposition
from rebound.contracts.errors import CancelledError, OperationError

# HTTP status codes that indicate a transient capacity or gateway problem
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429, 502, 503, 504, 529})

# Connectivity/timeout-class errors retried by default
DEFAULT_RETRYABLE_TYPES: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
)

_CANCELLATION_TYPES: tuple[type[BaseException], ...] = (
    CancelledError,
    concurrent.futures.CancelledError,
)


@runtime_checkable
class Classifier(Protocol):
    """Capability: decide what to do about a failed attempt."""

    def classify(self, error: BaseException) -> Disposition:
        """Return the disposition for ``error``."""
        ...


def is_retryable_status(status_code: int) -> bool:
    """Check if an HTTP status code indicates a transient failure."""
    return status_code in RETRYABLE_STATUS_CODES


def _unwrap(error: BaseException) -> BaseException:
    # Classifiers see what the operation raised, not the engine's wrapper
    if isinstance(error, OperationError):
        return error.cause
    return error


class DefaultClassifier:
    """Rule set used when the caller supplies no classifier.

    Rules, first match wins:
    1. Cancellation errors -> CANCELLED
    2. Errors with a boolean ``retryable`` attribute -> that answer
    3. Timeout/connectivity errors (and ``extra_retryable``) -> RETRYABLE
    4. HTTP responses with a capacity status code -> RETRYABLE
    5. Everything else -> FATAL
    """

    def __init__(self, extra_retryable: tuple[type[BaseException], ...] = ()) -> None:
        """Initialize with optional extra retryable exception types.

        Args:
            extra_retryable: Exception types retried in addition to the defaults
        """
        self._retryable_types = DEFAULT_RETRYABLE_TYPES + tuple(extra_retryable)

    def classify(self, error: BaseException) -> Disposition:
        error = _unwrap(error)

        if isinstance(error, _CANCELLATION_TYPES):
            return Disposition.CANCELLED

        retryable = getattr(error, "retryable", None)
        if isinstance(retryable, bool):
            return Disposition.RETRYABLE if retryable else Disposition.FATAL

        if isinstance(error, self._retryable_types):
            return Disposition.RETRYABLE

        if isinstance(error, httpx.HTTPStatusError):
            status_code: object = error.response.status_code
        else:
            status_code = getattr(error, "status_code", None)
        if isinstance(status_code, int) and is_retryable_status(status_code):
            return Disposition.RETRYABLE

        return Disposition.FATAL


class PredicateClassifier:
    """Classifier built from a boolean ``is_retryable`` predicate.

    Cancellation errors are still reported as CANCELLED so an operation that
    honours the token is never retried.
    """

    def __init__(self, is_retryable: Callable[[BaseException], bool]) -> None:
        self._is_retryable = is_retryable

    def classify(self, error: BaseException) -> Disposition:
        error = _unwrap(error)
        if isinstance(error, _CANCELLATION_TYPES):
            return Disposition.CANCELLED
        return Disposition.RETRYABLE if self._is_retryable(error) else Disposition.FATAL


class FunctionClassifier:
    """Adapts a plain ``error -> Disposition`` function to the Classifier protocol."""

    def __init__(self, func: Callable[[BaseException], Disposition]) -> None:
        self._func = func

    def classify(self, error: BaseException) -> Disposition:
        disposition = self._func(_unwrap(error))
        if not isinstance(disposition, Disposition):
            raise TypeError(f"Classifier function must return a Disposition, got {type(disposition).__name__}")
        return disposition


def resolve_classifier(
    classifier: Classifier | Callable[[BaseException], Disposition] | None,
) -> Classifier:
    """Normalize the ``classifier`` argument accepted by the public entry points.

    None selects DefaultClassifier; a bare function is wrapped in
    FunctionClassifier; anything with a ``classify`` method is used as is.
    """
    if classifier is None:
        return DefaultClassifier()
    if isinstance(classifier, Classifier):
        return classifier
    if callable(classifier):
        return FunctionClassifier(classifier)
    raise TypeError(f"classifier must implement classify() or be callable, got {type(classifier).__name__}")
