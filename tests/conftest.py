# tests/conftest.py
"""Shared test fixtures and helpers.

Operation helpers:
- FlakyOperation: raises a scripted sequence of errors, then returns a value
- ServiceUnavailable: error with an HTTP-style status_code attribute

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import os
import threading
from collections.abc import Sequence
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

from rebound.contracts.policy import Policy
from rebound.core.cancellation import CancellationToken


class ServiceUnavailable(Exception):
    """Error shaped like an HTTP client error carrying a status code."""

    def __init__(self, status_code: int = 503) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class FlakyOperation:
    """Operation that raises each scripted error in turn, then succeeds.

    Thread-safe call counting so it can be shared by dispatcher workers.
    """

    def __init__(self, errors: Sequence[BaseException], value: Any = "ok") -> None:
        self._errors = list(errors)
        self._value = value
        self._lock = threading.Lock()
        self.calls = 0
        self.__name__ = "flaky"

    def __call__(self, token: CancellationToken) -> Any:
        with self._lock:
            self.calls += 1
            call = self.calls
        if call <= len(self._errors):
            raise self._errors[call - 1]
        return self._value


@pytest.fixture
def fast_policy() -> Policy:
    """Three attempts with millisecond backoff."""
    return Policy(max_attempts=3, base_delay=0.001, max_delay=0.01, backoff_multiplier=2.0)


@pytest.fixture
def token() -> CancellationToken:
    return CancellationToken()


# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))
