# src/rebound/contracts/policy.py
"""Policy: immutable runtime configuration for retry and dispatch.

Field Origins (when built from settings):
    - max_attempts: PolicySettings.max_attempts (direct)
    - base_delay: PolicySettings.base_delay_seconds (renamed)
    - max_delay: PolicySettings.max_delay_seconds (renamed)
    - backoff_multiplier: PolicySettings.backoff_multiplier (direct)
    - per_attempt_timeout: PolicySettings.per_attempt_timeout_seconds (renamed)
    - concurrency_limit: PolicySettings.concurrency_limit (direct)
    - jitter: PolicySettings.jitter (direct)
    - immediate_first_retry: PolicySettings.immediate_first_retry (direct)

Note: max_attempts is the TOTAL number of tries, not the number of retries.
So max_attempts=3 means: try, retry, retry (3 total).
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from rebound.contracts.errors import ConfigurationError

if TYPE_CHECKING:
    from rebound.core.config import PolicySettings

POLICY_DEFAULTS: dict[str, Any] = {
    "max_attempts": 3,
    "base_delay": 1.0,
    "max_delay": 60.0,
    "backoff_multiplier": 2.0,
    "per_attempt_timeout": None,
    "concurrency_limit": 1,
    "jitter": 0.0,
    "immediate_first_retry": False,
}


@dataclass(frozen=True, slots=True)
class Policy:
    """Retry, timeout and concurrency parameters for one call or batch.

    Validated at construction; an invalid combination raises
    ConfigurationError naming the offending field.

    Attributes:
        max_attempts: Total tries per operation (>= 1)
        base_delay: Delay before the first retry, in seconds (>= 0)
        max_delay: Upper bound on any single delay, in seconds (>= base_delay)
        backoff_multiplier: Growth factor between consecutive delays (>= 1)
        per_attempt_timeout: Seconds one attempt may take, None for unbounded
        concurrency_limit: Workers used by batch dispatch (>= 1)
        jitter: Fraction in [0, 1) by which each delay is randomly perturbed
        immediate_first_retry: Retry the first failure without any delay
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_multiplier: float = 2.0
    per_attempt_timeout: float | None = None
    concurrency_limit: int = 1
    jitter: float = 0.0
    immediate_first_retry: bool = False

    def __post_init__(self) -> None:
        """Validate types and ranges. Raises ConfigurationError on the first violation."""
        _require_int(self.max_attempts, "max_attempts")
        _require_int(self.concurrency_limit, "concurrency_limit")
        if self.max_attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1, got {self.max_attempts}", field="max_attempts")
        if not math.isfinite(self.base_delay) or self.base_delay < 0:
            raise ConfigurationError(f"base_delay must be >= 0, got {self.base_delay}", field="base_delay")
        if math.isnan(self.max_delay) or self.max_delay < self.base_delay:
            raise ConfigurationError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})",
                field="max_delay",
            )
        if math.isnan(self.backoff_multiplier) or self.backoff_multiplier < 1:
            raise ConfigurationError(
                f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}",
                field="backoff_multiplier",
            )
        if self.per_attempt_timeout is not None and not self.per_attempt_timeout > 0:
            raise ConfigurationError(
                f"per_attempt_timeout must be > 0 or None, got {self.per_attempt_timeout}",
                field="per_attempt_timeout",
            )
        if self.concurrency_limit < 1:
            raise ConfigurationError(
                f"concurrency_limit must be >= 1, got {self.concurrency_limit}",
                field="concurrency_limit",
            )
        if not 0 <= self.jitter < 1:
            raise ConfigurationError(f"jitter must be in [0, 1), got {self.jitter}", field="jitter")

    @classmethod
    def default(cls) -> Policy:
        """Factory for the standard policy (3 attempts, 1s doubling to 60s, sequential)."""
        return cls(**POLICY_DEFAULTS)

    @classmethod
    def no_retry(cls) -> Policy:
        """Factory for a single-attempt policy.

        Useful for operations that must not be repeated (non-idempotent calls).
        """
        return cls(**{**POLICY_DEFAULTS, "max_attempts": 1})

    @classmethod
    def from_settings(cls, settings: PolicySettings) -> Policy:
        """Factory from the PolicySettings config model.

        Pydantic has already checked each field in isolation; the cross-field
        rules (max_delay >= base_delay) are enforced here.

        Args:
            settings: Validated Pydantic settings model

        Returns:
            Policy with mapped values
        """
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay_seconds,
            max_delay=settings.max_delay_seconds,
            backoff_multiplier=settings.backoff_multiplier,
            per_attempt_timeout=settings.per_attempt_timeout_seconds,
            concurrency_limit=settings.concurrency_limit,
            jitter=settings.jitter,
            immediate_first_retry=settings.immediate_first_retry,
        )

    def replace(self, **changes: Any) -> Policy:
        """Return a validated copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view, used for logging and the CLI."""
        return dataclasses.asdict(self)


def _require_int(value: Any, field: str) -> None:
    # bool is an int subclass; nan and 2.0 are not counts
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field} must be an int, got {value!r}", field=field)
