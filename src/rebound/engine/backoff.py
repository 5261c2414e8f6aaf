# src/rebound/engine/backoff.py
"""Backoff scheduler: delay before each retry.

    delay_for(k) = min(max_delay, base_delay * backoff_multiplier ** (k - 1))

where k is the 1-based index of the attempt that just failed. So with
base_delay=0.1 and multiplier 2, the waits after attempts 1, 2, 3 are
0.1s, 0.2s, 0.4s.

Deterministic unless the policy enables jitter, in which case each delay is
scaled by a uniform factor in [1 - jitter, 1 + jitter] and clamped to
[0, max_delay] (max_delay stays a hard upper bound).

BackoffScheduler is also a tenacity wait strategy so RetryLoop can hand it
straight to tenacity.Retrying.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from tenacity.wait import wait_base

from rebound.contracts.policy import Policy

if TYPE_CHECKING:
    from tenacity import RetryCallState


def delay_for(attempt_index: int, policy: Policy) -> float:
    """Deterministic delay after attempt ``attempt_index`` fails.

    Jitter is not applied here; see BackoffScheduler.delay_for.

    Raises:
        ValueError: If attempt_index < 1
    """
    if attempt_index < 1:
        raise ValueError(f"attempt_index must be >= 1, got {attempt_index}")
    if attempt_index == 1 and policy.immediate_first_retry:
        return 0.0
    if policy.base_delay == 0:
        return 0.0

    try:
        delay = policy.base_delay * policy.backoff_multiplier ** (attempt_index - 1)
    except OverflowError:
        return policy.max_delay
    return max(0.0, min(policy.max_delay, delay))


class BackoffScheduler(wait_base):
    """Computes retry delays for one Policy.

    Example:
        scheduler = BackoffScheduler(Policy(max_attempts=4, base_delay=0.1, max_delay=1.0))
        scheduler.schedule()  # [0.1, 0.2, 0.4]
    """

    def __init__(self, policy: Policy, *, rng: random.Random | None = None) -> None:
        """Initialize scheduler.

        Args:
            policy: Policy supplying the backoff shape
            rng: Random source for jitter (seeded in tests)
        """
        self._policy = policy
        self._rng = rng or random.Random()

    @property
    def policy(self) -> Policy:
        return self._policy

    def delay_for(self, attempt_index: int) -> float:
        """Delay after attempt ``attempt_index`` fails, with jitter if enabled."""
        delay = delay_for(attempt_index, self._policy)
        jitter = self._policy.jitter
        if jitter and delay > 0:
            delay *= self._rng.uniform(1.0 - jitter, 1.0 + jitter)
            delay = max(0.0, min(self._policy.max_delay, delay))
        return delay

    def schedule(self) -> list[float]:
        """Every delay a full run of the policy can incur (max_attempts - 1 entries)."""
        return [self.delay_for(k) for k in range(1, self._policy.max_attempts)]

    def __call__(self, retry_state: RetryCallState) -> float:
        """tenacity wait hook.

        tenacity computes the wait before checking the stop condition; after
        the final permitted attempt no retry follows, so no delay is computed.
        """
        attempt_index = retry_state.attempt_number
        if attempt_index >= self._policy.max_attempts:
            return 0.0
        return self.delay_for(attempt_index)
