# tests/engine/test_backoff.py
"""Tests for backoff delay computation."""

from __future__ import annotations

import random
from unittest.mock import MagicMock

import pytest

from rebound.contracts.policy import Policy
from rebound.engine.backoff import BackoffScheduler, delay_for


class TestDelayFor:
    def test_exponential_growth(self) -> None:
        policy = Policy(max_attempts=5, base_delay=0.1, max_delay=10.0, backoff_multiplier=2.0)

        assert [delay_for(k, policy) for k in (1, 2, 3, 4)] == pytest.approx([0.1, 0.2, 0.4, 0.8])

    def test_clamped_to_max_delay(self) -> None:
        policy = Policy(max_attempts=10, base_delay=1.0, max_delay=5.0, backoff_multiplier=3.0)

        assert delay_for(1, policy) == 1.0
        assert delay_for(2, policy) == 3.0
        assert delay_for(3, policy) == 5.0
        assert delay_for(9, policy) == 5.0

    def test_zero_base_delay_means_no_delay(self) -> None:
        policy = Policy(base_delay=0.0, max_delay=0.0)

        assert delay_for(1, policy) == 0.0
        assert delay_for(50, policy) == 0.0

    def test_constant_backoff(self) -> None:
        policy = Policy(base_delay=0.5, backoff_multiplier=1.0)

        assert delay_for(1, policy) == delay_for(7, policy) == 0.5

    def test_huge_exponent_returns_max_delay(self) -> None:
        policy = Policy(base_delay=1.0, max_delay=30.0, backoff_multiplier=10.0)

        assert delay_for(10_000, policy) == 30.0

    def test_immediate_first_retry(self) -> None:
        policy = Policy(base_delay=0.1, immediate_first_retry=True)

        assert delay_for(1, policy) == 0.0
        assert delay_for(2, policy) == pytest.approx(0.2)

    @pytest.mark.parametrize("attempt_index", [0, -1])
    def test_attempt_index_must_be_positive(self, attempt_index: int) -> None:
        with pytest.raises(ValueError, match="attempt_index must be >= 1"):
            delay_for(attempt_index, Policy())


class TestBackoffScheduler:
    def test_schedule_has_one_delay_per_retry(self) -> None:
        scheduler = BackoffScheduler(Policy(max_attempts=4, base_delay=0.1, max_delay=1.0))

        assert scheduler.schedule() == pytest.approx([0.1, 0.2, 0.4])

    def test_single_attempt_has_empty_schedule(self) -> None:
        assert BackoffScheduler(Policy.no_retry()).schedule() == []

    def test_jitter_stays_within_band_and_max_delay(self) -> None:
        policy = Policy(max_attempts=8, base_delay=1.0, max_delay=4.0, jitter=0.5)
        scheduler = BackoffScheduler(policy, rng=random.Random(1234))

        for k in range(1, 8):
            nominal = delay_for(k, policy)
            delay = scheduler.delay_for(k)
            assert nominal * 0.5 <= delay <= min(nominal * 1.5, policy.max_delay)

    def test_jitter_is_reproducible_with_seeded_rng(self) -> None:
        policy = Policy(max_attempts=5, base_delay=1.0, jitter=0.3)

        first = BackoffScheduler(policy, rng=random.Random(7)).schedule()
        second = BackoffScheduler(policy, rng=random.Random(7)).schedule()

        assert first == second

    def test_tenacity_hook_returns_delay_for_attempt(self) -> None:
        scheduler = BackoffScheduler(Policy(max_attempts=3, base_delay=0.1))
        retry_state = MagicMock(attempt_number=2)

        assert scheduler(retry_state) == pytest.approx(0.2)

    def test_tenacity_hook_computes_nothing_after_final_attempt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        scheduler = BackoffScheduler(Policy(max_attempts=3, base_delay=0.1))
        monkeypatch.setattr(scheduler, "delay_for", MagicMock(side_effect=AssertionError("delay computed")))

        assert scheduler(MagicMock(attempt_number=3)) == 0.0
