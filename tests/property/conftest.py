# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Usage:
    from tests.property.conftest import valid_policies

    @given(policy=valid_policies())
    def test_schedule_is_bounded(policy: Policy) -> None:
        ...
"""

from __future__ import annotations

from hypothesis import strategies as st

from rebound.contracts.policy import Policy

valid_max_attempts = st.integers(min_value=1, max_value=20)

valid_delays = st.floats(min_value=0.0, max_value=120.0, allow_nan=False, allow_infinity=False)

valid_multipliers = st.floats(min_value=1.0, max_value=10.0, allow_nan=False, allow_infinity=False)

valid_jitter = st.floats(min_value=0.0, max_value=0.99, allow_nan=False, allow_infinity=False)


@st.composite
def valid_policies(draw: st.DrawFn, *, jitter: bool = False) -> Policy:
    """Policies with max_delay >= base_delay and every field in range."""
    base_delay = draw(valid_delays)
    max_delay = draw(st.floats(min_value=base_delay, max_value=base_delay + 300.0, allow_nan=False))
    return Policy(
        max_attempts=draw(valid_max_attempts),
        base_delay=base_delay,
        max_delay=max_delay,
        backoff_multiplier=draw(valid_multipliers),
        concurrency_limit=draw(st.integers(min_value=1, max_value=64)),
        jitter=draw(valid_jitter) if jitter else 0.0,
        immediate_first_retry=draw(st.booleans()),
    )
