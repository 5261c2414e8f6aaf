"""Property-based tests for rebound.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of.

Test categories:
- contracts/: Policy validation accepts exactly the valid parameter space
- engine/: Backoff monotonicity and bounds, attempt budgets
"""
