# src/rebound/contracts/__init__.py
"""Shared contracts: policy, dispositions, outcome records and errors.

Leaf package: nothing here imports from rebound.engine or rebound.pooling.
"""

from rebound.contracts.enums import Disposition, LoopState
from rebound.contracts.errors import (
    AggregationIntegrityError,
    AttemptError,
    AttemptTimeoutError,
    CancelledError,
    ConfigurationError,
    ExhaustedError,
    OperationError,
    ReboundError,
)
from rebound.contracts.policy import POLICY_DEFAULTS, Policy
from rebound.contracts.results import (
    Attempt,
    BatchItem,
    BatchResult,
    Failure,
    Operation,
    Outcome,
    Success,
)

__all__ = [
    "POLICY_DEFAULTS",
    "AggregationIntegrityError",
    "Attempt",
    "AttemptError",
    "AttemptTimeoutError",
    "BatchItem",
    "BatchResult",
    "CancelledError",
    "ConfigurationError",
    "Disposition",
    "ExhaustedError",
    "Failure",
    "LoopState",
    "Operation",
    "OperationError",
    "Outcome",
    "Policy",
    "ReboundError",
    "Success",
]
