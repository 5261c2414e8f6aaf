# src/rebound/pooling/__init__.py
"""Batch dispatch: bounded worker pool plus ordered result aggregation."""

from rebound.pooling.aggregator import OutcomeAggregator
from rebound.pooling.dispatcher import ThrottledDispatcher, as_batch_items, run_batch

__all__ = [
    "OutcomeAggregator",
    "ThrottledDispatcher",
    "as_batch_items",
    "run_batch",
]
