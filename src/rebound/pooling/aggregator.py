# src/rebound/pooling/aggregator.py
"""Outcome aggregator: collect batch results by index, emit in input order.

Results complete in any order (workers race for items), but are emitted
in exactly the order the items were submitted. Completion order is kept as
metadata on each BatchResult.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from threading import Lock

from rebound.contracts.errors import AggregationIntegrityError
from rebound.contracts.results import BatchResult, Outcome


@dataclass
class _Slot[T]:
    """Internal per-index slot."""

    index: int
    result: BatchResult[T] | None = None


class OutcomeAggregator[T]:
    """Thread-safe, fixed-size mapping from item index to BatchResult.

    Usage:
        aggregator = OutcomeAggregator[int]([item.index for item in items])

        # From worker threads, in any order
        aggregator.record(2, Success(42), attempts=1)

        # Once every item is terminal
        results = aggregator.results()  # input order
    """

    def __init__(self, indices: Iterable[int]) -> None:
        """Reserve one slot per index, in submission order.

        Raises:
            AggregationIntegrityError: If an index appears twice
        """
        self._order: list[int] = []
        self._slots: dict[int, _Slot[T]] = {}
        for index in indices:
            if index in self._slots:
                raise AggregationIntegrityError(f"Duplicate batch index {index}")
            self._slots[index] = _Slot(index=index)
            self._order.append(index)
        self._recorded = 0
        self._complete_counter = 0
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._order)

    @property
    def pending_count(self) -> int:
        """Number of slots not yet recorded (thread-safe)."""
        with self._lock:
            return len(self._order) - self._recorded

    def is_recorded(self, index: int) -> bool:
        with self._lock:
            slot = self._slots.get(index)
            return slot is not None and slot.result is not None

    def record(self, index: int, outcome: Outcome[T], *, attempts: int, started: bool = True) -> BatchResult[T]:
        """Store the terminal outcome for ``index`` (thread-safe).

        Args:
            index: Batch index of the item
            outcome: Terminal Success or Failure
            attempts: Attempts the item used
            started: False for items cancelled before running; they get no
                completion_index

        Returns:
            The recorded BatchResult

        Raises:
            AggregationIntegrityError: If index is unknown or already recorded
        """
        with self._lock:
            slot = self._slots.get(index)
            if slot is None:
                raise AggregationIntegrityError(f"Batch index {index} was never submitted")
            if slot.result is not None:
                raise AggregationIntegrityError(f"Batch index {index} was already recorded")

            completion_index = None
            if started:
                completion_index = self._complete_counter
                self._complete_counter += 1
            slot.result = BatchResult(
                index=index,
                outcome=outcome,
                attempts=attempts,
                completion_index=completion_index,
            )
            self._recorded += 1
            return slot.result

    def results(self) -> list[BatchResult[T]]:
        """All results in submission order (thread-safe).

        Raises:
            AggregationIntegrityError: If any slot has not been recorded
        """
        with self._lock:
            missing = [index for index in self._order if self._slots[index].result is None]
            if missing:
                raise AggregationIntegrityError(f"Batch results missing for indices {missing}")
            return [self._slots[index].result for index in self._order]  # type: ignore[misc]
