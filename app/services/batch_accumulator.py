"""
app/services/batch_accumulator.py

Bounded, order-preserving batching of validated energy records.
"""

from __future__ import annotations

from app.domain.energy_entry import EnergyEntryRecord


class BatchAccumulator:
    """
    Buffers records until ``capacity`` is reached, then hands the batch off.

    A batch returned by ``add`` or ``flush`` is no longer referenced by the
    accumulator; a fresh list is started in its place.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("Batch capacity must be at least 1.")
        self._capacity = capacity
        self._batch: list[EnergyEntryRecord] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def pending(self) -> int:
        return len(self._batch)

    def add(self, record: EnergyEntryRecord) -> list[EnergyEntryRecord] | None:
        """
        Append one record; return the full batch when capacity is reached.
        """

        self._batch.append(record)
        if len(self._batch) < self._capacity:
            return None
        return self._take()

    def flush(self) -> list[EnergyEntryRecord] | None:
        """
        Return the remaining partial batch, or None when nothing is buffered.
        """

        if not self._batch:
            return None
        return self._take()

    def discard(self) -> int:
        """
        Drop the partial batch without handing it off. Returns the dropped count.
        """

        dropped = len(self._batch)
        self._batch = []
        return dropped

    def _take(self) -> list[EnergyEntryRecord]:
        batch = self._batch
        self._batch = []
        return batch
