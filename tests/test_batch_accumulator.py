"""
tests/test_batch_accumulator.py
"""

import unittest
from datetime import date, datetime, timezone

from app.domain.energy_entry import EnergyEntryRecord, build_entry_id
from app.services.batch_accumulator import BatchAccumulator


def _record(day: int) -> EnergyEntryRecord:
    entry_date = date(2024, 1, day)
    return EnergyEntryRecord(
        id=build_entry_id("user-1", entry_date),
        owner_id="user-1",
        entry_date=entry_date,
        usage=float(day),
        created_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
    )


class BatchAccumulatorTests(unittest.TestCase):
    def test_add_returns_batch_exactly_at_capacity(self) -> None:
        accumulator = BatchAccumulator(3)

        self.assertIsNone(accumulator.add(_record(1)))
        self.assertIsNone(accumulator.add(_record(2)))
        batch = accumulator.add(_record(3))

        self.assertEqual([record.entry_date.day for record in batch], [1, 2, 3])
        self.assertEqual(accumulator.pending, 0)

    def test_returned_batch_is_not_reused(self) -> None:
        accumulator = BatchAccumulator(2)
        accumulator.add(_record(1))
        first = accumulator.add(_record(2))

        accumulator.add(_record(3))

        self.assertEqual(len(first), 2)
        self.assertEqual(accumulator.pending, 1)

    def test_flush_returns_partial_batch_then_none(self) -> None:
        accumulator = BatchAccumulator(10)
        accumulator.add(_record(1))

        self.assertEqual(len(accumulator.flush()), 1)
        self.assertIsNone(accumulator.flush())

    def test_discard_drops_partial_batch(self) -> None:
        accumulator = BatchAccumulator(10)
        accumulator.add(_record(1))
        accumulator.add(_record(2))

        self.assertEqual(accumulator.discard(), 2)
        self.assertIsNone(accumulator.flush())

    def test_capacity_must_be_positive(self) -> None:
        with self.assertRaises(ValueError):
            BatchAccumulator(0)

    def test_capacity_of_one_hands_off_every_record(self) -> None:
        accumulator = BatchAccumulator(1)

        self.assertEqual(len(accumulator.add(_record(1))), 1)
        self.assertEqual(accumulator.capacity, 1)


if __name__ == "__main__":
    unittest.main()
