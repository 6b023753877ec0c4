"""
app/services/bulk_upsert_sink.py

Drains batches of energy records into the record store.

The store accepts at most ``max_operations`` upserts per call, so larger
batches are split into ordered sub-batches. A failing sub-batch is neither
retried nor compensated: upserts are idempotent by id, so re-running the
whole ingestion is the recovery path.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.domain.energy_entry import EnergyEntryRecord
from app.domain.errors import PersistError, RecordStoreError
from app.repositories.energy_entry_repository import EnergyEntryStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_OPERATIONS = 100


class BulkUpsertSink:
    """
    Writes one batch at a time, subdividing to the store's per-call cap.
    """

    def __init__(
        self,
        store: EnergyEntryStore,
        *,
        max_operations: int = DEFAULT_MAX_OPERATIONS,
    ) -> None:
        if max_operations < 1:
            raise ValueError("max_operations must be at least 1.")
        self._store = store
        self._max_operations = max_operations

    @property
    def max_operations(self) -> int:
        return self._max_operations

    def write(self, batch: Sequence[EnergyEntryRecord]) -> int:
        """
        Upsert every record of ``batch``; return the number written.

        Raises:
            PersistError: When a sub-batch fails. Carries the failing
                sub-batch's record ids and how many records of this batch
                were applied before it.
        """

        applied = 0
        for start in range(0, len(batch), self._max_operations):
            sub_batch = batch[start : start + self._max_operations]
            logger.debug(
                "Upserting energy sub-batch offset=%s size=%s batch_size=%s",
                start,
                len(sub_batch),
                len(batch),
            )
            try:
                self._store.bulk_upsert(sub_batch)
            except RecordStoreError as exc:
                record_ids = [record.id for record in sub_batch]
                logger.error(
                    "Energy sub-batch upsert failed offset=%s size=%s applied=%s first_id=%s error=%s",
                    start,
                    len(sub_batch),
                    applied,
                    record_ids[0] if record_ids else None,
                    exc,
                )
                raise PersistError(
                    f"Failed to upsert {len(sub_batch)} records "
                    f"({record_ids[0]} .. {record_ids[-1]}): {exc}",
                    record_ids=record_ids,
                    applied=applied,
                ) from exc
            applied += len(sub_batch)
        return applied
