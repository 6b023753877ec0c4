"""
app/services/energy_entry_service.py

Manual entry and history reads for energy usage records.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from functools import lru_cache

from app.domain.energy_entry import EnergyEntryRecord, EnergyReading, EntrySource, Identity
from app.repositories.energy_entry_repository import EnergyEntryStore

logger = logging.getLogger(__name__)


class InvalidDateRangeError(ValueError):
    """
    Raised when a history query range is inverted.
    """


class EnergyEntryService:
    """
    Owner-scoped single-record operations over the energy entry store.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def add_manual_entry(
        self,
        *,
        identity: Identity,
        entry_date: date,
        usage: float,
        store: EnergyEntryStore,
    ) -> EnergyEntryRecord:
        """
        Upsert one manually entered reading; same-day entries overwrite.
        """

        record = EnergyEntryRecord.from_reading(
            EnergyReading(entry_date=entry_date, usage=usage, row_number=0),
            owner_id=identity.id,
            source=EntrySource.MANUAL,
            created_at=self._clock(),
        )
        store.bulk_upsert([record])
        logger.info("Manual energy entry stored owner=%s id=%s", identity.id, record.id)
        return record

    def get_entry(
        self,
        *,
        identity: Identity,
        entry_id: str,
        store: EnergyEntryStore,
    ) -> EnergyEntryRecord | None:
        record = store.get(entry_id)
        if record is None or record.owner_id != identity.id:
            return None
        return record

    def find_entries(
        self,
        *,
        identity: Identity,
        start: date,
        end: date,
        store: EnergyEntryStore,
    ) -> list[EnergyEntryRecord]:
        if start > end:
            raise InvalidDateRangeError("startDate must not be after endDate.")
        return store.find(identity.id, start, end)


@lru_cache(maxsize=1)
def get_energy_entry_service() -> EnergyEntryService:
    return EnergyEntryService()
