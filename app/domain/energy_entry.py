"""
app/domain/energy_entry.py

Domain models used by the energy usage ingestion flow.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

ENERGY_ENTRY_KIND = "energyEntry"


class EntrySource(str, Enum):
    """
    How a record entered the store.
    """

    MANUAL = "manual"
    UPLOAD = "upload"


class RejectionReason(str, Enum):
    """
    Why one CSV row was refused by the row validator.
    """

    MISSING_DATE = "MissingDate"
    INVALID_DATE_FORMAT = "InvalidDateFormat"
    MISSING_USAGE = "MissingUsage"
    INVALID_USAGE_VALUE = "InvalidUsageValue"


class RejectionPolicy(str, Enum):
    """
    What the pipeline does with a rejected row.

    ABORT ends the whole run on the first rejection; SKIP logs the row and
    carries on with the remainder of the file.
    """

    ABORT = "abort"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: str) -> "RejectionPolicy":
        normalized = value.strip().lower()
        aliases = {"strict": cls.ABORT, "lenient": cls.SKIP}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


@dataclass(frozen=True)
class Identity:
    """
    Resolved owner of an ingestion run.
    """

    id: str
    email: str | None = None


@dataclass(frozen=True)
class EnergyReading:
    """
    Validated (date, usage) pair taken from one CSV row.

    Owner, id and creation time are stamped later by the pipeline, which is
    the only stage that knows who owns the file.
    """

    entry_date: date
    usage: float
    row_number: int


@dataclass(frozen=True)
class RowRejection:
    """
    One refused CSV row and the reason it was refused.
    """

    reason: RejectionReason
    row_number: int
    message: str
    value: str | None = None
    raw_row: dict[str, str] = field(default_factory=dict)


def build_entry_id(owner_id: str, entry_date: date) -> str:
    """
    Deterministic record id; re-uploading the same day overwrites the record.
    """

    return f"{owner_id}-{entry_date.isoformat()}"


@dataclass(frozen=True)
class EnergyEntryRecord:
    """
    Canonical energy usage record handed to the record store.
    """

    id: str
    owner_id: str
    entry_date: date
    usage: float
    created_at: datetime
    source: EntrySource = EntrySource.UPLOAD
    kind: str = ENERGY_ENTRY_KIND

    @classmethod
    def from_reading(
        cls,
        reading: EnergyReading,
        *,
        owner_id: str,
        source: EntrySource = EntrySource.UPLOAD,
        created_at: datetime | None = None,
    ) -> "EnergyEntryRecord":
        return cls(
            id=build_entry_id(owner_id, reading.entry_date),
            owner_id=owner_id,
            entry_date=reading.entry_date,
            usage=reading.usage,
            created_at=created_at or datetime.now(tz=timezone.utc),
            source=source,
        )
