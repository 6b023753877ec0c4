"""
app/domain package marker.
"""

from app.domain.energy_entry import (
    ENERGY_ENTRY_KIND,
    EnergyEntryRecord,
    EnergyReading,
    EntrySource,
    Identity,
    RejectionPolicy,
    RejectionReason,
    RowRejection,
    build_entry_id,
)
from app.domain.errors import (
    CSVParseError,
    IngestionCancelledError,
    IngestionError,
    InvalidSourceURLError,
    OwnerResolutionError,
    PersistError,
    RecordStoreError,
    SourceUnavailableError,
    ValidationRejectionError,
)
from app.domain.ingestion import IngestionRequest, IngestionResult, IngestionState

__all__ = [
    "ENERGY_ENTRY_KIND",
    "CSVParseError",
    "EnergyEntryRecord",
    "EnergyReading",
    "EntrySource",
    "Identity",
    "IngestionCancelledError",
    "IngestionError",
    "IngestionRequest",
    "IngestionResult",
    "IngestionState",
    "InvalidSourceURLError",
    "OwnerResolutionError",
    "PersistError",
    "RecordStoreError",
    "RejectionPolicy",
    "RejectionReason",
    "RowRejection",
    "SourceUnavailableError",
    "ValidationRejectionError",
    "build_entry_id",
]
