"""
app/services package marker.
"""

from app.services.batch_accumulator import BatchAccumulator
from app.services.bulk_upsert_sink import BulkUpsertSink
from app.services.energy_entry_service import (
    EnergyEntryService,
    InvalidDateRangeError,
    get_energy_entry_service,
)
from app.services.energy_upload_service import EnergyUploadService, get_energy_upload_service
from app.services.ingestion_pipeline import IngestionPipeline, build_ingestion_pipeline
from app.services.storage_event_handler import (
    StorageEventIngestionHandler,
    get_storage_event_handler,
)

__all__ = [
    "BatchAccumulator",
    "BulkUpsertSink",
    "EnergyEntryService",
    "EnergyUploadService",
    "IngestionPipeline",
    "InvalidDateRangeError",
    "StorageEventIngestionHandler",
    "build_ingestion_pipeline",
    "get_energy_entry_service",
    "get_energy_upload_service",
    "get_storage_event_handler",
]
