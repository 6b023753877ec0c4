"""
app/services/energy_upload_service.py

Service layer for the upload-by-URL ingestion trigger.

The caller is waiting on this path, so the run is strict by default: the
first invalid row fails the whole upload and the caller sees why.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from functools import lru_cache

from app.config import get_energy_ingestion_settings
from app.connectors.base import validate_source_url
from app.domain.energy_entry import EntrySource, Identity, RejectionPolicy
from app.domain.ingestion import IngestionRequest, IngestionResult
from app.repositories.energy_entry_repository import EnergyEntryStore
from app.services.ingestion_pipeline import IngestionPipeline, build_ingestion_pipeline

logger = logging.getLogger(__name__)


class EnergyUploadService:
    """
    Validates the requested URL and runs one ingestion for the caller.
    """

    def __init__(
        self,
        *,
        policy: RejectionPolicy = RejectionPolicy.ABORT,
        pipeline_factory: Callable[..., IngestionPipeline] = build_ingestion_pipeline,
    ) -> None:
        self._policy = policy
        self._pipeline_factory = pipeline_factory

    def ingest_from_url(
        self,
        *,
        url: str | None,
        identity: Identity,
        store: EnergyEntryStore,
    ) -> IngestionResult:
        """
        Stream the CSV at ``url`` into the caller's energy entries.

        Raises:
            InvalidSourceURLError: Before any processing, when the URL is
                missing or malformed.
        """

        source_url = validate_source_url(url)
        logger.info("Energy upload requested owner=%s", identity.id)
        pipeline = self._pipeline_factory(store=store)
        return pipeline.run(
            IngestionRequest(
                source_url=source_url,
                owner_id=identity.id,
                policy=self._policy,
                source=EntrySource.UPLOAD,
            )
        )


@lru_cache(maxsize=1)
def get_energy_upload_service() -> EnergyUploadService:
    """
    Build and cache the upload service with env-driven settings.
    """

    settings = get_energy_ingestion_settings()
    return EnergyUploadService(policy=settings.upload_rejection_policy)
