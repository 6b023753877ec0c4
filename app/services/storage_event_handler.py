"""
app/services/storage_event_handler.py

Ingestion triggered by storage "object created" notifications.

There is no caller waiting on this path: the owner comes from metadata
stamped on the object at upload time, and every outcome is reported through
logging only.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from app.config import get_energy_ingestion_settings, get_source_http_settings
from app.connectors.blob_metadata import BlobMetadataClient, ObjectMetadataReader
from app.domain.energy_entry import EntrySource, RejectionPolicy
from app.domain.errors import IngestionError, OwnerResolutionError
from app.domain.ingestion import IngestionRequest, IngestionResult
from app.repositories.energy_entry_repository import EnergyEntryRepository
from app.services.ingestion_pipeline import build_ingestion_pipeline

logger = logging.getLogger(__name__)

BLOB_CREATED_EVENT = "Microsoft.Storage.BlobCreated"
SUBSCRIPTION_VALIDATION_EVENT = "Microsoft.EventGrid.SubscriptionValidationEvent"
OWNER_METADATA_KEY = "userid"

_SUBJECT_PATTERN = re.compile(
    r"^/blobServices/default/containers/(?P<container>[^/]+)/blobs/(?P<blob>.+)$"
)


class StorageEventError(ValueError):
    """
    Raised when a notification payload is not a usable object-created event.
    """


@dataclass(frozen=True)
class StorageObjectEvent:
    """
    Object-created notification reduced to what ingestion needs.
    """

    event_id: str | None
    container: str
    blob_name: str
    url: str


def parse_storage_event(payload: Mapping[str, Any]) -> StorageObjectEvent:
    """
    Extract container, object name and URL from one notification.

    Raises:
        StorageEventError: If the subject or URL is missing or malformed.
    """

    subject = str(payload.get("subject") or "")
    match = _SUBJECT_PATTERN.match(subject)
    if match is None:
        raise StorageEventError(f"Unrecognised storage event subject: {subject!r}.")

    data = payload.get("data") or {}
    url = data.get("url") if isinstance(data, Mapping) else None
    if not url:
        raise StorageEventError("Storage event carries no object URL.")

    return StorageObjectEvent(
        event_id=payload.get("id"),
        container=match.group("container"),
        blob_name=match.group("blob"),
        url=str(url),
    )


class StorageEventIngestionHandler:
    """
    Resolves the object's owner, then runs a (by default lenient) ingestion.
    """

    def __init__(
        self,
        *,
        metadata_reader: ObjectMetadataReader,
        run_ingestion: Callable[[IngestionRequest], IngestionResult],
        policy: RejectionPolicy = RejectionPolicy.SKIP,
    ) -> None:
        self._metadata_reader = metadata_reader
        self._run_ingestion = run_ingestion
        self._policy = policy

    def resolve_owner(self, event: StorageObjectEvent) -> str:
        """
        Read the ``userid`` metadata tag of the uploaded object.

        Raises:
            OwnerResolutionError: If the tag is absent or empty.
            SourceUnavailableError: If the metadata cannot be fetched.
        """

        metadata = self._metadata_reader.get_metadata(event.url)
        owner_id = {key.lower(): value for key, value in metadata.items()}.get(OWNER_METADATA_KEY)
        if owner_id is None or not owner_id.strip():
            raise OwnerResolutionError(
                f"Object {event.container}/{event.blob_name} has no '{OWNER_METADATA_KEY}' metadata."
            )
        return owner_id.strip()

    def handle(self, event: StorageObjectEvent) -> IngestionResult | None:
        """
        Ingest the object named by ``event``. Never raises; returns None when
        the run could not start.
        """

        logger.info(
            "Storage event received event_id=%s container=%s blob=%s",
            event.event_id,
            event.container,
            event.blob_name,
        )
        try:
            owner_id = self.resolve_owner(event)
            result = self._run_ingestion(
                IngestionRequest(
                    source_url=event.url,
                    owner_id=owner_id,
                    policy=self._policy,
                    source=EntrySource.UPLOAD,
                )
            )
        except IngestionError as exc:
            logger.error(
                "Storage event ingestion did not start event_id=%s blob=%s error_type=%s error=%s",
                event.event_id,
                event.blob_name,
                type(exc).__name__,
                exc,
            )
            return None
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Unhandled storage event ingestion failure event_id=%s blob=%s error=%s",
                event.event_id,
                event.blob_name,
                exc,
            )
            return None

        logger.info(
            "Storage event ingestion finished event_id=%s blob=%s state=%s summary=%s",
            event.event_id,
            event.blob_name,
            result.state.value,
            result.describe(),
        )
        return result


def _run_with_fresh_session(request: IngestionRequest) -> IngestionResult:
    """
    Run one ingestion with a database session owned by this run.
    """

    from db.session import SessionLocal

    with SessionLocal() as session:
        pipeline = build_ingestion_pipeline(store=EnergyEntryRepository(session))
        return pipeline.run(request)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_storage_event_handler() -> StorageEventIngestionHandler:
    """
    Build and cache the storage event handler with env-driven settings.
    """

    return StorageEventIngestionHandler(
        metadata_reader=BlobMetadataClient(http_settings=get_source_http_settings()),
        run_ingestion=_run_with_fresh_session,
        policy=get_energy_ingestion_settings().storage_event_rejection_policy,
    )
