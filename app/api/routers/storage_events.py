"""
app/api/routers/storage_events.py

Webhook for storage "object created" notifications (Event Grid schema).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends, status
from fastapi.responses import JSONResponse

from app.schemas.energy import APIResponse
from app.services.storage_event_handler import (
    BLOB_CREATED_EVENT,
    SUBSCRIPTION_VALIDATION_EVENT,
    StorageEventError,
    StorageEventIngestionHandler,
    get_storage_event_handler,
    parse_storage_event,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["storage-events"])


@router.post(
    "/events/storage",
    response_model=APIResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def receive_storage_events(
    background_tasks: BackgroundTasks,
    events: list[dict[str, Any]] = Body(...),
    handler: StorageEventIngestionHandler = Depends(get_storage_event_handler),
) -> Any:
    """
    Queue ingestion for every object-created event in the delivery.

    Ingestion runs after the response is sent; its outcome is only logged.
    """

    for event in events:
        if event.get("eventType") == SUBSCRIPTION_VALIDATION_EVENT:
            data = event.get("data")
            validation_code = data.get("validationCode") if isinstance(data, dict) else None
            if not validation_code:
                logger.warning("Ignoring subscription validation without a code id=%s", event.get("id"))
                continue
            logger.info("Storage event subscription validation id=%s", event.get("id"))
            return JSONResponse(
                status_code=status.HTTP_200_OK,
                content={"validationResponse": validation_code},
            )

    accepted = 0
    skipped = 0
    for event in events:
        if event.get("eventType") != BLOB_CREATED_EVENT:
            skipped += 1
            continue
        try:
            parsed = parse_storage_event(event)
        except StorageEventError as exc:
            logger.warning("Ignoring storage event id=%s error=%s", event.get("id"), exc)
            skipped += 1
            continue
        background_tasks.add_task(handler.handle, parsed)
        accepted += 1

    return APIResponse(
        message=f"Accepted {accepted} storage events for ingestion.",
        data={"accepted": accepted, "skipped": skipped},
    )
