"""
app/api/routers/energy_upload.py

Upload-by-URL energy ingestion endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_energy_entry_store, get_identity
from app.domain.energy_entry import Identity
from app.domain.errors import InvalidSourceURLError
from app.repositories.energy_entry_repository import EnergyEntryStore
from app.schemas.energy import APIResponse, EnergyIngestionSummaryResponse
from app.services.energy_upload_service import EnergyUploadService, get_energy_upload_service

router = APIRouter(tags=["energy-upload"])


@router.post("/energy-upload", response_model=APIResponse)
def upload_energy_csv(
    url: str | None = Query(default=None, description="Pre-signed URL of the CSV file to ingest"),
    identity: Identity = Depends(get_identity),
    store: EnergyEntryStore = Depends(get_energy_entry_store),
    upload_service: EnergyUploadService = Depends(get_energy_upload_service),
) -> APIResponse:
    """
    Stream a remote CSV into the caller's energy entries.
    """

    try:
        result = upload_service.ingest_from_url(url=url, identity=identity, store=store)
    except InvalidSourceURLError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Please provide a valid pre-signed URL in the 'url' query parameter. {exc}",
        ) from exc

    summary = EnergyIngestionSummaryResponse.from_result(result)
    if not result.succeeded:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": f"Error processing the CSV file: {result.error}",
                "data": summary.model_dump(mode="json"),
            },
        )

    return APIResponse(
        message=f"CSV file processed successfully. {result.describe()}",
        data=summary.model_dump(mode="json"),
    )
