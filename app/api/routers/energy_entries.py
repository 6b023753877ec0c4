"""
app/api/routers/energy_entries.py

Manual energy entry and history endpoints.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_energy_entry_store, get_identity
from app.domain.energy_entry import Identity
from app.repositories.energy_entry_repository import EnergyEntryStore
from app.schemas.energy import APIResponse, EnergyEntryResponse, EnergyInputRequest
from app.services.energy_entry_service import (
    EnergyEntryService,
    InvalidDateRangeError,
    get_energy_entry_service,
)

router = APIRouter(tags=["energy"])


def _serialize(response: EnergyEntryResponse) -> dict:
    return response.model_dump(mode="json", by_alias=True)


@router.post("/energy-input", response_model=APIResponse)
def add_energy_entry(
    body: EnergyInputRequest,
    identity: Identity = Depends(get_identity),
    store: EnergyEntryStore = Depends(get_energy_entry_store),
    entry_service: EnergyEntryService = Depends(get_energy_entry_service),
) -> APIResponse:
    """
    Store one manually entered daily usage value.
    """

    record = entry_service.add_manual_entry(
        identity=identity,
        entry_date=body.entry_date,
        usage=body.usage,
        store=store,
    )
    return APIResponse(
        message="Energy entry added to database.",
        data=_serialize(EnergyEntryResponse.from_record(record)),
    )


@router.get("/energy-history", response_model=APIResponse)
def list_energy_history(
    start_date: date | None = Query(default=None, alias="startDate"),
    end_date: date | None = Query(default=None, alias="endDate"),
    identity: Identity = Depends(get_identity),
    store: EnergyEntryStore = Depends(get_energy_entry_store),
    entry_service: EnergyEntryService = Depends(get_energy_entry_service),
) -> APIResponse:
    """
    List the caller's entries between two dates, inclusive.
    """

    if start_date is None or end_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate and endDate query parameters are required.",
        )
    try:
        records = entry_service.find_entries(
            identity=identity,
            start=start_date,
            end=end_date,
            store=store,
        )
    except InvalidDateRangeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return APIResponse(
        data=[_serialize(EnergyEntryResponse.from_record(record)) for record in records],
    )


@router.get("/energy-history/{entry_id}", response_model=APIResponse)
def get_energy_entry(
    entry_id: str,
    identity: Identity = Depends(get_identity),
    store: EnergyEntryStore = Depends(get_energy_entry_store),
    entry_service: EnergyEntryService = Depends(get_energy_entry_service),
) -> APIResponse:
    record = entry_service.get_entry(identity=identity, entry_id=entry_id, store=store)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Energy entry not found.",
        )
    return APIResponse(data=_serialize(EnergyEntryResponse.from_record(record)))
