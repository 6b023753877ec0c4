"""
app/schemas/energy.py

Request and response schemas for energy usage endpoints.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from app.domain.energy_entry import EnergyEntryRecord, RowRejection
from app.domain.ingestion import IngestionResult


class APIResponse(BaseModel):
    """
    Envelope shared by all energy endpoints.
    """

    message: str | None = None
    data: Any = None


class RowRejectionResponse(BaseModel):
    """
    API response model for one rejected CSV row.
    """

    row_number: int = Field(..., ge=1)
    reason: str
    message: str
    value: str | None = None

    @classmethod
    def from_rejection(cls, rejection: RowRejection) -> "RowRejectionResponse":
        return cls(
            row_number=rejection.row_number,
            reason=rejection.reason.value,
            message=rejection.message,
            value=rejection.value,
        )


class EnergyIngestionSummaryResponse(BaseModel):
    """
    API response model for one ingestion run.
    """

    state: str
    rows_read: int = Field(..., ge=0)
    rows_persisted: int = Field(..., ge=0)
    rows_rejected: int = Field(..., ge=0)
    batches_written: int = Field(..., ge=0)
    rejections: list[RowRejectionResponse] = Field(default_factory=list)
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def from_result(cls, result: IngestionResult) -> "EnergyIngestionSummaryResponse":
        return cls(
            state=result.state.value,
            rows_read=result.rows_read,
            rows_persisted=result.rows_persisted,
            rows_rejected=result.rows_rejected,
            batches_written=result.batches_written,
            rejections=[RowRejectionResponse.from_rejection(item) for item in result.rejections],
            error=str(result.error) if result.error is not None else None,
            error_type=type(result.error).__name__ if result.error is not None else None,
        )


class EnergyEntryResponse(BaseModel):
    """
    API response model for one stored energy entry.
    """

    id: str
    user_id: str = Field(..., serialization_alias="userId")
    entry_date: date = Field(..., serialization_alias="entryDate")
    usage: float
    created_at: datetime = Field(..., serialization_alias="createdAt")
    created_type: str = Field(..., serialization_alias="createdType")
    type: str

    @classmethod
    def from_record(cls, record: EnergyEntryRecord) -> "EnergyEntryResponse":
        return cls(
            id=record.id,
            user_id=record.owner_id,
            entry_date=record.entry_date,
            usage=record.usage,
            created_at=record.created_at,
            created_type=record.source.value,
            type=record.kind,
        )


class EnergyInputRequest(BaseModel):
    """
    Body of a manual energy entry.
    """

    entry_date: date = Field(..., alias="date")
    usage: float = Field(..., allow_inf_nan=False)
