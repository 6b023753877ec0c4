"""
app/domain/ingestion.py

Run-level request and result models for the ingestion pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from app.domain.energy_entry import EntrySource, RejectionPolicy, RowRejection
from app.domain.errors import IngestionError


class IngestionState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class IngestionRequest:
    """
    One ingestion run: where the file lives, who owns it, and how strict to be.
    """

    source_url: str
    owner_id: str
    policy: RejectionPolicy = RejectionPolicy.ABORT
    source: EntrySource = EntrySource.UPLOAD


@dataclass(frozen=True)
class IngestionResult:
    """
    End-of-run ingestion summary.

    On failure ``rows_persisted`` counts what was durably written before the
    run stopped; nothing is rolled back.
    """

    state: IngestionState
    rows_read: int
    rows_persisted: int
    rows_rejected: int
    batches_written: int
    rejections: list[RowRejection] = field(default_factory=list)
    error: IngestionError | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is IngestionState.COMPLETED

    def describe(self) -> str:
        if self.succeeded:
            return (
                f"Processed {self.rows_read} rows: {self.rows_persisted} persisted "
                f"in {self.batches_written} batches, {self.rows_rejected} rejected."
            )
        return (
            f"Ingestion failed after persisting {self.rows_persisted} rows: {self.error}"
        )
