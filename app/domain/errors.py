"""
app/domain/errors.py

Exception taxonomy for energy usage ingestion.

Precondition failures (bad URL, unknown owner) are raised before any byte is
fetched. The remaining errors end a run that has already started; batches
written before them stay committed.
"""

from __future__ import annotations

from collections.abc import Sequence

from app.domain.energy_entry import RowRejection


class IngestionError(Exception):
    """Base exception for ingestion failures."""


class InvalidSourceURLError(IngestionError, ValueError):
    """Raised when the source URL is missing or not shaped like scheme://host/path."""


class OwnerResolutionError(IngestionError):
    """Raised when the owning identity of an uploaded object cannot be resolved."""


class SourceUnavailableError(IngestionError):
    """Raised when the source stream cannot be opened or breaks mid-read."""


class CSVParseError(IngestionError):
    """
    Raised when the CSV stream is syntactically broken.
    """

    def __init__(self, message: str, *, line_number: int | None = None) -> None:
        super().__init__(message)
        self.line_number = line_number


class ValidationRejectionError(IngestionError):
    """
    Raised in strict mode when a row fails domain validation.
    """

    def __init__(self, rejection: RowRejection) -> None:
        super().__init__(
            f"Row {rejection.row_number} rejected ({rejection.reason.value}): {rejection.message}"
        )
        self.rejection = rejection

    @property
    def reason(self):
        return self.rejection.reason


class PersistError(IngestionError):
    """
    Raised when the record store refuses a sub-batch.

    ``record_ids`` names the records of the failing sub-batch; ``applied`` is
    how many records of the enclosing batch were written before the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        record_ids: Sequence[str] = (),
        applied: int = 0,
    ) -> None:
        super().__init__(message)
        self.record_ids = tuple(record_ids)
        self.applied = applied


class IngestionCancelledError(IngestionError):
    """Raised when a run is stopped through its cancellation event."""


class RecordStoreError(Exception):
    """Raised by a record store when a write or read cannot be completed."""
