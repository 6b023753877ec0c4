"""
app/schemas package marker.
"""

from app.schemas.energy import (
    APIResponse,
    EnergyEntryResponse,
    EnergyIngestionSummaryResponse,
    EnergyInputRequest,
    RowRejectionResponse,
)

__all__ = [
    "APIResponse",
    "EnergyEntryResponse",
    "EnergyIngestionSummaryResponse",
    "EnergyInputRequest",
    "RowRejectionResponse",
]
