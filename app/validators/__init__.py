"""
app/validators package marker.
"""

from app.validators.energy_row_validator import (
    DATE_COLUMN,
    USAGE_COLUMN,
    VALID_DATE_PATTERN,
    VALID_USAGE_PATTERN,
    EnergyRowValidator,
)

__all__ = [
    "DATE_COLUMN",
    "USAGE_COLUMN",
    "VALID_DATE_PATTERN",
    "VALID_USAGE_PATTERN",
    "EnergyRowValidator",
]
