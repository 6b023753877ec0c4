"""
app/validators/energy_row_validator.py

Row-level validation and type parsing for energy usage CSV ingestion.
"""

from __future__ import annotations

import math
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from app.domain.energy_entry import EnergyReading, RejectionReason, RowRejection

DATE_COLUMN = "date"
USAGE_COLUMN = "usage(kwh)"

# Four-digit year, 1-2 digit month and day, ASCII digits only. Times and
# offsets are refused.
VALID_DATE_PATTERN = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$", re.ASCII)

# Plain decimal or exponent notation; no digit grouping, no words like "nan".
VALID_USAGE_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$", re.ASCII)


class EnergyRowValidator:
    """
    Validates one normalized CSV row and parses its date and usage.
    """

    def validate(
        self,
        raw_row: Mapping[str, str],
        *,
        row_number: int,
    ) -> EnergyReading | RowRejection:
        """
        Return an ``EnergyReading`` or the first ``RowRejection`` that applies.

        Checks run in order: date presence, date shape and calendar validity,
        usage presence, usage numeric value.
        """

        raw_date = raw_row.get(DATE_COLUMN)
        if self._is_blank(raw_date):
            return self._reject(
                raw_row,
                row_number=row_number,
                reason=RejectionReason.MISSING_DATE,
                message="Date is missing.",
                value=raw_date,
            )

        entry_date = self._parse_date(str(raw_date).strip())
        if entry_date is None:
            return self._reject(
                raw_row,
                row_number=row_number,
                reason=RejectionReason.INVALID_DATE_FORMAT,
                message="Date must look like YYYY-M-D and be a real calendar date.",
                value=raw_date,
            )

        raw_usage = raw_row.get(USAGE_COLUMN)
        if self._is_blank(raw_usage):
            return self._reject(
                raw_row,
                row_number=row_number,
                reason=RejectionReason.MISSING_USAGE,
                message=f"Usage value is missing for date {entry_date.isoformat()}.",
                value=raw_usage,
            )

        usage = self._parse_usage(str(raw_usage).strip())
        if usage is None:
            return self._reject(
                raw_row,
                row_number=row_number,
                reason=RejectionReason.INVALID_USAGE_VALUE,
                message=f"Usage value for date {entry_date.isoformat()} is not a finite number.",
                value=raw_usage,
            )

        return EnergyReading(entry_date=entry_date, usage=usage, row_number=row_number)

    @staticmethod
    def _parse_date(raw: str) -> date | None:
        if not VALID_DATE_PATTERN.match(raw):
            return None
        year, month, day = (int(part) for part in raw.split("-"))
        try:
            return date(year, month, day)
        except ValueError:
            return None

    @staticmethod
    def _parse_usage(raw: str) -> float | None:
        if not VALID_USAGE_PATTERN.match(raw):
            return None
        try:
            value = float(Decimal(raw))
        except (InvalidOperation, ValueError):
            return None
        if not math.isfinite(value):
            return None
        return value

    def _reject(
        self,
        raw_row: Mapping[str, str],
        *,
        row_number: int,
        reason: RejectionReason,
        message: str,
        value: Any,
    ) -> RowRejection:
        return RowRejection(
            reason=reason,
            row_number=row_number,
            message=message,
            value=self._stringify_value(value),
            raw_row=dict(raw_row),
        )

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        return str(value).strip() == ""

    @staticmethod
    def _stringify_value(value: Any) -> str | None:
        if value is None:
            return None
        return str(value)
