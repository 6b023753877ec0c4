"""
tests/test_energy_row_validator.py
"""

import unittest
from datetime import date

from app.domain.energy_entry import EnergyReading, RejectionReason, RowRejection
from app.validators.energy_row_validator import EnergyRowValidator


class EnergyRowValidatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = EnergyRowValidator()

    def _validate(self, **row: str):
        return self.validator.validate(row, row_number=2)

    def _assert_rejected(self, outcome, reason: RejectionReason) -> None:
        self.assertIsInstance(outcome, RowRejection)
        self.assertEqual(outcome.reason, reason)
        self.assertEqual(outcome.row_number, 2)

    def test_valid_row_is_parsed(self) -> None:
        outcome = self.validator.validate({"date": "2024-01-01", "usage(kwh)": "12.5"}, row_number=4)

        self.assertEqual(outcome, EnergyReading(entry_date=date(2024, 1, 1), usage=12.5, row_number=4))

    def test_single_digit_month_and_day_are_accepted(self) -> None:
        outcome = self.validator.validate({"date": "2024-1-5", "usage(kwh)": "-3"}, row_number=2)

        self.assertIsInstance(outcome, EnergyReading)
        self.assertEqual(outcome.entry_date, date(2024, 1, 5))
        self.assertEqual(outcome.usage, -3.0)

    def test_missing_date(self) -> None:
        self._assert_rejected(self.validator.validate({"usage(kwh)": "1"}, row_number=2), RejectionReason.MISSING_DATE)
        self._assert_rejected(
            self.validator.validate({"date": "  ", "usage(kwh)": "1"}, row_number=2),
            RejectionReason.MISSING_DATE,
        )

    def test_malformed_dates(self) -> None:
        for raw in ("notadate", "2024/01/01", "24-01-01", "2024-01-01T00:00:00", "2024-13-01", "2023-02-29"):
            with self.subTest(raw=raw):
                outcome = self.validator.validate({"date": raw, "usage(kwh)": "1"}, row_number=2)
                self._assert_rejected(outcome, RejectionReason.INVALID_DATE_FORMAT)
                self.assertEqual(outcome.value, raw)

    def test_non_ascii_digits_in_date_are_rejected(self) -> None:
        for raw in ("\u0662\u0660\u0662\u0664-01-01", "2024-\uff10\uff11-01"):
            with self.subTest(raw=raw):
                outcome = self.validator.validate({"date": raw, "usage(kwh)": "5"}, row_number=2)
                self._assert_rejected(outcome, RejectionReason.INVALID_DATE_FORMAT)

    def test_missing_usage(self) -> None:
        self._assert_rejected(
            self.validator.validate({"date": "2024-01-01"}, row_number=2),
            RejectionReason.MISSING_USAGE,
        )
        self._assert_rejected(
            self.validator.validate({"date": "2024-01-01", "usage(kwh)": ""}, row_number=2),
            RejectionReason.MISSING_USAGE,
        )

    def test_non_numeric_usage(self) -> None:
        for raw in ("abc", "1,000", "1_000", "12abc", "\u0665", "nan", "inf", "-Infinity", "1e999"):
            with self.subTest(raw=raw):
                outcome = self.validator.validate({"date": "2024-01-01", "usage(kwh)": raw}, row_number=2)
                self._assert_rejected(outcome, RejectionReason.INVALID_USAGE_VALUE)

    def test_plain_decimal_notations_are_accepted(self) -> None:
        for raw, expected in (("+4", 4.0), ("0.5", 0.5), (".5", 0.5), ("5.", 5.0), ("1.5e3", 1500.0), ("2E-1", 0.2)):
            with self.subTest(raw=raw):
                outcome = self.validator.validate({"date": "2024-01-01", "usage(kwh)": raw}, row_number=2)
                self.assertIsInstance(outcome, EnergyReading)
                self.assertAlmostEqual(outcome.usage, expected)

    def test_date_is_checked_before_usage(self) -> None:
        outcome = self.validator.validate({"date": "bad", "usage(kwh)": "bad"}, row_number=2)

        self._assert_rejected(outcome, RejectionReason.INVALID_DATE_FORMAT)

    def test_rejection_keeps_the_raw_row(self) -> None:
        row = {"date": "2024-01-01", "usage(kwh)": "x", "site": "north"}

        outcome = self.validator.validate(row, row_number=9)

        self.assertEqual(outcome.raw_row, row)
        self.assertEqual(outcome.row_number, 9)


if __name__ == "__main__":
    unittest.main()
