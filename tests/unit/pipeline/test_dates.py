"""Tests for workbook/ERP date and amount conversions."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from voucher_pipeline.core.errors import DataIntegrityError
from voucher_pipeline.pipeline.dates import (
    excel_serial_to_date,
    format_amount,
    format_erp_date,
    format_range_date,
)


@pytest.mark.parametrize(
    ("serial", "expected"),
    [
        (61, date(1900, 3, 1)),
        (45658, date(2025, 1, 1)),
        (45930, date(2025, 9, 30)),
        (45931, date(2025, 10, 1)),
        (45930.75, date(2025, 9, 30)),
    ],
)
def test_excel_serial_to_date(serial: float, expected: date) -> None:
    assert excel_serial_to_date(serial) == expected


class TestFormatErpDate:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (45930, "9/30/2025"),
            (45931.0, "10/01/2025"),
            (date(2025, 3, 5), "3/05/2025"),
            (datetime(2025, 12, 31, 14, 30), "12/31/2025"),
            ("2025-09-30", "9/30/2025"),
            (" 2025-01-02 ", "1/02/2025"),
        ],
    )
    def test_accepted_values(self, value: object, expected: str) -> None:
        assert format_erp_date(value) == expected

    @pytest.mark.parametrize("value", [None, "", True, 0, -5, "30/09/2025", "tomorrow", "2025-02-30"])
    def test_rejected_values(self, value: object) -> None:
        with pytest.raises(DataIntegrityError):
            format_erp_date(value)


def test_format_range_date_has_no_padding() -> None:
    assert format_range_date(date(2025, 9, 1)) == "9/1/2025"
    assert format_range_date(date(2025, 10, 31)) == "10/31/2025"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(830000, "830000"), (830000.0, "830000"), (1250.5, "1250.5"), (" 410000 ", "410000")],
)
def test_format_amount(value: object, expected: str) -> None:
    assert format_amount(value) == expected
