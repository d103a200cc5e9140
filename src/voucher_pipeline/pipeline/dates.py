"""Date conversions between workbook cells and ERP input fields."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Any

from voucher_pipeline.core.errors import DataIntegrityError

logger = logging.getLogger(__name__)

# Serial 2 is 1900-01-01; serial 60 is the fictitious 1900-02-29.
EXCEL_EPOCH = date(1900, 1, 1)
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def excel_serial_to_date(serial: float) -> date:
    """Convert an Excel serial day number to a calendar date."""
    return EXCEL_EPOCH + timedelta(days=int(serial) - 2)


def format_erp_date(value: Any) -> str:
    """Render a workbook cell as an ERP date input (``M/DD/YYYY``).

    Accepts Excel serial numbers, ``date``/``datetime`` values and
    ``YYYY-MM-DD`` strings.

    Raises:
        DataIntegrityError: If *value* is empty or not a recognizable date.
    """
    if value is None or value == "" or isinstance(value, bool):
        raise DataIntegrityError(f"Cannot convert {value!r} to a date")

    if isinstance(value, datetime):
        parsed = value.date()
    elif isinstance(value, date):
        parsed = value
    elif isinstance(value, (int, float)):
        if value < 1:
            raise DataIntegrityError(f"Excel serial {value!r} is out of range")
        parsed = excel_serial_to_date(value)
    else:
        match = _ISO_DATE.match(str(value).strip())
        if match is None:
            raise DataIntegrityError(f"Unsupported date format: {value!r}")
        try:
            parsed = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError as exc:
            raise DataIntegrityError(f"Invalid date {value!r}: {exc}") from exc

    formatted = f"{parsed.month}/{parsed.day:02d}/{parsed.year}"
    logger.debug("Converted date %r -> %s", value, formatted)
    return formatted


def format_range_date(value: date) -> str:
    """Render a range boundary for the inquiry filter (``M/D/YYYY``)."""
    return f"{value.month}/{value.day}/{value.year}"


def format_amount(value: Any) -> str:
    """Render an amount cell the way it is typed into a filter field."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
