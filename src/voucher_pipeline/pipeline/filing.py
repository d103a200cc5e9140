"""Per-record filing with continue-on-error semantics."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from voucher_pipeline.core.adapters import Workbook
from voucher_pipeline.core.config.pipeline import WorkbookColumns
from voucher_pipeline.core.errors import DataIntegrityError, ErrorKind, classify_error
from voucher_pipeline.core.utils import same_value

logger = logging.getLogger(__name__)


@dataclass
class RecordFilingReport:
    """What happened to each grouping key of one cycle."""

    keys: list[str]
    filed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def last_filed(self) -> str | None:
        return self.filed[-1] if self.filed else None


def distinct_keys(values: Iterable[Any]) -> list[str]:
    """Return distinct non-empty values as stripped strings, in first-seen order."""
    seen: dict[str, None] = {}
    for value in values:
        if value is None:
            continue
        text = format_key(value)
        if text:
            seen.setdefault(text, None)
    return list(seen)


def format_key(value: Any) -> str:
    """Normalize a grouping key cell (``4500012.0`` becomes ``"4500012"``)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def collect_grouping_keys(workbook: Workbook, path: Path, columns: WorkbookColumns, parameter: Any) -> list[str]:
    """Return the grouping keys of every row whose filter column equals *parameter*.

    Raises:
        DataIntegrityError: If no row matches.
    """
    values = workbook.read_column(
        path,
        lambda row: same_value(row.get(columns.filter_key), parameter),
        columns.grouping_key,
    )
    keys = distinct_keys(values)
    if not keys:
        raise DataIntegrityError(
            f"No {columns.grouping_key} values for {columns.filter_key}={parameter!r} in {path.name}"
        )
    logger.info("Found %d grouping key(s) for %s=%s", len(keys), columns.filter_key, parameter)
    return keys


def file_records(keys: list[str], file_one: Callable[[str], None]) -> RecordFilingReport:
    """Run *file_one* for every key, isolating per-key failures.

    A key whose filing raises a non-fatal error is recorded in
    ``failed`` and the loop moves on.  Fatal errors propagate.

    Raises:
        DataIntegrityError: If every key failed.
    """
    report = RecordFilingReport(keys=list(keys))
    for position, key in enumerate(keys, start=1):
        logger.info("Filing record %d/%d: %s", position, len(keys), key)
        try:
            file_one(key)
        except Exception as exc:
            if classify_error(exc) is ErrorKind.FATAL:
                raise
            logger.warning("Filing record %s failed, continuing: %s", key, exc)
            report.failed[key] = str(exc)
            continue
        report.filed.append(key)

    if keys and not report.filed:
        raise DataIntegrityError(f"All {len(keys)} record(s) failed to file: {', '.join(report.failed)}")
    return report
