"""Cycle-scoped state shared between the steps of one pipeline run."""

from __future__ import annotations

import calendar
import time
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, fields
from datetime import date
from pathlib import Path
from typing import Any, ClassVar

from voucher_pipeline.core.adapters import ApprovalSession, BrowserSession, WindowHandle, Workbook
from voucher_pipeline.core.config.pipeline import AutomationConfig


@dataclass(frozen=True)
class Credentials:
    """Identity/secret pair passed through untouched to the sessions.

    The ``secret`` is masked in ``repr`` and ``str`` to prevent accidental
    leakage in logs or tracebacks.
    """

    identity: str
    secret: str

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must not be empty")

    def __repr__(self) -> str:
        return f"Credentials(identity={self.identity!r}, secret=***)"

    __str__ = __repr__


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of receipt dates to process."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")

    @classmethod
    def for_month(cls, year: int, month: int) -> DateRange:
        """Return the range covering one calendar month."""
        last_day = calendar.monthrange(year, month)[1]
        return cls(start=date(year, month, 1), end=date(year, month, last_day))

    @classmethod
    def for_period(cls, year: int | None, month: int | None, today: date | None = None) -> DateRange:
        """Return the month range, defaulting missing parts to *today*."""
        today = today or date.today()
        return cls.for_month(year or today.year, month or today.month)

    @property
    def label(self) -> str:
        """Short ``YYYY-MM`` label, or ``start..end`` for other ranges."""
        if self == DateRange.for_month(self.start.year, self.start.month):
            return f"{self.start.year:04d}-{self.start.month:02d}"
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


def new_correlation_id() -> str:
    """Return a short random id used to tie log lines to one cycle."""
    return uuid.uuid4().hex[:12]


@dataclass
class PipelineContext:
    """Mutable state owned by exactly one cycle.

    The first block of fields is seeded when the cycle starts, including
    the clock and sleep that step-level waits must use.  The
    remaining fields are facts written by steps through their returned
    payloads; the step executor merges them only after a step succeeds.
    A new context is built for every cycle, so nothing leaks forward.
    """

    parameter: Any
    cycle: int
    credentials: Credentials
    date_range: DateRange
    config: AutomationConfig
    browser: BrowserSession
    workbook: Workbook
    open_approval: Callable[[WindowHandle], ApprovalSession]
    correlation_id: str = field(default_factory=new_correlation_id)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    sleep_func: Callable[[float], None] = field(default=time.sleep, repr=False)

    main_window: WindowHandle | None = None
    dataset_path: Path | None = None
    transform_message: str | None = None
    grouping_keys: list[str] | None = None
    filed_keys: list[str] | None = None
    failed_keys: list[str] | None = None
    last_grouping_key: str | None = None
    last_due_date: Any = None
    last_invoice_date: Any = None
    last_amount: Any = None
    last_match_value: Any = None
    dates_applied: bool | None = None
    approval_window: WindowHandle | None = None
    approval_reference: str | None = None

    SEEDED_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "parameter",
            "cycle",
            "credentials",
            "date_range",
            "config",
            "browser",
            "workbook",
            "open_approval",
            "correlation_id",
            "clock",
            "sleep_func",
        }
    )

    @classmethod
    def fact_fields(cls) -> frozenset[str]:
        """Names of the fields steps are allowed to write."""
        return frozenset(f.name for f in fields(cls)) - cls.SEEDED_FIELDS

    def missing(self, names: Iterable[str]) -> list[str]:
        """Return the subset of *names* that are still unset."""
        return [name for name in names if getattr(self, name, None) is None]

    def merge(self, payload: Mapping[str, Any]) -> None:
        """Write step outputs onto the context.

        Raises:
            KeyError: If *payload* names a field that is not a fact field.
        """
        unknown = set(payload) - self.fact_fields()
        if unknown:
            raise KeyError(f"Unknown context fields: {', '.join(sorted(unknown))}")
        for name, value in payload.items():
            setattr(self, name, value)

    def facts(self) -> dict[str, Any]:
        """Return the fact fields that have been set so far."""
        return {name: getattr(self, name) for name in sorted(self.fact_fields()) if getattr(self, name) is not None}
