"""In-memory scripted sessions for demos, dry runs and tests.

:class:`ScriptedSessionFactory` satisfies the
:class:`~voucher_pipeline.core.adapters.SessionFactory` protocol without a
real browser, spreadsheet or groupware.  Every call is recorded so that a
run can be inspected afterwards.

Example HOCON usage::

    adapters {
      factory: "voucher_pipeline.examples.scripted.ScriptedSessionFactory"
      options { missing_refs: [] }
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from voucher_pipeline.core.adapters import (
    ApprovalResult,
    ElementHandle,
    ElementRef,
    RowPredicate,
    TransformResult,
    WindowHandle,
)
from voucher_pipeline.core.context import Credentials

SUBMIT_TRIGGER: ElementRef = "invoice.submit_workflow"

SAMPLE_ROWS: list[dict[str, Any]] = [
    {"A": 3, "B": "4500012001", "I": "123-45-67890", "AT": 45930, "AU": 1250000, "AV": "2025-09-30"},
    {"A": 3, "B": "4500012001", "I": "123-45-67890", "AT": 45930, "AU": 1250000, "AV": "2025-09-30"},
    {"A": 3, "B": "4500012002", "I": "123-45-67890", "AT": 45931, "AU": 830000, "AV": "2025-09-30"},
    {"A": 4, "B": "4500012003", "I": "987-65-43210", "AT": 45945, "AU": 410000, "AV": "2025-10-15"},
    {"A": 5, "B": None, "I": None, "AT": None, "AU": None, "AV": None},
]


class ScriptedBrowser:
    """Browser double that succeeds unless told otherwise.

    Args:
        missing_refs: Element references that are never found.
        failures: Exceptions to raise, consumed in order, keyed by element
            reference or by ``"navigate"``.
        ready: Value returned by :meth:`wait_ready`.
    """

    def __init__(
        self,
        missing_refs: set[str] | None = None,
        failures: Mapping[str, list[Exception]] | None = None,
        ready: bool = True,
    ) -> None:
        self.missing_refs = set(missing_refs or ())
        self.failures = {key: list(value) for key, value in (failures or {}).items()}
        self.ready = ready
        self.events: list[tuple[Any, ...]] = []
        self.windows: list[WindowHandle] = ["main"]
        self.closed = False

    def _maybe_fail(self, key: str) -> None:
        pending = self.failures.get(key)
        if pending:
            raise pending.pop(0)

    def authenticate(self, credentials: Credentials) -> None:
        self.events.append(("authenticate", credentials.identity))

    def navigate(self, target: str) -> None:
        self._maybe_fail("navigate")
        self.events.append(("navigate", target))

    def find_and_activate(self, ref: ElementRef) -> ElementHandle | None:
        self._maybe_fail(ref)
        if ref in self.missing_refs:
            return None
        self.events.append(("activate", ref))
        if ref == SUBMIT_TRIGGER:
            self.windows.append(f"approval-{len(self.windows)}")
        return ref

    def type_into(self, handle: ElementHandle, text: str) -> None:
        self.events.append(("type", handle, text))

    def wait_ready(self, timeout_seconds: float) -> bool:
        return self.ready

    def opened_windows(self) -> list[WindowHandle]:
        return list(self.windows)

    def close(self) -> None:
        self.closed = True

    def typed(self, ref: ElementRef) -> list[str]:
        """Return every text typed into *ref*."""
        return [event[2] for event in self.events if event[0] == "type" and event[1] == ref]


class ScriptedWorkbook:
    """Workbook double backed by a list of row mappings (header row excluded)."""

    def __init__(
        self,
        rows: list[dict[str, Any]],
        path: Path = Path("scripted-export.xlsx"),
        transform_result: TransformResult | None = None,
        download_available: bool = True,
    ) -> None:
        self.rows = rows
        self.path = path
        self.transform_result = transform_result or TransformResult(success=True, message="grouped")
        self.download_available = download_available
        self.transformed: list[Path] = []

    def find_latest_downloaded_file(self, directory: Path, within_minutes: float) -> Path | None:
        return self.path if self.download_available else None

    def read_column(self, path: Path, row_predicate: RowPredicate, column: str) -> list[Any]:
        return [row.get(column) for row in self.rows if row_predicate(row)]

    def read_cell(self, path: Path, row: int, column: str) -> Any | None:
        position = row - 2
        if not 0 <= position < len(self.rows):
            return None
        return self.rows[position].get(column)

    def run_transform(self, path: Path) -> TransformResult:
        self.transformed.append(path)
        return self.transform_result


class ScriptedApproval:
    """Approval double recording every submission."""

    def __init__(self, window: WindowHandle, result: ApprovalResult) -> None:
        self.window = window
        self.result = result
        self.submissions: list[tuple[str, dict[str, Any]]] = []

    def submit_for_approval(self, title: str, metadata: Mapping[str, Any]) -> ApprovalResult:
        self.submissions.append((title, dict(metadata)))
        return self.result


class ScriptedSessionFactory:
    """Factory handing out fresh scripted sessions for every cycle.

    Args:
        rows: Worksheet rows shared by every workbook (default: ``SAMPLE_ROWS``).
        missing_refs: Element references every browser fails to find.
        transform_result: Result of every transform run.
        approval_result: Result of every approval submission.
        download_available: Whether the export ever shows up.
    """

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        missing_refs: set[str] | None = None,
        transform_result: TransformResult | None = None,
        approval_result: ApprovalResult | None = None,
        download_available: bool = True,
    ) -> None:
        self.rows = rows if rows is not None else [dict(row) for row in SAMPLE_ROWS]
        self.missing_refs = set(missing_refs or ())
        self.transform_result = transform_result
        self.approval_result = approval_result or ApprovalResult(success=True, reference="APR-0001")
        self.download_available = download_available
        self.browsers: list[ScriptedBrowser] = []
        self.workbooks: list[ScriptedWorkbook] = []
        self.approvals: list[ScriptedApproval] = []

    @classmethod
    def from_config(cls, options: dict[str, Any]) -> ScriptedSessionFactory:
        """Build a factory from HOCON ``adapters.options``."""
        return cls(
            rows=options.get("rows"),
            missing_refs=set(options.get("missing_refs", [])),
            download_available=bool(options.get("download_available", True)),
        )

    def open_browser(self) -> ScriptedBrowser:
        browser = ScriptedBrowser(missing_refs=self.missing_refs)
        self.browsers.append(browser)
        return browser

    def open_workbook(self) -> ScriptedWorkbook:
        workbook = ScriptedWorkbook(
            self.rows,
            transform_result=self.transform_result,
            download_available=self.download_available,
        )
        self.workbooks.append(workbook)
        return workbook

    def open_approval(self, window: WindowHandle, credentials: Credentials) -> ScriptedApproval:
        approval = ScriptedApproval(window, self.approval_result)
        self.approvals.append(approval)
        return approval
