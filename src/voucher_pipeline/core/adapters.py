"""Capability protocols for the external systems the pipeline drives.

The orchestration core depends only on these contracts.  Selector
strategies, DOM polling heuristics, spreadsheet libraries and vendor
quirks live behind them.  "Not found" is ``None``; failures are raised
as :mod:`voucher_pipeline.core.errors` exceptions.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from voucher_pipeline.core.context import Credentials

ElementRef = str
"""Logical element name, e.g. ``"inquiry.export"``; resolved by the adapter."""

ElementHandle = Any
"""Opaque handle returned by :meth:`BrowserSession.find_and_activate`."""

WindowHandle = str
"""Stable identifier of one browser window or tab."""

Row = Mapping[str, Any]
"""One worksheet row keyed by column letter."""

RowPredicate = Callable[[Row], bool]


@dataclass(frozen=True)
class TransformResult:
    """Outcome of the external workbook transform."""

    success: bool
    message: str = ""


@dataclass(frozen=True)
class ApprovalResult:
    """Outcome of an approval submission."""

    success: bool
    reference: str | None = None
    message: str = ""


@runtime_checkable
class BrowserSession(Protocol):
    """One browser owned by exactly one cycle."""

    def authenticate(self, credentials: Credentials) -> None:
        """Log in if the current page asks for it."""
        ...

    def navigate(self, target: str) -> None:
        """Open a URL or a logical navigation target."""
        ...

    def find_and_activate(self, ref: ElementRef) -> ElementHandle | None:
        """Locate an element, click/focus it, and return its handle."""
        ...

    def type_into(self, handle: ElementHandle, text: str) -> None:
        """Replace the content of an input element."""
        ...

    def wait_ready(self, timeout_seconds: float) -> bool:
        """Wait until the current page has settled; False on timeout."""
        ...

    def opened_windows(self) -> list[WindowHandle]:
        """Return handles of every open window, oldest first."""
        ...

    def close(self) -> None:
        """Release the browser."""
        ...


@runtime_checkable
class Workbook(Protocol):
    """Read access to the exported workbook plus the opaque transform."""

    def find_latest_downloaded_file(self, directory: Path, within_minutes: float) -> Path | None:
        """Return the freshest workbook in *directory*, or None."""
        ...

    def read_column(self, path: Path, row_predicate: RowPredicate, column: str) -> list[Any]:
        """Return *column* values of every data row matching *row_predicate*."""
        ...

    def read_cell(self, path: Path, row: int, column: str) -> Any | None:
        """Return one cell value; None when empty."""
        ...

    def run_transform(self, path: Path) -> TransformResult:
        """Run the grouping/aggregation macro on *path* in place."""
        ...


@runtime_checkable
class ApprovalSession(Protocol):
    """Groupware session bound to one window."""

    def submit_for_approval(self, title: str, metadata: Mapping[str, Any]) -> ApprovalResult:
        """File an approval request."""
        ...


@runtime_checkable
class SessionFactory(Protocol):
    """Creates fresh collaborator handles for every cycle."""

    def open_browser(self) -> BrowserSession:
        """Launch a new browser session."""
        ...

    def open_workbook(self) -> Workbook:
        """Create a workbook reader."""
        ...

    def open_approval(self, window: WindowHandle, credentials: Credentials) -> ApprovalSession:
        """Bind a groupware session to an already opened window."""
        ...
