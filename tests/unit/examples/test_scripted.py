"""Tests for the scripted in-memory sessions."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.factories import make_credentials
from voucher_pipeline.core.adapters import (
    ApprovalResult,
    ApprovalSession,
    BrowserSession,
    SessionFactory,
    TransformResult,
    Workbook,
)
from voucher_pipeline.examples.scripted import (
    SAMPLE_ROWS,
    SUBMIT_TRIGGER,
    ScriptedBrowser,
    ScriptedSessionFactory,
    ScriptedWorkbook,
)


class TestProtocols:
    def test_sessions_satisfy_protocols(self) -> None:
        factory = ScriptedSessionFactory()

        assert isinstance(factory, SessionFactory)
        assert isinstance(factory.open_browser(), BrowserSession)
        assert isinstance(factory.open_workbook(), Workbook)
        assert isinstance(factory.open_approval("w", make_credentials()), ApprovalSession)


class TestScriptedBrowser:
    def test_records_events(self) -> None:
        browser = ScriptedBrowser()

        browser.authenticate(make_credentials())
        browser.navigate("receiving-inquiry")
        handle = browser.find_and_activate("inquiry.from_date")
        browser.type_into(handle, "9/1/2025")

        assert browser.events == [
            ("authenticate", "clerk@example.com"),
            ("navigate", "receiving-inquiry"),
            ("activate", "inquiry.from_date"),
            ("type", "inquiry.from_date", "9/1/2025"),
        ]
        assert browser.typed("inquiry.from_date") == ["9/1/2025"]

    def test_secret_never_recorded(self) -> None:
        browser = ScriptedBrowser()

        browser.authenticate(make_credentials(secret="hunter2"))

        assert "hunter2" not in repr(browser.events)

    def test_missing_refs(self) -> None:
        assert ScriptedBrowser(missing_refs={"x"}).find_and_activate("x") is None

    def test_failures_consumed_in_order(self) -> None:
        browser = ScriptedBrowser(failures={"navigate": [ConnectionError("reset")]})

        with pytest.raises(ConnectionError):
            browser.navigate("home")
        browser.navigate("home")

        assert browser.events == [("navigate", "home")]

    def test_submit_trigger_opens_window(self) -> None:
        browser = ScriptedBrowser()

        browser.find_and_activate(SUBMIT_TRIGGER)

        assert browser.opened_windows() == ["main", "approval-1"]

    def test_close(self) -> None:
        browser = ScriptedBrowser()
        browser.close()

        assert browser.closed


class TestScriptedWorkbook:
    def test_read_cell_uses_sheet_rows(self) -> None:
        workbook = ScriptedWorkbook(SAMPLE_ROWS)

        assert workbook.read_cell(Path("x.xlsx"), 2, "B") == "4500012001"
        assert workbook.read_cell(Path("x.xlsx"), 5, "A") == 4
        assert workbook.read_cell(Path("x.xlsx"), 1, "A") is None
        assert workbook.read_cell(Path("x.xlsx"), 99, "A") is None

    def test_download_unavailable(self) -> None:
        assert ScriptedWorkbook([], download_available=False).find_latest_downloaded_file(Path("."), 5) is None

    def test_transform_recorded(self) -> None:
        workbook = ScriptedWorkbook([], transform_result=TransformResult(success=False, message="nope"))

        assert workbook.run_transform(Path("a.xlsx")).message == "nope"
        assert workbook.transformed == [Path("a.xlsx")]


class TestScriptedSessionFactory:
    def test_fresh_sessions_each_time(self) -> None:
        factory = ScriptedSessionFactory()

        assert factory.open_browser() is not factory.open_browser()
        assert len(factory.browsers) == 2

    def test_from_config(self) -> None:
        factory = ScriptedSessionFactory.from_config(
            {"rows": [{"A": 1, "B": "K"}], "missing_refs": ["inquiry.export"], "download_available": False}
        )

        assert factory.rows == [{"A": 1, "B": "K"}]
        assert factory.missing_refs == {"inquiry.export"}
        assert factory.download_available is False

    def test_default_rows_are_copies(self) -> None:
        factory = ScriptedSessionFactory()
        factory.rows[0]["A"] = 99

        assert SAMPLE_ROWS[0]["A"] == 3

    def test_approval_result(self) -> None:
        factory = ScriptedSessionFactory(approval_result=ApprovalResult(success=False, message="closed"))

        result = factory.open_approval("approval-1", make_credentials()).submit_for_approval("t", {})

        assert not result.success
        assert factory.approvals[0].submissions == [("t", {})]
