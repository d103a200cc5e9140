"""Tests for the voucher pipeline steps against scripted sessions."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.factories import FakeClock, make_config, make_context
from voucher_pipeline.core.adapters import ApprovalResult, TransformResult
from voucher_pipeline.core.config import ApprovalConfig, StepConfig, WorkbookConfig
from voucher_pipeline.core.errors import (
    DataIntegrityError,
    FatalError,
    NetworkError,
    StepContractError,
    TransientUIError,
)
from voucher_pipeline.examples.scripted import ScriptedBrowser, ScriptedSessionFactory, ScriptedWorkbook
from voucher_pipeline.pipeline import steps
from voucher_pipeline.pipeline.steps import Elements, build_voucher_pipeline
from voucher_pipeline.runner.hooks import NoOpHooks
from voucher_pipeline.runner.result import StepStatus
from voucher_pipeline.runner.step_executor import StepExecutor

EXPORT = Path("scripted-export.xlsx")


def _navigations(browser: ScriptedBrowser, scripted_failures: int) -> int:
    succeeded = sum(1 for event in browser.events if event[0] == "navigate")
    return scripted_failures - len(browser.failures["navigate"]) + succeeded


def _filed_context(**kwargs):
    return make_context(
        main_window="main",
        dataset_path=EXPORT,
        filed_keys=["4500012001", "4500012002"],
        last_grouping_key="4500012002",
        last_due_date=45931,
        last_invoice_date="2025-09-30",
        last_amount=830000,
        last_match_value="123-45-67890",
        **kwargs,
    )


class TestAuthenticate:
    def test_logs_in_and_returns_main_window(self) -> None:
        browser = ScriptedBrowser()
        ctx = make_context(browser=browser)

        payload = steps.authenticate(ctx)

        assert payload == {"main_window": "main"}
        assert browser.events[:2] == [("navigate", "https://erp.example.com"), ("authenticate", "clerk@example.com")]

    def test_navigation_error_propagates_without_inner_retry(self) -> None:
        browser = ScriptedBrowser(failures={"navigate": [NetworkError("reset"), NetworkError("reset")]})

        with pytest.raises(NetworkError):
            steps.authenticate(make_context(browser=browser))
        assert _navigations(browser, 2) == 1

    def test_ui_error_on_navigation_propagates(self) -> None:
        browser = ScriptedBrowser(failures={"navigate": [TransientUIError("blank page")]})

        with pytest.raises(TransientUIError):
            steps.authenticate(make_context(browser=browser))
        assert browser.failures["navigate"] == []

    def test_unsettled_page_still_continues(self) -> None:
        ctx = make_context(browser=ScriptedBrowser(ready=False))

        assert steps.authenticate(ctx) == {"main_window": "main"}

    def test_no_window_is_fatal(self) -> None:
        browser = ScriptedBrowser()
        browser.windows = []

        with pytest.raises(FatalError):
            steps.authenticate(make_context(browser=browser))


class TestAuthenticateRetryBudget:
    def _run(self, failures: int):
        clock = FakeClock()
        browser = ScriptedBrowser(failures={"navigate": [NetworkError(f"reset {i}") for i in range(failures)]})
        ctx = make_context(browser=browser, clock=clock)
        step = build_voucher_pipeline().get("authenticate")
        outcome = StepExecutor(NoOpHooks(), clock=clock, sleep_func=clock.sleep).execute(step, ctx, 0, 7)
        return step, outcome, browser, clock, ctx

    def test_persistent_network_failure_stays_within_attempt_budget(self) -> None:
        step, outcome, browser, _, _ = self._run(10)

        assert outcome.status == StepStatus.FAILED
        assert outcome.attempts == step.retry.max_attempts
        assert _navigations(browser, 10) == step.retry.max_attempts

    def test_transient_network_failure_recovered_by_step_policy(self) -> None:
        step, outcome, browser, clock, ctx = self._run(2)

        assert outcome.status == StepStatus.SUCCESS
        assert outcome.attempts == 3
        assert _navigations(browser, 2) == 3
        assert len(clock.sleeps) == 2
        assert ctx.main_window == "main"

    def test_uses_network_policy(self) -> None:
        step = build_voucher_pipeline().get("authenticate")

        assert step.retry.initial_delay_seconds == 2.0
        assert step.retry.max_attempts == 3


class TestLocateSourceRecords:
    def test_types_month_range_and_runs_inquiry(self) -> None:
        browser = ScriptedBrowser()
        ctx = make_context(browser=browser, main_window="main")

        assert steps.locate_source_records(ctx) is None
        assert ("navigate", "receiving-inquiry") in browser.events
        assert browser.typed(Elements.FROM_DATE) == ["9/1/2025"]
        assert browser.typed(Elements.TO_DATE) == ["9/30/2025"]
        assert ("activate", Elements.RUN_INQUIRY) in browser.events

    def test_missing_element_is_transient(self) -> None:
        ctx = make_context(browser=ScriptedBrowser(missing_refs={Elements.RUN_INQUIRY}))

        with pytest.raises(TransientUIError, match="inquiry.run"):
            steps.locate_source_records(ctx)

    def test_table_not_loading_is_transient(self) -> None:
        ctx = make_context(browser=ScriptedBrowser(ready=False))

        with pytest.raises(TransientUIError, match="did not load"):
            steps.locate_source_records(ctx)


class TestExportDataset:
    def test_returns_downloaded_path(self) -> None:
        browser = ScriptedBrowser()
        ctx = make_context(browser=browser)

        assert steps.export_dataset(ctx) == {"dataset_path": EXPORT}
        assert ("activate", Elements.EXPORT) in browser.events

    def test_no_download_times_out(self) -> None:
        config = make_config(workbook=WorkbookConfig(download_timeout_seconds=0.02, poll_interval_seconds=0.01))
        workbook = ScriptedWorkbook([], download_available=False)
        ctx = make_context(config=config, workbook=workbook)

        with pytest.raises(TransientUIError, match="No workbook downloaded"):
            steps.export_dataset(ctx)

    def test_download_wait_uses_cycle_clock(self) -> None:
        clock = FakeClock()
        workbook = ScriptedWorkbook([], download_available=False)
        ctx = make_context(workbook=workbook, clock=clock)

        with pytest.raises(TransientUIError):
            steps.export_dataset(ctx)
        assert clock.sleeps == [1.0, 1.0]


class TestTransformDataset:
    def test_success_message_recorded(self) -> None:
        workbook = ScriptedWorkbook([])
        ctx = make_context(workbook=workbook, dataset_path=EXPORT)

        assert steps.transform_dataset(ctx) == {"transform_message": "grouped"}
        assert workbook.transformed == [EXPORT]

    def test_failure_is_data_integrity(self) -> None:
        workbook = ScriptedWorkbook([], transform_result=TransformResult(success=False, message="macro missing"))
        ctx = make_context(workbook=workbook, dataset_path=EXPORT)

        with pytest.raises(DataIntegrityError, match="macro missing"):
            steps.transform_dataset(ctx)

    def test_missing_dataset_path_is_contract_error(self) -> None:
        with pytest.raises(StepContractError, match="dataset_path"):
            steps.transform_dataset(make_context())


class TestFileVendorInvoices:
    def test_files_every_key_and_extracts_last_row(self) -> None:
        browser = ScriptedBrowser()
        ctx = make_context(browser=browser, dataset_path=EXPORT)

        payload = steps.file_vendor_invoices(ctx)

        assert payload["grouping_keys"] == ["4500012001", "4500012002"]
        assert payload["filed_keys"] == ["4500012001", "4500012002"]
        assert payload["failed_keys"] == []
        assert payload["last_grouping_key"] == "4500012002"
        assert payload["last_due_date"] == 45931
        assert payload["last_invoice_date"] == "2025-09-30"
        assert payload["last_amount"] == 830000
        assert payload["last_match_value"] == "123-45-67890"
        assert browser.typed(Elements.GROUPING_FILTER) == ["4500012001", "4500012002"]
        assert ("navigate", "pending-vendor-invoices") in browser.events

    def test_one_failing_key_does_not_stop_the_rest(self) -> None:
        browser = ScriptedBrowser(failures={Elements.SELECT_RECORD: [TransientUIError("stale row")]})
        ctx = make_context(browser=browser, dataset_path=EXPORT)

        payload = steps.file_vendor_invoices(ctx)

        assert payload["filed_keys"] == ["4500012002"]
        assert payload["failed_keys"] == ["4500012001"]

    def test_facts_follow_last_filed_key(self) -> None:
        browser = ScriptedBrowser()
        calls = {"n": 0}
        original = browser.find_and_activate

        def flaky(ref: str):
            if ref == Elements.CONFIRM_RECORD:
                calls["n"] += 1
                if calls["n"] == 2:
                    raise TransientUIError("second key failed")
            return original(ref)

        browser.find_and_activate = flaky  # type: ignore[method-assign]
        ctx = make_context(browser=browser, dataset_path=EXPORT)

        payload = steps.file_vendor_invoices(ctx)

        assert payload["last_grouping_key"] == "4500012001"
        assert payload["last_due_date"] == 45930
        assert payload["last_amount"] == 1250000

    def test_every_key_failing_raises(self) -> None:
        ctx = make_context(browser=ScriptedBrowser(missing_refs={Elements.SELECT_RECORD}), dataset_path=EXPORT)

        with pytest.raises(DataIntegrityError, match="All 2 record"):
            steps.file_vendor_invoices(ctx)

    def test_parameter_without_rows_raises(self) -> None:
        ctx = make_context(parameter=42, dataset_path=EXPORT)

        with pytest.raises(DataIntegrityError):
            steps.file_vendor_invoices(ctx)

    def test_facts_match_grouping_key_as_text(self) -> None:
        rows = [
            {"A": 7, "B": "0123", "I": "m1", "AT": 45930, "AU": 100, "AV": "2025-09-28"},
            {"A": 7, "B": "123", "I": "m2", "AT": 45931, "AU": 200, "AV": "2025-09-29"},
            {"A": 7, "B": "0123", "I": "m3", "AT": 45932, "AU": 300, "AV": "2025-09-30"},
        ]
        workbook = ScriptedWorkbook(rows)
        ctx = make_context(parameter=7, workbook=workbook, dataset_path=EXPORT)

        payload = steps.file_vendor_invoices(ctx)

        assert payload["grouping_keys"] == ["0123", "123"]
        assert payload["last_grouping_key"] == "123"
        assert payload["last_amount"] == 200
        assert payload["last_match_value"] == "m2"

    def test_file_without_dataset_path_is_contract_error(self) -> None:
        with pytest.raises(StepContractError, match="dataset_path"):
            steps.file_vendor_invoices(make_context())

    def test_empty_due_date_raises(self) -> None:
        workbook = ScriptedWorkbook([{"A": 7, "B": "K1", "I": "x", "AT": None, "AU": 10, "AV": "2025-09-30"}])
        ctx = make_context(parameter=7, workbook=workbook, dataset_path=EXPORT)

        with pytest.raises(DataIntegrityError, match="last_due_date"):
            steps.file_vendor_invoices(ctx)


class TestApplyInvoiceDates:
    def test_filters_by_amount_and_types_dates(self) -> None:
        browser = ScriptedBrowser()
        ctx = _filed_context(browser=browser)

        assert steps.apply_invoice_dates(ctx) == {"dates_applied": True}
        assert browser.typed(Elements.AMOUNT_FILTER) == ["830000"]
        assert browser.typed(Elements.DUE_DATE) == ["10/01/2025"]
        assert browser.typed(Elements.INVOICE_DATE) == ["9/30/2025"]
        assert ("activate", Elements.SAVE) in browser.events

    def test_bad_date_fails_before_typing(self) -> None:
        browser = ScriptedBrowser()
        ctx = _filed_context(browser=browser)
        ctx.last_due_date = "soon"

        with pytest.raises(DataIntegrityError):
            steps.apply_invoice_dates(ctx)
        assert browser.events == []


class TestSubmitForApproval:
    def test_submits_in_new_window(self) -> None:
        factory = ScriptedSessionFactory()
        ctx = _filed_context(factory=factory)

        payload = steps.submit_for_approval(ctx)

        assert payload == {"approval_window": "approval-1", "approval_reference": "APR-0001"}
        approval = factory.approvals[0]
        assert approval.window == "approval-1"
        title, metadata = approval.submissions[0]
        assert title == "Purchase invoice 2025-09 #3"
        assert metadata["grouping_keys"] == ["4500012001", "4500012002"]
        assert metadata["amount"] == 830000
        assert metadata["correlation_id"] == ctx.correlation_id

    def test_rejection_is_data_integrity(self) -> None:
        factory = ScriptedSessionFactory(approval_result=ApprovalResult(success=False, message="budget closed"))

        with pytest.raises(DataIntegrityError, match="budget closed"):
            steps.submit_for_approval(_filed_context(factory=factory))

    def test_window_never_opening_is_transient(self) -> None:
        browser = ScriptedBrowser()
        browser.opened_windows = lambda: ["main"]  # type: ignore[method-assign]
        config = make_config(approval=ApprovalConfig(window_timeout_seconds=0.02, poll_interval_seconds=0.01))
        ctx = _filed_context(browser=browser, config=config)

        with pytest.raises(TransientUIError, match="Approval window"):
            steps.submit_for_approval(ctx)

    def test_window_wait_uses_cycle_clock(self) -> None:
        clock = FakeClock()
        browser = ScriptedBrowser()
        browser.opened_windows = lambda: ["main"]  # type: ignore[method-assign]
        ctx = _filed_context(browser=browser, clock=clock)

        with pytest.raises(TransientUIError):
            steps.submit_for_approval(ctx)
        assert sum(clock.sleeps) == pytest.approx(ctx.config.approval.window_timeout_seconds)


class TestBuildVoucherPipeline:
    def test_seven_steps_in_order(self) -> None:
        definition = build_voucher_pipeline()

        assert definition.name == "voucher"
        assert [s.name for s in definition] == [
            "authenticate",
            "locate_source_records",
            "export_dataset",
            "transform_dataset",
            "file_vendor_invoices",
            "apply_invoice_dates",
            "submit_for_approval",
        ]
        assert [s.ordinal for s in definition] == [1, 2, 3, 4, 5, 6, 7]

    def test_side_effect_steps_never_retried(self) -> None:
        definition = build_voucher_pipeline()

        assert definition.get("transform_dataset").retry.max_attempts == 1
        assert definition.get("submit_for_approval").retry.max_attempts == 1
        assert definition.get("authenticate").retry.max_attempts == 3

    def test_config_overrides_applied(self) -> None:
        config = make_config(steps=[StepConfig(name="transform_dataset", enabled=False)])

        assert build_voucher_pipeline(config).get("transform_dataset").enabled is False
