"""The seven steps of the purchase-invoice voucher pipeline.

Each step is a plain function taking the cycle's
:class:`~voucher_pipeline.core.context.PipelineContext` and returning the
context fields it produced.  Elements are addressed by the logical names
in :class:`Elements`; the browser adapter maps them onto real selectors.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from voucher_pipeline.core.adapters import ElementHandle, ElementRef
from voucher_pipeline.core.config.pipeline import AutomationConfig
from voucher_pipeline.core.config.presets import RetryPolicies
from voucher_pipeline.core.context import PipelineContext
from voucher_pipeline.core.errors import (
    DataIntegrityError,
    FatalError,
    StepContractError,
    TransientUIError,
)
from voucher_pipeline.core.resilience import poll_for
from voucher_pipeline.core.utils import same_value
from voucher_pipeline.pipeline.dates import format_amount, format_erp_date, format_range_date
from voucher_pipeline.pipeline.definition import PipelineDefinition, StepDefinition
from voucher_pipeline.pipeline.filing import collect_grouping_keys, file_records, format_key

logger = logging.getLogger(__name__)

PIPELINE_NAME = "voucher"


class Elements:
    """Logical element references used by the steps."""

    FROM_DATE: ElementRef = "inquiry.from_date"
    TO_DATE: ElementRef = "inquiry.to_date"
    RUN_INQUIRY: ElementRef = "inquiry.run"
    EXPORT: ElementRef = "inquiry.export"
    GROUPING_FILTER: ElementRef = "invoices.grouping_filter"
    SELECT_RECORD: ElementRef = "invoices.select_record"
    CONFIRM_RECORD: ElementRef = "invoices.confirm_record"
    AMOUNT_FILTER: ElementRef = "invoices.amount_filter"
    DUE_DATE: ElementRef = "invoice.due_date"
    INVOICE_DATE: ElementRef = "invoice.invoice_date"
    SAVE: ElementRef = "invoice.save"
    SUBMIT_WORKFLOW: ElementRef = "invoice.submit_workflow"


def _activate(ctx: PipelineContext, ref: ElementRef) -> ElementHandle:
    handle = ctx.browser.find_and_activate(ref)
    if handle is None:
        raise TransientUIError(f"Element '{ref}' not found")
    return handle


def _type(ctx: PipelineContext, ref: ElementRef, text: str) -> None:
    ctx.browser.type_into(_activate(ctx, ref), text)


def _wait_for_table(ctx: PipelineContext, what: str) -> None:
    timeout = ctx.config.erp.data_table_timeout_seconds
    if not ctx.browser.wait_ready(timeout):
        raise TransientUIError(f"{what} did not load within {timeout:.1f}s")


def _dataset_path(ctx: PipelineContext, step_name: str) -> Path:
    if ctx.dataset_path is None:
        raise StepContractError(step_name, "dataset_path is not set")
    return ctx.dataset_path


# ----------------------------------------------------------------------
# Steps
# ----------------------------------------------------------------------


def authenticate(ctx: PipelineContext) -> dict[str, Any]:
    """Open the ERP, log in and remember the main window.

    Navigation failures propagate; the step's network retry policy
    decides whether the whole step is attempted again.
    """
    erp = ctx.config.erp
    ctx.browser.navigate(erp.url)
    ctx.browser.authenticate(ctx.credentials)
    if not ctx.browser.wait_ready(erp.ready_timeout_seconds):
        logger.warning("ERP page not settled after %.1fs, continuing", erp.ready_timeout_seconds)

    windows = ctx.browser.opened_windows()
    if not windows:
        raise FatalError("No browser window is open after login")
    return {"main_window": windows[0]}


def locate_source_records(ctx: PipelineContext) -> None:
    """Run the receiving inquiry for the selected date range."""
    ctx.browser.navigate(ctx.config.erp.receiving_inquiry_target)
    _type(ctx, Elements.FROM_DATE, format_range_date(ctx.date_range.start))
    _type(ctx, Elements.TO_DATE, format_range_date(ctx.date_range.end))
    _activate(ctx, Elements.RUN_INQUIRY)
    _wait_for_table(ctx, "Receiving inquiry results")
    logger.info("Receiving inquiry loaded for %s", ctx.date_range.label)
    return None


def export_dataset(ctx: PipelineContext) -> dict[str, Any]:
    """Export the inquiry grid and wait for the downloaded workbook."""
    settings = ctx.config.workbook
    directory = Path(settings.download_dir).expanduser()
    _activate(ctx, Elements.EXPORT)

    path = poll_for(
        lambda: ctx.workbook.find_latest_downloaded_file(directory, settings.recency_minutes),
        settings.download_timeout_seconds,
        settings.poll_interval_seconds,
        clock=ctx.clock,
        sleep_func=ctx.sleep_func,
    )
    if path is None:
        raise TransientUIError(
            f"No workbook downloaded to {directory} within {settings.download_timeout_seconds:.0f}s"
        )
    logger.info("Exported dataset: %s", path)
    return {"dataset_path": path}


def transform_dataset(ctx: PipelineContext) -> dict[str, Any]:
    """Run the grouping macro on the exported workbook."""
    result = ctx.workbook.run_transform(_dataset_path(ctx, "transform_dataset"))
    if not result.success:
        raise DataIntegrityError(f"Workbook transform failed: {result.message or 'no details'}")
    return {"transform_message": result.message}


def file_vendor_invoices(ctx: PipelineContext) -> dict[str, Any]:
    """File every grouping key of the cycle parameter as a vendor invoice.

    One failing key does not stop the others.  The facts of the last
    matching row of the last filed key are extracted for the next steps.
    """
    path = _dataset_path(ctx, "file_vendor_invoices")
    columns = ctx.config.workbook.columns

    ctx.browser.navigate(ctx.config.erp.pending_invoice_target)
    _wait_for_table(ctx, "Pending vendor invoices")
    keys = collect_grouping_keys(ctx.workbook, path, columns, ctx.parameter)

    def file_one(key: str) -> None:
        _type(ctx, Elements.GROUPING_FILTER, key)
        _wait_for_table(ctx, f"Invoice list filtered by {key}")
        _activate(ctx, Elements.SELECT_RECORD)
        _activate(ctx, Elements.CONFIRM_RECORD)

    report = file_records(keys, file_one)
    last_key = report.last_filed
    if last_key is None:
        raise DataIntegrityError("No record was filed")

    def last_value(column: str) -> Any:
        values = ctx.workbook.read_column(
            path,
            lambda row: same_value(row.get(columns.filter_key), ctx.parameter)
            and format_key(row.get(columns.grouping_key)) == last_key,
            column,
        )
        return values[-1] if values else None

    facts = {
        "last_due_date": last_value(columns.due_date),
        "last_invoice_date": last_value(columns.invoice_date),
        "last_amount": last_value(columns.amount),
        "last_match_value": last_value(columns.match_value),
    }
    empty = [name for name in ("last_due_date", "last_invoice_date", "last_amount") if facts[name] in (None, "")]
    if empty:
        raise DataIntegrityError(f"Row of {last_key} has no value for {', '.join(empty)}")

    logger.info("Filed %d/%d record(s); last key %s", len(report.filed), len(keys), last_key)
    return {
        "grouping_keys": keys,
        "filed_keys": report.filed,
        "failed_keys": list(report.failed),
        "last_grouping_key": last_key,
        **facts,
    }


def apply_invoice_dates(ctx: PipelineContext) -> dict[str, Any]:
    """Find the pending invoice by amount and set its due and invoice dates."""
    due_date = format_erp_date(ctx.last_due_date)
    invoice_date = format_erp_date(ctx.last_invoice_date)

    _type(ctx, Elements.AMOUNT_FILTER, format_amount(ctx.last_amount))
    _wait_for_table(ctx, "Invoice list filtered by amount")
    _type(ctx, Elements.DUE_DATE, due_date)
    _type(ctx, Elements.INVOICE_DATE, invoice_date)
    _activate(ctx, Elements.SAVE)
    logger.info("Applied due date %s and invoice date %s", due_date, invoice_date)
    return {"dates_applied": True}


def submit_for_approval(ctx: PipelineContext) -> dict[str, Any]:
    """Trigger the workflow and file the approval in the window it opens."""
    settings = ctx.config.approval
    before = set(ctx.browser.opened_windows())
    _activate(ctx, Elements.SUBMIT_WORKFLOW)

    def new_window() -> str | None:
        return next((w for w in ctx.browser.opened_windows() if w not in before), None)

    window = poll_for(
        new_window,
        settings.window_timeout_seconds,
        settings.poll_interval_seconds,
        clock=ctx.clock,
        sleep_func=ctx.sleep_func,
    )
    if window is None:
        raise TransientUIError(f"Approval window did not open within {settings.window_timeout_seconds:.0f}s")

    session = ctx.open_approval(window)
    title = f"{settings.title_prefix} {ctx.date_range.label} #{ctx.parameter}"
    metadata = {
        "parameter": ctx.parameter,
        "period": ctx.date_range.label,
        "grouping_keys": list(ctx.filed_keys or []),
        "amount": ctx.last_amount,
        "due_date": ctx.last_due_date,
        "invoice_date": ctx.last_invoice_date,
        "match_value": ctx.last_match_value,
        "correlation_id": ctx.correlation_id,
    }
    result = session.submit_for_approval(title, metadata)
    if not result.success:
        raise DataIntegrityError(f"Approval rejected: {result.message or 'no details'}")
    logger.info("Submitted approval '%s' (reference %s)", title, result.reference)
    return {"approval_window": window, "approval_reference": result.reference}


def build_voucher_pipeline(config: AutomationConfig | None = None) -> PipelineDefinition:
    """Return the voucher pipeline, with overrides from *config* applied."""
    definition = PipelineDefinition(
        PIPELINE_NAME,
        [
            StepDefinition(
                1,
                "authenticate",
                authenticate,
                retry=RetryPolicies.NETWORK,
                provides=frozenset({"main_window"}),
            ),
            StepDefinition(
                2,
                "locate_source_records",
                locate_source_records,
                retry=RetryPolicies.TRANSIENT_UI,
                requires=frozenset({"main_window"}),
            ),
            StepDefinition(
                3,
                "export_dataset",
                export_dataset,
                retry=RetryPolicies.TRANSIENT_UI,
                requires=frozenset({"main_window"}),
                provides=frozenset({"dataset_path"}),
            ),
            StepDefinition(
                4,
                "transform_dataset",
                transform_dataset,
                retry=RetryPolicies.NO_RETRY,
                requires=frozenset({"dataset_path"}),
                provides=frozenset({"transform_message"}),
            ),
            StepDefinition(
                5,
                "file_vendor_invoices",
                file_vendor_invoices,
                retry=RetryPolicies.TRANSIENT_UI,
                requires=frozenset({"dataset_path"}),
                provides=frozenset(
                    {
                        "grouping_keys",
                        "filed_keys",
                        "failed_keys",
                        "last_grouping_key",
                        "last_due_date",
                        "last_invoice_date",
                        "last_amount",
                        "last_match_value",
                    }
                ),
            ),
            StepDefinition(
                6,
                "apply_invoice_dates",
                apply_invoice_dates,
                retry=RetryPolicies.TRANSIENT_UI,
                requires=frozenset({"last_due_date", "last_invoice_date", "last_amount"}),
                provides=frozenset({"dates_applied"}),
            ),
            StepDefinition(
                7,
                "submit_for_approval",
                submit_for_approval,
                retry=RetryPolicies.NO_RETRY,
                requires=frozenset({"main_window", "last_grouping_key"}),
                provides=frozenset({"approval_window", "approval_reference"}),
            ),
        ],
    )
    if config is not None:
        definition = definition.apply_overrides(config)
    return definition
