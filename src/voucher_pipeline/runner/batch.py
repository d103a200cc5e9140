"""Runs the pipeline once per parameter with fresh sessions for every cycle."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from datetime import date
from typing import Any

from voucher_pipeline.core.adapters import BrowserSession, SessionFactory
from voucher_pipeline.core.config.pipeline import AutomationConfig
from voucher_pipeline.core.context import Credentials, DateRange, PipelineContext, new_correlation_id
from voucher_pipeline.core.errors import ErrorKind
from voucher_pipeline.core.utils import safe_call, same_value
from voucher_pipeline.pipeline.definition import PipelineDefinition
from voucher_pipeline.pipeline.steps import build_voucher_pipeline
from voucher_pipeline.runner.cycle_runner import PipelineRunner
from voucher_pipeline.runner.hooks import NoOpHooks, PipelineHooks
from voucher_pipeline.runner.result import BatchResult, CycleResult, utcnow
from voucher_pipeline.runner.step_executor import describe_error

logger = logging.getLogger(__name__)


class BatchController:
    """Orchestrates a batch of independent cycles.

    Every cycle gets a new context, a new correlation id and new sessions
    from the factory.  If the first cycle fails the batch stops (unless
    ``batch.abort_on_first_cycle_failure`` is off); later failures are
    recorded and the batch moves on.  A fixed pause separates cycles.
    :meth:`run_batch` never raises ``Exception``.

    Args:
        config: Automation configuration.
        factory: Creates the browser, workbook and approval sessions.
        definition: Pipeline to run (default: the voucher pipeline with
            overrides from *config*).
        hooks: Lifecycle hooks (default: ``NoOpHooks``).
        date_range: Receipt date range (default: from ``config.period``).
        clock: Injectable monotonic clock, also used by step waits.
        sleep_func: Injectable sleep for inter-cycle pauses, retries and step waits.
        jitter_factor: Random jitter applied to retry delays.
    """

    def __init__(
        self,
        config: AutomationConfig,
        factory: SessionFactory,
        definition: PipelineDefinition | None = None,
        hooks: PipelineHooks | None = None,
        date_range: DateRange | None = None,
        clock: Callable[[], float] | None = None,
        sleep_func: Callable[[float], None] | None = None,
        jitter_factor: float = 0.0,
    ) -> None:
        self._config = config
        self._factory = factory
        self._definition = definition or build_voucher_pipeline(config)
        self._hooks: PipelineHooks = hooks or NoOpHooks()
        self._date_range = date_range or DateRange.for_period(config.period.year, config.period.month, date.today())
        self._clock = clock or time.monotonic
        self._sleep = sleep_func or time.sleep
        self._runner = PipelineRunner(
            self._definition,
            hooks=self._hooks,
            clock=clock,
            sleep_func=sleep_func,
            jitter_factor=jitter_factor,
        )

    @property
    def definition(self) -> PipelineDefinition:
        return self._definition

    @property
    def date_range(self) -> DateRange:
        return self._date_range

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run_batch(
        self,
        parameters: Iterable[Any],
        credentials: Credentials,
        completed_parameters: Iterable[Any] | None = None,
    ) -> BatchResult:
        """Run one cycle per parameter.

        Args:
            parameters: Parameters to process, in order.
            credentials: Login credentials handed to every cycle.
            completed_parameters: Parameters finished by an earlier run;
                they are skipped.

        Returns:
            ``BatchResult`` with one ``CycleResult`` per cycle that ran.
        """
        batch_settings = self._config.batch
        done = list(completed_parameters or [])
        pending: list[Any] = []
        for parameter in parameters:
            if any(same_value(parameter, finished) for finished in done):
                logger.info("Skipping parameter %s, already completed", parameter)
                continue
            pending.append(parameter)

        result = BatchResult()
        self._call_hook("before_batch", self._definition.name, pending)

        for position, parameter in enumerate(pending):
            cycle_result = self._run_cycle(parameter, position + 1, credentials)
            result.cycle_results.append(cycle_result)

            if not cycle_result.success and position == 0 and batch_settings.abort_on_first_cycle_failure:
                result.aborted_early = True
                logger.error("First cycle failed, aborting the batch: %s", cycle_result.message)
                break

            if position < len(pending) - 1 and batch_settings.inter_cycle_delay_seconds > 0:
                logger.debug("Waiting %.1fs before the next cycle", batch_settings.inter_cycle_delay_seconds)
                self._sleep(batch_settings.inter_cycle_delay_seconds)

        result.completed_at = utcnow()
        result.message = self._summarize(result, len(pending))
        self._call_hook("after_batch", self._definition.name, result)
        return result

    def run_single(self, credentials: Credentials, parameter: Any = None) -> CycleResult:
        """Run exactly one cycle, with ``batch.default_parameter`` when *parameter* is None."""
        if parameter is None:
            parameter = self._config.batch.default_parameter
        return self.run_batch([parameter], credentials).cycle_results[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run_cycle(self, parameter: Any, cycle: int, credentials: Credentials) -> CycleResult:
        correlation_id = new_correlation_id()
        result = CycleResult(parameter=parameter, cycle=cycle, correlation_id=correlation_id)
        self._call_hook("before_cycle", cycle, parameter, correlation_id)

        browser: BrowserSession | None = None
        try:
            browser = self._factory.open_browser()
            ctx = PipelineContext(
                parameter=parameter,
                cycle=cycle,
                credentials=credentials,
                date_range=self._date_range,
                config=self._config,
                browser=browser,
                workbook=self._factory.open_workbook(),
                open_approval=lambda window: self._factory.open_approval(window, credentials),
                correlation_id=correlation_id,
                clock=self._clock,
                sleep_func=self._sleep,
            )
            self._runner.run(ctx, result)
        except Exception as exc:
            logger.error("Cycle %d (%s) crashed", cycle, parameter, exc_info=True)
            result.finalize(
                success=False,
                message=f"Cycle {cycle} crashed: {describe_error(exc)}",
                aborted=True,
                error_kind=ErrorKind.FATAL,
            )
        finally:
            if browser is not None:
                self._release(browser, result)

        self._call_hook("after_cycle", result)
        return result

    def _release(self, browser: BrowserSession, result: CycleResult) -> None:
        if result.aborted and self._config.batch.keep_session_open_on_fatal:
            logger.warning(
                "Cycle %d aborted on a fatal error; leaving the browser open for inspection",
                result.cycle,
            )
            return
        safe_call(browser.close, logger, "Closing browser of cycle %d failed", result.cycle)

    @staticmethod
    def _summarize(result: BatchResult, planned: int) -> str:
        if result.aborted_early:
            return f"First cycle failed, batch aborted: {result.cycle_results[0].message}"
        if not result.cycle_results:
            return "Nothing to process"
        if result.success:
            return f"All {result.success_count} cycle(s) succeeded"
        return (
            f"{result.success_count} of {planned} cycle(s) succeeded; "
            f"failed parameters: {', '.join(str(p) for p in result.failed_parameters)}"
        )

    def _call_hook(self, method: str, *args: Any) -> None:
        """Invoke a hook method defensively; errors are logged, not raised."""
        safe_call(
            lambda: getattr(self._hooks, method)(*args),
            logger,
            "Hook %s.%s raised an exception",
            type(self._hooks).__name__,
            method,
        )
