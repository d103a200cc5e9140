"""Runs every step of the pipeline once for one cycle."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from voucher_pipeline.core.context import PipelineContext
from voucher_pipeline.core.errors import ErrorKind
from voucher_pipeline.core.utils import safe_call
from voucher_pipeline.pipeline.definition import PipelineDefinition
from voucher_pipeline.runner.hooks import NoOpHooks, PipelineHooks
from voucher_pipeline.runner.result import CycleResult, StepStatus
from voucher_pipeline.runner.step_executor import StepExecutor

logger = logging.getLogger(__name__)


class PipelineRunner:
    """Executes the steps of a :class:`PipelineDefinition` in ordinal order.

    A failed step stops the cycle when the step is critical or the error
    is fatal; a non-critical, non-fatal failure is recorded and the next
    step runs.  Progress is reported after every step transition.

    Args:
        definition: The validated pipeline.
        hooks: Lifecycle hooks (default: ``NoOpHooks``).
        clock: Injectable monotonic clock for testing.
        sleep_func: Injectable sleep for testing retry delays.
        jitter_factor: Random jitter applied to retry delays.
    """

    def __init__(
        self,
        definition: PipelineDefinition,
        hooks: PipelineHooks | None = None,
        clock: Callable[[], float] | None = None,
        sleep_func: Callable[[float], None] | None = None,
        jitter_factor: float = 0.0,
    ) -> None:
        self._definition = definition
        self._hooks: PipelineHooks = hooks or NoOpHooks()
        self._executor = StepExecutor(self._hooks, clock=clock, sleep_func=sleep_func, jitter_factor=jitter_factor)

    @property
    def definition(self) -> PipelineDefinition:
        return self._definition

    def run(self, ctx: PipelineContext, result: CycleResult | None = None) -> CycleResult:
        """Run the pipeline against *ctx*.

        Args:
            ctx: Fresh context of the cycle.
            result: Pre-created result to append outcomes to, so the caller
                keeps a partial result if the run is interrupted.

        Returns:
            The finalized ``CycleResult``.
        """
        if result is None:
            result = CycleResult(parameter=ctx.parameter, cycle=ctx.cycle, correlation_id=ctx.correlation_id)

        steps = self._definition.steps
        total = len(steps)
        last_completed: int | None = None
        self._progress(ctx.cycle, 0, None, None)

        for index, step in enumerate(steps):
            outcome = self._executor.execute(step, ctx, index, total)
            result.record(outcome)

            if outcome.status is StepStatus.SUCCESS:
                last_completed = index
            elif outcome.status is StepStatus.FAILED:
                stop = step.critical or outcome.error_kind is ErrorKind.FATAL
                error_text = f"Step {index + 1} '{step.name}' failed: {outcome.message}"
                if stop:
                    self._progress(ctx.cycle, None, last_completed, error_text)
                    result.finalize(
                        success=False,
                        message=error_text,
                        aborted=outcome.error_kind is ErrorKind.FATAL,
                        error_kind=outcome.error_kind,
                    )
                    return result
                logger.warning("Non-critical step '%s' failed, continuing: %s", step.name, outcome.message)
                self._progress(ctx.cycle, index + 1 if index + 1 < total else None, last_completed, error_text)
                continue

            self._progress(ctx.cycle, index + 1 if index + 1 < total else None, last_completed, None)

        failures = [o for o in result.step_outcomes if o.status is StepStatus.FAILED]
        if failures:
            message = f"Completed with {len(failures)} non-critical failure(s): {', '.join(o.name for o in failures)}"
        else:
            message = f"Completed {total} step(s)"
        result.finalize(success=True, message=message)
        return result

    def _progress(self, cycle: int, current: int | None, completed: int | None, error: str | None) -> None:
        self._call_hook("on_progress", cycle, current, completed, error)

    def _call_hook(self, method: str, *args: Any) -> None:
        """Invoke a hook method defensively; errors are logged, not raised."""
        safe_call(
            lambda: getattr(self._hooks, method)(*args),
            logger,
            "Hook %s.%s raised an exception",
            type(self._hooks).__name__,
            method,
        )
