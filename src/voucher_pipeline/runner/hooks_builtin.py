"""Built-in pipeline hooks: logging, metrics collection and progress reporting."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from voucher_pipeline.pipeline.definition import StepDefinition
from voucher_pipeline.runner.hooks import NoOpHooks
from voucher_pipeline.runner.result import BatchResult, CycleResult, StepOutcome, StepStatus

ProgressCallback = Callable[[int, int | None, int | None, str | None], None]


class LoggingHooks:
    """Hooks that log batch, cycle and step lifecycle events.

    Uses ``%s`` formatting for lazy evaluation.  Only parameters, step
    names and error messages are logged, never credentials.

    Args:
        logger: Custom logger instance. Defaults to ``logging.getLogger("voucher.pipeline")``.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("voucher.pipeline")

    @property
    def logger(self) -> logging.Logger:
        """Return the logger used by this hooks instance."""
        return self._logger

    def before_batch(self, pipeline_name: str, parameters: list[Any]) -> None:
        self._logger.info(
            "Batch '%s' starting with %d cycle(s): %s",
            pipeline_name,
            len(parameters),
            parameters,
        )

    def after_batch(self, pipeline_name: str, result: BatchResult) -> None:
        log = self._logger.info if result.success else self._logger.error
        log(
            "Batch '%s' finished: %d succeeded, %d failed%s",
            pipeline_name,
            result.success_count,
            result.fail_count,
            " (aborted after first cycle)" if result.aborted_early else "",
        )

    def before_cycle(self, cycle: int, parameter: Any, correlation_id: str) -> None:
        self._logger.info(
            "Cycle %d starting for parameter %s [%s]",
            cycle,
            parameter,
            correlation_id,
            extra={"cycle": cycle, "parameter": parameter, "correlation_id": correlation_id},
        )

    def after_cycle(self, result: CycleResult) -> None:
        extra = {"cycle": result.cycle, "parameter": result.parameter, "correlation_id": result.correlation_id}
        if result.success:
            self._logger.info(
                "Cycle %d (%s) succeeded in %dms", result.cycle, result.parameter, result.duration_ms, extra=extra
            )
        else:
            self._logger.error("Cycle %d (%s) failed: %s", result.cycle, result.parameter, result.message, extra=extra)

    def before_step(self, step: StepDefinition, index: int, total: int, cycle: int) -> None:
        self._logger.info(
            "Cycle %d step '%s' [%d/%d] starting",
            cycle,
            step.name,
            index + 1,
            total,
            extra={"cycle": cycle, "step": step.name},
        )

    def after_step(self, step: StepDefinition, outcome: StepOutcome, cycle: int) -> None:
        extra = {"cycle": cycle, "step": step.name}
        if outcome.status is StepStatus.SUCCESS:
            self._logger.info(
                "Cycle %d step '%s' [%d] completed in %dms",
                cycle,
                step.name,
                outcome.index + 1,
                outcome.duration_ms,
                extra=extra,
            )
        elif outcome.status is StepStatus.SKIPPED:
            self._logger.info(
                "Cycle %d step '%s' [%d] skipped: %s",
                cycle,
                step.name,
                outcome.index + 1,
                outcome.message,
                extra=extra,
            )
        else:
            kind = outcome.error_kind.value if outcome.error_kind else "unknown"
            self._logger.error(
                "Cycle %d step '%s' [%d] failed (%s) after %d attempt(s): %s",
                cycle,
                step.name,
                outcome.index + 1,
                kind,
                outcome.attempts,
                outcome.message,
                extra={**extra, "error_kind": kind},
            )

    def on_retry_attempt(
        self,
        step: StepDefinition,
        attempt: int,
        max_attempts: int,
        delay_ms: int,
        error: Exception,
        cycle: int,
    ) -> None:
        self._logger.warning(
            "Cycle %d step '%s' retry %d/%d after %dms: %s",
            cycle,
            step.name,
            attempt,
            max_attempts,
            delay_ms,
            error,
            extra={"cycle": cycle, "step": step.name},
        )

    def on_progress(
        self,
        cycle: int,
        current_step: int | None,
        completed_step: int | None,
        error: str | None,
    ) -> None:
        self._logger.debug(
            "Cycle %d progress: current=%s completed=%s error=%s",
            cycle,
            current_step,
            completed_step,
            error,
        )


class MetricsHooks(NoOpHooks):
    """Hooks that collect execution timing and retry metrics in memory.

    Step metrics are keyed by step name and accumulate across cycles.

    Args:
        clock: Injectable monotonic clock for testing.
            Defaults to ``time.monotonic``.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self.step_durations: dict[str, list[int]] = {}
        self.step_retries: dict[str, int] = {}
        self.step_failures: dict[str, int] = {}
        self.cycle_durations: dict[int, int] = {}
        self.total_duration_ms: int = 0
        self._batch_start: float = 0.0
        self._cycle_start: float = 0.0

    def before_batch(self, pipeline_name: str, parameters: list[Any]) -> None:
        self.step_durations = {}
        self.step_retries = {}
        self.step_failures = {}
        self.cycle_durations = {}
        self.total_duration_ms = 0
        self._batch_start = self._clock()

    def after_batch(self, pipeline_name: str, result: BatchResult) -> None:
        self.total_duration_ms = int((self._clock() - self._batch_start) * 1000)

    def before_cycle(self, cycle: int, parameter: Any, correlation_id: str) -> None:
        self._cycle_start = self._clock()

    def after_cycle(self, result: CycleResult) -> None:
        self.cycle_durations[result.cycle] = int((self._clock() - self._cycle_start) * 1000)

    def after_step(self, step: StepDefinition, outcome: StepOutcome, cycle: int) -> None:
        if outcome.status is StepStatus.SKIPPED:
            return
        self.step_durations.setdefault(step.name, []).append(outcome.duration_ms)
        if outcome.status is StepStatus.FAILED:
            self.step_failures[step.name] = self.step_failures.get(step.name, 0) + 1

    def on_retry_attempt(
        self,
        step: StepDefinition,
        attempt: int,
        max_attempts: int,
        delay_ms: int,
        error: Exception,
        cycle: int,
    ) -> None:
        self.step_retries[step.name] = self.step_retries.get(step.name, 0) + 1

    def summary(self) -> dict[str, Any]:
        """Return the collected metrics as a plain dict."""
        return {
            "total_duration_ms": self.total_duration_ms,
            "cycle_durations_ms": dict(self.cycle_durations),
            "step_durations_ms": {name: list(values) for name, values in self.step_durations.items()},
            "step_retries": dict(self.step_retries),
            "step_failures": dict(self.step_failures),
        }


class ProgressCallbackHooks(NoOpHooks):
    """Forwards progress events to a plain ``(cycle, current, completed, error)`` callback.

    Args:
        callback: Function called on every progress event.
    """

    def __init__(self, callback: ProgressCallback) -> None:
        self._callback = callback

    def on_progress(
        self,
        cycle: int,
        current_step: int | None,
        completed_step: int | None,
        error: str | None,
    ) -> None:
        self._callback(cycle, current_step, completed_step, error)
