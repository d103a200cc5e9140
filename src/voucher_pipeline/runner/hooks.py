"""Pipeline lifecycle hooks protocol and infrastructure."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from voucher_pipeline.pipeline.definition import StepDefinition
from voucher_pipeline.runner.result import BatchResult, CycleResult, StepOutcome

logger = logging.getLogger(__name__)


class PipelineHooks(Protocol):
    """Protocol defining lifecycle callbacks for batch execution.

    Implementations receive notifications at key points during a batch.
    This protocol is NOT ``@runtime_checkable``; use structural typing or
    ``hasattr`` checks.  Step indexes are 0-based, cycle ordinals 1-based.
    """

    def before_batch(self, pipeline_name: str, parameters: list[Any]) -> None:
        """Called before the first cycle starts."""
        ...

    def after_batch(self, pipeline_name: str, result: BatchResult) -> None:
        """Called after the batch finishes (success, failure or abort)."""
        ...

    def before_cycle(self, cycle: int, parameter: Any, correlation_id: str) -> None:
        """Called before each cycle starts."""
        ...

    def after_cycle(self, result: CycleResult) -> None:
        """Called after each cycle is finalized."""
        ...

    def before_step(self, step: StepDefinition, index: int, total: int, cycle: int) -> None:
        """Called before each step executes."""
        ...

    def after_step(self, step: StepDefinition, outcome: StepOutcome, cycle: int) -> None:
        """Called after each step, whatever its outcome."""
        ...

    def on_retry_attempt(
        self,
        step: StepDefinition,
        attempt: int,
        max_attempts: int,
        delay_ms: int,
        error: Exception,
        cycle: int,
    ) -> None:
        """Called before a retry attempt."""
        ...

    def on_progress(
        self,
        cycle: int,
        current_step: int | None,
        completed_step: int | None,
        error: str | None,
    ) -> None:
        """Called on every step transition and on terminal failure."""
        ...


class NoOpHooks:
    """Hooks implementation that does nothing.

    Useful as a default or placeholder, and as a base class for hooks
    that only care about a few events.
    """

    def before_batch(self, pipeline_name: str, parameters: list[Any]) -> None:
        pass

    def after_batch(self, pipeline_name: str, result: BatchResult) -> None:
        pass

    def before_cycle(self, cycle: int, parameter: Any, correlation_id: str) -> None:
        pass

    def after_cycle(self, result: CycleResult) -> None:
        pass

    def before_step(self, step: StepDefinition, index: int, total: int, cycle: int) -> None:
        pass

    def after_step(self, step: StepDefinition, outcome: StepOutcome, cycle: int) -> None:
        pass

    def on_retry_attempt(
        self,
        step: StepDefinition,
        attempt: int,
        max_attempts: int,
        delay_ms: int,
        error: Exception,
        cycle: int,
    ) -> None:
        pass

    def on_progress(
        self,
        cycle: int,
        current_step: int | None,
        completed_step: int | None,
        error: str | None,
    ) -> None:
        pass


class CompositeHooks:
    """Broadcasts lifecycle events to multiple hooks implementations.

    Exceptions raised by individual hooks are caught and logged so that
    one misbehaving hook does not break the batch.
    """

    def __init__(self, *hooks: PipelineHooks) -> None:
        self._hooks: tuple[PipelineHooks, ...] = hooks

    def _call_all(self, method: str, *args: Any) -> None:
        """Invoke *method* on every registered hook, swallowing errors."""
        for hook in self._hooks:
            try:
                getattr(hook, method)(*args)
            except Exception:
                logger.warning(
                    "Hook %s.%s raised an exception",
                    type(hook).__name__,
                    method,
                    exc_info=True,
                )

    def before_batch(self, pipeline_name: str, parameters: list[Any]) -> None:
        self._call_all("before_batch", pipeline_name, parameters)

    def after_batch(self, pipeline_name: str, result: BatchResult) -> None:
        self._call_all("after_batch", pipeline_name, result)

    def before_cycle(self, cycle: int, parameter: Any, correlation_id: str) -> None:
        self._call_all("before_cycle", cycle, parameter, correlation_id)

    def after_cycle(self, result: CycleResult) -> None:
        self._call_all("after_cycle", result)

    def before_step(self, step: StepDefinition, index: int, total: int, cycle: int) -> None:
        self._call_all("before_step", step, index, total, cycle)

    def after_step(self, step: StepDefinition, outcome: StepOutcome, cycle: int) -> None:
        self._call_all("after_step", step, outcome, cycle)

    def on_retry_attempt(
        self,
        step: StepDefinition,
        attempt: int,
        max_attempts: int,
        delay_ms: int,
        error: Exception,
        cycle: int,
    ) -> None:
        self._call_all("on_retry_attempt", step, attempt, max_attempts, delay_ms, error, cycle)

    def on_progress(
        self,
        cycle: int,
        current_step: int | None,
        completed_step: int | None,
        error: str | None,
    ) -> None:
        self._call_all("on_progress", cycle, current_step, completed_step, error)
