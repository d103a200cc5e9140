"""Single-step execution with retry, contract checks and hook callbacks."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from voucher_pipeline.core.context import PipelineContext
from voucher_pipeline.core.errors import ErrorKind, StepContractError, classify_error
from voucher_pipeline.core.resilience.retry import RetryExecutor
from voucher_pipeline.core.utils import safe_call
from voucher_pipeline.pipeline.definition import StepDefinition
from voucher_pipeline.runner.hooks import PipelineHooks
from voucher_pipeline.runner.result import StepOutcome

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    """Return ``"TypeName: message"`` for an exception."""
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__


class StepExecutor:
    """Executes one pipeline step and turns whatever happens into a :class:`StepOutcome`.

    The operation is retried according to the step's retry policy, where
    retryability is decided by the error kind.  Declared ``requires`` are
    checked before the call and the returned payload is checked against
    ``provides`` before it is merged into the context.  On failure the
    context is left untouched.  No ``Exception`` escapes :meth:`execute`.

    Args:
        hooks: Lifecycle hooks instance.
        clock: Monotonic clock function.
        sleep_func: Sleep function for retry delays (``None`` uses default).
        jitter_factor: Random jitter applied to retry delays.
    """

    def __init__(
        self,
        hooks: PipelineHooks,
        clock: Callable[[], float] | None = None,
        sleep_func: Callable[[float], None] | None = None,
        jitter_factor: float = 0.0,
    ) -> None:
        self._hooks = hooks
        self._clock = clock or time.monotonic
        self._sleep_func = sleep_func
        self._jitter_factor = jitter_factor

    def execute(self, step: StepDefinition, ctx: PipelineContext, index: int, total: int) -> StepOutcome:
        """Run *step* against *ctx*.

        Args:
            step: The step to run.
            ctx: Context of the current cycle.
            index: Zero-based position of the step in the pipeline.
            total: Number of steps in the pipeline.

        Returns:
            A SUCCESS, FAILED or SKIPPED outcome.
        """
        if not step.enabled:
            outcome = StepOutcome.skipped(index, step.name)
            self._call_hook("after_step", step, outcome, ctx.cycle)
            return outcome

        start = self._clock()
        self._call_hook("before_step", step, index, total, ctx.cycle)

        missing = ctx.missing(sorted(step.requires))
        if missing:
            error = StepContractError(step.name, f"missing required context fields: {', '.join(missing)}")
            outcome = StepOutcome.failed(
                index, step.name, ErrorKind.FATAL, str(error), attempts=0, duration_ms=self._elapsed_ms(start)
            )
            self._call_hook("after_step", step, outcome, ctx.cycle)
            return outcome

        executor = RetryExecutor(step.retry, jitter_factor=self._jitter_factor, sleep_func=self._sleep_func)

        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            self._call_hook(
                "on_retry_attempt",
                step,
                attempt,
                step.retry.max_attempts,
                int(delay * 1000),
                error,
                ctx.cycle,
            )

        result = executor.run(lambda: step.operation(ctx), on_retry=on_retry)

        if result.error is not None:
            kind = classify_error(result.error)
            if kind is ErrorKind.FATAL:
                logger.error("Step '%s' raised a fatal error", step.name, exc_info=result.error)
            outcome = StepOutcome.failed(
                index,
                step.name,
                kind,
                describe_error(result.error),
                attempts=result.attempts,
                duration_ms=self._elapsed_ms(start),
            )
        else:
            outcome = self._accept_payload(step, ctx, index, result.value, result.attempts, start)

        self._call_hook("after_step", step, outcome, ctx.cycle)
        return outcome

    def _accept_payload(
        self,
        step: StepDefinition,
        ctx: PipelineContext,
        index: int,
        payload: Mapping[str, Any] | None,
        attempts: int,
        start: float,
    ) -> StepOutcome:
        """Validate and merge a successful payload."""
        if payload is not None and not isinstance(payload, Mapping):
            error = StepContractError(step.name, f"returned {type(payload).__name__} instead of a mapping")
            return StepOutcome.failed(
                index, step.name, ErrorKind.FATAL, str(error), attempts=attempts, duration_ms=self._elapsed_ms(start)
            )
        payload = dict(payload or {})
        undeclared = set(payload) - step.provides
        if undeclared:
            error = StepContractError(step.name, f"wrote undeclared context fields: {', '.join(sorted(undeclared))}")
            return StepOutcome.failed(
                index, step.name, ErrorKind.FATAL, str(error), attempts=attempts, duration_ms=self._elapsed_ms(start)
            )
        ctx.merge(payload)
        return StepOutcome.success(index, step.name, payload, attempts=attempts, duration_ms=self._elapsed_ms(start))

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    def _call_hook(self, method: str, *args: Any) -> None:
        """Invoke a hook method defensively; errors are logged, not raised."""
        safe_call(
            lambda: getattr(self._hooks, method)(*args),
            logger,
            "Hook %s.%s raised an exception",
            type(self._hooks).__name__,
            method,
        )
