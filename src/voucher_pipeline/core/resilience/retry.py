"""Retry execution with exponential backoff and jitter."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from voucher_pipeline.core.config.retry import RetryConfig
from voucher_pipeline.core.errors import ErrorKind, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryResult(Generic[T]):
    """Outcome of a retried call: either a value or the last error."""

    value: T | None
    error: Exception | None
    attempts: int

    @property
    def success(self) -> bool:
        """Return True if an attempt succeeded."""
        return self.error is None


class RetryExecutor:
    """Executes callables with configurable retry logic.

    Uses exponential backoff with jitter based on a ``RetryConfig``.  By
    default an exception is retried when :func:`classify_error` maps it
    onto one of the kinds listed in ``config.retry_on``.

    Args:
        config: Retry configuration specifying attempts, delays, and retryable kinds.
        jitter_factor: Random jitter multiplier applied to each delay (0 disables jitter).
        sleep_func: Injectable sleep function for testing. Defaults to ``time.sleep``.
        is_retryable: Optional predicate replacing the kind-based check.
    """

    def __init__(
        self,
        config: RetryConfig,
        jitter_factor: float = 0.25,
        sleep_func: Callable[[float], None] | None = None,
        is_retryable: Callable[[Exception], bool] | None = None,
    ) -> None:
        self._config = config
        self._jitter_factor = jitter_factor
        self._sleep = sleep_func or time.sleep
        self._is_retryable = is_retryable

    @property
    def config(self) -> RetryConfig:
        """Return the retry configuration."""
        return self._config

    def calculate_delay(self, attempt: int, kind: ErrorKind | None = None) -> float:
        """Calculate the delay in seconds for a given attempt number.

        Uses exponential backoff: ``min(initial * multiplier^attempt, max) * (1 + jitter)``.
        Network failures are stretched by ``network_delay_factor`` before
        the cap is applied.

        Args:
            attempt: Zero-based attempt index (0 = first retry).
            kind: Kind of the failure that triggered the retry.

        Returns:
            Delay in seconds.
        """
        base = self._config.initial_delay_seconds * (self._config.backoff_multiplier**attempt)
        if kind is ErrorKind.NETWORK:
            base *= self._config.network_delay_factor
        base = min(base, self._config.max_delay_seconds)

        if self._jitter_factor > 0:
            jitter = base * self._jitter_factor * random.random()
            base += jitter

        return base

    def is_retryable(self, error: Exception) -> bool:
        """Check whether an exception should be retried.

        Args:
            error: The exception to check.

        Returns:
            True if the exception is retryable.
        """
        if self._is_retryable is not None:
            return self._is_retryable(error)
        return classify_error(error) in self._config.retryable_kinds

    def run(
        self,
        func: Callable[[], T],
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> RetryResult[T]:
        """Execute a callable with retry logic and report the outcome as a value.

        Only ``Exception`` subclasses are caught; ``KeyboardInterrupt`` and
        other ``BaseException`` subclasses propagate immediately.

        Args:
            func: Zero-argument callable to execute.
            on_retry: Optional callback invoked before each retry with
                ``(attempt, exception, delay)`` where attempt is 1-based.

        Returns:
            A ``RetryResult`` holding the value or the last error, and the
            number of attempts made.
        """
        max_attempts = self._config.max_attempts
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            try:
                return RetryResult(value=func(), error=None, attempts=attempt + 1)
            except Exception as exc:
                last_error = exc

                is_last = attempt == max_attempts - 1
                if is_last or not self.is_retryable(exc):
                    return RetryResult(value=None, error=exc, attempts=attempt + 1)

                delay = self.calculate_delay(attempt, classify_error(exc))
                logger.debug(
                    "Attempt %d/%d failed (%s), retrying in %.3fs",
                    attempt + 1,
                    max_attempts,
                    type(exc).__name__,
                    delay,
                )

                if on_retry is not None:
                    on_retry(attempt + 1, exc, delay)

                self._sleep(delay)

        # Should never reach here, but satisfies type checker
        assert last_error is not None
        return RetryResult(value=None, error=last_error, attempts=max_attempts)

    def execute(
        self,
        func: Callable[[], T],
        on_retry: Callable[[int, Exception, float], None] | None = None,
    ) -> T:
        """Execute a callable with retry logic.

        Args:
            func: Zero-argument callable to execute.
            on_retry: Optional callback invoked before each retry.

        Returns:
            The return value of *func*.

        Raises:
            Exception: The last exception if all attempts are exhausted,
                or immediately if the exception is not retryable.
        """
        result = self.run(func, on_retry=on_retry)
        if result.error is not None:
            raise result.error
        return result.value  # type: ignore[return-value]


def with_retry(
    operation: Callable[[], T],
    max_attempts: int,
    backoff_seconds: float,
    *,
    backoff_multiplier: float = 1.0,
    max_backoff_seconds: float | None = None,
    is_retryable: Callable[[Exception], bool] | None = None,
    sleep_func: Callable[[float], None] | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> RetryResult[T]:
    """Invoke *operation*, retrying failures up to *max_attempts* times in total.

    Unlike the step executor, which only retries transient kinds, this
    helper retries every ``Exception`` unless *is_retryable* says otherwise.

    Args:
        operation: Zero-argument callable to execute.
        max_attempts: Total number of attempts (at least 1).
        backoff_seconds: Delay before the first retry.
        backoff_multiplier: Growth factor for subsequent delays (1.0 keeps it fixed).
        max_backoff_seconds: Upper bound for a single delay (default: no bound
            beyond the grown delay itself).
        is_retryable: Optional predicate deciding which errors to retry.
        sleep_func: Injectable sleep for testing.
        on_retry: Optional ``(attempt, exception, delay)`` callback.

    Returns:
        ``RetryResult`` with the success payload or the last failure.

    Example:
        >>> result = with_retry(lambda: page.reload(), max_attempts=3, backoff_seconds=0.1)
        >>> result.success
        True
    """
    if max_backoff_seconds is None:
        max_backoff_seconds = backoff_seconds * (backoff_multiplier ** max(max_attempts - 1, 0))
    config = RetryConfig(
        max_attempts=max_attempts,
        initial_delay_seconds=backoff_seconds,
        max_delay_seconds=max_backoff_seconds,
        backoff_multiplier=backoff_multiplier,
        network_delay_factor=1.0,
    )
    executor = RetryExecutor(
        config,
        jitter_factor=0.0,
        sleep_func=sleep_func,
        is_retryable=is_retryable or (lambda _exc: True),
    )
    return executor.run(operation, on_retry=on_retry)
