"""Resilience primitives: retry and bounded waiting."""

from voucher_pipeline.core.resilience.retry import (
    RetryExecutor,
    RetryResult,
    with_retry,
)
from voucher_pipeline.core.resilience.wait import await_condition, poll_for

__all__ = [
    "RetryExecutor",
    "RetryResult",
    "await_condition",
    "poll_for",
    "with_retry",
]
