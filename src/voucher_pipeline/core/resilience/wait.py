"""Bounded polling for conditions on external systems."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def await_condition(
    predicate: Callable[[], bool],
    timeout_seconds: float,
    poll_interval_seconds: float,
    *,
    clock: Callable[[], float] | None = None,
    sleep_func: Callable[[float], None] | None = None,
) -> bool:
    """Poll *predicate* at fixed intervals until it is true or time runs out.

    A timeout is an expected outcome and is reported as ``False``.  A
    predicate that raises an ``Exception`` is treated as "not yet"; the
    page it inspects is often mid-reload.

    Args:
        predicate: Zero-argument condition to evaluate.
        timeout_seconds: Overall time budget.
        poll_interval_seconds: Pause between evaluations.
        clock: Injectable monotonic clock for testing.
        sleep_func: Injectable sleep for testing.

    Returns:
        True as soon as the predicate holds, False once the timeout elapses.
    """
    return (
        poll_for(
            lambda: True if predicate() else None,
            timeout_seconds,
            poll_interval_seconds,
            clock=clock,
            sleep_func=sleep_func,
        )
        is not None
    )


def poll_for(
    probe: Callable[[], T | None],
    timeout_seconds: float,
    poll_interval_seconds: float,
    *,
    clock: Callable[[], float] | None = None,
    sleep_func: Callable[[float], None] | None = None,
) -> T | None:
    """Poll *probe* until it returns something other than ``None``.

    Same timing rules as :func:`await_condition`, but hands back the
    probed value, e.g. the path of a finished download.

    Returns:
        The first non-``None`` value, or ``None`` on timeout.
    """
    if timeout_seconds < 0:
        raise ValueError("timeout_seconds must not be negative")
    if poll_interval_seconds <= 0:
        raise ValueError("poll_interval_seconds must be positive")

    now = clock or time.monotonic
    sleep = sleep_func or time.sleep
    deadline = now() + timeout_seconds

    while True:
        try:
            value = probe()
        except Exception as exc:
            logger.debug("Condition check raised %s: %s", type(exc).__name__, exc)
            value = None
        if value is not None:
            return value

        remaining = deadline - now()
        if remaining <= 0:
            return None
        sleep(min(poll_interval_seconds, remaining))
