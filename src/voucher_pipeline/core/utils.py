"""Shared utility functions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any


def safe_call(
    fn: Callable[[], None],
    call_logger: logging.Logger,
    message: str,
    *message_args: Any,
) -> None:
    """Invoke *fn* defensively; exceptions are logged as warnings, not raised.

    Use this to call hooks, progress reporters, checkpoint stores, or other
    extension points where a failure should not interrupt the caller.

    Args:
        fn: Zero-argument callable to invoke.
        call_logger: Logger instance for warning output.
        message: Log message template (``%s``-style).
        *message_args: Arguments interpolated into *message*.
    """
    try:
        fn()
    except Exception:
        call_logger.warning(message, *message_args, exc_info=True)


def same_value(cell: Any, expected: Any) -> bool:
    """Compare a spreadsheet cell with an expected value.

    Spreadsheet readers hand back ``3``, ``3.0`` or ``" 3 "`` for what a
    user typed as 3, so numbers compare numerically and everything else
    compares as stripped text.

    Args:
        cell: Raw cell value (may be ``None``).
        expected: Value to compare against.

    Returns:
        True if both denote the same value.
    """
    if cell is None or expected is None:
        return cell is None and expected is None
    try:
        return float(str(cell).strip()) == float(str(expected).strip())
    except ValueError:
        return str(cell).strip() == str(expected).strip()
