"""Failure taxonomy for automation steps.

Every exception raised inside a step is mapped onto one of four
:class:`ErrorKind` values.  The kind decides whether the step executor
retries it and whether the cycle may continue.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a step failure."""

    TRANSIENT_UI = "transient_ui"
    NETWORK = "network"
    DATA_INTEGRITY = "data_integrity"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        """Whether failures of this kind may be retried at all."""
        return self in (ErrorKind.TRANSIENT_UI, ErrorKind.NETWORK)


class AutomationError(Exception):
    """Base exception for failures raised by steps and adapters."""

    kind: ErrorKind = ErrorKind.FATAL


class TransientUIError(AutomationError):
    """An element was not found, not visible, or the page was not ready."""

    kind = ErrorKind.TRANSIENT_UI


class NetworkError(AutomationError):
    """Connectivity problem or timeout against an external system."""

    kind = ErrorKind.NETWORK


class DataIntegrityError(AutomationError):
    """Expected data was missing or malformed."""

    kind = ErrorKind.DATA_INTEGRITY


class FatalError(AutomationError):
    """Broken precondition or contract violation; aborts the cycle."""

    kind = ErrorKind.FATAL


class AdapterLoadError(FatalError):
    """Failed to load or instantiate a collaborator adapter."""

    def __init__(self, class_path: str, cause: Exception) -> None:
        self.class_path = class_path
        self.cause = cause
        super().__init__(f"Failed to load adapter '{class_path}': {cause}")
        self.__cause__ = cause


class StepContractError(FatalError):
    """A step read or wrote context fields it did not declare."""

    def __init__(self, step_name: str, detail: str) -> None:
        self.step_name = step_name
        super().__init__(f"Step '{step_name}' violated its contract: {detail}")


_NETWORK_TYPES: tuple[type[BaseException], ...] = (ConnectionError, TimeoutError)
_DATA_TYPES: tuple[type[BaseException], ...] = (KeyError, IndexError, ValueError, LookupError)


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception onto an :class:`ErrorKind`.

    :class:`AutomationError` subclasses carry their own kind.  Builtin
    connection and timeout errors are treated as network failures, lookup
    and value errors as data problems.  Everything else is a programming
    error and therefore fatal.

    Args:
        error: The exception raised by a step or adapter.

    Returns:
        The error kind.
    """
    if isinstance(error, AutomationError):
        return error.kind
    if isinstance(error, _NETWORK_TYPES):
        return ErrorKind.NETWORK
    if isinstance(error, _DATA_TYPES):
        return ErrorKind.DATA_INTEGRITY
    return ErrorKind.FATAL
