"""Step, cycle and batch result models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any

from voucher_pipeline.core.errors import ErrorKind


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    """Outcome of one step."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepOutcome:
    """Immutable record of one executed (or skipped) step.

    Build instances through :meth:`success`, :meth:`failed` or
    :meth:`skipped` so that the status-specific fields stay consistent.
    """

    index: int
    name: str
    status: StepStatus
    payload: Mapping[str, Any] | None = None
    error_kind: ErrorKind | None = None
    message: str = ""
    attempts: int = 0
    duration_ms: int = 0

    @classmethod
    def success(
        cls,
        index: int,
        name: str,
        payload: Mapping[str, Any] | None,
        attempts: int,
        duration_ms: int,
    ) -> StepOutcome:
        return cls(
            index=index,
            name=name,
            status=StepStatus.SUCCESS,
            payload=MappingProxyType(dict(payload or {})),
            attempts=attempts,
            duration_ms=duration_ms,
        )

    @classmethod
    def failed(
        cls,
        index: int,
        name: str,
        error_kind: ErrorKind,
        message: str,
        attempts: int,
        duration_ms: int,
    ) -> StepOutcome:
        return cls(
            index=index,
            name=name,
            status=StepStatus.FAILED,
            error_kind=error_kind,
            message=message,
            attempts=attempts,
            duration_ms=duration_ms,
        )

    @classmethod
    def skipped(cls, index: int, name: str, reason: str = "disabled") -> StepOutcome:
        return cls(index=index, name=name, status=StepStatus.SKIPPED, message=reason)

    @property
    def is_success(self) -> bool:
        return self.status is StepStatus.SUCCESS

    @property
    def is_failed(self) -> bool:
        return self.status is StepStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        """Serializable summary; payload values are not included."""
        return {
            "index": self.index,
            "name": self.name,
            "status": self.status.value,
            "error_kind": self.error_kind.value if self.error_kind is not None else None,
            "message": self.message,
            "attempts": self.attempts,
            "duration_ms": self.duration_ms,
        }


@dataclass
class CycleResult:
    """Result of running the pipeline once for one parameter.

    Created when the cycle starts and appended to as steps complete, so a
    partial result exists even if the cycle is interrupted.
    """

    parameter: Any
    cycle: int
    correlation_id: str = ""
    success: bool = False
    message: str = ""
    step_outcomes: list[StepOutcome] = field(default_factory=list)
    failed_step: int | None = None
    aborted: bool = False
    error_kind: ErrorKind | None = None
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    def record(self, outcome: StepOutcome) -> None:
        """Append a step outcome, tracking the first failure."""
        self.step_outcomes.append(outcome)
        if outcome.is_failed and self.failed_step is None:
            self.failed_step = len(self.step_outcomes) - 1

    def finalize(
        self,
        success: bool,
        message: str,
        aborted: bool = False,
        error_kind: ErrorKind | None = None,
    ) -> None:
        """Mark the cycle as finished."""
        self.success = success
        self.message = message
        self.aborted = aborted
        self.error_kind = error_kind
        self.completed_at = utcnow()

    @property
    def failed_outcome(self) -> StepOutcome | None:
        if self.failed_step is None:
            return None
        return self.step_outcomes[self.failed_step]

    @property
    def duration_ms(self) -> int:
        if self.completed_at is None:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "parameter": self.parameter,
            "cycle": self.cycle,
            "correlation_id": self.correlation_id,
            "success": self.success,
            "message": self.message,
            "failed_step": self.failed_step,
            "aborted": self.aborted,
            "error_kind": self.error_kind.value if self.error_kind is not None else None,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "steps": [outcome.to_dict() for outcome in self.step_outcomes],
        }


@dataclass
class BatchResult:
    """Aggregate result of a batch of cycles."""

    cycle_results: list[CycleResult] = field(default_factory=list)
    message: str = ""
    aborted_early: bool = False
    started_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.cycle_results if r.success)

    @property
    def fail_count(self) -> int:
        return sum(1 for r in self.cycle_results if not r.success)

    @property
    def success(self) -> bool:
        """True when every cycle succeeded; vacuously true for an empty batch."""
        return all(r.success for r in self.cycle_results)

    @property
    def failed_parameters(self) -> list[Any]:
        return [r.parameter for r in self.cycle_results if not r.success]

    @property
    def succeeded_parameters(self) -> list[Any]:
        return [r.parameter for r in self.cycle_results if r.success]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "success_count": self.success_count,
            "fail_count": self.fail_count,
            "aborted_early": self.aborted_early,
            "message": self.message,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "cycles": [r.to_dict() for r in self.cycle_results],
        }
