"""Tests for step, cycle and batch result models."""

from __future__ import annotations

from datetime import timedelta

import pytest

from voucher_pipeline.core.errors import ErrorKind
from voucher_pipeline.runner.result import BatchResult, CycleResult, StepOutcome, StepStatus


def _cycle(parameter: int, success: bool) -> CycleResult:
    result = CycleResult(parameter=parameter, cycle=parameter)
    result.finalize(success=success, message="ok" if success else "boom")
    return result


class TestStepOutcome:
    def test_success_payload_is_read_only(self) -> None:
        outcome = StepOutcome.success(0, "authenticate", {"main_window": "main"}, attempts=1, duration_ms=12)

        assert outcome.is_success
        assert outcome.payload == {"main_window": "main"}
        with pytest.raises(TypeError):
            outcome.payload["main_window"] = "other"  # type: ignore[index]

    def test_failed(self) -> None:
        outcome = StepOutcome.failed(2, "export", ErrorKind.NETWORK, "reset", attempts=3, duration_ms=5)

        assert outcome.is_failed
        assert outcome.payload is None
        assert outcome.to_dict() == {
            "index": 2,
            "name": "export",
            "status": "failed",
            "error_kind": "network",
            "message": "reset",
            "attempts": 3,
            "duration_ms": 5,
        }

    def test_skipped(self) -> None:
        outcome = StepOutcome.skipped(4, "transform")

        assert outcome.status is StepStatus.SKIPPED
        assert outcome.message == "disabled"
        assert outcome.attempts == 0


class TestCycleResult:
    def test_record_tracks_first_failure(self) -> None:
        result = CycleResult(parameter=3, cycle=1)
        result.record(StepOutcome.success(0, "a", None, 1, 0))
        result.record(StepOutcome.failed(1, "b", ErrorKind.DATA_INTEGRITY, "x", 1, 0))
        result.record(StepOutcome.failed(2, "c", ErrorKind.FATAL, "y", 1, 0))

        assert result.failed_step == 1
        assert result.failed_outcome.name == "b"

    def test_no_failure(self) -> None:
        result = CycleResult(parameter=3, cycle=1)

        assert result.failed_outcome is None
        assert result.duration_ms == 0

    def test_finalize_and_duration(self) -> None:
        result = CycleResult(parameter=3, cycle=1)
        result.finalize(success=False, message="aborted", aborted=True, error_kind=ErrorKind.FATAL)
        result.completed_at = result.started_at + timedelta(milliseconds=1500)

        assert result.duration_ms == 1500
        data = result.to_dict()
        assert data["aborted"] is True
        assert data["error_kind"] == "fatal"
        assert data["steps"] == []


class TestBatchResult:
    def test_empty_batch_is_vacuously_successful(self) -> None:
        result = BatchResult()

        assert result.success
        assert result.success_count == 0
        assert result.fail_count == 0

    def test_counts_and_parameters(self) -> None:
        result = BatchResult(cycle_results=[_cycle(3, True), _cycle(4, False), _cycle(5, True)])

        assert result.success_count == 2
        assert result.fail_count == 1
        assert not result.success
        assert result.failed_parameters == [4]
        assert result.succeeded_parameters == [3, 5]
        assert len(result.to_dict()["cycles"]) == 3
