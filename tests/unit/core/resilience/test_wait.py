"""Tests for await_condition and poll_for."""

from __future__ import annotations

import pytest

from tests.factories import FakeClock
from voucher_pipeline.core.resilience.wait import await_condition, poll_for


class TestAwaitCondition:
    def test_true_immediately_does_not_sleep(self) -> None:
        clock = FakeClock()

        assert await_condition(lambda: True, 5.0, 0.5, clock=clock, sleep_func=clock.sleep)
        assert clock.sleeps == []

    def test_never_true_times_out(self) -> None:
        clock = FakeClock()

        assert await_condition(lambda: False, 0.5, 0.05, clock=clock, sleep_func=clock.sleep) is False
        assert clock.now - 1000.0 == pytest.approx(0.5)

    def test_polls_at_fixed_interval(self) -> None:
        clock = FakeClock()
        results = iter([False, False, True])

        assert await_condition(lambda: next(results), 10.0, 1.0, clock=clock, sleep_func=clock.sleep)
        assert clock.sleeps == [1.0, 1.0]

    def test_last_sleep_trimmed_to_deadline(self) -> None:
        clock = FakeClock()

        await_condition(lambda: False, 2.5, 1.0, clock=clock, sleep_func=clock.sleep)

        assert clock.sleeps == pytest.approx([1.0, 1.0, 0.5])

    def test_zero_timeout_checks_once(self) -> None:
        clock = FakeClock()
        calls: list[int] = []

        def predicate() -> bool:
            calls.append(1)
            return False

        assert not await_condition(predicate, 0.0, 0.1, clock=clock, sleep_func=clock.sleep)
        assert len(calls) == 1

    def test_raising_predicate_counts_as_not_yet(self) -> None:
        clock = FakeClock()
        outcomes = iter([RuntimeError("page reloading"), True])

        def predicate() -> bool:
            value = next(outcomes)
            if isinstance(value, Exception):
                raise value
            return value

        assert await_condition(predicate, 5.0, 1.0, clock=clock, sleep_func=clock.sleep)

    def test_keyboard_interrupt_propagates(self) -> None:
        def predicate() -> bool:
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            await_condition(predicate, 1.0, 0.1)

    @pytest.mark.parametrize(("timeout", "interval"), [(-1.0, 0.1), (1.0, 0.0), (1.0, -0.5)])
    def test_invalid_arguments(self, timeout: float, interval: float) -> None:
        with pytest.raises(ValueError):
            await_condition(lambda: True, timeout, interval)


class TestPollFor:
    def test_returns_probed_value(self) -> None:
        clock = FakeClock()
        values = iter([None, None, "report.xlsx"])

        assert poll_for(lambda: next(values), 10.0, 1.0, clock=clock, sleep_func=clock.sleep) == "report.xlsx"

    def test_none_on_timeout(self) -> None:
        clock = FakeClock()

        assert poll_for(lambda: None, 3.0, 1.0, clock=clock, sleep_func=clock.sleep) is None
        assert sum(clock.sleeps) == pytest.approx(3.0)
