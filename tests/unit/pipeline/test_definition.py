"""Tests for StepDefinition and PipelineDefinition."""

from __future__ import annotations

import pytest

from tests.factories import make_config, make_definition, make_step
from voucher_pipeline.core.config import RetryPolicies, StepConfig
from voucher_pipeline.pipeline.definition import PipelineDefinition, StepDefinition


class TestStepDefinition:
    def test_name_required(self) -> None:
        with pytest.raises(ValueError, match="name"):
            StepDefinition(1, "", lambda ctx: None)

    def test_provides_must_be_fact_fields(self) -> None:
        with pytest.raises(ValueError, match="unknown context fields"):
            make_step(1, provides={"credentials"})

    def test_sets_coerced_to_frozenset(self) -> None:
        step = make_step(1, requires={"parameter"}, provides={"main_window"})

        assert step.requires == frozenset({"parameter"})
        assert isinstance(step.provides, frozenset)


class TestPipelineDefinition:
    def test_iterates_in_order(self) -> None:
        definition = make_definition()

        assert [s.name for s in definition] == ["step-1", "step-2", "step-3"]
        assert len(definition) == 3

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError, match="no steps"):
            PipelineDefinition("empty", [])

    @pytest.mark.parametrize("ordinals", [[1, 1], [2, 1], [1, 3, 2]])
    def test_ordinals_must_strictly_increase(self, ordinals: list[int]) -> None:
        steps = [make_step(o, name=f"s{i}") for i, o in enumerate(ordinals)]

        with pytest.raises(ValueError, match="strictly increase"):
            PipelineDefinition("p", steps)

    def test_gaps_between_ordinals_allowed(self) -> None:
        definition = PipelineDefinition("p", [make_step(1), make_step(5), make_step(10)])

        assert definition.fingerprint_items() == [(1, "step-1"), (5, "step-5"), (10, "step-10")]

    def test_duplicate_names_rejected(self) -> None:
        with pytest.raises(ValueError, match="Duplicate"):
            PipelineDefinition("p", [make_step(1, name="a"), make_step(2, name="a")])

    def test_requires_seeded_field_ok(self) -> None:
        PipelineDefinition("p", [make_step(1, requires={"parameter", "browser"})])

    def test_requires_provided_by_earlier_step(self) -> None:
        PipelineDefinition(
            "p",
            [make_step(1, provides={"main_window"}), make_step(2, requires={"main_window"})],
        )

    def test_requires_provided_by_later_step_rejected(self) -> None:
        with pytest.raises(ValueError, match="main_window"):
            PipelineDefinition(
                "p",
                [make_step(1, requires={"main_window"}), make_step(2, provides={"main_window"})],
            )

    def test_get(self) -> None:
        definition = make_definition()

        assert definition.get("step-2").ordinal == 2
        assert definition.get("nope") is None


class TestApplyOverrides:
    def test_disable_and_replace_retry(self) -> None:
        definition = make_definition()
        config = make_config(
            steps=[
                StepConfig(name="step-2", enabled=False),
                StepConfig(name="step-3", retry=RetryPolicies.NETWORK),
            ]
        )

        overridden = definition.apply_overrides(config)

        assert overridden.get("step-1") is definition.get("step-1")
        assert overridden.get("step-2").enabled is False
        assert overridden.get("step-2").retry == RetryPolicies.NO_RETRY
        assert overridden.get("step-3").retry == RetryPolicies.NETWORK
        assert definition.get("step-2").enabled is True

    def test_unknown_step_rejected(self) -> None:
        config = make_config(steps=[StepConfig(name="ghost")])

        with pytest.raises(ValueError, match="ghost"):
            make_definition().apply_overrides(config)

    def test_no_overrides_keeps_steps(self) -> None:
        definition = make_definition()

        assert definition.apply_overrides(make_config()).steps == definition.steps
