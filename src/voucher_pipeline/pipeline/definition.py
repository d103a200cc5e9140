"""Ordered, validated step definitions."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from voucher_pipeline.core.config.pipeline import AutomationConfig
from voucher_pipeline.core.config.presets import RetryPolicies
from voucher_pipeline.core.config.retry import RetryConfig
from voucher_pipeline.core.context import PipelineContext

logger = logging.getLogger(__name__)

StepOperation = Callable[[PipelineContext], Mapping[str, Any] | None]


@dataclass(frozen=True)
class StepDefinition:
    """One named step of the pipeline.

    Args:
        ordinal: Position of the step; strictly increasing within a pipeline.
        name: Unique step name, used in logs, results and config overrides.
        operation: Callable receiving the cycle context and returning the
            payload of context fields it produced (or ``None``).
        retry: Retry policy applied by the step executor.
        requires: Context fields that must be set before the step runs.
        provides: Context fields the step is allowed to write.
        critical: When ``False`` a non-fatal failure lets the cycle continue.
        enabled: Disabled steps are recorded as skipped.
    """

    ordinal: int
    name: str
    operation: StepOperation
    retry: RetryConfig = field(default_factory=lambda: RetryPolicies.NO_RETRY)
    requires: frozenset[str] = frozenset()
    provides: frozenset[str] = frozenset()
    critical: bool = True
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Step name is required")
        object.__setattr__(self, "requires", frozenset(self.requires))
        object.__setattr__(self, "provides", frozenset(self.provides))
        unknown = self.provides - PipelineContext.fact_fields()
        if unknown:
            raise ValueError(f"Step '{self.name}' provides unknown context fields: {', '.join(sorted(unknown))}")


class PipelineDefinition:
    """An immutable, validated sequence of steps.

    Construction checks that ordinals strictly increase, names are unique
    and every ``requires`` field is either seeded at cycle start or
    provided by an earlier step.

    Raises:
        ValueError: If any of the checks fails.
    """

    def __init__(self, name: str, steps: Iterable[StepDefinition]) -> None:
        self._name = name
        self._steps = tuple(steps)
        self._validate()

    @property
    def name(self) -> str:
        return self._name

    @property
    def steps(self) -> tuple[StepDefinition, ...]:
        return self._steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._steps)

    def get(self, name: str) -> StepDefinition | None:
        """Return the step called *name*, or ``None``."""
        for step in self._steps:
            if step.name == name:
                return step
        return None

    def fingerprint_items(self) -> list[tuple[int, str]]:
        """Return ``(ordinal, name)`` pairs identifying this definition."""
        return [(step.ordinal, step.name) for step in self._steps]

    def apply_overrides(self, config: AutomationConfig) -> PipelineDefinition:
        """Return a copy with ``enabled``/``retry`` overrides from *config* applied.

        Raises:
            ValueError: If an override names a step that does not exist.
        """
        known = {step.name for step in self._steps}
        unknown = [override.name for override in config.steps if override.name not in known]
        if unknown:
            raise ValueError(f"Overrides for unknown steps: {', '.join(unknown)}")

        steps = []
        for step in self._steps:
            override = config.get_step_override(step.name)
            if override is None:
                steps.append(step)
                continue
            logger.debug("Applying override to step '%s' (enabled=%s)", step.name, override.enabled)
            steps.append(
                dataclasses.replace(
                    step,
                    enabled=override.enabled,
                    retry=override.retry if override.retry is not None else step.retry,
                )
            )
        return PipelineDefinition(self._name, steps)

    def _validate(self) -> None:
        if not self._steps:
            raise ValueError(f"Pipeline '{self._name}' has no steps")

        seen_names: set[str] = set()
        available = set(PipelineContext.SEEDED_FIELDS)
        previous: int | None = None
        for step in self._steps:
            if previous is not None and step.ordinal <= previous:
                raise ValueError(
                    f"Step ordinals must strictly increase: '{step.name}' has {step.ordinal} after {previous}"
                )
            if step.name in seen_names:
                raise ValueError(f"Duplicate step name: '{step.name}'")
            missing = step.requires - available
            if missing:
                raise ValueError(
                    f"Step '{step.name}' requires fields no earlier step provides: {', '.join(sorted(missing))}"
                )
            previous = step.ordinal
            seen_names.add(step.name)
            available |= step.provides
