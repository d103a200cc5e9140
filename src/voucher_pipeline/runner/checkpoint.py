"""Checkpoint and resume for batches of cycles.

Tracks which parameters completed so that an interrupted or partially
failed batch can be resumed with only the remaining parameters.  Cycles
are the unit of recovery: a cycle that failed half-way is run again from
its first step, because the external systems keep no resumable state.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from voucher_pipeline.pipeline.definition import PipelineDefinition, StepDefinition
from voucher_pipeline.runner.hooks import NoOpHooks
from voucher_pipeline.runner.result import BatchResult, CycleResult, StepOutcome

logger = logging.getLogger(__name__)

_VALID_STATUSES = frozenset({"in_progress", "completed", "failed"})


# ------------------------------------------------------------------
# Exception
# ------------------------------------------------------------------


class PipelineDefinitionChangedError(Exception):
    """Raised when a checkpoint's fingerprint doesn't match the current pipeline."""

    def __init__(self, run_id: str, pipeline_name: str) -> None:
        self.run_id = run_id
        self.pipeline_name = pipeline_name
        super().__init__(
            f"Pipeline definition changed since checkpoint was saved (run_id={run_id!r}, pipeline={pipeline_name!r})"
        )


# ------------------------------------------------------------------
# State model
# ------------------------------------------------------------------


@dataclass
class BatchCheckpointState:
    """Serialisable snapshot of batch progress."""

    run_id: str
    pipeline_name: str
    pipeline_fingerprint: str
    parameters: list[Any] = field(default_factory=list)
    completed_parameters: list[Any] = field(default_factory=list)
    failed_parameters: list[Any] = field(default_factory=list)
    current_cycle: dict[str, Any] | None = None
    status: str = "in_progress"
    created_at: str = ""
    updated_at: str = ""

    def __post_init__(self) -> None:
        if not self.run_id:
            raise ValueError("run_id must not be empty")
        if not self.pipeline_name:
            raise ValueError("pipeline_name must not be empty")
        if not self.pipeline_fingerprint:
            raise ValueError("pipeline_fingerprint must not be empty")
        if self.status not in _VALID_STATUSES:
            raise ValueError(f"Invalid status {self.status!r}; must be one of {sorted(_VALID_STATUSES)}")


# ------------------------------------------------------------------
# Storage protocol
# ------------------------------------------------------------------


class CheckpointStore(Protocol):
    """Abstract checkpoint persistence layer."""

    def save(self, state: BatchCheckpointState) -> None:
        """Persist *state* (upsert semantics)."""
        ...

    def load(self, run_id: str, pipeline_name: str) -> BatchCheckpointState | None:
        """Load a checkpoint, or return ``None`` if it doesn't exist."""
        ...

    def delete(self, run_id: str, pipeline_name: str) -> None:
        """Delete a checkpoint.  No-op if it doesn't exist."""
        ...

    def exists(self, run_id: str, pipeline_name: str) -> bool:
        """Return whether a checkpoint exists."""
        ...


# ------------------------------------------------------------------
# Local filesystem implementation
# ------------------------------------------------------------------


class LocalCheckpointStore:
    """File-backed checkpoint store using atomic write-then-rename.

    Layout::

        {base_dir}/{pipeline_name}/{run_id}.json
    """

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = base_dir

    def _path_for(self, run_id: str, pipeline_name: str) -> Path:
        return self._base_dir / pipeline_name / f"{run_id}.json"

    def save(self, state: BatchCheckpointState) -> None:
        target = self._path_for(state.run_id, state.pipeline_name)
        target.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(asdict(state), indent=2, default=str)
        # Atomic write: write to tmp in same dir, then rename
        fd, tmp_path_str = tempfile.mkstemp(dir=str(target.parent), suffix=".tmp")
        tmp_path = Path(tmp_path_str)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
            tmp_path.replace(target)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def load(self, run_id: str, pipeline_name: str) -> BatchCheckpointState | None:
        target = self._path_for(run_id, pipeline_name)
        if not target.exists():
            return None
        data = json.loads(target.read_text(encoding="utf-8"))
        return BatchCheckpointState(**data)

    def delete(self, run_id: str, pipeline_name: str) -> None:
        self._path_for(run_id, pipeline_name).unlink(missing_ok=True)

    def exists(self, run_id: str, pipeline_name: str) -> bool:
        return self._path_for(run_id, pipeline_name).exists()


# ------------------------------------------------------------------
# Pipeline fingerprint
# ------------------------------------------------------------------


def compute_pipeline_fingerprint(definition: PipelineDefinition) -> str:
    """Compute a SHA-256 fingerprint of a pipeline's structural identity.

    Includes each step's ordinal and name.  Intentionally ignores retry
    policies and ``enabled`` flags so that tuning between runs doesn't
    invalidate checkpoints.
    """
    hasher = hashlib.sha256()
    hasher.update(definition.name.encode())
    for ordinal, name in definition.fingerprint_items():
        hasher.update(f"{ordinal}:{name};".encode())
    return hasher.hexdigest()


# ------------------------------------------------------------------
# Hooks
# ------------------------------------------------------------------


class CheckpointHooks(NoOpHooks):
    """Batch hooks that persist checkpoint state on lifecycle events.

    Designed to be composed via ``CompositeHooks`` alongside other hooks.
    On resume an existing checkpoint is extended rather than replaced.
    """

    def __init__(
        self,
        store: CheckpointStore,
        run_id: str,
        pipeline_fingerprint: str,
        now_func: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._run_id = run_id
        self._pipeline_fingerprint = pipeline_fingerprint
        self._now = now_func or (lambda: datetime.now(timezone.utc))
        self._state: BatchCheckpointState | None = None

    @property
    def state(self) -> BatchCheckpointState | None:
        return self._state

    def before_batch(self, pipeline_name: str, parameters: list[Any]) -> None:
        now = self._now().isoformat()
        existing = self._store.load(self._run_id, pipeline_name)
        if existing is not None and existing.pipeline_fingerprint == self._pipeline_fingerprint:
            existing.status = "in_progress"
            existing.failed_parameters = []
            existing.updated_at = now
            for parameter in parameters:
                if parameter not in existing.parameters:
                    existing.parameters.append(parameter)
            self._state = existing
        else:
            self._state = BatchCheckpointState(
                run_id=self._run_id,
                pipeline_name=pipeline_name,
                pipeline_fingerprint=self._pipeline_fingerprint,
                parameters=list(parameters),
                created_at=now,
                updated_at=now,
            )
        self._save()

    def after_batch(self, pipeline_name: str, result: BatchResult) -> None:
        if self._state is None:
            return
        self._state.status = "completed" if result.success else "failed"
        self._state.current_cycle = None
        self._save()

    def before_cycle(self, cycle: int, parameter: Any, correlation_id: str) -> None:
        if self._state is None:
            return
        self._state.current_cycle = {
            "cycle": cycle,
            "parameter": parameter,
            "correlation_id": correlation_id,
            "steps": [],
        }
        self._save()

    def after_step(self, step: StepDefinition, outcome: StepOutcome, cycle: int) -> None:
        if self._state is None or self._state.current_cycle is None:
            return
        self._state.current_cycle["steps"].append(outcome.to_dict())
        self._save()

    def after_cycle(self, result: CycleResult) -> None:
        if self._state is None:
            return
        if result.success:
            self._state.completed_parameters.append(result.parameter)
        else:
            self._state.failed_parameters.append(result.parameter)
        self._state.current_cycle = None
        self._save()

    def _save(self) -> None:
        assert self._state is not None
        self._state.updated_at = self._now().isoformat()
        self._store.save(self._state)


# ------------------------------------------------------------------
# Resume helper
# ------------------------------------------------------------------


def load_checkpoint_for_resume(
    store: CheckpointStore,
    run_id: str,
    definition: PipelineDefinition,
) -> list[Any]:
    """Load a checkpoint and return the parameters that already completed.

    Args:
        store: Checkpoint storage backend.
        run_id: Run identifier to resume.
        definition: Current pipeline definition (used for fingerprint
            validation).

    Returns:
        Parameters whose cycles succeeded in the prior run.

    Raises:
        ValueError: If no checkpoint exists for *run_id*.
        PipelineDefinitionChangedError: If the pipeline fingerprint has
            changed since the checkpoint was saved.
    """
    state = store.load(run_id, definition.name)
    if state is None:
        raise ValueError(f"No checkpoint found for run_id={run_id!r}, pipeline={definition.name!r}")

    if state.pipeline_fingerprint != compute_pipeline_fingerprint(definition):
        raise PipelineDefinitionChangedError(run_id, definition.name)

    logger.info("Resuming run %s: %d parameter(s) already completed", run_id, len(state.completed_parameters))
    return list(state.completed_parameters)
