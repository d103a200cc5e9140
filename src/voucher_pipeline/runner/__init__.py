"""Pipeline runner: hooks, execution, and orchestration."""

from voucher_pipeline.runner.batch import BatchController
from voucher_pipeline.runner.checkpoint import (
    BatchCheckpointState,
    CheckpointHooks,
    CheckpointStore,
    LocalCheckpointStore,
    PipelineDefinitionChangedError,
    compute_pipeline_fingerprint,
    load_checkpoint_for_resume,
)
from voucher_pipeline.runner.cycle_runner import PipelineRunner
from voucher_pipeline.runner.hooks import (
    CompositeHooks,
    NoOpHooks,
    PipelineHooks,
)
from voucher_pipeline.runner.hooks_builtin import (
    LoggingHooks,
    MetricsHooks,
    ProgressCallbackHooks,
)
from voucher_pipeline.runner.result import (
    BatchResult,
    CycleResult,
    StepOutcome,
    StepStatus,
)
from voucher_pipeline.runner.step_executor import StepExecutor

__all__ = [
    "BatchCheckpointState",
    "BatchController",
    "BatchResult",
    "CheckpointHooks",
    "CheckpointStore",
    "CompositeHooks",
    "CycleResult",
    "LocalCheckpointStore",
    "LoggingHooks",
    "MetricsHooks",
    "NoOpHooks",
    "PipelineDefinitionChangedError",
    "PipelineHooks",
    "PipelineRunner",
    "ProgressCallbackHooks",
    "StepExecutor",
    "StepOutcome",
    "StepStatus",
    "compute_pipeline_fingerprint",
    "load_checkpoint_for_resume",
]
