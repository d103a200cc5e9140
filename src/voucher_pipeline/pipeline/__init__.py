"""The voucher pipeline: step definitions and the seven voucher steps."""

from voucher_pipeline.pipeline.definition import PipelineDefinition, StepDefinition
from voucher_pipeline.pipeline.steps import PIPELINE_NAME, Elements, build_voucher_pipeline

__all__ = [
    "Elements",
    "PIPELINE_NAME",
    "PipelineDefinition",
    "StepDefinition",
    "build_voucher_pipeline",
]
