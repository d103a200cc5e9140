"""Configuration models for voucher-pipeline.

This package provides dataconf-based configuration models for describing
the voucher automation in a type-safe, declarative manner using HOCON
format.
"""

from voucher_pipeline.core.config.base import LogFormat, LogLevel
from voucher_pipeline.core.config.hooks import LoggingConfig
from voucher_pipeline.core.config.loader import load_from_env, load_from_file, load_from_string
from voucher_pipeline.core.config.pipeline import (
    AdaptersConfig,
    ApprovalConfig,
    AutomationConfig,
    BatchConfig,
    ErpConfig,
    PeriodConfig,
    WorkbookColumns,
    WorkbookConfig,
)
from voucher_pipeline.core.config.presets import RetryPolicies
from voucher_pipeline.core.config.retry import RetryConfig
from voucher_pipeline.core.config.step import StepConfig

__all__ = [
    "AdaptersConfig",
    "ApprovalConfig",
    "AutomationConfig",
    "BatchConfig",
    "ErpConfig",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "PeriodConfig",
    "RetryConfig",
    "RetryPolicies",
    "StepConfig",
    "WorkbookColumns",
    "WorkbookConfig",
    "load_from_env",
    "load_from_file",
    "load_from_string",
]
