"""Logging configuration models."""

from dataclasses import dataclass

from voucher_pipeline.core.config.base import LogFormat, LogLevel


@dataclass
class LoggingConfig:
    """Configuration for logging behavior."""

    level: LogLevel = LogLevel.INFO
    """Logging level (default: INFO)"""

    format: LogFormat = LogFormat.TEXT
    """Log output format (default: text)"""

    output: str = "stderr"
    """Log output destination - stdout, stderr, or file path (default: stderr)"""
