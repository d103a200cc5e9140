"""Per-step configuration overrides."""

from dataclasses import dataclass

from voucher_pipeline.core.config.retry import RetryConfig


@dataclass
class StepConfig:
    """Override for one named pipeline step.

    Steps are defined in code; configuration can only switch them off or
    replace their retry policy.
    """

    name: str
    """Name of the step being overridden (required)"""

    enabled: bool = True
    """Whether the step runs; a disabled step is recorded as skipped (default: True)"""

    retry: RetryConfig | None = None
    """Replacement retry policy (optional)"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.name:
            raise ValueError("name is required")
