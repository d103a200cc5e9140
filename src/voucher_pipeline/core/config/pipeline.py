"""Top-level automation configuration models."""

from dataclasses import dataclass, field
from typing import Any

from .hooks import LoggingConfig
from .step import StepConfig


@dataclass
class ErpConfig:
    """Connection and navigation settings for the ERP session."""

    url: str
    """ERP landing page URL (required)"""

    ready_timeout_seconds: float = 8.0
    """How long to wait for the page to settle after login (default: 8.0)"""

    data_table_timeout_seconds: float = 15.0
    """How long to wait for an inquiry result grid (default: 15.0)"""

    receiving_inquiry_target: str = "receiving-inquiry"
    """Logical navigation target of the purchase receipt inquiry"""

    pending_invoice_target: str = "pending-vendor-invoices"
    """Logical navigation target of the pending vendor invoice list"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.url:
            raise ValueError("erp.url is required")
        if self.ready_timeout_seconds <= 0 or self.data_table_timeout_seconds <= 0:
            raise ValueError("ERP timeouts must be positive")


@dataclass
class WorkbookColumns:
    """Column letters of the exported receipt workbook."""

    filter_key: str = "A"
    """Column compared against the cycle parameter"""

    grouping_key: str = "B"
    """Column holding the purchase order grouping key"""

    match_value: str = "I"
    """Column holding the value used to find the invoice again"""

    due_date: str = "AT"
    """Column holding the fixed due date"""

    amount: str = "AU"
    """Column holding the aggregated amount"""

    invoice_date: str = "AV"
    """Column holding the invoice date"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in ("filter_key", "grouping_key", "match_value", "due_date", "amount", "invoice_date"):
            value = getattr(self, name)
            if not value or not value.isalpha():
                raise ValueError(f"columns.{name} must be a column letter, got {value!r}")
            setattr(self, name, value.upper())


@dataclass
class WorkbookConfig:
    """Where the exported workbook lands and how it is transformed."""

    download_dir: str = "~/Downloads"
    """Directory the browser downloads into (default: ~/Downloads)"""

    extensions: list[str] = field(default_factory=lambda: [".xlsx", ".xls"])
    """Accepted workbook file extensions"""

    recency_minutes: float = 5.0
    """Only files modified within this window count as fresh downloads (default: 5)"""

    download_timeout_seconds: float = 60.0
    """How long to wait for the export to appear (default: 60.0)"""

    poll_interval_seconds: float = 1.0
    """Polling interval while waiting for the export (default: 1.0)"""

    transform_command: list[str] = field(default_factory=list)
    """External command running the transform macro; ``{path}`` is replaced (empty: no transform)"""

    transform_timeout_seconds: float = 300.0
    """Upper bound for the transform command (default: 300.0)"""

    columns: WorkbookColumns = field(default_factory=WorkbookColumns)
    """Column layout of the exported workbook"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.extensions:
            raise ValueError("At least one workbook extension is required")
        if self.recency_minutes <= 0:
            raise ValueError("recency_minutes must be positive")
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if self.download_timeout_seconds < self.poll_interval_seconds:
            raise ValueError("download_timeout_seconds must be >= poll_interval_seconds")


@dataclass
class ApprovalConfig:
    """Settings for routing the approval through the groupware."""

    title_prefix: str = "Purchase invoice"
    """Prefix of the approval request title"""

    window_timeout_seconds: float = 30.0
    """How long to wait for the groupware window to open (default: 30.0)"""

    poll_interval_seconds: float = 0.5
    """Polling interval while waiting for the window (default: 0.5)"""


@dataclass
class BatchConfig:
    """Cycle orchestration settings."""

    inter_cycle_delay_seconds: float = 5.0
    """Pause between cycles to let external systems settle (default: 5.0)"""

    default_parameter: int = 3
    """Parameter used by single-cycle runs (default: 3)"""

    abort_on_first_cycle_failure: bool = True
    """Stop the whole batch when the first cycle fails (default: True)"""

    keep_session_open_on_fatal: bool = True
    """Leave the browser open for inspection after a fatal abort (default: True)"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.inter_cycle_delay_seconds < 0:
            raise ValueError("inter_cycle_delay_seconds must not be negative")


@dataclass
class PeriodConfig:
    """Accounting period whose receipts are processed."""

    year: int | None = None
    """Year of the period; the current year when unset"""

    month: int | None = None
    """Month of the period; the current month when unset"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError("period.month must be between 1 and 12")


@dataclass
class AdaptersConfig:
    """Where the collaborator adapters come from."""

    factory: str | None = None
    """Fully qualified class path of the session factory (optional)"""

    options: dict[str, Any] = field(default_factory=dict)
    """Keyword options handed to the factory (default: {})"""


@dataclass
class AutomationConfig:
    """Top-level configuration for the voucher automation.

    Steps themselves are defined in code; this object carries the
    collaborators they run against, the batch policy, and per-step
    overrides.
    """

    name: str
    """Pipeline name (required)"""

    version: str
    """Pipeline version (required)"""

    erp: ErpConfig
    """ERP connection settings (required)"""

    workbook: WorkbookConfig = field(default_factory=WorkbookConfig)
    """Workbook discovery and transform settings"""

    approval: ApprovalConfig = field(default_factory=ApprovalConfig)
    """Groupware approval settings"""

    batch: BatchConfig = field(default_factory=BatchConfig)
    """Cycle orchestration settings"""

    period: PeriodConfig = field(default_factory=PeriodConfig)
    """Accounting period (default: current month)"""

    steps: list[StepConfig] = field(default_factory=list)
    """Per-step overrides (default: [])"""

    adapters: AdaptersConfig = field(default_factory=AdaptersConfig)
    """Collaborator adapter factory"""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    """Logging configuration"""

    checkpoint_dir: str | None = None
    """Directory for batch checkpoints (optional)"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.name:
            raise ValueError("name is required")

        if not self.version:
            raise ValueError("version is required")

        step_names = [s.name for s in self.steps]
        if len(step_names) != len(set(step_names)):
            raise ValueError("Step overrides must be unique per step name")

    def get_step_override(self, name: str) -> StepConfig | None:
        """Get the override for a step by name.

        Args:
            name: Step name to look up.

        Returns:
            StepConfig if found, None otherwise.
        """
        for step in self.steps:
            if step.name == name:
                return step
        return None
