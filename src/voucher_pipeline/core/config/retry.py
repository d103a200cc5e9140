"""Retry configuration models."""

from dataclasses import dataclass, field

from voucher_pipeline.core.errors import ErrorKind


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    Implements exponential backoff with configurable parameters.  Only
    ``transient_ui`` and ``network`` failures can ever be retried; data
    integrity and fatal failures always fail on the first attempt.
    """

    max_attempts: int = 3
    """Maximum number of attempts, including the first one (default: 3)"""

    initial_delay_seconds: float = 1.0
    """Initial delay between attempts in seconds (default: 1.0)"""

    max_delay_seconds: float = 60.0
    """Maximum delay between attempts in seconds (default: 60.0)"""

    backoff_multiplier: float = 2.0
    """Multiplier for exponential backoff (default: 2.0)"""

    network_delay_factor: float = 2.0
    """Extra multiplier applied to delays after a network failure (default: 2.0)"""

    retry_on: list[str] = field(default_factory=lambda: [ErrorKind.TRANSIENT_UI.value, ErrorKind.NETWORK.value])
    """Error kinds to retry on (default: ['transient_ui', 'network'])"""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must not be negative")
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise ValueError("max_delay_seconds must be >= initial_delay_seconds")
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")
        if self.network_delay_factor < 1.0:
            raise ValueError("network_delay_factor must be >= 1.0")
        for name in self.retry_on:
            try:
                kind = ErrorKind(name)
            except ValueError:
                raise ValueError(f"Unknown error kind in retry_on: {name!r}") from None
            if not kind.retryable:
                raise ValueError(f"Error kind {name!r} is never retryable")

    @property
    def retryable_kinds(self) -> frozenset[ErrorKind]:
        """Return ``retry_on`` as a set of :class:`ErrorKind` values."""
        return frozenset(ErrorKind(name) for name in self.retry_on)
