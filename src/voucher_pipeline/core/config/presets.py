"""Pre-built retry policies for the voucher steps.

These presets are instances, not factories.  If you need to modify a
preset, create a new instance instead of mutating these.
"""

from voucher_pipeline.core.config.retry import RetryConfig


class RetryPolicies:
    """Pre-built retry policies for common use cases.

    Example:
        >>> from voucher_pipeline.core.config import RetryPolicies
        >>> config = RetryPolicies.TRANSIENT_UI
        >>> print(config.max_attempts)  # 3
    """

    # Single attempt, no retries.  Used for steps with side effects that
    # must not be repeated (macro runs, approval submission).
    NO_RETRY: RetryConfig = RetryConfig(max_attempts=1)

    # Default retry policy: 3 attempts, 1s initial delay, 2x backoff.
    DEFAULT: RetryConfig = RetryConfig()

    # Element lookups and page settling: quick, short retries.
    TRANSIENT_UI: RetryConfig = RetryConfig(
        max_attempts=3,
        initial_delay_seconds=1.0,
        backoff_multiplier=1.5,
        max_delay_seconds=10.0,
    )

    # ERP page loads: three attempts starting 2s apart; network failures
    # back off further on top of that.
    NETWORK: RetryConfig = RetryConfig(
        max_attempts=3,
        initial_delay_seconds=2.0,
        max_delay_seconds=30.0,
    )
