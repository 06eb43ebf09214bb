"""Event retry infrastructure settings."""

from typing import Optional

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class RetrySettings(InfrastructureSettings):
    """Retry configuration for asynchronously dispatched domain events.

    These values build the default retry policy used by the event retry
    executor when a handler is subscribed without its own policy.

    Environment Variables:
        RETRY_MAX_ATTEMPTS: Attempts per event before dead-lettering (default: 3)
        RETRY_INITIAL_DELAY_SECONDS: Delay before the second attempt (default: 1.0)
        RETRY_MAX_DELAY_SECONDS: Cap for the exponential backoff (default: 30.0)
        RETRY_BACKOFF_MULTIPLIER: Growth factor between attempts (default: 2.0)
        RETRY_JITTER_ENABLED: Randomize delays downward (default: True)
        RETRY_JITTER_SEED: Optional seed for the jitter random source
        RETRY_DISPATCH_WORKERS: Threads used to run event handlers (default: 4)
        RETRY_LEDGER_RETENTION_DAYS: Age after which terminal ledger markers are pruned

    Exponential Backoff:
        Delay calculation: min(max_delay, initial_delay * multiplier ** (attempt - 1))

        Example with defaults (initial=1s, multiplier=2, max=30s):
            After attempt 1: 1s
            After attempt 2: 2s
            After attempt 3: 4s
            ...capped at 30s

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()
        policy = RetryPolicy.from_settings(settings.retry)
        ```
    """

    max_attempts: int = Field(
        default=3,
        alias="RETRY_MAX_ATTEMPTS",
        description="Maximum attempts per event before moving to the dead letter queue",
    )
    initial_delay_seconds: float = Field(
        default=1.0,
        alias="RETRY_INITIAL_DELAY_SECONDS",
        description="Delay before the first retry (seconds)",
    )
    max_delay_seconds: float = Field(
        default=30.0,
        alias="RETRY_MAX_DELAY_SECONDS",
        description="Maximum delay between retries (seconds)",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        alias="RETRY_BACKOFF_MULTIPLIER",
        description="Exponential backoff multiplier, must be greater than 1.0",
    )
    jitter_enabled: bool = Field(
        default=True,
        alias="RETRY_JITTER_ENABLED",
        description="Randomize each delay within [50%, 100%] of its computed value",
    )
    jitter_seed: Optional[int] = Field(
        default=None,
        alias="RETRY_JITTER_SEED",
        description="Seed for the jitter random source (deterministic delays)",
    )
    dispatch_workers: int = Field(
        default=4,
        alias="RETRY_DISPATCH_WORKERS",
        description="Worker threads used to dispatch events to handlers",
    )
    ledger_retention_days: int = Field(
        default=30,
        alias="RETRY_LEDGER_RETENTION_DAYS",
        description="Days to keep terminal retry ledger markers",
    )
