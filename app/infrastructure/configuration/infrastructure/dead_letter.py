"""Dead letter queue infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class DeadLetterSettings(InfrastructureSettings):
    """Dead letter queue configuration.

    Environment Variables:
        DEAD_LETTER_STORE_ATTEMPTS: Storage write attempts before falling back
            to the critical log (default: 3)
        DEAD_LETTER_RETENTION_DAYS: Age after which entries are purged by the
            data cleanup task (default: 30)
    """

    store_attempts: int = Field(
        default=3,
        alias="DEAD_LETTER_STORE_ATTEMPTS",
        description="Storage write attempts before the entry is logged to the fallback",
    )
    retention_days: int = Field(
        default=30,
        alias="DEAD_LETTER_RETENTION_DAYS",
        description="Days to keep dead letter entries",
    )
