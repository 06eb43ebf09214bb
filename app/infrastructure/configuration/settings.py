"""Background job configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from infrastructure.configuration.infrastructure import (
    DeadLetterSettings,
    MonitoringSettings,
    RetrySettings,
    SchedulerSettings,
)


class Settings(BaseSettings):
    """Configuration settings - main aggregator.

    Aggregates the per-concern settings into a single configuration object:

    - **retry**: default event retry policy and dispatch pool
    - **dead_letter**: dead letter storage behavior
    - **scheduler**: task driver and built-in task schedules
    - **monitoring**: task history, performance window, alert thresholds

    Environment Variables:
        PREFIX: Environment prefix for non-production deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking
    """

    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    retry: RetrySettings
    dead_letter: DeadLetterSettings
    scheduler: SchedulerSettings
    monitoring: MonitoringSettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            "retry": RetrySettings,
            "dead_letter": DeadLetterSettings,
            "scheduler": SchedulerSettings,
            "monitoring": MonitoringSettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
