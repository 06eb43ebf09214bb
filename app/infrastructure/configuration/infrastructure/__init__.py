"""Infrastructure settings: retry, dead letter queue, scheduler, monitoring."""

from infrastructure.configuration.infrastructure.dead_letter import DeadLetterSettings
from infrastructure.configuration.infrastructure.monitoring import MonitoringSettings
from infrastructure.configuration.infrastructure.retry import RetrySettings
from infrastructure.configuration.infrastructure.scheduler import SchedulerSettings

__all__ = [
    "DeadLetterSettings",
    "MonitoringSettings",
    "RetrySettings",
    "SchedulerSettings",
]
