"""Notification models.

Platform-agnostic alert models. Tasks and monitoring define alert content;
delivery (email, Slack, webhook) is implemented outside this package behind
the Notifier protocol.
"""

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator


class Severity(Enum):
    """Alert severity levels.

    CRITICAL is reserved for conditions that risk losing work, such as a
    dead letter queue that cannot store an entry.
    """

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Alert(BaseModel):
    """Alert sent through a Notifier.

    Attributes:
        title: Short summary line
        message: Plain text body (required, non-empty)
        severity: Severity level (default: WARNING)
        metadata: Additional context for logging (task name, event id, ...)
    """

    title: str
    message: str
    severity: Severity = Severity.WARNING
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("title", "message")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure title and message are not empty."""
        if not v or not v.strip():
            raise ValueError("Alert title and message cannot be empty")
        return v
