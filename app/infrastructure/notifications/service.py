"""Notifier interface and delivery helpers."""

from typing import Any, Protocol

from pydantic import ValidationError

from infrastructure.logging import get_module_logger
from infrastructure.notifications.models import Alert, Severity

logger = get_module_logger()

_LOG_METHODS = {
    Severity.INFO: "info",
    Severity.WARNING: "warning",
    Severity.ERROR: "error",
    Severity.CRITICAL: "critical",
}


class Notifier(Protocol):
    """Outbound alert delivery (email, Slack, webhook, ...).

    Implementations may raise on delivery failure; callers inside this
    package go through send_alert(), which never lets a delivery failure
    escape.
    """

    def notify(self, title: str, message: str, severity: Severity) -> None: ...


class LoggingNotifier:
    """Notifier that writes alerts to the structured log.

    Used when no external delivery channel is configured, and as the
    last-resort sink when one fails.
    """

    def notify(self, title: str, message: str, severity: Severity) -> None:
        log_method = getattr(logger, _LOG_METHODS.get(severity, "warning"))
        log_method("alert_raised", title=title, message=message, severity=severity.value)


def send_alert(
    notifier: Notifier,
    title: str,
    message: str,
    severity: Severity = Severity.WARNING,
    **metadata: Any,
) -> bool:
    """Deliver an alert, logging instead of raising on failure.

    Args:
        notifier: Delivery channel
        title: Alert title
        message: Alert body
        severity: Alert severity
        **metadata: Extra context recorded in the log entry

    Returns:
        True if the notifier accepted the alert, False otherwise.
    """
    try:
        alert = Alert(title=title, message=message, severity=severity, metadata=metadata)
    except ValidationError as e:
        logger.error("alert_invalid", title=title, error=str(e), **metadata)
        return False

    try:
        notifier.notify(alert.title, alert.message, alert.severity)
    except Exception as e:
        logger.error(
            "alert_delivery_failed",
            title=alert.title,
            severity=alert.severity.value,
            error=str(e),
            **metadata,
        )
        return False

    logger.debug("alert_sent", title=alert.title, severity=alert.severity.value, **metadata)
    return True
