"""Notification interface.

Exports:
    Notifier: Protocol implemented by external delivery channels
    LoggingNotifier: Default notifier writing alerts to the log
    send_alert: Deliver an alert without ever raising
    Alert, Severity: Alert models
"""

from infrastructure.notifications.models import Alert, Severity
from infrastructure.notifications.service import LoggingNotifier, Notifier, send_alert

__all__ = [
    "Alert",
    "Severity",
    "Notifier",
    "LoggingNotifier",
    "send_alert",
]
