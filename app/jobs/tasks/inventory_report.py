"""Periodic inventory report.

The report content belongs to the application; this task asks a
ReportSource for the text covering the period and delivers it through the
notifier.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from infrastructure.clock import Clock, SystemClock
from infrastructure.logging import get_module_logger
from infrastructure.notifications import Notifier, Severity, send_alert

logger = get_module_logger()


class ReportPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def length(self) -> timedelta:
        return timedelta(days=7) if self is ReportPeriod.WEEKLY else timedelta(days=30)


class ReportSource(Protocol):
    def build_report(self, period: ReportPeriod, start: datetime, end: datetime) -> str: ...


class InventoryReportTask:
    """Builds and sends the inventory analytics report."""

    name = "inventory-report"
    description = "Generate the inventory analytics report and send it to operators"

    def __init__(
        self,
        source: ReportSource,
        notifier: Notifier,
        clock: Optional[Clock] = None,
        period: ReportPeriod = ReportPeriod.WEEKLY,
    ) -> None:
        self._source = source
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._period = period

    def run_body(self) -> Dict[str, Any]:
        end = self._clock.now()
        start = end - self._period.length
        report = self._source.build_report(self._period, start, end)
        if not report or not report.strip():
            raise ValueError(f"Empty {self._period.value} inventory report")

        title = f"{self._period.value.capitalize()} Inventory Report"
        if not send_alert(self._notifier, title, report, Severity.INFO, period=self._period.value):
            raise RuntimeError(f"Failed to deliver {self._period.value} inventory report")

        logger.info(
            "inventory_report_sent",
            period=self._period.value,
            period_start=start.isoformat(),
            period_end=end.isoformat(),
            length=len(report),
        )
        return {
            "period": self._period.value,
            "period_start": start.isoformat(),
            "period_end": end.isoformat(),
            "report_length": len(report),
        }
