"""Low stock alert processing.

What counts as low stock is decided by the InventoryMonitor collaborator.
This task only runs during business hours, suppresses repeat alerts for a
product within a cooldown, caps the number of alerts sent per hour, and
publishes an `inventory.low_stock` event per alert for downstream handlers.
"""

from collections import deque
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Protocol

from infrastructure.clock import Clock, SystemClock
from infrastructure.events import Event
from infrastructure.logging import get_module_logger
from infrastructure.notifications import Notifier, Severity, send_alert

logger = get_module_logger()

LOW_STOCK_EVENT_TYPE = "inventory.low_stock"


class StockSeverity(str, Enum):
    LOW = "LOW"
    CRITICAL = "CRITICAL"
    OUT_OF_STOCK = "OUT_OF_STOCK"


@dataclass(frozen=True)
class LowStockAlert:
    product_id: int
    product_name: str
    sku: str
    current_stock: int
    reorder_level: int
    severity: StockSeverity = StockSeverity.LOW
    supplier_name: Optional[str] = None
    recommendation: Optional[str] = None

    @property
    def is_urgent(self) -> bool:
        return self.severity in (StockSeverity.CRITICAL, StockSeverity.OUT_OF_STOCK)


class InventoryMonitor(Protocol):
    def check_low_stock_levels(self) -> List[LowStockAlert]: ...


class EventSink(Protocol):
    def publish(self, event: Event) -> Any: ...


def parse_clock_time(value: str) -> time:
    """Parse 'HH:MM' into a time."""
    try:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))
    except ValueError:
        raise ValueError(f"Invalid time of day '{value}', expected HH:MM") from None


class LowStockAlertTask:
    """Notifies operators about products running low."""

    name = "low-stock-alert"
    description = "Monitor inventory levels and send low stock alerts during business hours"

    def __init__(
        self,
        inventory: InventoryMonitor,
        notifier: Notifier,
        publisher: Optional[EventSink] = None,
        clock: Optional[Clock] = None,
        business_hours_start: str = "08:00",
        business_hours_end: str = "18:00",
        business_timezone: Optional[tzinfo] = None,
        cooldown_minutes: int = 60,
        max_alerts_per_hour: int = 10,
    ) -> None:
        self._inventory = inventory
        self._notifier = notifier
        self._publisher = publisher
        self._clock = clock or SystemClock()
        self._hours_start = parse_clock_time(business_hours_start)
        self._hours_end = parse_clock_time(business_hours_end)
        self._timezone = business_timezone
        self._cooldown = timedelta(minutes=cooldown_minutes)
        self._max_alerts_per_hour = max_alerts_per_hour
        self._recent_alerts: Dict[int, datetime] = {}
        self._sent_times: Deque[datetime] = deque()

    def is_business_hours(self, now: Optional[datetime] = None) -> bool:
        now = now or self._clock.now()
        if self._timezone is not None:
            now = now.astimezone(self._timezone)
        return self._hours_start <= now.time().replace(tzinfo=None) <= self._hours_end

    def run_body(self) -> Dict[str, Any]:
        now = self._clock.now()
        if not self.is_business_hours(now):
            logger.debug("low_stock_check_skipped", reason="outside_business_hours")
            return {"skipped": True, "reason": "outside_business_hours"}

        alerts = self._inventory.check_low_stock_levels()
        to_process = self._filter(alerts, now)

        urgent = [a for a in to_process if a.is_urgent]
        regular = [a for a in to_process if not a.is_urgent]

        notified = 0
        for alert in urgent:
            if send_alert(
                self._notifier,
                "CRITICAL STOCK ALERT",
                format_urgent_alert(alert),
                Severity.CRITICAL,
                product_id=alert.product_id,
            ):
                self._track(alert, now)
                notified += 1

        if regular and send_alert(
            self._notifier,
            "Low Stock Alert Summary",
            format_alert_digest(regular),
            Severity.WARNING,
            products=len(regular),
        ):
            for alert in regular:
                self._track(alert, now)
            notified += len(regular)

        published = self._publish(to_process)

        logger.info(
            "low_stock_alerts_processed",
            found=len(alerts),
            processed=len(to_process),
            urgent=len(urgent),
            regular=len(regular),
            notified=notified,
            published=published,
        )
        return {
            "found": len(alerts),
            "processed": len(to_process),
            "urgent": len(urgent),
            "regular": len(regular),
            "notified": notified,
            "events_published": published,
        }

    def cleanup_alert_tracking(self, max_age_hours: int = 24) -> int:
        """Forget products last alerted more than max_age_hours ago."""
        cutoff = self._clock.now() - timedelta(hours=max_age_hours)
        stale = [pid for pid, at in self._recent_alerts.items() if at < cutoff]
        for product_id in stale:
            del self._recent_alerts[product_id]
        logger.info("alert_tracking_cleaned_up", removed=len(stale), remaining=len(self._recent_alerts))
        return len(stale)

    def _filter(self, alerts: List[LowStockAlert], now: datetime) -> List[LowStockAlert]:
        hour_ago = now - timedelta(hours=1)
        while self._sent_times and self._sent_times[0] <= hour_ago:
            self._sent_times.popleft()
        budget = max(0, self._max_alerts_per_hour - len(self._sent_times))

        selected = []
        # Urgent alerts claim the hourly budget first.
        for alert in sorted(alerts, key=lambda a: not a.is_urgent):
            last = self._recent_alerts.get(alert.product_id)
            if last is not None and now - last < self._cooldown:
                logger.debug("low_stock_alert_suppressed", product_id=alert.product_id, last_alert=last.isoformat())
                continue
            if len(selected) >= budget:
                logger.warning(
                    "low_stock_alert_rate_limited",
                    product_id=alert.product_id,
                    max_alerts_per_hour=self._max_alerts_per_hour,
                )
                continue
            selected.append(alert)
        return selected

    def _track(self, alert: LowStockAlert, now: datetime) -> None:
        self._recent_alerts[alert.product_id] = now
        self._sent_times.append(now)

    def _publish(self, alerts: List[LowStockAlert]) -> int:
        if self._publisher is None:
            return 0
        published = 0
        for alert in alerts:
            event = Event(
                event_type=LOW_STOCK_EVENT_TYPE,
                aggregate_id=str(alert.product_id),
                occurred_at=self._clock.now(),
                payload={
                    "product_id": alert.product_id,
                    "sku": alert.sku,
                    "current_stock": alert.current_stock,
                    "reorder_level": alert.reorder_level,
                    "severity": alert.severity.value,
                },
            )
            try:
                self._publisher.publish(event)
                published += 1
            except Exception as e:
                logger.error("low_stock_event_publish_failed", product_id=alert.product_id, error=str(e))
        return published


def format_urgent_alert(alert: LowStockAlert) -> str:
    lines = [
        f"Product: {alert.product_name}",
        f"SKU: {alert.sku}",
        f"Current Stock: {alert.current_stock}",
        f"Reorder Level: {alert.reorder_level}",
        f"Severity: {alert.severity.value}",
    ]
    if alert.supplier_name:
        lines.append(f"Supplier: {alert.supplier_name}")
    if alert.recommendation:
        lines.extend(["", f"Recommendation: {alert.recommendation}"])
    lines.extend(["", "Immediate action required!"])
    return "\n".join(lines)


def format_alert_digest(alerts: List[LowStockAlert]) -> str:
    lines = [f"The following {len(alerts)} products are running low on stock:", ""]
    lines.extend(
        f"- {a.product_name} ({a.sku}) - Current: {a.current_stock}, Reorder: {a.reorder_level}"
        for a in alerts
    )
    lines.extend(["", "Please review and take appropriate action."])
    return "\n".join(lines)
