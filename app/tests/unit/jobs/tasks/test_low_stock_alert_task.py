"""Unit tests for LowStockAlertTask."""

from datetime import timedelta, timezone
from unittest.mock import MagicMock

import pytest

from infrastructure.notifications import Severity
from jobs.tasks.low_stock_alert import (
    LOW_STOCK_EVENT_TYPE,
    LowStockAlertTask,
    StockSeverity,
    format_alert_digest,
    format_urgent_alert,
    parse_clock_time,
)
from tests.factories.events import make_low_stock_alert

pytestmark = pytest.mark.unit


@pytest.fixture
def inventory():
    inventory = MagicMock()
    inventory.check_low_stock_levels.return_value = []
    return inventory


@pytest.fixture
def make_task(inventory, notifier, clock):
    def _make(**kwargs):
        return LowStockAlertTask(inventory, notifier, clock=clock, **kwargs)

    return _make


class TestBusinessHours:
    """Test the business hours window."""

    def test_skips_outside_business_hours(self, make_task, inventory, clock):
        clock.advance(9 * 3600)

        result = make_task().run_body()

        assert result == {"skipped": True, "reason": "outside_business_hours"}
        inventory.check_low_stock_levels.assert_not_called()

    def test_runs_inside_business_hours(self, make_task, inventory):
        result = make_task().run_body()

        assert result["found"] == 0
        inventory.check_low_stock_levels.assert_called_once()

    def test_business_timezone_applies(self, make_task, clock):
        task = make_task(business_timezone=timezone(timedelta(hours=-8)))

        assert not task.is_business_hours()
        assert task.is_business_hours(clock.now() + timedelta(hours=8))

    def test_window_bounds_are_inclusive(self, make_task, clock):
        task = make_task(business_hours_start="10:00", business_hours_end="10:30")

        assert task.is_business_hours(clock.now())
        assert task.is_business_hours(clock.now() + timedelta(minutes=30))
        assert not task.is_business_hours(clock.now() + timedelta(minutes=31))


class TestAlerting:
    """Test urgent alerts, digests and suppression."""

    def test_urgent_sent_individually_and_regular_as_digest(self, make_task, inventory, notifier):
        inventory.check_low_stock_levels.return_value = [
            make_low_stock_alert(1),
            make_low_stock_alert(2, severity=StockSeverity.OUT_OF_STOCK, current_stock=0),
            make_low_stock_alert(3),
            make_low_stock_alert(4, severity=StockSeverity.CRITICAL, current_stock=1),
        ]

        result = make_task().run_body()

        assert notifier.titles() == ["CRITICAL STOCK ALERT", "CRITICAL STOCK ALERT", "Low Stock Alert Summary"]
        assert len(notifier.with_severity(Severity.CRITICAL)) == 2
        assert "The following 2 products" in notifier.alerts[2][1]
        assert result == {
            "found": 4,
            "processed": 4,
            "urgent": 2,
            "regular": 2,
            "notified": 4,
            "events_published": 0,
        }

    def test_cooldown_suppresses_repeat_alerts(self, make_task, inventory, notifier, clock):
        inventory.check_low_stock_levels.return_value = [make_low_stock_alert(1)]
        task = make_task(cooldown_minutes=60)

        task.run_body()
        clock.advance(30 * 60)
        second = task.run_body()
        clock.advance(31 * 60)
        third = task.run_body()

        assert second["processed"] == 0
        assert third["processed"] == 1
        assert len(notifier.alerts) == 2

    def test_hourly_budget_favors_urgent_alerts(self, make_task, inventory, notifier):
        inventory.check_low_stock_levels.return_value = [
            make_low_stock_alert(1),
            make_low_stock_alert(2),
            make_low_stock_alert(3, severity=StockSeverity.CRITICAL),
        ]

        result = make_task(max_alerts_per_hour=2).run_body()

        assert result["processed"] == 2
        assert result["urgent"] == 1
        assert result["regular"] == 1
        assert "Product 1" in notifier.alerts[1][1]
        assert "Product 2" not in notifier.alerts[1][1]

    def test_budget_recovers_after_an_hour(self, make_task, inventory, clock):
        task = make_task(max_alerts_per_hour=1, cooldown_minutes=0)
        inventory.check_low_stock_levels.return_value = [make_low_stock_alert(1)]
        task.run_body()

        inventory.check_low_stock_levels.return_value = [make_low_stock_alert(2)]
        assert task.run_body()["processed"] == 0

        clock.advance(3600)
        assert task.run_body()["processed"] == 1

    def test_failed_delivery_is_not_tracked(self, make_task, inventory, notifier):
        inventory.check_low_stock_levels.return_value = [make_low_stock_alert(1)]
        task = make_task()
        notifier.fail = True

        assert task.run_body()["notified"] == 0

        notifier.fail = False
        result = task.run_body()

        assert result["notified"] == 1
        assert notifier.titles() == ["Low Stock Alert Summary"]

    def test_cleanup_alert_tracking(self, make_task, inventory, clock):
        task = make_task()
        inventory.check_low_stock_levels.return_value = [make_low_stock_alert(1)]
        task.run_body()
        clock.advance(3600)
        inventory.check_low_stock_levels.return_value = [make_low_stock_alert(2)]
        task.run_body()
        clock.advance(23.5 * 3600)

        assert task.cleanup_alert_tracking(max_age_hours=24) == 1
        assert task.cleanup_alert_tracking(max_age_hours=24) == 0


class TestEventPublishing:
    """Test low stock events for downstream handlers."""

    def test_publishes_one_event_per_processed_alert(self, make_task, inventory):
        publisher = MagicMock()
        inventory.check_low_stock_levels.return_value = [
            make_low_stock_alert(7, severity=StockSeverity.CRITICAL, current_stock=1),
        ]

        result = make_task(publisher=publisher).run_body()

        assert result["events_published"] == 1
        event = publisher.publish.call_args.args[0]
        assert event.event_type == LOW_STOCK_EVENT_TYPE
        assert event.aggregate_id == "7"
        assert event.payload == {
            "product_id": 7,
            "sku": "SKU-0007",
            "current_stock": 1,
            "reorder_level": 10,
            "severity": "CRITICAL",
        }

    def test_publish_failure_does_not_fail_run(self, make_task, inventory, notifier):
        publisher = MagicMock()
        publisher.publish.side_effect = RuntimeError("publisher stopped")
        inventory.check_low_stock_levels.return_value = [make_low_stock_alert(1)]

        result = make_task(publisher=publisher).run_body()

        assert result["events_published"] == 0
        assert result["notified"] == 1


class TestFormatting:
    """Test alert message formatting."""

    def test_urgent_alert_message(self):
        alert = make_low_stock_alert(
            5,
            severity=StockSeverity.OUT_OF_STOCK,
            current_stock=0,
            supplier_name="Acme",
            recommendation="Order 50 units",
        )

        message = format_urgent_alert(alert)

        assert "SKU: SKU-0005" in message
        assert "Supplier: Acme" in message
        assert "Recommendation: Order 50 units" in message
        assert message.endswith("Immediate action required!")

    def test_digest_lists_products(self):
        message = format_alert_digest([make_low_stock_alert(1), make_low_stock_alert(2)])

        assert "- Product 1 (SKU-0001) - Current: 3, Reorder: 10" in message
        assert "- Product 2 (SKU-0002)" in message

    def test_parse_clock_time(self):
        assert parse_clock_time("08:30").hour == 8

    @pytest.mark.parametrize("value", ["8", "25:00", "aa:bb", "08:00:00"])
    def test_parse_clock_time_rejects_bad_input(self, value):
        with pytest.raises(ValueError):
            parse_clock_time(value)
