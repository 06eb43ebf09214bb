"""Test data factories for deterministic test data generation."""

from tests.factories.events import make_event, make_low_stock_alert
from tests.factories.jobs import make_execution_record, make_performance_sample

__all__ = [
    "make_event",
    "make_low_stock_alert",
    "make_execution_record",
    "make_performance_sample",
]
