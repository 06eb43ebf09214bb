"""Unit tests for TaskPerformanceTracker."""

from datetime import timedelta

import pytest

from infrastructure.notifications import Severity
from jobs.models import PerformanceThresholds
from jobs.performance import DEFAULT_THRESHOLDS, TaskPerformanceTracker
from tests.factories.jobs import make_performance_sample

pytestmark = pytest.mark.unit


class TestTaskPerformanceTracker:
    """Test sliding-window metrics."""

    def test_record_returns_updated_metrics(self, tracker, clock):
        tracker.record(make_performance_sample(duration_ms=100, timestamp=clock.now()))
        metrics = tracker.record(make_performance_sample(duration_ms=300, succeeded=False, timestamp=clock.now()))

        assert metrics.count == 2
        assert metrics.mean_duration_ms == 200
        assert metrics.failure_rate == 0.5

    def test_window_bounded_by_count(self, clock):
        tracker = TaskPerformanceTracker(clock=clock, window_size=3)
        for duration in (10, 20, 30, 40):
            tracker.record(make_performance_sample(duration_ms=duration, timestamp=clock.now()))

        metrics = tracker.metrics_for("stub-task")

        assert metrics.count == 3
        assert metrics.mean_duration_ms == 30

    def test_window_bounded_by_age(self, clock):
        tracker = TaskPerformanceTracker(clock=clock, window_seconds=60)
        tracker.record(make_performance_sample(timestamp=clock.now()))
        clock.advance(61)
        tracker.record(make_performance_sample(timestamp=clock.now()))

        assert tracker.metrics_for("stub-task").count == 1

        clock.advance(61)
        assert tracker.metrics_for("stub-task").count == 0

    def test_unknown_task_has_empty_metrics(self, tracker):
        metrics = tracker.metrics_for("missing")

        assert metrics.count == 0
        assert metrics.task_name == "missing"

    def test_error_metrics_covers_every_task(self, tracker, clock):
        tracker.record(make_performance_sample("a-task", succeeded=False, timestamp=clock.now()))
        tracker.record(make_performance_sample("b-task", timestamp=clock.now()))

        assert tracker.error_metrics() == {"a-task": 1.0, "b-task": 0.0}
        assert tracker.task_names() == ["a-task", "b-task"]

    @pytest.mark.parametrize("kwargs", [{"window_size": 0}, {"window_seconds": 0}])
    def test_invalid_window(self, kwargs):
        with pytest.raises(ValueError):
            TaskPerformanceTracker(**kwargs)


class TestThresholds:
    """Test alerting and threshold configuration."""

    def test_default_thresholds(self, tracker):
        assert tracker.thresholds_for("data-cleanup") == DEFAULT_THRESHOLDS["data-cleanup"]
        assert tracker.thresholds_for("unknown") is None

    def test_set_thresholds(self, tracker):
        thresholds = PerformanceThresholds(1000, 50.0, 1)

        tracker.set_thresholds("stub-task", thresholds)

        assert tracker.thresholds_for("stub-task") is thresholds

    def test_slow_execution_alerts(self, clock, notifier):
        tracker = TaskPerformanceTracker(clock=clock, notifier=notifier, slow_execution_alert_ms=1000)

        tracker.record(make_performance_sample(duration_ms=5000, timestamp=clock.now()))

        title, message, severity = notifier.alerts[0]
        assert title == "Slow Task Execution"
        assert "5 seconds" in message
        assert severity is Severity.WARNING

    def test_fast_execution_does_not_alert(self, tracker, notifier, clock):
        tracker.record(make_performance_sample(duration_ms=5000, timestamp=clock.now()))

        assert notifier.alerts == []

    def test_threshold_breaches_are_logged_not_alerted(self, clock, notifier):
        tracker = TaskPerformanceTracker(
            clock=clock,
            notifier=notifier,
            thresholds={"stub-task": PerformanceThresholds(10, 99.0, 1)},
        )

        tracker.record(make_performance_sample(duration_ms=50, succeeded=False, timestamp=clock.now()))

        assert notifier.alerts == []

    def test_sample_timestamps_older_than_window_are_dropped(self, clock):
        tracker = TaskPerformanceTracker(clock=clock, window_seconds=3600)

        tracker.record(make_performance_sample(timestamp=clock.now() - timedelta(hours=2)))

        assert tracker.metrics_for("stub-task").count == 0
