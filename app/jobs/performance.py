"""Task performance tracking.

Keeps a sliding window of PerformanceSamples per task name, bounded both
by count and by age, and aggregates it into TaskMetrics on demand.
"""

import threading
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, List, Optional

from infrastructure.clock import Clock, SystemClock
from infrastructure.logging import get_module_logger
from infrastructure.notifications import Notifier, Severity, send_alert
from jobs.models import PerformanceSample, PerformanceThresholds, TaskMetrics

logger = get_module_logger()

DEFAULT_THRESHOLDS: Dict[str, PerformanceThresholds] = {
    "low-stock-alert": PerformanceThresholds(300_000, 95.0, 10),
    "inventory-report": PerformanceThresholds(600_000, 90.0, 5),
    "data-cleanup": PerformanceThresholds(900_000, 98.0, 3),
    "cache-optimization": PerformanceThresholds(120_000, 99.0, 20),
}


class TaskPerformanceTracker:
    """Rolling timing and error-rate metrics per task."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        window_size: int = 200,
        window_seconds: float = 86400,
        slow_execution_alert_ms: float = 600_000,
        thresholds: Optional[Dict[str, PerformanceThresholds]] = None,
    ) -> None:
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._clock = clock or SystemClock()
        self._notifier = notifier
        self._window_size = window_size
        self._window = timedelta(seconds=window_seconds)
        self._slow_execution_alert_ms = slow_execution_alert_ms
        self._thresholds = dict(DEFAULT_THRESHOLDS if thresholds is None else thresholds)
        self._samples: Dict[str, Deque[PerformanceSample]] = {}
        self._lock = threading.Lock()

    def record(self, sample: PerformanceSample) -> TaskMetrics:
        """Add a sample and check it against the task's thresholds.

        Returns:
            Metrics for the task including the new sample.
        """
        with self._lock:
            samples = self._samples.get(sample.task_name)
            if samples is None:
                samples = deque(maxlen=self._window_size)
                self._samples[sample.task_name] = samples
            samples.append(sample)
            self._evict_expired(samples)
            metrics = TaskMetrics.from_samples(sample.task_name, samples)

        logger.info(
            "task_performance",
            task_name=sample.task_name,
            duration_ms=round(sample.duration_ms, 2),
            succeeded=sample.succeeded,
            mean_duration_ms=round(metrics.mean_duration_ms, 2),
            success_rate=round(metrics.success_rate * 100, 1),
            executions=metrics.count,
        )
        self._check_thresholds(sample, metrics)
        return metrics

    def metrics_for(self, name: str) -> TaskMetrics:
        with self._lock:
            samples = self._samples.get(name)
            if samples is None:
                return TaskMetrics(task_name=name)
            self._evict_expired(samples)
            return TaskMetrics.from_samples(name, samples)

    def all_metrics(self) -> Dict[str, TaskMetrics]:
        return {name: self.metrics_for(name) for name in self.task_names()}

    def error_metrics(self) -> Dict[str, float]:
        """Failure rate (fraction) of every task with retained samples."""
        return {
            name: metrics.failure_rate
            for name, metrics in self.all_metrics().items()
            if metrics.count
        }

    def task_names(self) -> List[str]:
        with self._lock:
            return sorted(self._samples)

    def set_thresholds(self, name: str, thresholds: PerformanceThresholds) -> None:
        self._thresholds[name] = thresholds
        logger.info(
            "task_thresholds_updated",
            task_name=name,
            max_duration_ms=thresholds.max_duration_ms,
            min_success_rate=thresholds.min_success_rate,
            min_executions_for_alert=thresholds.min_executions_for_alert,
        )

    def thresholds_for(self, name: str) -> Optional[PerformanceThresholds]:
        return self._thresholds.get(name)

    def _evict_expired(self, samples: Deque[PerformanceSample]) -> None:
        cutoff = self._clock.now() - self._window
        while samples and samples[0].timestamp < cutoff:
            samples.popleft()

    def _check_thresholds(self, sample: PerformanceSample, metrics: TaskMetrics) -> None:
        if sample.duration_ms > self._slow_execution_alert_ms and self._notifier is not None:
            send_alert(
                self._notifier,
                "Slow Task Execution",
                f"Scheduled task '{sample.task_name}' took unusually long to execute: "
                f"{round(sample.duration_ms / 1000)} seconds",
                Severity.WARNING,
                task_name=sample.task_name,
            )

        thresholds = self._thresholds.get(sample.task_name)
        if thresholds is None or metrics.count < thresholds.min_executions_for_alert:
            return

        if sample.duration_ms > thresholds.max_duration_ms:
            logger.warning(
                "task_duration_threshold_exceeded",
                task_name=sample.task_name,
                duration_ms=sample.duration_ms,
                max_duration_ms=thresholds.max_duration_ms,
            )
        success_rate = metrics.success_rate * 100
        if success_rate < thresholds.min_success_rate:
            logger.warning(
                "task_success_rate_below_threshold",
                task_name=sample.task_name,
                success_rate=round(success_rate, 1),
                min_success_rate=thresholds.min_success_rate,
            )
