"""Process-wide wiring of the retry and scheduling components.

build_runtime() constructs every component once from Settings and hands
each its collaborators explicitly. Tests pass a VirtualClock, an
in-memory store and an inline dispatch pool to get deterministic runs.

Usage:
    from jobs.runtime import build_runtime
    from jobs import scheduled_tasks

    runtime = build_runtime()
    scheduled_tasks.init(runtime, inventory_monitor=my_inventory)
    stop = runtime.scheduler.run_continuously(runtime.settings.scheduler.poll_interval_seconds)
"""

import random
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Dict, Optional

from infrastructure.clock import Clock, SystemClock
from infrastructure.configuration import Settings
from infrastructure.events.publisher import EventPublisher
from infrastructure.logging import get_module_logger
from infrastructure.notifications import LoggingNotifier, Notifier
from infrastructure.persistence import InMemoryKeyValueStore, KeyValueStore
from infrastructure.resilience.retry import (
    DeadLetterQueue,
    EventRetryExecutor,
    RetryLedger,
    RetryPolicy,
)
from infrastructure.services import get_settings
from jobs.health import TaskSystemHealth, assess_system_health, generate_monitoring_report
from jobs.monitoring import TaskMonitor
from jobs.performance import TaskPerformanceTracker
from jobs.registry import TaskRegistry
from jobs.scheduler import JobScheduler

logger = get_module_logger()


@dataclass
class BackgroundRuntime:
    settings: Settings
    clock: Clock
    store: KeyValueStore
    notifier: Notifier
    ledger: RetryLedger
    dead_letter_queue: DeadLetterQueue
    retry_executor: EventRetryExecutor
    publisher: EventPublisher
    registry: TaskRegistry
    monitor: TaskMonitor
    tracker: TaskPerformanceTracker
    scheduler: JobScheduler

    def shutdown(self, wait: bool = True) -> None:
        """Stop scheduling, then drain event dispatch."""
        self.scheduler.stop(wait=wait)
        self.publisher.shutdown(wait=wait)
        logger.info("background_runtime_stopped")

    def health(self) -> TaskSystemHealth:
        """Health snapshot using the monitoring thresholds from settings."""
        return assess_system_health(
            self.registry, self.monitor, self.tracker, self.clock, **self._health_thresholds()
        )

    def monitoring_report(self) -> str:
        return generate_monitoring_report(
            self.registry, self.monitor, self.tracker, self.clock, **self._health_thresholds()
        )

    def _health_thresholds(self) -> Dict[str, float]:
        monitoring = self.settings.monitoring
        return {
            "stuck_task_hours": monitoring.stuck_task_hours,
            "high_failure_rate_percent": monitoring.high_failure_rate_percent,
            "slow_task_ms": monitoring.slow_task_ms,
        }


def build_runtime(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
    store: Optional[KeyValueStore] = None,
    notifier: Optional[Notifier] = None,
    dispatch_pool: Optional[Executor] = None,
    task_pool: Optional[Executor] = None,
    rng: Optional[random.Random] = None,
) -> BackgroundRuntime:
    """Construct and wire every background component.

    Args:
        settings: Configuration; defaults to the process-wide settings
        clock: Time source and timer; defaults to SystemClock
        store: Persistence backend; defaults to an in-memory store
        notifier: Alert channel; defaults to LoggingNotifier
        dispatch_pool: Executor running event handlers
        task_pool: Executor running due scheduled tasks
        rng: Jitter random source; seeded from RETRY_JITTER_SEED when set

    Returns:
        BackgroundRuntime holding the wired components.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    store = store if store is not None else InMemoryKeyValueStore()
    notifier = notifier or LoggingNotifier()
    if rng is None and settings.retry.jitter_seed is not None:
        rng = random.Random(settings.retry.jitter_seed)

    ledger = RetryLedger(store, clock=clock)
    dead_letter_queue = DeadLetterQueue(
        store,
        clock=clock,
        store_attempts=settings.dead_letter.store_attempts,
    )
    retry_executor = EventRetryExecutor(
        ledger,
        dead_letter_queue,
        clock=clock,
        default_policy=RetryPolicy.from_settings(settings.retry),
        notifier=notifier,
        rng=rng,
    )
    publisher = EventPublisher(
        retry_executor,
        worker_pool=dispatch_pool,
        max_workers=settings.retry.dispatch_workers,
    )
    dead_letter_queue.bind_replay_target(publisher)

    monitoring = settings.monitoring
    registry = TaskRegistry()
    monitor = TaskMonitor(
        store,
        clock=clock,
        notifier=notifier,
        history_limit=monitoring.history_limit,
        failure_alert_rate=monitoring.failure_alert_rate,
        failure_alert_min_executions=monitoring.failure_alert_min_executions,
    )
    tracker = TaskPerformanceTracker(
        clock=clock,
        notifier=notifier,
        window_size=monitoring.performance_window_size,
        window_seconds=monitoring.performance_window_seconds,
        slow_execution_alert_ms=monitoring.slow_execution_alert_ms,
    )
    scheduler = JobScheduler(
        registry,
        max_workers=settings.scheduler.max_workers,
        worker_pool=task_pool,
    )

    logger.info(
        "background_runtime_built",
        max_attempts=settings.retry.max_attempts,
        dispatch_workers=settings.retry.dispatch_workers,
        scheduler_workers=settings.scheduler.max_workers,
    )
    return BackgroundRuntime(
        settings=settings,
        clock=clock,
        store=store,
        notifier=notifier,
        ledger=ledger,
        dead_letter_queue=dead_letter_queue,
        retry_executor=retry_executor,
        publisher=publisher,
        registry=registry,
        monitor=monitor,
        tracker=tracker,
        scheduler=scheduler,
    )
