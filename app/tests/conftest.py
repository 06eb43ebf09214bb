"""Root fixtures shared by unit and integration tests.

Time is always virtual: components receive a VirtualClock and tests move
time forward with clock.advance(). Worker pools are replaced by an inline
executor so dispatch happens on the test thread.
"""

from datetime import datetime, timezone

import pytest

from infrastructure.clock import VirtualClock
from infrastructure.configuration import RetrySettings, Settings
from infrastructure.events.publisher import EventPublisher
from infrastructure.persistence import InMemoryKeyValueStore
from infrastructure.resilience.retry import (
    DeadLetterQueue,
    EventRetryExecutor,
    RetryLedger,
    RetryPolicy,
)
from jobs.monitoring import TaskMonitor
from jobs.performance import TaskPerformanceTracker
from jobs.runtime import build_runtime
from tests.factories.events import make_event
from tests.fixtures.doubles import InlineExecutor, RecordingNotifier


@pytest.fixture
def clock():
    """Virtual clock starting at 2024-01-01 10:00 UTC (a Monday, in business hours)."""
    return VirtualClock(start=datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def inline_executor():
    return InlineExecutor()


@pytest.fixture
def event_factory():
    """Factory for creating test events."""
    return make_event


@pytest.fixture
def fast_policy():
    """Deterministic policy: 3 attempts, 10ms then 20ms, no jitter."""
    return RetryPolicy(
        max_attempts=3,
        initial_delay_seconds=0.010,
        max_delay_seconds=1.0,
        backoff_multiplier=2.0,
        jitter_enabled=False,
    )


@pytest.fixture
def ledger(store, clock):
    return RetryLedger(store, clock=clock)


@pytest.fixture
def dead_letter_queue(store, clock):
    return DeadLetterQueue(store, clock=clock)


@pytest.fixture
def retry_executor(ledger, dead_letter_queue, clock, fast_policy, notifier):
    return EventRetryExecutor(
        ledger,
        dead_letter_queue,
        clock=clock,
        default_policy=fast_policy,
        notifier=notifier,
    )


@pytest.fixture
def publisher(retry_executor, dead_letter_queue, inline_executor):
    publisher = EventPublisher(retry_executor, worker_pool=inline_executor)
    dead_letter_queue.bind_replay_target(publisher)
    yield publisher
    publisher.shutdown()


@pytest.fixture
def monitor(store, clock, notifier):
    return TaskMonitor(store, clock=clock, notifier=notifier)


@pytest.fixture
def tracker(clock, notifier):
    return TaskPerformanceTracker(clock=clock, notifier=notifier)


@pytest.fixture
def settings():
    """Settings matching fast_policy: 3 attempts, 10ms then 20ms, no jitter."""
    return Settings(
        retry=RetrySettings(
            RETRY_MAX_ATTEMPTS=3,
            RETRY_INITIAL_DELAY_SECONDS=0.010,
            RETRY_MAX_DELAY_SECONDS=1.0,
            RETRY_JITTER_ENABLED=False,
        )
    )


@pytest.fixture
def runtime(settings, clock, store, notifier):
    runtime = build_runtime(
        settings=settings,
        clock=clock,
        store=store,
        notifier=notifier,
        dispatch_pool=InlineExecutor(),
        task_pool=InlineExecutor(),
    )
    yield runtime
    runtime.shutdown()
