"""Unit tests for runtime wiring."""

import pytest

from infrastructure.configuration import RetrySettings, Settings
from infrastructure.persistence import InMemoryKeyValueStore
from infrastructure.resilience.retry import RetryOutcomeStatus
from jobs.runtime import build_runtime
from tests.fixtures.doubles import InlineExecutor, ScriptedProcessor

pytestmark = pytest.mark.unit

class TestBuildRuntime:
    """Test construction of the background components."""

    def test_components_share_clock_and_store(self, runtime, clock, store, notifier):
        assert runtime.clock is clock
        assert runtime.store is store
        assert runtime.notifier is notifier
        assert len(runtime.registry) == 0

    def test_policy_comes_from_settings(self, runtime, clock, event_factory):
        processor = ScriptedProcessor(clock, errors=[ConnectionError("down")] * 5)
        runtime.publisher.subscribe("order.created", processor, name="billing")

        receipt = runtime.publisher.publish(event_factory())
        clock.advance(1)
        outcome = receipt.wait(timeout=1)["billing"]

        assert outcome.status is RetryOutcomeStatus.EXHAUSTED
        assert outcome.attempts == 3
        assert processor.calls == pytest.approx([0.0, 0.010, 0.030])

    def test_dead_letters_replay_through_publisher(self, runtime, clock, event_factory):
        processor = ScriptedProcessor(clock, errors=[ConnectionError("down")] * 3)
        runtime.publisher.subscribe("order.created", processor, name="billing")
        runtime.publisher.publish(event_factory())
        clock.advance(1)
        entry = runtime.dead_letter_queue.list()[0]

        runtime.dead_letter_queue.replay(entry.entry_id)

        assert len(processor.calls) == 4
        assert runtime.dead_letter_queue.get(entry.entry_id).replayed_at == clock.now()

    def test_jitter_seed_makes_delays_reproducible(self, clock, notifier, event_factory):
        settings = Settings(retry=RetrySettings(RETRY_JITTER_SEED=7, RETRY_INITIAL_DELAY_SECONDS=1.0))
        delays = []
        for _ in range(2):
            runtime = build_runtime(
                settings=settings,
                clock=clock,
                store=InMemoryKeyValueStore(),
                notifier=notifier,
                dispatch_pool=InlineExecutor(),
                task_pool=InlineExecutor(),
            )
            processor = ScriptedProcessor(clock, errors=[ConnectionError("down")])
            runtime.publisher.subscribe("order.created", processor, name="billing")
            receipt = runtime.publisher.publish(event_factory())
            clock.advance(2)
            receipt.wait(timeout=1)
            delays.append(processor.calls[1] - processor.calls[0])
            runtime.shutdown()

        assert delays[0] == pytest.approx(delays[1])
        assert 0.5 <= delays[0] <= 1.0

class TestShutdown:
    """Test orderly shutdown."""

    def test_shutdown_stops_dispatch_and_scheduling(self, runtime, event_factory, clock):
        processor = ScriptedProcessor(clock)
        runtime.publisher.subscribe("order.created", processor, name="billing")

        runtime.shutdown()

        assert runtime.publisher.publish(event_factory()).outcomes == {}
        assert processor.calls == []
        assert runtime.scheduler.job_status() == []

    def test_shutdown_is_idempotent(self, runtime):
        runtime.shutdown()
        runtime.shutdown()
