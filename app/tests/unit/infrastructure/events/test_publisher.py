"""Unit tests for event fan-out through the retry executor."""

import threading

import pytest

from infrastructure.events.publisher import EventPublisher, PublishReceipt
from infrastructure.resilience.retry import RetryOutcomeStatus, RetryPolicy
from tests.fixtures.doubles import InlineExecutor, ScriptedProcessor

pytestmark = pytest.mark.unit


class TestSubscriptions:
    """Test handler registration."""

    def test_subscribe_uses_qualname_by_default(self, publisher):
        def notify_purchasing(event):
            return None

        subscription = publisher.subscribe("inventory.low_stock", notify_purchasing)

        assert subscription.name.endswith("notify_purchasing")
        assert publisher.handlers_for("inventory.low_stock") == [subscription]

    def test_duplicate_name_rejected(self, publisher):
        publisher.subscribe("order.created", lambda e: None, name="audit")

        with pytest.raises(ValueError, match="already subscribed"):
            publisher.subscribe("order.created", lambda e: None, name="audit")

    def test_same_name_allowed_for_different_types(self, publisher):
        publisher.subscribe("order.created", lambda e: None, name="audit")
        publisher.subscribe("order.cancelled", lambda e: None, name="audit")

        assert sorted(publisher.registered_event_types()) == ["order.cancelled", "order.created"]

    def test_name_cannot_be_shared_with_wildcard(self, publisher):
        publisher.subscribe("*", lambda e: None, name="audit")

        with pytest.raises(ValueError, match="already subscribed to '\\*'"):
            publisher.subscribe("order.created", lambda e: None, name="audit")

    def test_wildcard_name_cannot_reuse_specific_name(self, publisher):
        publisher.subscribe("order.created", lambda e: None, name="audit")

        with pytest.raises(ValueError, match="already subscribed to 'order.created'"):
            publisher.subscribe("*", lambda e: None, name="audit")

    def test_lambda_needs_explicit_name(self, publisher):
        with pytest.raises(ValueError, match="explicit name"):
            publisher.subscribe("order.created", lambda e: None)

    def test_decorator_returns_original_function(self, publisher):
        @publisher.handler("order.created", name="decorated")
        def handle(event):
            return "handled"

        assert handle(None) == "handled"
        assert [s.name for s in publisher.handlers_for("order.created")] == ["decorated"]

    def test_wildcard_handlers_come_last(self, publisher):
        publisher.subscribe("*", lambda e: None, name="audit-all")
        publisher.subscribe("order.created", lambda e: None, name="specific")

        names = [s.name for s in publisher.handlers_for("order.created")]

        assert names == ["specific", "audit-all"]

    def test_unsubscribe(self, publisher):
        publisher.subscribe("order.created", lambda e: None, name="audit")

        assert publisher.unsubscribe("order.created", "audit") is True
        assert publisher.unsubscribe("order.created", "audit") is False
        assert publisher.registered_event_types() == []


class TestPublish:
    """Test dispatch behaviour."""

    def test_publish_without_handlers_is_noop(self, publisher, event_factory):
        receipt = publisher.publish(event_factory())

        assert isinstance(receipt, PublishReceipt)
        assert receipt.outcomes == {}
        assert receipt.done()

    def test_each_handler_gets_its_own_outcome(self, publisher, event_factory, clock):
        first = ScriptedProcessor(clock)
        second = ScriptedProcessor(clock)
        publisher.subscribe("order.created", first, name="first")
        publisher.subscribe("order.created", second, name="second")
        event = event_factory()

        outcomes = publisher.publish(event).wait(timeout=1)

        assert set(outcomes) == {"first", "second"}
        assert all(o.status is RetryOutcomeStatus.SUCCEEDED for o in outcomes.values())
        assert first.events == [event]
        assert second.events == [event]

    def test_failing_handler_does_not_affect_others(self, publisher, event_factory, clock):
        failing = ScriptedProcessor(clock, errors=[RuntimeError("down")] * 3)
        healthy = ScriptedProcessor(clock)
        publisher.subscribe("order.created", failing, name="failing")
        publisher.subscribe("order.created", healthy, name="healthy")

        receipt = publisher.publish(event_factory())
        clock.advance(1)
        outcomes = receipt.wait(timeout=1)

        assert outcomes["failing"].status is RetryOutcomeStatus.EXHAUSTED
        assert outcomes["healthy"].status is RetryOutcomeStatus.SUCCEEDED
        assert len(healthy.calls) == 1

    def test_handler_policy_overrides_default(self, publisher, event_factory, clock):
        failing = ScriptedProcessor(clock, errors=[RuntimeError("down")])
        publisher.subscribe("order.created", failing, policy=RetryPolicy.no_retry(), name="once")

        outcome = publisher.publish(event_factory()).wait(timeout=1)["once"]

        assert outcome.status is RetryOutcomeStatus.EXHAUSTED
        assert outcome.attempts == 1

    def test_receipt_not_done_while_retry_pending(self, publisher, event_factory, clock):
        flaky = ScriptedProcessor(clock, errors=[RuntimeError("down")])
        publisher.subscribe("order.created", flaky, name="flaky")

        receipt = publisher.publish(event_factory())

        assert not receipt.done()
        with pytest.raises(TimeoutError):
            receipt.wait(timeout=0)

        clock.advance(0.010)
        assert receipt.wait(timeout=0)["flaky"].attempts == 2

    def test_publish_many(self, publisher, event_factory, clock):
        handler = ScriptedProcessor(clock)
        publisher.subscribe("order.created", handler, name="h")

        receipts = publisher.publish_many(event_factory(), event_factory())

        assert len(receipts) == 2
        assert len(handler.calls) == 2

    def test_handlers_run_on_worker_pool(self, retry_executor, event_factory, clock):
        pool = InlineExecutor()
        publisher = EventPublisher(retry_executor, worker_pool=pool)
        publisher.subscribe("order.created", ScriptedProcessor(clock), name="a")
        publisher.subscribe("order.created", ScriptedProcessor(clock), name="b")

        publisher.publish(event_factory())

        assert pool.submitted == 2

    def test_due_retries_are_submitted_to_worker_pool(self, retry_executor, event_factory, clock):
        pool = InlineExecutor()
        publisher = EventPublisher(retry_executor, worker_pool=pool)
        flaky = ScriptedProcessor(clock, errors=[RuntimeError("down")])
        publisher.subscribe("order.created", flaky, name="flaky")

        receipt = publisher.publish(event_factory())
        assert pool.submitted == 1

        clock.advance(0.010)

        assert pool.submitted == 2
        assert receipt.wait(timeout=0)["flaky"].attempts == 2

    def test_scheduled_retry_still_runs_after_shutdown(self, publisher, event_factory, clock):
        flaky = ScriptedProcessor(clock, errors=[RuntimeError("down")])
        publisher.subscribe("order.created", flaky, name="flaky")

        receipt = publisher.publish(event_factory())
        publisher.shutdown()
        clock.advance(0.010)

        assert receipt.wait(timeout=0)["flaky"].succeeded

    def test_replay_to_targets_single_handler(self, publisher, event_factory, clock):
        first = ScriptedProcessor(clock)
        second = ScriptedProcessor(clock)
        publisher.subscribe("order.created", first, name="first")
        publisher.subscribe("order.created", second, name="second")

        receipt = publisher.replay_to(event_factory(), "second")

        assert receipt.handler_names == ["second"]
        assert first.calls == []
        assert len(second.calls) == 1

    def test_replay_to_unknown_handler_dispatches_nothing(self, publisher, event_factory):
        receipt = publisher.replay_to(event_factory(), "missing")

        assert receipt.outcomes == {}


class TestShutdown:
    """Test publisher shutdown."""

    def test_publish_after_shutdown_returns_empty_receipt(self, publisher, event_factory, clock):
        handler = ScriptedProcessor(clock)
        publisher.subscribe("order.created", handler, name="h")

        publisher.shutdown()
        receipt = publisher.publish(event_factory())

        assert receipt.outcomes == {}
        assert handler.calls == []

    def test_shutdown_is_idempotent(self, publisher):
        publisher.shutdown()
        publisher.shutdown()

    def test_default_pool_runs_handlers_off_caller_thread(self, retry_executor, event_factory):
        seen = []
        publisher = EventPublisher(retry_executor, max_workers=2)
        publisher.subscribe("order.created", lambda e: seen.append(threading.current_thread().name), name="h")

        try:
            publisher.publish(event_factory()).wait(timeout=5)
        finally:
            publisher.shutdown()

        assert seen and seen[0].startswith("event-dispatch")
