"""End-to-end event processing through the wired runtime.

Runs the publisher, retry executor, ledger and dead letter queue together
on a virtual clock with inline worker pools.
"""

import pytest

from infrastructure.notifications import Severity
from jobs.tasks.low_stock_alert import LOW_STOCK_EVENT_TYPE
from infrastructure.resilience.retry import (
    DeadLetterFilter,
    LedgerStatus,
    RetryOutcomeStatus,
    RetryPolicy,
)
from tests.fixtures.doubles import ScriptedProcessor, ValidationError

pytestmark = pytest.mark.integration


class TestRetryFlow:
    """Test transient failures recovered by retries."""

    def test_low_stock_event_recovers_after_two_transient_failures(self, runtime, clock, event_factory):
        processor = ScriptedProcessor(
            clock, errors=[ConnectionError("db timeout"), ConnectionError("db timeout")]
        )
        runtime.publisher.subscribe(LOW_STOCK_EVENT_TYPE, processor, name="update-inventory")
        event = event_factory(event_type=LOW_STOCK_EVENT_TYPE, aggregate_id="42", payload={"product_id": 42})

        receipt = runtime.publisher.publish(event)
        assert not receipt.done()

        clock.advance(0.010)
        assert len(processor.calls) == 2
        clock.advance(0.020)

        outcome = receipt.wait(timeout=1)["update-inventory"]
        assert outcome.status is RetryOutcomeStatus.SUCCEEDED
        assert outcome.attempts == 3
        assert processor.calls == pytest.approx([0.0, 0.010, 0.030])
        assert [r.error for r in outcome.attempt_history] == ["db timeout", "db timeout", None]
        assert runtime.ledger.get_for_event(event.event_id, "update-inventory") is None
        assert runtime.dead_letter_queue.count() == 0

    def test_handlers_retry_independently(self, runtime, clock, event_factory):
        flaky = ScriptedProcessor(clock, errors=[ConnectionError("down")])
        steady = ScriptedProcessor(clock)
        runtime.publisher.subscribe("order.created", flaky, name="notify-warehouse")
        runtime.publisher.subscribe("order.created", steady, name="send-receipt")

        receipt = runtime.publisher.publish(event_factory())
        clock.advance(1)
        outcomes = receipt.wait(timeout=1)

        assert outcomes["notify-warehouse"].attempts == 2
        assert outcomes["send-receipt"].attempts == 1
        assert len(steady.calls) == 1

    def test_duplicate_delivery_while_retrying_is_rejected(self, runtime, clock, event_factory):
        processor = ScriptedProcessor(clock, errors=[ConnectionError("down")])
        runtime.publisher.subscribe("order.created", processor, name="billing")
        event = event_factory()

        first = runtime.publisher.publish(event)
        duplicate = runtime.publisher.publish(event).wait(timeout=1)["billing"]
        clock.advance(1)

        assert duplicate.status is RetryOutcomeStatus.ALREADY_IN_FLIGHT
        assert first.wait(timeout=1)["billing"].succeeded
        assert len(processor.calls) == 2


class TestDeadLetterFlow:
    """Test exhaustion, inspection and replay."""

    def test_exhausted_event_is_dead_lettered_and_replayed(self, runtime, clock, event_factory, notifier):
        processor = ScriptedProcessor(clock, errors=[ConnectionError("payment gateway down")] * 3)
        runtime.publisher.subscribe("order.created", processor, name="charge-card")
        event = event_factory()

        receipt = runtime.publisher.publish(event)
        clock.advance(1)
        outcome = receipt.wait(timeout=1)["charge-card"]

        assert outcome.status is RetryOutcomeStatus.EXHAUSTED
        entry = runtime.dead_letter_queue.get(outcome.dead_letter_entry_id)
        assert entry.event == event
        assert entry.handler == "charge-card"
        assert entry.error_type == "ConnectionError"
        assert entry.attempts_made == 3
        assert runtime.ledger.get_for_event(event.event_id, "charge-card").status is LedgerStatus.DEAD_LETTERED
        assert notifier.with_severity(Severity.CRITICAL) == []

        runtime.dead_letter_queue.replay(entry.entry_id)

        assert len(processor.calls) == 4
        assert runtime.ledger.get_for_event(event.event_id, "charge-card") is None
        pending = runtime.dead_letter_queue.list(DeadLetterFilter(include_replayed=False))
        assert pending == []

    def test_validation_errors_skip_retries(self, runtime, clock, event_factory):
        processor = ScriptedProcessor(clock, errors=[ValidationError("missing sku")])
        policy = RetryPolicy(
            max_attempts=3,
            initial_delay_seconds=0.010,
            jitter_enabled=False,
            non_retryable_errors=("ValidationError",),
        )
        runtime.publisher.subscribe("order.created", processor, policy=policy, name="validate")

        outcome = runtime.publisher.publish(event_factory()).wait(timeout=1)["validate"]

        assert outcome.status is RetryOutcomeStatus.EXHAUSTED
        assert outcome.attempts == 1
        assert runtime.dead_letter_queue.statistics()["entries_by_error_type"] == {"ValidationError": 1}
