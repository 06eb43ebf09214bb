"""Event retry executor.

Drives one event through a processor function under a RetryPolicy:

    attempt 1 runs inline on the calling thread
    each failure is recorded in the RetryLedger
    while attempts remain, the next attempt is scheduled on the Clock after
        policy.delay_for_attempt(n) and handed to the bound dispatcher (the
        publisher's worker pool); no thread sleeps in between
    on success the ledger entry is removed
    on exhaustion (or a non-retryable error) the event goes to the
        DeadLetterQueue and the ledger entry becomes a terminal marker

Handler failures never propagate to the caller. The caller receives a
Future that resolves to a RetryOutcome; the only exception a Future can
carry is DeadLetterDeliveryError. A ledger write that fails mid-campaign
sends the event to the DeadLetterQueue and closes the campaign, so the key
is never left in flight.

Delivery is at-least-once: processors must be idempotent.
"""

import random
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from infrastructure.clock import Clock, SystemClock
from infrastructure.events.models import Event
from infrastructure.logging import bind_log_context, get_module_logger
from infrastructure.notifications import Notifier, Severity, send_alert
from infrastructure.resilience.exceptions import (
    DeadLetterDeliveryError,
    ProcessorError,
    RetryCampaignActiveError,
)
from infrastructure.resilience.retry.dead_letter import DeadLetterQueue
from infrastructure.resilience.retry.ledger import RetryLedger
from infrastructure.resilience.retry.models import (
    LedgerStatus,
    RetryLedgerEntry,
    RetryOutcome,
    RetryOutcomeStatus,
    campaign_key,
)
from infrastructure.resilience.retry.policy import RetryPolicy

logger = get_module_logger()

Processor = Callable[[Event], Any]
Dispatch = Callable[[Callable[[], None]], Any]


@dataclass
class _Campaign:
    event: Event
    processor: Processor
    policy: RetryPolicy
    handler: Optional[str]
    key: str
    future: "Future[RetryOutcome]"
    started: float
    first_failed_at: Optional[datetime] = None
    opened: bool = False


class EventRetryExecutor:
    """Runs event processors with retries, backoff and dead-letter routing.

    Attributes:
        default_policy: Policy used when a call does not supply one
    """

    def __init__(
        self,
        ledger: RetryLedger,
        dead_letter_queue: DeadLetterQueue,
        clock: Optional[Clock] = None,
        default_policy: Optional[RetryPolicy] = None,
        notifier: Optional[Notifier] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.ledger = ledger
        self.dead_letter_queue = dead_letter_queue
        self.default_policy = default_policy or RetryPolicy.default()
        self._clock = clock or SystemClock()
        self._notifier = notifier
        self._rng = rng or random.Random()
        self._dispatch: Optional[Dispatch] = None
        self._stats_lock = threading.Lock()
        self._stats: Dict[str, int] = {
            "campaigns_started": 0,
            "succeeded": 0,
            "exhausted": 0,
            "retries_scheduled": 0,
            "already_in_flight": 0,
            "dead_letter_failures": 0,
            "bookkeeping_failures": 0,
        }

    def execute_with_retry(
        self,
        event: Event,
        processor: Processor,
        policy: Optional[RetryPolicy] = None,
        handler_name: Optional[str] = None,
    ) -> "Future[RetryOutcome]":
        """Process an event, retrying failures according to the policy.

        Args:
            event: Event to process
            processor: Callable invoked with the event; must be idempotent
            policy: Retry policy, defaults to the executor's default policy
            handler_name: Handler identity; campaigns are tracked per handler

        Returns:
            Future resolving to the RetryOutcome once the campaign ends.
        """
        policy = policy or self.default_policy
        future: "Future[RetryOutcome]" = Future()
        future.set_running_or_notify_cancel()
        campaign = _Campaign(
            event=event,
            processor=processor,
            policy=policy,
            handler=handler_name,
            key=campaign_key(event.event_id, handler_name),
            future=future,
            started=self._clock.monotonic(),
        )

        try:
            self.ledger.begin(event, policy.max_attempts, handler=handler_name)
        except RetryCampaignActiveError:
            self._count("already_in_flight")
            future.set_result(
                RetryOutcome(
                    event_id=event.event_id,
                    handler=handler_name,
                    status=RetryOutcomeStatus.ALREADY_IN_FLIGHT,
                    attempts=0,
                )
            )
            return future
        except Exception as e:
            with bind_log_context(event_id=event.event_id, handler=handler_name):
                self._handle_bookkeeping_failure(campaign, 0, e)
            return future

        campaign.opened = True
        self._count("campaigns_started")
        self._run_attempt(campaign, 1)
        return future

    def bind_dispatcher(self, dispatch: Dispatch) -> None:
        """Hand scheduled retry attempts to `dispatch` (the publisher's worker pool).

        Without a dispatcher, retries run on the clock's timer thread.
        """
        self._dispatch = dispatch

    def stats(self) -> Dict[str, int]:
        """Counters since the executor was created."""
        with self._stats_lock:
            return dict(self._stats)

    def _run_attempt(self, campaign: _Campaign, attempt: int) -> None:
        event = campaign.event
        with bind_log_context(
            event_id=event.event_id,
            event_type=event.event_type,
            handler=campaign.handler,
            attempt=attempt,
        ):
            try:
                self.ledger.record_attempt(campaign.key, attempt)
                logger.debug("retry_attempt_started", max_attempts=campaign.policy.max_attempts)
                try:
                    result = campaign.processor(event)
                except Exception as e:
                    self._handle_failure(campaign, attempt, ProcessorError.wrap(e, attempt=attempt))
                else:
                    self._handle_success(campaign, attempt, result)
            except DeadLetterDeliveryError as e:
                self._escalate_dead_letter_failure(campaign, e)
            except Exception as e:
                self._handle_bookkeeping_failure(campaign, attempt, e)

    def _dispatch_attempt(self, campaign: _Campaign, attempt: int) -> None:
        if self._dispatch is None:
            self._run_attempt(campaign, attempt)
            return
        try:
            self._dispatch(lambda: self._run_attempt(campaign, attempt))
        except RuntimeError as e:
            logger.warning(
                "retry_dispatch_unavailable",
                event_id=campaign.event.event_id,
                handler=campaign.handler,
                attempt=attempt,
                error=str(e),
            )
            self._run_attempt(campaign, attempt)

    def _handle_success(self, campaign: _Campaign, attempt: int, result: Any) -> None:
        try:
            entry = self.ledger.clear(campaign.key, attempt_number=attempt)
        except Exception as e:
            # The event was processed; only the ledger is stale.
            logger.exception("retry_ledger_clear_failed", key=campaign.key, error=str(e))
            entry = None
        history = tuple(entry.attempts) if entry else ()
        self._count("succeeded")
        logger.info("event_processed", attempts=attempt, retried=attempt > 1)
        campaign.future.set_result(
            RetryOutcome(
                event_id=campaign.event.event_id,
                handler=campaign.handler,
                status=RetryOutcomeStatus.SUCCEEDED,
                attempts=attempt,
                attempt_history=history,
                elapsed_seconds=self._clock.monotonic() - campaign.started,
                result=result,
            )
        )

    def _handle_failure(self, campaign: _Campaign, attempt: int, error: ProcessorError) -> None:
        policy = campaign.policy
        campaign.first_failed_at = campaign.first_failed_at or self._clock.now()
        retryable = policy.is_retryable(error.cause or error)

        if retryable and attempt < policy.max_attempts:
            delay = policy.delay_for_attempt(attempt, rng=self._rng)
            next_eligible_at = self._clock.now() + timedelta(seconds=delay)
            self.ledger.record_failure(
                campaign.key, attempt, str(error), next_eligible_at=next_eligible_at
            )
            self._count("retries_scheduled")
            logger.warning(
                "retry_scheduled",
                next_attempt=attempt + 1,
                delay_seconds=round(delay, 4),
                error_type=error.error_type,
                error=str(error),
            )
            self._clock.call_later(delay, lambda: self._dispatch_attempt(campaign, attempt + 1))
            return

        self.ledger.record_failure(campaign.key, attempt, str(error))
        if not retryable:
            logger.warning("non_retryable_error", error_type=error.error_type, error=str(error))
        self._exhaust(campaign, attempt, error)

    def _exhaust(self, campaign: _Campaign, attempt: int, error: ProcessorError) -> None:
        try:
            dead_letter = self.dead_letter_queue.send(
                campaign.event,
                error,
                attempt,
                handler=campaign.handler,
                first_failed_at=campaign.first_failed_at,
            )
        except DeadLetterDeliveryError:
            self._close_campaign(campaign, LedgerStatus.FAILED)
            raise

        entry = self._close_campaign(campaign, LedgerStatus.DEAD_LETTERED)
        self._count("exhausted")
        campaign.future.set_result(
            RetryOutcome(
                event_id=campaign.event.event_id,
                handler=campaign.handler,
                status=RetryOutcomeStatus.EXHAUSTED,
                attempts=attempt,
                attempt_history=tuple(entry.attempts) if entry else (),
                error=error,
                elapsed_seconds=self._clock.monotonic() - campaign.started,
                dead_letter_entry_id=dead_letter.entry_id,
            )
        )

    def _handle_bookkeeping_failure(self, campaign: _Campaign, attempt: int, error: Exception) -> None:
        """The ledger could not follow the campaign: dead-letter the event and close the key."""
        self._count("bookkeeping_failures")
        logger.exception("retry_bookkeeping_failed", error=str(error))
        if campaign.future.done():
            return

        failure = ProcessorError.wrap(error, attempt=attempt)
        try:
            dead_letter = self.dead_letter_queue.send(
                campaign.event,
                failure,
                attempt,
                handler=campaign.handler,
                first_failed_at=campaign.first_failed_at,
            )
        except Exception as e:
            self._close_campaign(campaign, LedgerStatus.FAILED)
            delivery_error = e
            if not isinstance(e, DeadLetterDeliveryError):
                delivery_error = DeadLetterDeliveryError(
                    f"Failed to dead-letter event {campaign.event.event_id}: {e}",
                    event_id=campaign.event.event_id,
                )
            self._escalate_dead_letter_failure(campaign, delivery_error)
            return

        entry = self._close_campaign(campaign, LedgerStatus.DEAD_LETTERED)
        self._count("exhausted")
        campaign.future.set_result(
            RetryOutcome(
                event_id=campaign.event.event_id,
                handler=campaign.handler,
                status=RetryOutcomeStatus.EXHAUSTED,
                attempts=attempt,
                attempt_history=tuple(entry.attempts) if entry else (),
                error=failure,
                elapsed_seconds=self._clock.monotonic() - campaign.started,
                dead_letter_entry_id=dead_letter.entry_id,
            )
        )

    def _close_campaign(self, campaign: _Campaign, status: LedgerStatus) -> Optional[RetryLedgerEntry]:
        """Mark the campaign terminal, falling back to releasing its key.

        A campaign left active would answer ALREADY_IN_FLIGHT to every later
        publish of the event.
        """
        if not campaign.opened:
            return None
        try:
            return self.ledger.mark_terminal(campaign.key, status)
        except Exception as e:
            logger.error("retry_ledger_mark_terminal_failed", key=campaign.key, error=str(e))

        try:
            self.ledger.release(campaign.key)
        except Exception as e:
            logger.critical("retry_campaign_left_open", key=campaign.key, error=str(e))
            if self._notifier is not None:
                send_alert(
                    self._notifier,
                    "Retry campaign left open",
                    f"Retry ledger entry {campaign.key} could not be closed: {e}",
                    Severity.CRITICAL,
                    event_id=campaign.event.event_id,
                    handler=campaign.handler,
                )
        return None

    def _escalate_dead_letter_failure(self, campaign: _Campaign, error: DeadLetterDeliveryError) -> None:
        self._count("dead_letter_failures")
        logger.critical(
            "dead_letter_delivery_failed",
            event=campaign.event.to_dict(),
            error=str(error),
        )
        if self._notifier is not None:
            send_alert(
                self._notifier,
                "Dead letter delivery failed",
                f"Event {campaign.event.event_id} ({campaign.event.event_type}) exhausted its "
                f"retries and could not be stored in the dead letter queue: {error}",
                Severity.CRITICAL,
                event_id=campaign.event.event_id,
                handler=campaign.handler,
            )
        if not campaign.future.done():
            campaign.future.set_exception(error)

    def _count(self, name: str) -> None:
        with self._stats_lock:
            self._stats[name] += 1
