"""Event publisher: fan-out of domain events to registered handlers.

Each handler invocation is wrapped individually in
EventRetryExecutor.execute_with_retry and runs on a worker pool, so
publish() returns as soon as dispatch is initiated and one handler's
failures never block or fail another handler. Retry attempts that come
due on the clock are submitted to the same pool.

Usage:

    publisher = EventPublisher(retry_executor)

    @publisher.handler("inventory.low_stock")
    def notify_purchasing(event: Event) -> None:
        ...

    receipt = publisher.publish(Event(event_type="inventory.low_stock", payload={"product_id": 42}))
    outcomes = receipt.wait(timeout=30)
"""

import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from infrastructure.events.models import Event
from infrastructure.logging import bind_log_context, get_module_logger
from infrastructure.resilience.retry.executor import EventRetryExecutor
from infrastructure.resilience.retry.models import RetryOutcome
from infrastructure.resilience.retry.policy import RetryPolicy

logger = get_module_logger()

WILDCARD = "*"

Handler = Callable[[Event], Any]


@dataclass(frozen=True)
class Subscription:
    """A handler registered for an event type."""

    event_type: str
    name: str
    handler: Handler
    policy: Optional[RetryPolicy] = None


@dataclass
class PublishReceipt:
    """Handles to the per-handler outcomes of one publish call.

    Attributes:
        event: The published event
        outcomes: Handler name -> Future resolving to its RetryOutcome
    """

    event: Event
    outcomes: Dict[str, "Future[RetryOutcome]"] = field(default_factory=dict)

    @property
    def handler_names(self) -> List[str]:
        return list(self.outcomes)

    def done(self) -> bool:
        return all(f.done() for f in self.outcomes.values())

    def wait(self, timeout: Optional[float] = None) -> Dict[str, RetryOutcome]:
        """Block until every handler's campaign has finished.

        Raises:
            TimeoutError: If the campaigns did not finish in time.
            DeadLetterDeliveryError: If an exhausted event could not be dead-lettered.
        """
        _, not_done = wait_futures(list(self.outcomes.values()), timeout=timeout)
        if not_done:
            raise TimeoutError(
                f"{len(not_done)} handler(s) still processing event {self.event.event_id}"
            )
        return {name: f.result() for name, f in self.outcomes.items()}


class EventPublisher:
    """Dispatches events to handlers through the retry executor."""

    def __init__(
        self,
        retry_executor: EventRetryExecutor,
        worker_pool: Optional[Executor] = None,
        max_workers: int = 4,
    ) -> None:
        self._retry_executor = retry_executor
        self._pool = worker_pool
        self._max_workers = max_workers
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()
        self._shutdown = False
        retry_executor.bind_dispatcher(self._submit_retry)

    def subscribe(
        self,
        event_type: str,
        handler: Handler,
        policy: Optional[RetryPolicy] = None,
        name: Optional[str] = None,
    ) -> Subscription:
        """Register a handler for an event type ("*" for every type).

        The handler name identifies its retry campaigns and dead letter
        entries, so it must be unambiguous for every event the handler can
        receive: a wildcard handler's name cannot also be used on a specific
        type, and lambdas need an explicit name.

        Raises:
            ValueError: If the name is already subscribed to the event type,
                clashes with a wildcard subscription, or is missing for a lambda.
        """
        handler_name = name or getattr(handler, "__qualname__", None) or getattr(
            handler, "__name__", "unknown"
        )
        if name is None and "<lambda>" in handler_name:
            raise ValueError(f"Lambda handlers for '{event_type}' need an explicit name")
        subscription = Subscription(
            event_type=event_type, name=handler_name, handler=handler, policy=policy
        )
        with self._lock:
            scopes = list(self._subscriptions) if event_type == WILDCARD else [event_type, WILDCARD]
            clashing = [
                t for t in scopes if any(s.name == handler_name for s in self._subscriptions.get(t, []))
            ]
            if clashing:
                raise ValueError(
                    f"Handler '{handler_name}' already subscribed to '{clashing[0]}'"
                )
            subscriptions = self._subscriptions.setdefault(event_type, [])
            subscriptions.append(subscription)
            total = len(subscriptions)

        logger.debug(
            "registered_event_handler",
            handler=handler_name,
            event_type=event_type,
            total_handlers=total,
        )
        return subscription

    def handler(
        self,
        event_type: str,
        policy: Optional[RetryPolicy] = None,
        name: Optional[str] = None,
    ) -> Callable[[Handler], Handler]:
        """Decorator form of subscribe()."""

        def decorator(handler_func: Handler) -> Handler:
            self.subscribe(event_type, handler_func, policy=policy, name=name)
            return handler_func

        return decorator

    def unsubscribe(self, event_type: str, name: str) -> bool:
        with self._lock:
            subscriptions = self._subscriptions.get(event_type, [])
            remaining = [s for s in subscriptions if s.name != name]
            if len(remaining) == len(subscriptions):
                return False
            self._subscriptions[event_type] = remaining
        logger.debug("unregistered_event_handler", handler=name, event_type=event_type)
        return True

    def publish(self, event: Event) -> PublishReceipt:
        """Dispatch an event to every handler for its type.

        Unknown event types are a no-op. Never raises for handler failures.

        Returns:
            PublishReceipt with one outcome future per handler.
        """
        return self._dispatch(event, self.handlers_for(event.event_type))

    def publish_many(self, *events: Event) -> List[PublishReceipt]:
        return [self.publish(event) for event in events]

    def replay_to(self, event: Event, handler_name: str) -> PublishReceipt:
        """Dispatch an event to a single named handler (dead letter replay)."""
        matching = [s for s in self.handlers_for(event.event_type) if s.name == handler_name]
        if not matching:
            logger.warning(
                "replay_handler_not_found",
                event_id=event.event_id,
                event_type=event.event_type,
                handler=handler_name,
            )
        return self._dispatch(event, matching[:1])

    def registered_event_types(self) -> List[str]:
        with self._lock:
            return [t for t, subs in self._subscriptions.items() if subs]

    def handlers_for(self, event_type: str) -> List[Subscription]:
        """Subscriptions receiving an event type, wildcard subscriptions last."""
        with self._lock:
            specific = list(self._subscriptions.get(event_type, []))
            wildcard = [] if event_type == WILDCARD else list(self._subscriptions.get(WILDCARD, []))
        return specific + wildcard

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting events and shut the worker pool down.

        Idempotent. Retries already scheduled on the clock still run.
        """
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
            pool = self._pool
        if pool is not None:
            pool.shutdown(wait=wait)
        logger.debug("event_publisher_shut_down", wait=wait)

    def _dispatch(self, event: Event, subscriptions: List[Subscription]) -> PublishReceipt:
        receipt = PublishReceipt(event=event)
        if not subscriptions:
            logger.debug("no_handlers_for_event", event_type=event.event_type, event_id=event.event_id)
            return receipt

        pool = self._get_or_create_pool()
        if pool is None:
            logger.error(
                "event_publisher_unavailable",
                event_type=event.event_type,
                event_id=event.event_id,
            )
            return receipt

        logger.info(
            "dispatching_event",
            event_type=event.event_type,
            event_id=event.event_id,
            handler_count=len(subscriptions),
        )
        for subscription in subscriptions:
            outcome: "Future[RetryOutcome]" = Future()
            try:
                pool.submit(self._run_handler, event, subscription, outcome)
            except RuntimeError as e:
                logger.error(
                    "failed_to_submit_event_to_executor",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    handler=subscription.name,
                    error=str(e),
                )
                continue
            receipt.outcomes[subscription.name] = outcome
        return receipt

    def _run_handler(
        self, event: Event, subscription: Subscription, outcome: "Future[RetryOutcome]"
    ) -> None:
        with bind_log_context(event_id=event.event_id, handler=subscription.name):
            try:
                campaign = self._retry_executor.execute_with_retry(
                    event,
                    subscription.handler,
                    policy=subscription.policy,
                    handler_name=subscription.name,
                )
            except Exception as e:
                logger.exception("event_handler_dispatch_failed", error=str(e))
                outcome.set_exception(e)
                return
        campaign.add_done_callback(lambda done: _relay(done, outcome))

    def _submit_retry(self, attempt: Callable[[], None]) -> None:
        pool = self._get_or_create_pool()
        if pool is None:
            # Shut down: retries already scheduled still run, on the timer thread.
            attempt()
            return
        pool.submit(attempt)

    def _get_or_create_pool(self) -> Optional[Executor]:
        with self._lock:
            if self._shutdown:
                return None
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="event-dispatch"
                )
                logger.debug("created_event_dispatch_pool", max_workers=self._max_workers)
            return self._pool


def _relay(source: "Future[RetryOutcome]", target: "Future[RetryOutcome]") -> None:
    error = source.exception()
    if error is not None:
        target.set_exception(error)
    else:
        target.set_result(source.result())
