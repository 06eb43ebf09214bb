"""Infrastructure event system.

Domain events are published by business operations (products, orders,
inventory) and fanned out to handlers, each wrapped in the retry executor.

Usage:

    from infrastructure.events import Event
    from infrastructure.events.publisher import EventPublisher

    @publisher.handler("inventory.low_stock")
    def handle_low_stock(event: Event) -> None:
        ...

    publisher.publish(Event(event_type="inventory.low_stock", payload={"product_id": 42}))

EventPublisher is imported from its module directly; it depends on the
retry subsystem, which itself imports the Event model.
"""

from infrastructure.events.models import Event

__all__ = [
    "Event",
]
