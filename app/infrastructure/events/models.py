"""Domain event model.

Events are produced by business operations (products, orders, inventory)
and consumed by handlers through the EventPublisher.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Mapping
from uuid import uuid4


@dataclass(frozen=True)
class Event:
    """Immutable record of something that happened in the application."""

    event_type: str
    """The type of event (e.g., 'inventory.low_stock')."""

    aggregate_id: str = ""
    """Identifier of the entity the event is about (product id, order id)."""

    caused_by_user_id: str = ""
    """User whose action produced the event, empty for system events."""

    payload: Mapping[str, Any] = field(default_factory=dict)
    """Event-specific data, read-only once the event is created."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    """Unique identifier, the key for retry bookkeeping."""

    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    """When the event occurred."""

    def __post_init__(self) -> None:
        if not self.event_type:
            raise ValueError("event_type is required")
        if not isinstance(self.payload, Mapping):
            raise ValueError("payload must be a dictionary")
        # Private deep copy behind a read-only view.
        object.__setattr__(self, "payload", MappingProxyType(copy.deepcopy(dict(self.payload))))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize event to a JSON-compatible dictionary.

        Returns:
            Dictionary representation with an ISO format timestamp.
        """
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "caused_by_user_id": self.caused_by_user_id,
            "occurred_at": self.occurred_at.isoformat(),
            "payload": copy.deepcopy(dict(self.payload)),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Deserialize event from dictionary.

        Args:
            data: Dictionary with event fields.

        Returns:
            Event instance.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        try:
            occurred_at = data.get("occurred_at")
            if isinstance(occurred_at, str):
                occurred_at = datetime.fromisoformat(occurred_at)
            elif occurred_at is None:
                occurred_at = datetime.now(timezone.utc)

            return cls(
                event_type=data["event_type"],
                aggregate_id=data.get("aggregate_id", ""),
                caused_by_user_id=data.get("caused_by_user_id", ""),
                payload=data.get("payload", {}),
                event_id=data.get("event_id") or str(uuid4()),
                occurred_at=occurred_at,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid event data: {e}")

    def __hash__(self) -> int:
        """Hash based on event_id."""
        return hash(self.event_id)
