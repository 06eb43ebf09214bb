"""Persistence layer for retry bookkeeping and task execution history.

Components persist plain dicts through the KeyValueStore protocol, so a
durable backend only needs get/put/delete by key.
"""

from infrastructure.persistence.store import InMemoryKeyValueStore, KeyValueStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
]
