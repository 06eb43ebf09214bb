"""Key/value persistence interface and in-memory backend."""

import copy
import threading
from typing import Any, Dict, List, Optional, Protocol

from infrastructure.logging import get_module_logger

logger = get_module_logger()


class KeyValueStore(Protocol):
    """Storage interface consumed by the retry ledger and task monitor.

    Values are JSON-compatible dicts. Implementations must make each single
    call atomic; callers serialize read-modify-write sequences per key.

    Methods:
        get: Return the value stored under key, or None
        put: Store value under key, replacing any previous value
        delete: Remove key, returning whether it existed
        keys: List keys starting with prefix
    """

    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def put(self, key: str, value: Dict[str, Any]) -> None: ...

    def delete(self, key: str) -> bool: ...

    def keys(self, prefix: str = "") -> List[str]: ...


class InMemoryKeyValueStore:
    """Thread-safe in-memory KeyValueStore.

    Values are deep-copied on the way in and out so callers can never mutate
    stored state without going through put(). Suitable for single-process
    deployments and tests.
    """

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        with self._lock:
            existed = self._data.pop(key, None) is not None
        if existed:
            logger.debug("kv_key_deleted", key=key)
        return existed

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
