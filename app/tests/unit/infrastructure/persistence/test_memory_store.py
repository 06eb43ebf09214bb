"""Unit tests for the in-memory key/value store."""

import pytest

from infrastructure.persistence import InMemoryKeyValueStore

pytestmark = pytest.mark.unit


class TestInMemoryKeyValueStore:
    """Test basic storage operations."""

    def test_get_missing_key_returns_none(self):
        assert InMemoryKeyValueStore().get("missing") is None

    def test_put_then_get(self):
        store = InMemoryKeyValueStore()

        store.put("a", {"value": 1})

        assert store.get("a") == {"value": 1}

    def test_put_replaces_value(self):
        store = InMemoryKeyValueStore()
        store.put("a", {"value": 1})

        store.put("a", {"value": 2})

        assert store.get("a") == {"value": 2}
        assert len(store) == 1

    def test_delete_reports_existence(self):
        store = InMemoryKeyValueStore()
        store.put("a", {})

        assert store.delete("a") is True
        assert store.delete("a") is False
        assert store.get("a") is None

    def test_keys_filters_by_prefix(self):
        store = InMemoryKeyValueStore()
        store.put("retry_ledger:1", {})
        store.put("retry_ledger:2", {})
        store.put("dead_letter:1", {})

        assert sorted(store.keys("retry_ledger:")) == ["retry_ledger:1", "retry_ledger:2"]
        assert len(store.keys()) == 3

    def test_stored_values_are_isolated_from_caller(self):
        store = InMemoryKeyValueStore()
        value = {"items": [1]}
        store.put("a", value)

        value["items"].append(2)
        fetched = store.get("a")
        fetched["items"].append(3)

        assert store.get("a") == {"items": [1]}
