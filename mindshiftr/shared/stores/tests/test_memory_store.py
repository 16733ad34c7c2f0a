"""Tests for the store abstraction and the in-memory store."""
import threading

import pytest

from mindshiftr.shared.stores import BaseStore, InMemoryStore, NotFoundError, StoreError


class TestStoreExceptions:

    def test_not_found_is_store_error(self):
        assert isinstance(NotFoundError("missing"), StoreError)


class TestInMemoryStore:

    def test_put_get_delete(self):
        store = InMemoryStore("things")
        store.put("a", 1)

        assert store.get("a") == 1
        assert "a" in store
        assert store.delete("a") is True
        assert store.get("a") is None
        assert store.delete("a") is False

    def test_require_raises_when_absent(self):
        store = InMemoryStore("things")

        with pytest.raises(NotFoundError):
            store.require("missing")

    def test_keys_is_a_snapshot(self):
        store = InMemoryStore("things")
        store.put("a", 1)
        store.put("b", 2)

        keys = store.keys()
        store.delete("a")

        assert sorted(keys) == ["a", "b"]
        assert len(store) == 1

    def test_get_or_create_runs_factory_once(self):
        store = InMemoryStore("things")
        calls = []

        def factory():
            calls.append(1)
            return object()

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(store.get_or_create("k", factory)))
            for _ in range(10)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert all(r is results[0] for r in results)


class DictStore(BaseStore[str]):
    """Minimal concrete store exercising the base-class helpers."""

    def __init__(self):
        super().__init__("dict")
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def put(self, key, value):
        self.data[key] = value

    def delete(self, key):
        return self.data.pop(key, None) is not None

    def keys(self):
        return iter(list(self.data))


class TestBaseStoreHelpers:

    def test_get_or_create_stores_value(self):
        store = DictStore()

        assert store.get_or_create("k", lambda: "v") == "v"
        assert store.get_or_create("k", lambda: "other") == "v"
        assert store.data == {"k": "v"}

    def test_contains(self):
        store = DictStore()
        store.put("k", "v")

        assert "k" in store
        assert "x" not in store
