"""
Tests for the in-memory event bus and snapshot store.
"""

import asyncio

import pytest
from snapguard.core.errors import StoreError
from snapguard.core.events import (
    STATE_TRANSITION_ACCEPTED,
    EventBus,
    InMemoryEventBus,
    TransitionEvent,
)
from snapguard.core.store import (
    LATEST,
    PREVIOUS,
    InMemorySnapshotStore,
    SnapshotStore,
)


class TestInMemoryEventBus:
    """Test subscribe/publish/unsubscribe."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemoryEventBus(), EventBus)

    def test_publish_calls_handlers_in_order(self):
        bus = InMemoryEventBus()
        calls = []
        bus.subscribe(STATE_TRANSITION_ACCEPTED, lambda old, new: calls.append("a"))
        bus.subscribe(STATE_TRANSITION_ACCEPTED, lambda old, new: calls.append("b"))
        bus.publish(STATE_TRANSITION_ACCEPTED, {}, {})
        assert calls == ["a", "b"]

    def test_publish_returns_results(self):
        bus = InMemoryEventBus()
        bus.subscribe("other", lambda *payload: len(payload))
        assert bus.publish("other", 1, 2, 3) == [3]
        assert bus.publish(STATE_TRANSITION_ACCEPTED, {}, {}) == []

    def test_unsubscribe(self):
        bus = InMemoryEventBus()
        token = bus.subscribe(STATE_TRANSITION_ACCEPTED, lambda old, new: None)
        assert bus.subscriber_count(STATE_TRANSITION_ACCEPTED) == 1
        assert bus.unsubscribe(token) is True
        assert bus.unsubscribe(token) is False
        assert bus.subscriber_count(STATE_TRANSITION_ACCEPTED) == 0

    def test_transition_event_payload(self):
        event = TransitionEvent(old={"a": 1}, new={"a": 2})
        bus = InMemoryEventBus()
        bus.subscribe(STATE_TRANSITION_ACCEPTED, lambda old, new: new["a"] - old["a"])
        assert bus.publish(STATE_TRANSITION_ACCEPTED, *event) == [1]


class TestInMemorySnapshotStore:
    """Test history addressing and copy semantics."""

    def test_satisfies_protocol(self):
        assert isinstance(InMemorySnapshotStore(), SnapshotStore)

    def test_get_targets(self):
        store = InMemorySnapshotStore([{"n": 0}, {"n": 1}, {"n": 2}])
        assert store.get(LATEST) == {"n": 2}
        assert store.get(PREVIOUS) == {"n": 1}
        assert store.get(0) == {"n": 0}
        assert store.get(-5) is None
        assert store.get(10) is None

    def test_empty_store(self):
        store = InMemorySnapshotStore()
        assert store.get(LATEST) is None
        assert store.get(PREVIOUS) is None

    def test_unknown_target(self):
        with pytest.raises(StoreError):
            InMemorySnapshotStore([{}]).get("oldest")

    def test_get_returns_copies(self):
        store = InMemorySnapshotStore([{"n": {"x": 1}}])
        fetched = store.get(LATEST)
        fetched["n"]["x"] = 99
        assert store.get(LATEST) == {"n": {"x": 1}}

    def test_replace(self):
        store = InMemorySnapshotStore([{"n": 0}, {"n": 1}])
        asyncio.run(store.replace({"n": 5}, LATEST))
        assert store.history == [{"n": 0}, {"n": 5}]

    def test_replace_missing_target(self):
        store = InMemorySnapshotStore()
        with pytest.raises(StoreError):
            asyncio.run(store.replace({"n": 5}, LATEST))

    def test_append(self):
        store = InMemorySnapshotStore()
        snapshot = {"n": 1}
        store.append(snapshot)
        snapshot["n"] = 2
        assert len(store) == 1
        assert store.get(LATEST) == {"n": 1}
