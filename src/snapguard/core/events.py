"""
Event types and a small publish/subscribe bus for state transitions.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from typing import Any, NamedTuple, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

STATE_TRANSITION_ACCEPTED = "state_transition_accepted"


class TransitionEvent(NamedTuple):
    """
    Payload of a ``STATE_TRANSITION_ACCEPTED`` event.

    Attributes:
        old: Previous accepted snapshot
        new: Candidate snapshot about to be accepted
    """

    old: dict[str, Any] | None  # Previous accepted state
    new: dict[str, Any]  # Candidate state


Handler = Callable[..., Any]


@runtime_checkable
class EventBus(Protocol):
    """Contract for the host's event bus."""

    def subscribe(self, kind: str, handler: Handler) -> int:
        """Register ``handler`` for ``kind``; returns a subscription token."""
        ...

    def unsubscribe(self, token: int) -> bool:
        """Drop a subscription; returns whether it existed."""
        ...

    def publish(self, kind: str, *payload: Any) -> list[Any]:
        """Call every handler of ``kind`` with ``payload``; returns their results."""
        ...


class InMemoryEventBus:
    """
    Synchronous in-process event bus.

    Handlers run in subscription order on the publisher's thread. The host is
    expected not to publish concurrently, so there is no locking.

    **Example Usage:**
        ```python
        bus = InMemoryEventBus()
        token = bus.subscribe(STATE_TRANSITION_ACCEPTED, lambda old, new: new)
        bus.publish(STATE_TRANSITION_ACCEPTED, old_snapshot, new_snapshot)
        bus.unsubscribe(token)
        ```
    """

    def __init__(self) -> None:
        self._handlers: dict[str, dict[int, Handler]] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, kind: str, handler: Handler) -> int:
        token = next(self._tokens)
        self._handlers.setdefault(kind, {})[token] = handler
        logger.debug("Subscribed token %d to %s", token, kind)
        return token

    def unsubscribe(self, token: int) -> bool:
        for handlers in self._handlers.values():
            if token in handlers:
                del handlers[token]
                logger.debug("Unsubscribed token %d", token)
                return True
        return False

    def publish(self, kind: str, *payload: Any) -> list[Any]:
        handlers = list(self._handlers.get(kind, {}).values())
        return [handler(*payload) for handler in handlers]

    def subscriber_count(self, kind: str) -> int:
        return len(self._handlers.get(kind, {}))
