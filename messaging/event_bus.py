"""
In-memory event bus for cross-remote communication.

Remotes are built and deployed separately, so they cannot hold references to
each other. They coordinate by publishing named events here and subscribing to
the events they care about.

Design decisions:
- Synchronous delivery, in subscription order, within a single publish
- Name-based subscriptions ("cart:add"), plus a wildcard for observers
- Each publish iterates a snapshot of the handler list taken when it starts:
  handlers added during the publish wait for the next one, handlers removed
  during the publish are skipped if not yet reached
- A handler that raises is logged and the remaining handlers still run
- No persistence and no cross-process delivery
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

logger = logging.getLogger("event_bus")

WILDCARD = "*"


@dataclass(frozen=True)
class Event:
    """
    A published event, as seen by wildcard subscribers and the history.

    Attributes:
        name: Event name used for routing (e.g. "cart:add")
        payload: Whatever the publisher passed; delivered by reference
        timestamp: When the event was published
    """
    name: str
    payload: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"Event({self.name})"


# Handlers for named events receive the payload; wildcard handlers receive the Event
EventHandler = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class _Subscription:
    """One registration. Identity matters, not the handler's equality."""

    __slots__ = ("handler", "active")

    def __init__(self, handler: EventHandler):
        self.handler = handler
        self.active = True


class EventBus:
    """
    Publish/subscribe hub keyed by event name.

    Example usage:
        bus = EventBus()

        unsubscribe = bus.subscribe("cart:add", lambda payload: print(payload))
        bus.publish("cart:add", {"productId": "p1"})
        unsubscribe()
    """

    def __init__(self, history_size: int = 0):
        """
        Args:
            history_size: How many recent events to keep for debugging (0 disables)
        """
        self._subscribers: dict[str, list[_Subscription]] = defaultdict(list)
        self._history: deque[Event] = deque(maxlen=history_size or None)
        self._keep_history = history_size > 0

    def subscribe(self, event_name: str, handler: EventHandler) -> Unsubscribe:
        """
        Subscribe to an event.

        Args:
            event_name: The event to listen for
            handler: Called with the payload of each publish

        Returns:
            A callable that removes exactly this registration. Calling it more
            than once has no further effect.

        Note: The same handler can be subscribed multiple times; every
        registration is invoked and removable on its own.
        """
        subscription = _Subscription(handler)
        self._subscribers[event_name].append(subscription)
        logger.debug(f"Subscribed handler to '{event_name}'")

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            subscriptions = self._subscribers.get(event_name)
            if subscriptions and subscription in subscriptions:
                subscriptions.remove(subscription)
                if not subscriptions:
                    del self._subscribers[event_name]
            logger.debug(f"Unsubscribed handler from '{event_name}'")

        return unsubscribe

    def subscribe_all(self, handler: Callable[[Event], None]) -> Unsubscribe:
        """
        Subscribe to every event (analytics, debugging).

        The handler receives the Event object rather than the bare payload.
        """
        return self.subscribe(WILDCARD, handler)

    def publish(self, event_name: str, payload: Any = None) -> int:
        """
        Deliver a payload to every handler subscribed to `event_name`.

        Args:
            event_name: The event being published
            payload: Passed unchanged to each handler

        Returns:
            Number of handlers invoked
        """
        event = Event(name=event_name, payload=payload)
        if self._keep_history:
            self._history.append(event)

        named = list(self._subscribers.get(event_name, ()))
        wildcard = list(self._subscribers.get(WILDCARD, ())) if event_name != WILDCARD else []

        handlers_called = 0
        for subscription in named:
            if self._invoke(subscription, payload, event_name):
                handlers_called += 1
        for subscription in wildcard:
            if self._invoke(subscription, event, event_name):
                handlers_called += 1

        logger.debug(f"Published '{event_name}' to {handlers_called} handler(s)")
        return handlers_called

    def _invoke(self, subscription: _Subscription, argument: Any, event_name: str) -> bool:
        # Removed after this publish started
        if not subscription.active:
            return False
        try:
            subscription.handler(argument)
        except Exception as e:
            logger.error(f"Error in event handler for '{event_name}': {e!r}")
        return True

    def clear(self, event_name: Optional[str] = None) -> None:
        """
        Remove subscribers.

        Args:
            event_name: Only clear this event. If omitted, reset the whole bus.
        """
        if event_name is None:
            for subscriptions in self._subscribers.values():
                for subscription in subscriptions:
                    subscription.active = False
            self._subscribers.clear()
            self._history.clear()
            return
        for subscription in self._subscribers.pop(event_name, []):
            subscription.active = False

    def subscriber_count(self, event_name: str) -> int:
        """Get the number of live subscriptions for an event."""
        return len(self._subscribers.get(event_name, []))

    def history(self) -> list[Event]:
        """Recently published events, oldest first."""
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
