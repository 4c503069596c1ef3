"""
Cart badge remote: shows the number of items in the cart.

Seeds itself from the store once, then follows cart events. The event payload
already carries the new item count, so the badge never reads the store again.
"""

import logging
from typing import Any

from messaging.event_bus import EventBus
from messaging.events import EventNames

logger = logging.getLogger("cart_badge")

REMOTE_VERSION = "1.0.0"


class CartBadge:
    def __init__(self, event_bus: EventBus, item_count: int = 0, total: float = 0.0):
        self.item_count = item_count
        self.total = total
        self.updates = 0
        self._unsubscribers = [
            event_bus.subscribe(name, self._on_cart_changed) for name in EventNames.CART_EVENTS
        ]

    @property
    def label(self) -> str:
        noun = "item" if self.item_count == 1 else "items"
        return f"{self.item_count} {noun}"

    def _on_cart_changed(self, payload: dict[str, Any]) -> None:
        self.item_count = payload["itemCount"]
        self.total = payload["total"]
        self.updates += 1
        logger.debug(f"Badge now shows {self.label}")

    def unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()


def mount(context) -> CartBadge:
    cart = context.store.get_state().cart
    return CartBadge(context.event_bus, item_count=cart.item_count, total=cart.total)
