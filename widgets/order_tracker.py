"""
Order tracker remote: follows order lifecycle events.
"""

import logging
from typing import Any, Optional

from messaging.event_bus import EventBus
from messaging.events import EventNames

logger = logging.getLogger("order_tracker")

REMOTE_VERSION = "1.0.0"


class OrderTracker:
    def __init__(self, event_bus: EventBus):
        # order id -> latest known status
        self.statuses: dict[str, str] = {}
        self.totals: dict[str, float] = {}
        self._unsubscribers = [
            event_bus.subscribe(EventNames.ORDER_CREATED, self._on_created),
            event_bus.subscribe(EventNames.ORDER_STATUS_CHANGED, self._on_status_changed),
        ]

    def _on_created(self, payload: dict[str, Any]) -> None:
        self.statuses[payload["orderId"]] = "pending"
        self.totals[payload["orderId"]] = payload["total"]

    def _on_status_changed(self, payload: dict[str, Any]) -> None:
        order_id = payload["orderId"]
        previous = self.statuses.get(order_id)
        self.statuses[order_id] = payload["status"]
        logger.info(f"Order {order_id}: {previous} -> {payload['status']}")

    def status_of(self, order_id: str) -> Optional[str]:
        return self.statuses.get(order_id)

    def unmount(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()


def mount(context) -> OrderTracker:
    return OrderTracker(context.event_bus)
