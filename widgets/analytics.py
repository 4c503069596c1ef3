"""
Analytics remote: records every event published on the bus.

Uses the wildcard subscription, so it sees events from remotes it has never
heard of.
"""

import logging
from collections import Counter

from messaging.event_bus import Event, EventBus

logger = logging.getLogger("analytics")

REMOTE_VERSION = "1.0.0"


class AnalyticsRecorder:
    """
    Example usage:
        recorder = AnalyticsRecorder(bus)
        bus.publish("cart:add", {...})
        recorder.counts["cart:add"]   # 1
    """

    def __init__(self, event_bus: EventBus, max_events: int = 500):
        self.max_events = max_events
        self.events: list[Event] = []
        self.counts: Counter = Counter()
        self._unsubscribe = event_bus.subscribe_all(self._record)

    def _record(self, event: Event) -> None:
        self.counts[event.name] += 1
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[0]

    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def unmount(self) -> None:
        self._unsubscribe()
        logger.info(f"Recorded {sum(self.counts.values())} events")


def mount(context) -> AnalyticsRecorder:
    return AnalyticsRecorder(context.event_bus)
