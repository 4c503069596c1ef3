"""
Cross-remote messaging.

Remotes publish named events on the bus; any number of other remotes
subscribe without knowing who publishes.
"""

from messaging.event_bus import Event, EventBus
from messaging.events import EventNames

__all__ = [
    "Event",
    "EventBus",
    "EventNames",
]
