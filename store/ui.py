"""
UI slice: drawer and menu flags, theme, and the global in-flight request count.

Nothing here is persisted.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from messaging.event_bus import EventBus
from messaging.events import EventNames, theme_changed
from shared.models import Theme, UIState
from store.base import ChangeListener, Slice

logger = logging.getLogger("ui_slice")


class UISlice(Slice):
    """
    Transient UI state.

    `active_requests` can only move through increment_requests and
    decrement_requests (or the track_request context manager, which pairs
    them), and never drops below zero.
    """

    name = "ui"

    def __init__(self, event_bus: EventBus, on_change: Optional[ChangeListener] = None):
        super().__init__(UIState(), on_change)
        self.event_bus = event_bus

    def toggle_sidebar(self) -> UIState:
        return self._update(is_sidebar_open=not self._state.is_sidebar_open)

    def toggle_cart(self) -> UIState:
        return self._update(is_cart_open=not self._state.is_cart_open)

    def toggle_mobile_menu(self) -> UIState:
        return self._update(is_mobile_menu_open=not self._state.is_mobile_menu_open)

    def set_sidebar_open(self, is_open: bool) -> UIState:
        return self._update(is_sidebar_open=is_open)

    def set_cart_open(self, is_open: bool) -> UIState:
        return self._update(is_cart_open=is_open)

    def set_mobile_menu_open(self, is_open: bool) -> UIState:
        return self._update(is_mobile_menu_open=is_open)

    def set_theme(self, theme: Theme) -> UIState:
        theme = Theme(theme)
        state = self._update(theme=theme)
        self.event_bus.publish(EventNames.THEME_CHANGED, theme_changed(theme.value))
        return state

    # =========================================================================
    # Request tracking
    # =========================================================================

    def increment_requests(self) -> UIState:
        active = self._state.active_requests + 1
        return self._update(active_requests=active, is_global_loading=active > 0)

    def decrement_requests(self) -> UIState:
        if self._state.active_requests == 0:
            logger.warning("decrement_requests called with no active requests")
        active = max(0, self._state.active_requests - 1)
        return self._update(active_requests=active, is_global_loading=active > 0)

    @contextmanager
    def track_request(self) -> Iterator[None]:
        """Count a request as in flight for the duration of the block."""
        self.increment_requests()
        try:
            yield
        finally:
            self.decrement_requests()
