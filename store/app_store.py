"""
The application store: every slice behind one object.

The store is an explicit object built once by the host (see host/context.py)
and handed to whoever needs it. There is no module-level instance; tests build
their own and call reset() between cases.
"""

import logging
from typing import Callable, Optional

from messaging.event_bus import EventBus
from shared.config import CartPricing
from shared.models import AppSnapshot
from shared.storage import LocalStorage
from store.cart import CART_STORAGE_KEY, CartSlice
from store.products import ProductsSlice
from store.ui import UISlice

logger = logging.getLogger("app_store")

StoreListener = Callable[[str, AppSnapshot], None]


class AppStore:
    """
    Composition of the cart, products and UI slices.

    Only the slice mutators write state. Readers take snapshots with
    get_state() or subscribe to be told which slice changed.

    Example:
        store = AppStore(event_bus=bus, storage=MemoryStorage())
        store.cart.add_item(product, 1)
        store.get_state().cart.item_count   # 1
    """

    def __init__(
        self,
        event_bus: EventBus,
        storage: LocalStorage,
        pricing: Optional[CartPricing] = None,
        cart_storage_key: str = CART_STORAGE_KEY,
    ):
        self._listeners: list[StoreListener] = []
        self.cart = CartSlice(
            event_bus=event_bus,
            storage=storage,
            pricing=pricing,
            storage_key=cart_storage_key,
            on_change=self._notify,
        )
        self.products = ProductsSlice(event_bus=event_bus, on_change=self._notify)
        self.ui = UISlice(event_bus=event_bus, on_change=self._notify)

    def get_state(self) -> AppSnapshot:
        """Read-only snapshot of every slice."""
        return AppSnapshot(
            cart=self.cart.state,
            products=self.products.state,
            ui=self.ui.state,
        )

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Be told after every commit.

        The listener receives the name of the slice that changed and a fresh
        snapshot. Returns a callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, slice_name: str) -> None:
        if not self._listeners:
            return
        snapshot = self.get_state()
        for listener in list(self._listeners):
            try:
                listener(slice_name, snapshot)
            except Exception as e:
                logger.error(f"Store listener failed after '{slice_name}' change: {e!r}")

    def reset(self) -> None:
        """Put every slice back to its initial state and drop listeners."""
        self._listeners.clear()
        self.cart.reset()
        self.products.reset()
        self.ui.reset()
