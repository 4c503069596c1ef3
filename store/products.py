"""
Products slice: the catalog page currently shown, the selection, and filters.
"""

import logging
from typing import Any, Iterable, Optional

from messaging.event_bus import EventBus
from messaging.events import EventNames, product_selected
from shared.models import Product, ProductsState, frozen_mapping
from store.base import ChangeListener, Slice

logger = logging.getLogger("products_slice")


class ProductsSlice(Slice):
    """Catalog state. Filters are stored as given and never interpreted here."""

    name = "products"

    def __init__(self, event_bus: EventBus, on_change: Optional[ChangeListener] = None):
        super().__init__(ProductsState(), on_change)
        self.event_bus = event_bus

    def set_items(self, items: Iterable[Product]) -> ProductsState:
        items = tuple(items)
        logger.debug(f"Loaded {len(items)} product(s)")
        return self._update(items=items)

    def set_filters(self, filters: dict[str, Any]) -> ProductsState:
        return self._update(filters=frozen_mapping(filters))

    def set_selected_product(self, product: Optional[Product]) -> ProductsState:
        """Select a product (or clear the selection) and tell the other remotes."""
        state = self._update(selected_product=product)
        self.event_bus.publish(
            EventNames.PRODUCT_SELECTED,
            product_selected(product.id if product else None),
        )
        return state

    def find_product(self, product_id: str) -> Optional[Product]:
        for product in self._state.items:
            if product.id == product_id:
                return product
        return None
