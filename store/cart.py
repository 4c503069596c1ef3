"""
Cart slice: line items, derived totals, and persistence.

Every mutator runs the same sequence as one synchronous step:
1. compute the new list of line items
2. recompute subtotal, tax, shipping, total and item count from that list
3. persist the resulting snapshot to durable storage
4. commit the new state
5. publish a cart event on the bus

The derived totals are never assigned anywhere else, so they cannot drift
from the items.

Storage failures (quota, unwritable file, corrupt snapshot on startup) are
logged and the cart keeps working in memory.
"""

import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from messaging.event_bus import EventBus
from messaging.events import EventNames, cart_changed
from shared.config import CartPricing
from shared.errors import PersistenceError
from shared.models import CartItem, CartState, CartTotals, Product
from shared.storage import LocalStorage, read_json, write_json
from store.base import ChangeListener, Slice

logger = logging.getLogger("cart_slice")

CART_STORAGE_KEY = "cart"


def calculate_cart_totals(items: Iterable[CartItem], pricing: CartPricing) -> CartTotals:
    """
    Derive the cart totals from its line items.

    Shipping only depends on the subtotal, so a cart emptied by removing its
    last line still shows the flat fee. clear_cart() zeroes every total.
    """
    items = list(items)
    subtotal = sum((item.subtotal for item in items), 0.0)
    tax = subtotal * pricing.tax_rate
    if subtotal > pricing.free_shipping_threshold:
        shipping = 0.0
    else:
        shipping = pricing.flat_shipping_fee
    return CartTotals(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=subtotal + tax + shipping,
        item_count=sum(item.quantity for item in items),
    )


class CartSlice(Slice):
    """
    The shopping cart shared by every remote.

    Example:
        cart = CartSlice(event_bus=bus, storage=MemoryStorage())
        cart.add_item(product, 2)
        cart.update_quantity(product.id, 0)   # same as remove_item
    """

    name = "cart"

    def __init__(
        self,
        event_bus: EventBus,
        storage: LocalStorage,
        pricing: Optional[CartPricing] = None,
        storage_key: str = CART_STORAGE_KEY,
        on_change: Optional[ChangeListener] = None,
    ):
        """
        Initialize the cart and restore the persisted snapshot, if any.

        Args:
            event_bus: Bus the cart events are published on
            storage: Durable storage holding the snapshot
            pricing: Tax and shipping constants
            storage_key: Key the snapshot is stored under
            on_change: Called with the slice name after each commit
        """
        super().__init__(CartState(), on_change)
        self.event_bus = event_bus
        self.storage = storage
        self.pricing = pricing or CartPricing()
        self.storage_key = storage_key
        self._state = self._restore()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _restore(self) -> CartState:
        try:
            snapshot = read_json(self.storage, self.storage_key)
        except (PersistenceError, OSError) as e:
            logger.error(f"Could not read cart snapshot, starting empty: {e}")
            return CartState()
        if snapshot is None:
            return CartState()
        try:
            items = CartState.model_validate({"items": snapshot.get("items", [])}).items
        except (ValidationError, AttributeError) as e:
            logger.error(f"Discarding corrupt cart snapshot: {e}")
            return CartState()
        items = [
            item.model_copy(update={"subtotal": item.quantity * item.product.price})
            for item in items
        ]
        if not items:
            return CartState()
        state = self._with_items(CartState(), items)
        logger.info(f"Restored cart with {state.item_count} item(s)")
        return state

    def _persist(self, state: CartState) -> None:
        try:
            write_json(self.storage, self.storage_key, state.to_snapshot())
        except (PersistenceError, OSError) as e:
            logger.error(f"Cart not persisted, continuing in memory: {e}")

    def _with_items(self, state: CartState, items: Iterable[CartItem]) -> CartState:
        items = tuple(items)
        totals = calculate_cart_totals(items, self.pricing)
        return state.model_copy(update={"items": items, **totals.model_dump()})

    def _apply(self, items: Iterable[CartItem], event_name: str, product_id: Optional[str], quantity: int) -> CartState:
        return self._commit_and_publish(self._with_items(self._state, items), event_name, product_id, quantity)

    def _commit_and_publish(self, new_state: CartState, event_name: str, product_id: Optional[str], quantity: int) -> CartState:
        self._persist(new_state)
        self._commit(new_state)
        self.event_bus.publish(
            event_name,
            cart_changed(product_id, quantity, new_state.item_count, new_state.total),
        )
        return new_state

    # =========================================================================
    # Mutators
    # =========================================================================

    def add_item(self, product: Product, quantity: int = 1) -> CartState:
        """
        Add a product, or increase its quantity if it is already in the cart.

        Args:
            product: The product being added; its price is used for the line subtotal
            quantity: How many to add (must be positive)

        Returns:
            The committed cart state
        """
        if quantity <= 0:
            logger.warning(f"Ignoring add of {product.id} with non-positive quantity {quantity}")
            return self._state

        existing = self._state.find_item(product.id)
        if existing is not None:
            new_quantity = existing.quantity + quantity
            items = [
                item.model_copy(update={
                    "product": product,
                    "quantity": new_quantity,
                    "subtotal": new_quantity * product.price,
                })
                if item.product.id == product.id else item
                for item in self._state.items
            ]
        else:
            new_quantity = quantity
            items = [
                *self._state.items,
                CartItem(product=product, quantity=quantity, subtotal=quantity * product.price),
            ]

        logger.info(f"Cart add: {product.id} x{quantity} (line quantity {new_quantity})")
        return self._apply(items, EventNames.CART_ADD, product.id, new_quantity)

    def remove_item(self, product_id: str) -> CartState:
        """Remove the line for a product. Unknown products are ignored."""
        if not self._state.contains_product(product_id):
            logger.warning(f"Cart remove: {product_id} is not in the cart")
            return self._state

        items = [item for item in self._state.items if item.product.id != product_id]
        logger.info(f"Cart remove: {product_id}")
        return self._apply(items, EventNames.CART_REMOVE, product_id, 0)

    def update_quantity(self, product_id: str, quantity: int) -> CartState:
        """
        Set the quantity of a line. A quantity of zero or less removes the line.
        """
        if quantity <= 0:
            return self.remove_item(product_id)

        if not self._state.contains_product(product_id):
            logger.warning(f"Cart update: {product_id} is not in the cart")
            return self._state

        items = [
            item.model_copy(update={
                "quantity": quantity,
                "subtotal": quantity * item.product.price,
            })
            if item.product.id == product_id else item
            for item in self._state.items
        ]
        logger.info(f"Cart update: {product_id} -> {quantity}")
        return self._apply(items, EventNames.CART_UPDATE, product_id, quantity)

    def clear_cart(self) -> CartState:
        """Empty the cart."""
        logger.info("Cart cleared")
        cleared = self._state.model_copy(update={"items": (), **CartTotals().model_dump()})
        return self._commit_and_publish(cleared, EventNames.CART_CLEAR, None, 0)

    def reset(self) -> CartState:
        """Empty the cart without publishing (test isolation)."""
        state = CartState()
        self._persist(state)
        return self._commit(state)
