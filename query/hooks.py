"""
Domain query helpers.

These bind a service client to the right query keys and encode which cache
regions each write invalidates:
- any cart write invalidates ("cart",)
- creating an order invalidates every order list and the cart
- changing or cancelling an order invalidates that order and every order list
- a profile update writes the new profile straight into the cache
- any address write invalidates the address list

Remotes use these instead of calling QueryClient directly, so the invalidation
rules live in one place.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from messaging.event_bus import EventBus
from messaging.events import (
    EventNames,
    address_changed,
    address_deleted,
    order_created,
    order_status_changed,
    profile_updated,
)
from query.client import MutationOptions, MutationResult, QueryClient, QueryOptions, QueryResult
from query.keys import QueryKeys
from services.clients import CustomerServiceClient, OrderServiceClient, ProductServiceClient
from shared.models import Order, OrderStatus

logger = logging.getLogger("query_hooks")


class CatalogQueries:
    """Product reads."""

    def __init__(self, client: QueryClient, catalog: ProductServiceClient):
        self.client = client
        self.catalog = catalog

    async def products(self, filters: Optional[dict[str, Any]] = None) -> QueryResult:
        return await self.client.query(
            QueryKeys.products.list(filters),
            lambda: self.catalog.list_products(filters),
        )

    async def product(self, product_id: str) -> QueryResult:
        return await self.client.query(
            QueryKeys.products.detail(product_id),
            lambda: self.catalog.get_product(product_id),
            QueryOptions(enabled=bool(product_id)),
        )

    async def search(self, query: str) -> QueryResult:
        return await self.client.query(
            QueryKeys.products.search(query),
            lambda: self.catalog.search(query),
            QueryOptions(enabled=bool(query)),
        )


class CartQueries:
    """Server-side cart reads and writes."""

    def __init__(self, client: QueryClient, orders: OrderServiceClient):
        self.client = client
        self.orders = orders

    def _invalidate_cart(self, _: Any = None) -> None:
        self.client.invalidate(QueryKeys.cart.all)

    async def current(self) -> QueryResult:
        return await self.client.query(QueryKeys.cart.current(), self.orders.get_cart)

    async def add(self, product_id: str, quantity: int) -> MutationResult:
        return await self.client.mutate(
            lambda: self.orders.add_to_cart(product_id, quantity),
            MutationOptions(on_success=self._invalidate_cart),
        )

    async def update(self, item_id: str, quantity: int) -> MutationResult:
        return await self.client.mutate(
            lambda: self.orders.update_cart_item(item_id, quantity),
            MutationOptions(on_success=self._invalidate_cart),
        )

    async def remove(self, item_id: str) -> MutationResult:
        return await self.client.mutate(
            lambda: self.orders.remove_from_cart(item_id),
            MutationOptions(on_success=self._invalidate_cart),
        )

    async def clear(self) -> MutationResult:
        return await self.client.mutate(
            self.orders.clear_cart,
            MutationOptions(on_success=self._invalidate_cart),
        )


class OrderQueries:
    """Order reads and writes. Successful writes are also announced on the bus."""

    def __init__(self, client: QueryClient, orders: OrderServiceClient, event_bus: Optional[EventBus] = None):
        self.client = client
        self.orders = orders
        self.event_bus = event_bus

    async def orders_for(self, user_id: str) -> QueryResult:
        return await self.client.query(
            QueryKeys.orders.list(user_id),
            lambda: self.orders.list_orders(user_id),
            QueryOptions(enabled=bool(user_id)),
        )

    async def order(self, order_id: str) -> QueryResult:
        return await self.client.query(
            QueryKeys.orders.detail(order_id),
            lambda: self.orders.get_order(order_id),
            QueryOptions(enabled=bool(order_id)),
        )

    async def create(self, draft: dict[str, Any]) -> MutationResult:
        def on_success(order: Order) -> None:
            logger.info(f"Order {order.id} created")
            self.client.invalidate(QueryKeys.orders.lists())
            # The order was built from the cart
            self.client.invalidate(QueryKeys.cart.all)
            if self.event_bus is not None:
                self.event_bus.publish(EventNames.ORDER_CREATED, order_created(order.id, order.total))

        return await self.client.mutate(
            lambda: self.orders.create_order(draft),
            MutationOptions(on_success=on_success),
        )

    async def update_status(self, order_id: str, status: OrderStatus) -> MutationResult:
        return await self.client.mutate(
            lambda: self.orders.update_status(order_id, status),
            MutationOptions(on_success=self._status_written),
        )

    async def cancel(self, order_id: str) -> MutationResult:
        return await self.client.mutate(
            lambda: self.orders.cancel(order_id),
            MutationOptions(on_success=self._status_written),
        )

    def _status_written(self, order: Order) -> None:
        logger.info(f"Order {order.id} is now {order.status}")
        self.client.invalidate(QueryKeys.orders.detail(order.id))
        self.client.invalidate(QueryKeys.orders.lists())
        if self.event_bus is not None:
            self.event_bus.publish(
                EventNames.ORDER_STATUS_CHANGED,
                order_status_changed(order.id, str(order.status), datetime.now(timezone.utc).isoformat()),
            )


class CustomerQueries:
    """Profile, address book and saved payment methods of the signed-in customer."""

    def __init__(self, client: QueryClient, customer: CustomerServiceClient, event_bus: Optional[EventBus] = None):
        self.client = client
        self.customer = customer
        self.event_bus = event_bus

    def _publish(self, event_name: str, payload: dict[str, Any]) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event_name, payload)

    async def profile(self) -> QueryResult:
        return await self.client.query(QueryKeys.customer.profile(), self.customer.get_profile)

    async def addresses(self) -> QueryResult:
        return await self.client.query(QueryKeys.customer.addresses(), self.customer.get_addresses)

    async def payment_methods(self) -> QueryResult:
        return await self.client.query(QueryKeys.customer.payment_methods(), self.customer.get_payment_methods)

    async def update_profile(self, changes: dict[str, Any]) -> MutationResult:
        def on_success(user: dict[str, Any]) -> None:
            # The response is the full profile, no need to refetch
            self.client.set_query_data(QueryKeys.customer.profile(), user, self.customer.get_profile)
            self._publish(EventNames.CUSTOMER_PROFILE_UPDATED, profile_updated(user))

        return await self.client.mutate(
            lambda: self.customer.update_profile(changes),
            MutationOptions(on_success=on_success),
        )

    def _invalidate_addresses(self) -> None:
        self.client.invalidate(QueryKeys.customer.addresses())

    async def add_address(self, address: dict[str, Any]) -> MutationResult:
        def on_success(created: dict[str, Any]) -> None:
            self._invalidate_addresses()
            self._publish(EventNames.CUSTOMER_ADDRESS_ADDED, address_changed(created))

        return await self.client.mutate(
            lambda: self.customer.add_address(address),
            MutationOptions(on_success=on_success),
        )

    async def update_address(self, address_id: str, address: dict[str, Any]) -> MutationResult:
        def on_success(updated: dict[str, Any]) -> None:
            self._invalidate_addresses()
            self._publish(EventNames.CUSTOMER_ADDRESS_UPDATED, address_changed(updated))

        return await self.client.mutate(
            lambda: self.customer.update_address(address_id, address),
            MutationOptions(on_success=on_success),
        )

    async def delete_address(self, address_id: str) -> MutationResult:
        def on_success(_: Any) -> None:
            self._invalidate_addresses()
            self._publish(EventNames.CUSTOMER_ADDRESS_DELETED, address_deleted(address_id))

        return await self.client.mutate(
            lambda: self.customer.delete_address(address_id),
            MutationOptions(on_success=on_success),
        )
