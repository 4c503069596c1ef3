"""
Domain clients for the catalog, order/cart and customer services.

The core treats these purely as sources of fetch functions for the query
client; nothing here caches or retries.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from services.base import ServiceClient
from shared.config import Settings
from shared.models import Order, OrderStatus, Product
from shared.storage import LocalStorage


class ProductServiceClient(ServiceClient):
    """Catalog service."""

    service_name = "catalog"

    async def list_products(self, filters: Optional[dict[str, Any]] = None) -> list[Product]:
        data = await self._get("/products", params=filters)
        items = data.get("data", []) if isinstance(data, dict) else data
        return [Product.model_validate(item) for item in items]

    async def get_product(self, product_id: str) -> Product:
        return Product.model_validate(await self._get(f"/products/{product_id}"))

    async def search(self, query: str) -> list[Product]:
        data = await self._get("/products/search", params={"q": query})
        return [Product.model_validate(item) for item in data]


class OrderServiceClient(ServiceClient):
    """Order service, which also owns the server-side cart."""

    service_name = "orders"

    # Cart

    async def get_cart(self) -> dict[str, Any]:
        return await self._get("/cart")

    async def add_to_cart(self, product_id: str, quantity: int) -> dict[str, Any]:
        return await self._post("/cart/items", json={"productId": product_id, "quantity": quantity})

    async def update_cart_item(self, item_id: str, quantity: int) -> dict[str, Any]:
        return await self._patch(f"/cart/items/{item_id}", json={"quantity": quantity})

    async def remove_from_cart(self, item_id: str) -> dict[str, Any]:
        return await self._delete(f"/cart/items/{item_id}")

    async def clear_cart(self) -> None:
        await self._delete("/cart")

    # Orders

    async def list_orders(self, user_id: str) -> list[Order]:
        data = await self._get("/orders", params={"userId": user_id})
        return [Order.model_validate(item) for item in data]

    async def get_order(self, order_id: str) -> Order:
        return Order.model_validate(await self._get(f"/orders/{order_id}"))

    async def create_order(self, draft: dict[str, Any]) -> Order:
        return Order.model_validate(await self._post("/orders", json=draft))

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        payload = {"status": OrderStatus(status).value}
        return Order.model_validate(await self._patch(f"/orders/{order_id}/status", json=payload))

    async def cancel(self, order_id: str) -> Order:
        return Order.model_validate(await self._post(f"/orders/{order_id}/cancel"))


class CustomerServiceClient(ServiceClient):
    """Customer profile service."""

    service_name = "customer"

    async def get_profile(self) -> dict[str, Any]:
        return await self._get("/customers/me")

    async def update_profile(self, changes: dict[str, Any]) -> dict[str, Any]:
        return await self._put("/customers/me", json=changes)

    # Addresses

    async def get_addresses(self) -> list[dict[str, Any]]:
        return await self._get("/customers/me/addresses")

    async def add_address(self, address: dict[str, Any]) -> dict[str, Any]:
        return await self._post("/customers/me/addresses", json=address)

    async def update_address(self, address_id: str, address: dict[str, Any]) -> dict[str, Any]:
        return await self._put(f"/customers/me/addresses/{address_id}", json=address)

    async def delete_address(self, address_id: str) -> None:
        await self._delete(f"/customers/me/addresses/{address_id}")

    # Payment methods

    async def get_payment_methods(self) -> list[dict[str, Any]]:
        return await self._get("/customers/me/payment-methods")


@dataclass
class Services:
    """The service clients handed to remotes."""
    catalog: ProductServiceClient
    orders: OrderServiceClient
    customer: CustomerServiceClient

    async def aclose(self) -> None:
        await self.catalog.aclose()
        await self.orders.aclose()
        await self.customer.aclose()


def create_services(
    settings: Settings,
    storage: Optional[LocalStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Services:
    """Build one client per backend domain from the settings."""
    common = dict(
        base_url=settings.api_base_url,
        storage=storage,
        timeout=settings.request_timeout,
        token_key=settings.auth_token_key,
        transport=transport,
    )
    return Services(
        catalog=ProductServiceClient(**common),
        orders=OrderServiceClient(**common),
        customer=CustomerServiceClient(**common),
    )
