"""
Demonstration scripts for the storefront host.

These functions build a host, mount the sample remotes and drive a few
scenarios end to end. The backend services are served in-process with an
httpx MockTransport, so nothing needs to be running.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from host.context import HostContext, create_host_context
from messaging.events import EventNames
from query.keys import QueryKeys
from remotes.loader import Failed, Mounted
from remotes.registry import RemoteDefinition
from shared.config import Settings
from shared.models import Product

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

CATALOG = [
    {"id": "p-100", "name": "Trail Runner Shoes", "price": 89.0, "category": "footwear", "stock": 12},
    {"id": "p-200", "name": "Merino Socks", "price": 12.5, "category": "apparel", "stock": 40},
    {"id": "p-300", "name": "Water Bottle", "price": 18.0, "category": "gear", "stock": 0},
]


def demo_backend(request: httpx.Request) -> httpx.Response:
    """In-process stand-in for the catalog service."""
    path = request.url.path
    if path.endswith("/products"):
        return httpx.Response(200, json={"data": CATALOG})
    if "/products/" in path:
        product_id = path.rsplit("/", 1)[-1]
        for product in CATALOG:
            if product["id"] == product_id:
                return httpx.Response(200, json=product)
        return httpx.Response(404, json={"message": f"Product {product_id} not found"})
    return httpx.Response(503, json={"message": "Service unavailable"})


def _banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70 + "\n")


async def _with_host(scenario: Callable[[HostContext], Awaitable[Any]]) -> Any:
    host = create_host_context(Settings(), transport=httpx.MockTransport(demo_backend))
    try:
        return await scenario(host)
    finally:
        await host.aclose()


async def _run_widgets_demo(host: HostContext) -> dict:
    results = {}
    for remote, module in (("cart", "cart_badge"), ("analytics", "analytics"), ("order", "order_tracker")):
        result = await host.loader.load(remote, module)
        results[module] = result
        state = "mounted" if isinstance(result, Mounted) else f"failed ({result.reason})"
        print(f"  {remote}/{module}: {state}")

    badge = results["cart_badge"].handle
    analytics = results["analytics"].handle

    print("\n" + "-" * 70)
    print("ACTION: Adding 2 x Trail Runner Shoes and 1 x Merino Socks to the cart")
    print("-" * 70 + "\n")

    shoes = Product.model_validate(CATALOG[0])
    socks = Product.model_validate(CATALOG[1])
    host.store.cart.add_item(shoes, 2)
    host.store.cart.add_item(socks, 1)

    cart = host.store.get_state().cart
    print(f"\nCart: {cart.item_count} items, subtotal {cart.subtotal:.2f}, "
          f"tax {cart.tax:.2f}, shipping {cart.shipping:.2f}, total {cart.total:.2f}")
    print(f"Badge shows: {badge.label}")
    print(f"Analytics counts: {dict(analytics.counts)}")
    return results


def run_widgets_demo() -> dict:
    """
    Mount the three sample remotes and add to the cart.

    This shows:
    1. The loader resolving and mounting each remote
    2. The cart slice recomputing totals and publishing cart:add
    3. The badge and analytics remotes reacting without knowing each other
    """
    _banner("HOST DEMO: Three remotes, one cart")
    return asyncio.run(_with_host(_run_widgets_demo))


async def _run_failure_demo(host: HostContext) -> list:
    host.registry.register(RemoteDefinition(name="reviews", entry="http://localhost:5180/remoteEntry.json",
                                            package="reviews_remote"))
    failures = []
    host.event_bus.subscribe(EventNames.REMOTE_FAILED, failures.append)

    result = await host.loader.load("reviews", "review_list")
    print(f"  reviews/review_list: {'failed' if isinstance(result, Failed) else 'mounted'}")

    # The rest of the host keeps working
    badge = await host.loader.load("cart", "cart_badge")
    print(f"  cart/cart_badge still mounts: {isinstance(badge, Mounted)}")

    print("\nRetrying the failed remote...")
    await host.loader.retry("reviews", "review_list")
    print(f"  attempts: {host.loader.mount_point('reviews', 'review_list').attempts}")
    return failures


def run_failure_demo() -> list:
    """
    Show that a broken remote is contained.

    The failed load becomes a Failed value and a remote:failed event; the host
    and the other remotes are unaffected.
    """
    _banner("HOST DEMO: A remote that cannot be loaded")
    failures = asyncio.run(_with_host(_run_failure_demo))

    print("\nremote:failed events:")
    for payload in failures:
        print(f"  {payload}")
    return failures


async def _run_query_demo(host: HostContext) -> Optional[list]:
    first = await host.catalog.products()
    print(f"  first read: {len(first.data)} products (fetched)")

    second = await host.catalog.products()
    print(f"  second read: served from cache, stale={second.is_stale}")

    missing = await host.catalog.product("p-999")
    print(f"  unknown product: {missing.error_message}")

    removed = host.query_client.invalidate(QueryKeys.products.all)
    print(f"  invalidated {removed} product entries")

    third = await host.catalog.products()
    print(f"  after invalidation: {len(third.data)} products (fetched again)")
    return third.data


def run_query_demo() -> Optional[list]:
    """Read the catalog through the query cache, then invalidate it."""
    _banner("HOST DEMO: Query cache")
    return asyncio.run(_with_host(_run_query_demo))


def run_all_demos() -> None:
    run_widgets_demo()
    run_failure_demo()
    run_query_demo()
