"""
Shared pytest fixtures for the storefront host tests.

These fixtures build fresh, isolated pieces of the host for every test: a new
event bus, in-memory storage, a store, a query client on a fake clock, and a
host context whose services talk to an in-process backend.
"""

import asyncio
import json
from typing import Callable

import httpx
import pytest

from host.context import HostContext, create_host_context
from messaging.event_bus import EventBus
from query.client import QueryClient
from shared.config import QueryDefaults, Settings
from shared.models import Product
from shared.storage import MemoryStorage
from store.app_store import AppStore


# =============================================================================
# Time Fixtures
# =============================================================================

class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Sleep that returns immediately and remembers each requested delay."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


# =============================================================================
# Core Fixtures
# =============================================================================

@pytest.fixture
def bus() -> EventBus:
    """Fresh event bus for each test."""
    return EventBus(history_size=50)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(bus: EventBus, storage: MemoryStorage) -> AppStore:
    """Fresh store wired to the test bus and storage."""
    return AppStore(event_bus=bus, storage=storage)


@pytest.fixture
def query_client(clock: FakeClock, sleep: RecordingSleep) -> QueryClient:
    """Query client on the fake clock with instant retry sleeps."""
    return QueryClient(defaults=QueryDefaults(), clock=clock, sleep=sleep)


# =============================================================================
# Product Fixtures
# =============================================================================

@pytest.fixture
def make_product() -> Callable[..., Product]:
    """Factory for catalog products."""

    def factory(product_id: str = "p1", price: float = 10.0, **extra) -> Product:
        return Product(id=product_id, name=f"Product {product_id}", price=price, **extra)

    return factory


@pytest.fixture
def shoes(make_product) -> Product:
    return make_product("p-shoes", 30.0, category="footwear")


@pytest.fixture
def socks(make_product) -> Product:
    return make_product("p-socks", 5.0, category="apparel")


# =============================================================================
# Host Fixtures
# =============================================================================

CATALOG = [
    {"id": "p1", "name": "Lamp", "price": 25.0, "stock": 3},
    {"id": "p2", "name": "Rug", "price": 120.0, "stock": 1},
]


class Backend:
    """
    In-process backend for the service clients.

    Records every request and answers from a small route table. Tests can
    override a route with a list of (status, json) responses served in order.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.overrides: dict[tuple[str, str], list[tuple[int, object]]] = {}
        self.orders: dict[str, dict] = {}
        self.profile: dict = {"id": "u1", "name": "Ada", "email": "ada@shop.test"}
        self.addresses: dict[str, dict] = {}

    def override(self, method: str, path: str, *responses: tuple[int, object]) -> None:
        self.overrides[(method, path)] = list(responses)

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path.removeprefix("/api") == path)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        queued = self.overrides.get((request.method, path))
        if queued:
            # The last queued response keeps being served
            status, body = queued.pop(0) if len(queued) > 1 else queued[0]
            return httpx.Response(status, json=body)
        return self._route(request.method, path, request)

    def _route(self, method: str, path: str, request: httpx.Request) -> httpx.Response:
        if method == "GET" and path == "/products":
            return httpx.Response(200, json={"data": CATALOG})
        if method == "GET" and path.startswith("/products/"):
            product_id = path.rsplit("/", 1)[-1]
            for product in CATALOG:
                if product["id"] == product_id:
                    return httpx.Response(200, json=product)
            return httpx.Response(404, json={"message": "Product not found"})
        if method == "GET" and path == "/cart":
            return httpx.Response(200, json={"items": []})
        if method == "POST" and path == "/cart/items":
            return httpx.Response(201, json={"items": [json.loads(request.content)]})
        if method == "POST" and path == "/orders":
            order_id = f"ord-{len(self.orders) + 1}"
            self.orders[order_id] = {"id": order_id, "user_id": "u1", "total": 42.0}
            return httpx.Response(201, json=self.orders[order_id])
        if method == "GET" and path == "/orders":
            return httpx.Response(200, json=list(self.orders.values()))
        if method == "PATCH" and path.endswith("/status"):
            order_id = path.split("/")[2]
            status = json.loads(request.content)["status"]
            self.orders[order_id] = {"id": order_id, "user_id": "u1", **self.orders.get(order_id, {}), "status": status}
            return httpx.Response(200, json=self.orders[order_id])
        if path == "/customers/me":
            if method == "PUT":
                self.profile = {**self.profile, **json.loads(request.content)}
            return httpx.Response(200, json=self.profile)
        if path == "/customers/me/payment-methods":
            return httpx.Response(200, json=[{"id": "pm-1", "brand": "visa", "last4": "4242"}])
        if path == "/customers/me/addresses":
            if method == "POST":
                address = {"id": f"addr-{len(self.addresses) + 1}", **json.loads(request.content)}
                self.addresses[address["id"]] = address
                return httpx.Response(201, json=address)
            return httpx.Response(200, json=list(self.addresses.values()))
        if path.startswith("/customers/me/addresses/"):
            address_id = path.rsplit("/", 1)[-1]
            if address_id not in self.addresses:
                return httpx.Response(404, json={"message": "Address not found"})
            if method == "DELETE":
                del self.addresses[address_id]
                return httpx.Response(204)
            self.addresses[address_id] = {**self.addresses[address_id], **json.loads(request.content)}
            return httpx.Response(200, json=self.addresses[address_id])
        return httpx.Response(503, json={"message": "Service unavailable"})


@pytest.fixture
def backend() -> Backend:
    return Backend()


@pytest.fixture
def host(backend: Backend, storage: MemoryStorage, clock: FakeClock, sleep: RecordingSleep) -> HostContext:
    """Host context whose service clients talk to the in-process backend."""
    context = create_host_context(
        Settings(),
        storage=storage,
        transport=httpx.MockTransport(backend),
        clock=clock,
        sleep=sleep,
    )
    yield context
    context.reset()
