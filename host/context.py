"""
The host context: everything a remote is allowed to touch, built once.

The host owns one event bus, one store, one query client and one set of
service clients. They are created together here and passed to each remote's
mount(context). Nothing in the core reaches for a module-level instance.

Design decisions:
- Explicit construction instead of get_x()/reset_x() singletons
- The query client counts in-flight requests on the UI slice
- reset() returns every piece to its initial state for tests
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx

from messaging.event_bus import EventBus
from query.client import QueryClient
from query.hooks import CartQueries, CatalogQueries, CustomerQueries, OrderQueries
from query.retry import Sleep
from remotes.loader import RemoteLoader
from remotes.registry import RemoteRegistry
from remotes.resolvers import RemoteResolver
from services.clients import Services, create_services
from shared.config import Settings
from shared.storage import JsonFileStorage, LocalStorage, MemoryStorage
from store.app_store import AppStore

logger = logging.getLogger("host")


@dataclass
class HostContext:
    """
    Example usage:
        host = create_host_context()
        result = await host.loader.load("cart", "cart_badge")
        host.store.cart.add_item(product, 2)
        await host.aclose()
    """
    settings: Settings
    storage: LocalStorage
    event_bus: EventBus
    store: AppStore
    query_client: QueryClient
    services: Services
    registry: RemoteRegistry
    loader: RemoteLoader = field(init=False)
    catalog: CatalogQueries = field(init=False)
    cart_queries: CartQueries = field(init=False)
    orders: OrderQueries = field(init=False)
    customers: CustomerQueries = field(init=False)
    resolver: Optional[RemoteResolver] = None

    def __post_init__(self):
        self.loader = RemoteLoader(
            registry=self.registry,
            context_provider=lambda: self,
            resolver=self.resolver,
            event_bus=self.event_bus,
            host_version=self.settings.host_version,
        )
        self.catalog = CatalogQueries(self.query_client, self.services.catalog)
        self.cart_queries = CartQueries(self.query_client, self.services.orders)
        self.orders = OrderQueries(self.query_client, self.services.orders, self.event_bus)
        self.customers = CustomerQueries(self.query_client, self.services.customer, self.event_bus)

    def reset(self) -> None:
        """Unmount remotes and put the bus, cache and store back to their initial state."""
        self.loader.unmount_all()
        self.query_client.clear()
        self.event_bus.clear()
        self.store.reset()

    async def aclose(self) -> None:
        self.loader.unmount_all()
        self.query_client.clear()
        await self.services.aclose()
        logger.info("Host context closed")


def create_host_context(
    settings: Optional[Settings] = None,
    storage: Optional[LocalStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    resolver: Optional[RemoteResolver] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> HostContext:
    """
    Build the host context.

    Args:
        settings: Host settings (defaults if omitted)
        storage: Durable storage. Defaults to a JSON file at settings.storage_path,
            or memory when no path is configured
        transport: httpx transport for the service clients (tests pass a MockTransport)
        resolver: How remote modules are located
        clock: Time source for the query cache
        sleep: Coroutine used for retry backoff

    Returns:
        A ready-to-use HostContext
    """
    settings = settings or Settings()
    if storage is None:
        storage = JsonFileStorage(settings.storage_path) if settings.storage_path else MemoryStorage()

    event_bus = EventBus(history_size=settings.event_history_size)
    store = AppStore(
        event_bus=event_bus,
        storage=storage,
        pricing=settings.pricing,
        cart_storage_key=settings.cart_storage_key,
    )
    query_client = QueryClient(
        defaults=settings.query,
        clock=clock,
        sleep=sleep,
        request_tracker=store.ui.track_request,
    )
    services = create_services(settings, storage=storage, transport=transport)

    logger.info(f"Host context ready ({len(settings.remotes)} remotes configured)")
    return HostContext(
        settings=settings,
        storage=storage,
        event_bus=event_bus,
        store=store,
        query_client=query_client,
        services=services,
        registry=RemoteRegistry.from_settings(settings),
        resolver=resolver,
    )
