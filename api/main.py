"""
FastAPI shell around the storefront host.

Exposes the store and the remote loader over HTTP so the coordination core can
be driven from outside the process:
1. State snapshots (/state, /cart)
2. Cart and UI mutations (/cart/items, /ui/theme)
3. Remote lifecycle (/remotes, /remotes/{name}/{module}/load|retry)

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from host.context import HostContext, create_host_context
from remotes.loader import Failed, LoadResult, MountStatus
from shared.config import load_settings
from shared.models import CartState, Product, Theme

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("api")


# Request / response models
class AddItemRequest(BaseModel):
    product: Product
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    quantity: int


class ThemeRequest(BaseModel):
    theme: Theme


class RemoteStatusResponse(BaseModel):
    """Outcome of a load or retry."""
    remote: str
    module: str
    status: MountStatus
    reason: Optional[str] = None
    attempts: int = 0


def create_app(host: Optional[HostContext] = None) -> FastAPI:
    """
    Build the application.

    Args:
        host: Pre-built host context. When omitted one is created from
            load_settings() at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = host is None
        app.state.host = host or create_host_context(load_settings())
        logger.info("Storefront host API started")
        yield
        if owned:
            await app.state.host.aclose()
        logger.info("Shutting down")

    app = FastAPI(
        title="Storefront Host",
        description="Shared state, events and remote loading for the storefront host.",
        version="1.0.0",
        lifespan=lifespan,
    )

    def get_host(request: Request) -> HostContext:
        return request.app.state.host

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", tags=["Health"])
    def health_check(request: Request):
        """Health check endpoint."""
        host = get_host(request)
        return {
            "status": "healthy",
            "service": "storefront-host",
            "version": host.settings.host_version,
        }

    # =========================================================================
    # State
    # =========================================================================

    @app.get("/state", tags=["State"])
    def get_state(request: Request) -> dict[str, Any]:
        """Snapshot of every store slice."""
        return get_host(request).store.get_state().model_dump(mode="json")

    @app.get("/cart", response_model=CartState, tags=["Cart"])
    def get_cart(request: Request):
        return get_host(request).store.cart.state

    # =========================================================================
    # Cart
    # =========================================================================

    @app.post("/cart/items", response_model=CartState, status_code=201, tags=["Cart"])
    def add_item(body: AddItemRequest, request: Request):
        """Add a product to the cart, merging with an existing line."""
        if body.quantity <= 0:
            raise HTTPException(status_code=422, detail="Quantity must be positive")
        return get_host(request).store.cart.add_item(body.product, body.quantity)

    @app.patch("/cart/items/{product_id}", response_model=CartState, tags=["Cart"])
    def update_item(product_id: str, body: UpdateQuantityRequest, request: Request):
        """Set a line's quantity. A quantity of 0 or less removes the line."""
        cart = get_host(request).store.cart
        if not cart.state.contains_product(product_id):
            raise HTTPException(status_code=404, detail=f"Product {product_id} not in cart")
        return cart.update_quantity(product_id, body.quantity)

    @app.delete("/cart/items/{product_id}", response_model=CartState, tags=["Cart"])
    def remove_item(product_id: str, request: Request):
        cart = get_host(request).store.cart
        if not cart.state.contains_product(product_id):
            raise HTTPException(status_code=404, detail=f"Product {product_id} not in cart")
        return cart.remove_item(product_id)

    @app.delete("/cart", response_model=CartState, tags=["Cart"])
    def clear_cart(request: Request):
        return get_host(request).store.cart.clear_cart()

    # =========================================================================
    # UI
    # =========================================================================

    @app.put("/ui/theme", tags=["UI"])
    def set_theme(body: ThemeRequest, request: Request):
        state = get_host(request).store.ui.set_theme(body.theme)
        return {"theme": state.theme}

    # =========================================================================
    # Remotes
    # =========================================================================

    def _remote_response(host: HostContext, name: str, module: str, result: LoadResult) -> RemoteStatusResponse:
        point = host.loader.mount_point(name, module)
        return RemoteStatusResponse(
            remote=name,
            module=module,
            status=point.status,
            reason=result.reason if isinstance(result, Failed) else None,
            attempts=point.attempts,
        )

    @app.get("/remotes", tags=["Remotes"])
    def list_remotes(request: Request):
        """Configured remotes and the status of every mount point."""
        host = get_host(request)
        return {
            "remotes": host.registry.names(),
            "mounts": host.loader.statuses(),
        }

    @app.post("/remotes/{name}/{module}/load", response_model=RemoteStatusResponse, tags=["Remotes"])
    async def load_remote(name: str, module: str, request: Request):
        """
        Load and mount a remote module.

        A failed load is reported in the body, not as an HTTP error; the host
        keeps running either way.
        """
        host = get_host(request)
        if name not in host.registry:
            raise HTTPException(status_code=404, detail=f"Unknown remote: {name}")
        result = await host.loader.load(name, module)
        return _remote_response(host, name, module, result)

    @app.post("/remotes/{name}/{module}/retry", response_model=RemoteStatusResponse, tags=["Remotes"])
    async def retry_remote(name: str, module: str, request: Request):
        host = get_host(request)
        point = host.loader.mount_point(name, module)
        if point.status != MountStatus.FAILED:
            raise HTTPException(status_code=409, detail=f"{name}/{module} is {point.status.value}, not failed")
        result = await host.loader.retry(name, module)
        return _remote_response(host, name, module, result)

    return app


app = create_app()
