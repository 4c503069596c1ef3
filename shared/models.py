"""
Domain models for the storefront coordination core.

These models describe the state the host shell and its remotes share: catalog
products, the cart and its derived totals, and transient UI flags.

Design decisions:
- Using Pydantic for validation and serialization
- Every state model is frozen; slices commit complete replacements
- Collections inside state snapshots are tuples so nothing can be mutated in place
- Cart totals are never set by hand, see store/cart.py
"""

from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Theme(str, Enum):
    """UI colour scheme."""
    LIGHT = "light"
    DARK = "dark"


class OrderStatus(str, Enum):
    """Order lifecycle states reported by the order service."""
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# =============================================================================
# Catalog
# =============================================================================

class Product(BaseModel):
    """
    Product entity from the catalog service.

    Only `id` and `price` matter to the cart; the rest is carried along for
    the remotes that render it.
    """
    id: str = Field(..., description="Unique product identifier")
    name: str = Field(..., description="Product display name")
    price: float = Field(..., ge=0, description="Current unit price")
    description: Optional[str] = Field(default=None)
    category: Optional[str] = Field(default=None)
    stock: int = Field(default=0, ge=0)
    sku: Optional[str] = Field(default=None)

    model_config = ConfigDict(frozen=True)


def frozen_mapping(values: Optional[Mapping[str, Any]] = None) -> Mapping[str, Any]:
    """Read-only copy of a mapping, for use inside frozen snapshots."""
    return MappingProxyType(dict(values or {}))


class ProductsState(BaseModel):
    """
    Catalog slice state.

    `filters` describes the current product query; this layer stores it
    without interpreting it.
    """
    items: tuple[Product, ...] = ()
    selected_product: Optional[Product] = None
    filters: Mapping[str, Any] = Field(default_factory=frozen_mapping)
    is_loading: bool = False
    error: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("filters", mode="after")
    @classmethod
    def freeze_filters(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return frozen_mapping(value)

    @field_serializer("filters")
    def dump_filters(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)


# =============================================================================
# Cart
# =============================================================================

def new_line_id() -> str:
    return str(uuid4())


class CartItem(BaseModel):
    """A single line in the cart. At most one line exists per product id."""
    id: str = Field(default_factory=new_line_id)
    product: Product
    quantity: int = Field(..., ge=1)
    subtotal: float = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class CartTotals(BaseModel):
    """The derived fields of a cart, always computed together."""
    subtotal: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    item_count: int = 0

    model_config = ConfigDict(frozen=True)


class CartState(CartTotals):
    """
    Cart slice state.

    The persisted snapshot is `items` plus the totals; `is_loading` and
    `error` are transient.
    """
    items: tuple[CartItem, ...] = ()
    is_loading: bool = False
    error: Optional[str] = None

    def find_item(self, product_id: str) -> Optional[CartItem]:
        """Get the line item for a product, if it is in the cart."""
        for item in self.items:
            if item.product.id == product_id:
                return item
        return None

    def contains_product(self, product_id: str) -> bool:
        return self.find_item(product_id) is not None

    def get_product_ids(self) -> list[str]:
        return [item.product.id for item in self.items]

    def to_snapshot(self) -> dict[str, Any]:
        """The JSON-ready form written to durable storage."""
        return self.model_dump(mode="json", exclude={"is_loading", "error"})


# =============================================================================
# UI
# =============================================================================

class UIState(BaseModel):
    """
    Transient UI flags. Never persisted.

    `active_requests` only moves through paired increment/decrement calls;
    `is_global_loading` mirrors `active_requests > 0`.
    """
    is_sidebar_open: bool = False
    is_cart_open: bool = False
    is_mobile_menu_open: bool = False
    theme: Theme = Theme.LIGHT
    is_loading: bool = False
    error: Optional[str] = None
    active_requests: int = Field(default=0, ge=0)
    is_global_loading: bool = False

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Orders (payloads returned by the order service)
# =============================================================================

class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    subtotal: float = Field(..., ge=0)


class Order(BaseModel):
    """Order as returned by the order service."""
    id: str
    user_id: str
    items: list[OrderItem] = Field(default_factory=list)
    subtotal: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    total: float = 0.0
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(use_enum_values=True)


class AppSnapshot(BaseModel):
    """Read-only view over every slice at one point in time."""
    cart: CartState
    products: ProductsState
    ui: UIState

    model_config = ConfigDict(frozen=True)
