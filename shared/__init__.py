"""
Shared infrastructure for the storefront coordination core.

This package contains code used by every other layer:
- Domain models (Product, CartState, UIState, ...)
- The error taxonomy decided at the service boundary
- Durable key-value storage
- Settings
"""

from shared.models import (
    Product,
    ProductsState,
    CartItem,
    CartTotals,
    CartState,
    UIState,
    Theme,
    Order,
    OrderItem,
    OrderStatus,
    AppSnapshot,
)
from shared.storage import LocalStorage, MemoryStorage, JsonFileStorage
from shared.config import Settings, CartPricing, QueryDefaults, load_settings

__all__ = [
    "Product",
    "ProductsState",
    "CartItem",
    "CartTotals",
    "CartState",
    "UIState",
    "Theme",
    "Order",
    "OrderItem",
    "OrderStatus",
    "AppSnapshot",
    "LocalStorage",
    "MemoryStorage",
    "JsonFileStorage",
    "Settings",
    "CartPricing",
    "QueryDefaults",
    "load_settings",
]
