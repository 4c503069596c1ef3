"""
Normalized shared state.

One slice per concern; the AppStore composes them:
- cart: line items, derived totals, persisted to durable storage
- products: catalog listing, selection, filters
- ui: transient flags and the in-flight request count
"""

from store.app_store import AppStore
from store.cart import CartSlice, calculate_cart_totals
from store.products import ProductsSlice
from store.ui import UISlice

__all__ = [
    "AppStore",
    "CartSlice",
    "ProductsSlice",
    "UISlice",
    "calculate_cart_totals",
]
