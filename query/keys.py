"""
Query key factory.

Every cached query is keyed by a tuple that goes domain -> kind -> params:

    ("products",)                         everything about products
    ("products", "list")                  every product list
    ("products", "list", {"page": 2})     one product list
    ("products", "detail", "p1")          one product

Invalidation matches on tuple prefixes, so invalidating ("products",) reaches
every product query while ("products", "detail", "p1") reaches exactly one.
All consumers must build keys through this module for that to work.
"""

from typing import Any, Optional


class QueryKeys:
    """Key builders grouped by domain."""

    class products:
        all = ("products",)

        @staticmethod
        def lists() -> tuple:
            return (*QueryKeys.products.all, "list")

        @staticmethod
        def list(filters: Optional[dict[str, Any]] = None) -> tuple:
            return (*QueryKeys.products.lists(), filters)

        @staticmethod
        def details() -> tuple:
            return (*QueryKeys.products.all, "detail")

        @staticmethod
        def detail(product_id: str) -> tuple:
            return (*QueryKeys.products.details(), product_id)

        @staticmethod
        def search(query: str) -> tuple:
            return (*QueryKeys.products.all, "search", query)

    class cart:
        all = ("cart",)

        @staticmethod
        def current() -> tuple:
            return (*QueryKeys.cart.all, "current")

        @staticmethod
        def items() -> tuple:
            return (*QueryKeys.cart.all, "items")

    class orders:
        all = ("orders",)

        @staticmethod
        def lists() -> tuple:
            return (*QueryKeys.orders.all, "list")

        @staticmethod
        def list(user_id: Optional[str] = None) -> tuple:
            return (*QueryKeys.orders.lists(), user_id)

        @staticmethod
        def details() -> tuple:
            return (*QueryKeys.orders.all, "detail")

        @staticmethod
        def detail(order_id: str) -> tuple:
            return (*QueryKeys.orders.details(), order_id)

    class customer:
        all = ("customer",)

        @staticmethod
        def profile() -> tuple:
            return (*QueryKeys.customer.all, "profile")

        @staticmethod
        def addresses() -> tuple:
            return (*QueryKeys.customer.all, "addresses")

        @staticmethod
        def address(address_id: str) -> tuple:
            return (*QueryKeys.customer.addresses(), address_id)

        @staticmethod
        def payment_methods() -> tuple:
            return (*QueryKeys.customer.all, "payment-methods")

    class notifications:
        all = ("notifications",)

        @staticmethod
        def list() -> tuple:
            return (*QueryKeys.notifications.all, "list")

        @staticmethod
        def unread_count() -> tuple:
            return (*QueryKeys.notifications.all, "unread-count")

    class analytics:
        all = ("analytics",)

        @staticmethod
        def dashboard() -> tuple:
            return (*QueryKeys.analytics.all, "dashboard")

        @staticmethod
        def sales(start_date: Optional[str] = None, end_date: Optional[str] = None) -> tuple:
            return (*QueryKeys.analytics.all, "sales", {"startDate": start_date, "endDate": end_date})


def _freeze(part: Any) -> Any:
    if isinstance(part, dict):
        return frozenset((k, _freeze(v)) for k, v in part.items())
    if isinstance(part, (list, tuple)):
        return tuple(_freeze(v) for v in part)
    if isinstance(part, set):
        return frozenset(_freeze(v) for v in part)
    return part


def normalize_key(key: Any) -> tuple:
    """
    Turn a key into a hashable tuple.

    Dicts become frozensets of their items, so {"a": 1, "b": 2} and
    {"b": 2, "a": 1} address the same entry.
    """
    if isinstance(key, (str, bytes)) or not isinstance(key, (list, tuple)):
        key = (key,)
    return tuple(_freeze(part) for part in key)


def matches_prefix(key: tuple, prefix: tuple) -> bool:
    """True if `key` starts with every element of `prefix`."""
    return len(key) >= len(prefix) and key[:len(prefix)] == prefix
