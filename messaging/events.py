"""
Event names and payload builders shared by the host and its remotes.

Remotes only agree on these names and payload shapes, never on each other's
code. Payloads are plain JSON-compatible dicts so they survive being logged,
recorded by analytics, or sent over a wire later.

Naming convention: "<domain>:<what-happened>".
"""

from typing import Any, Optional


class EventNames:
    """
    Constants for event names.

    Using constants prevents typos and makes it easy to see all events.
    """
    # Cart events
    CART_ADD = "cart:add"
    CART_REMOVE = "cart:remove"
    CART_UPDATE = "cart:update"
    CART_CLEAR = "cart:clear"

    # Catalog events
    PRODUCT_SELECTED = "products:selected"

    # UI events
    THEME_CHANGED = "ui:theme-changed"

    # Order events
    ORDER_CREATED = "order:created"
    ORDER_STATUS_CHANGED = "order:status-changed"

    # Customer events
    CUSTOMER_PROFILE_UPDATED = "customer:profile-updated"
    CUSTOMER_ADDRESS_ADDED = "customer:address-added"
    CUSTOMER_ADDRESS_UPDATED = "customer:address-updated"
    CUSTOMER_ADDRESS_DELETED = "customer:address-deleted"

    # Remote lifecycle
    REMOTE_MOUNTED = "remote:mounted"
    REMOTE_FAILED = "remote:failed"

    CART_EVENTS = (CART_ADD, CART_REMOVE, CART_UPDATE, CART_CLEAR)


def cart_changed(
    product_id: Optional[str],
    quantity: int,
    item_count: int,
    total: float,
) -> dict[str, Any]:
    """
    Payload for every cart event.

    Carries the new item count and total so badges don't need to read the store.
    """
    return {
        "productId": product_id,
        "quantity": quantity,
        "itemCount": item_count,
        "total": total,
    }


def product_selected(product_id: Optional[str]) -> dict[str, Any]:
    return {"productId": product_id}


def theme_changed(theme: str) -> dict[str, Any]:
    return {"theme": theme}


def order_created(order_id: str, total: float) -> dict[str, Any]:
    return {"orderId": order_id, "total": total}


def order_status_changed(order_id: str, status: str, updated_at: str) -> dict[str, Any]:
    return {"orderId": order_id, "status": status, "updatedAt": updated_at}


def profile_updated(user: dict[str, Any]) -> dict[str, Any]:
    return {"user": user}


def address_changed(address: dict[str, Any]) -> dict[str, Any]:
    return {"address": address}


def address_deleted(address_id: str) -> dict[str, Any]:
    return {"addressId": address_id}


def remote_mounted(remote: str, module: str) -> dict[str, Any]:
    return {"remote": remote, "module": module}


def remote_failed(remote: str, module: str, reason: str) -> dict[str, Any]:
    return {"remote": remote, "module": module, "reason": reason}
