"""
Tests for event names and payload builders.
"""

from messaging.events import (
    EventNames,
    cart_changed,
    order_status_changed,
    remote_failed,
    theme_changed,
)


def test_cart_events_cover_every_cart_mutation():
    assert set(EventNames.CART_EVENTS) == {"cart:add", "cart:remove", "cart:update", "cart:clear"}


def test_cart_changed_payload():
    assert cart_changed("p1", 2, 3, 45.5) == {
        "productId": "p1",
        "quantity": 2,
        "itemCount": 3,
        "total": 45.5,
    }


def test_order_status_changed_payload():
    payload = order_status_changed("ord-1", "shipped", "2024-01-01T00:00:00+00:00")

    assert payload["orderId"] == "ord-1"
    assert payload["status"] == "shipped"
    assert payload["updatedAt"].startswith("2024-01-01")


def test_theme_and_remote_payloads():
    assert theme_changed("dark") == {"theme": "dark"}
    assert remote_failed("cart", "cart_badge", "unknown remote")["reason"] == "unknown remote"
