"""
Tests for query keys and prefix matching.
"""

from query.keys import QueryKeys, matches_prefix, normalize_key


def test_keys_are_hierarchical():
    assert QueryKeys.products.detail("p1") == ("products", "detail", "p1")
    assert QueryKeys.orders.list("u1") == ("orders", "list", "u1")
    assert QueryKeys.cart.current() == ("cart", "current")
    assert QueryKeys.customer.address("a1") == ("customer", "addresses", "a1")


def test_dict_params_are_order_independent():
    first = normalize_key(QueryKeys.products.list({"page": 1, "category": "audio"}))
    second = normalize_key(QueryKeys.products.list({"category": "audio", "page": 1}))

    assert first == second
    assert hash(first) == hash(second)


def test_lists_and_scalars_normalize():
    assert normalize_key(["orders", "detail", "o1"]) == ("orders", "detail", "o1")
    assert normalize_key("orders") == ("orders",)


def test_prefix_matching():
    key = normalize_key(QueryKeys.orders.detail("o1"))

    assert matches_prefix(key, ("orders",))
    assert matches_prefix(key, ("orders", "detail"))
    assert matches_prefix(key, key)
    assert not matches_prefix(key, ("orders", "list"))
    assert not matches_prefix(key, ("cart",))
    assert not matches_prefix(("orders",), ("orders", "detail"))


def test_every_key_is_under_its_domain():
    assert matches_prefix(normalize_key(QueryKeys.analytics.sales("2024-01-01")), QueryKeys.analytics.all)
    assert matches_prefix(normalize_key(QueryKeys.notifications.unread_count()), QueryKeys.notifications.all)
    assert matches_prefix(normalize_key(QueryKeys.products.search("lamp")), QueryKeys.products.all)
