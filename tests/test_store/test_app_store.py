"""
Tests for the composed application store.
"""

import pytest

from shared.models import AppSnapshot
from store.app_store import AppStore


def test_get_state_returns_every_slice(store: AppStore, shoes):
    store.cart.add_item(shoes, 1)

    snapshot = store.get_state()

    assert isinstance(snapshot, AppSnapshot)
    assert snapshot.cart.item_count == 1
    assert snapshot.products.items == ()
    assert snapshot.ui.is_global_loading is False


def test_snapshots_are_immutable(store: AppStore, shoes):
    snapshot = store.get_state()
    store.cart.add_item(shoes, 1)

    assert snapshot.cart.item_count == 0
    with pytest.raises(Exception):
        snapshot.cart.item_count = 5


def test_subscribe_reports_changed_slice(store: AppStore, shoes):
    changes = []
    store.subscribe(lambda name, snapshot: changes.append((name, snapshot.cart.item_count)))

    store.cart.add_item(shoes, 2)
    store.ui.toggle_cart()

    assert changes == [("cart", 2), ("ui", 2)]


def test_unsubscribe(store: AppStore):
    changes = []
    unsubscribe = store.subscribe(lambda name, snapshot: changes.append(name))

    unsubscribe()
    store.ui.toggle_sidebar()

    assert changes == []


def test_failing_listener_does_not_block_others(store: AppStore):
    changes = []

    def broken(name, snapshot):
        raise RuntimeError("listener bug")

    store.subscribe(broken)
    store.subscribe(lambda name, snapshot: changes.append(name))

    store.ui.toggle_sidebar()

    assert changes == ["ui"]


def test_reset(store: AppStore, shoes):
    store.cart.add_item(shoes, 1)
    store.ui.set_theme("dark")

    store.reset()

    state = store.get_state()
    assert state.cart.items == ()
    assert state.ui.theme == "light"
