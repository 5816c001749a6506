"""Tests for the Cart value model: totals, session round-trip and merging."""

from datetime import UTC, datetime

import pytest

from ordering.cart.cart import Cart, CartItem
from ordering.catalogue.product import PLACEHOLDER_IMAGE, Product


def _product(product_id="prod-001", price=25000.0, stock=10, **extra):
    return Product(id=product_id, title=f"Product {product_id}", price_value=price, stock_quantity=stock, **extra)


def _assert_totals(cart: Cart):
    assert cart.total_amount == sum(item.price_value * item.quantity for item in cart.items)
    assert cart.total_items == sum(item.quantity for item in cart.items)


class TestCartTotals:
    def test_empty_cart_has_zero_totals(self):
        cart = Cart()
        assert cart.items == []
        assert cart.total_amount == 0
        assert cart.total_items == 0

    def test_add_recomputes_totals(self):
        cart = Cart()
        cart.add(_product("prod-001", price=25000.0), 2)
        cart.add(_product("prod-002", price=120000.0), 1)

        assert cart.total_amount == 170000.0
        assert cart.total_items == 3
        _assert_totals(cart)

    def test_adding_same_product_sums_quantity(self):
        cart = Cart()
        cart.add(_product(), 2)
        cart.add(_product(), 3)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5
        _assert_totals(cart)

    def test_set_quantity_updates_totals(self):
        cart = Cart()
        cart.add(_product(price=10.0), 2)
        cart.set_quantity("prod-001", 7)

        assert cart.total_items == 7
        assert cart.total_amount == 70.0

    def test_set_quantity_zero_removes_line(self):
        cart = Cart()
        cart.add(_product(), 2)

        assert cart.set_quantity("prod-001", 0) is None
        assert cart.items == []
        _assert_totals(cart)

    def test_set_quantity_on_unknown_product_raises(self):
        with pytest.raises(KeyError):
            Cart().set_quantity("missing", 1)

    def test_remove_and_clear(self):
        cart = Cart()
        cart.add(_product("prod-001"), 1)
        cart.add(_product("prod-002"), 1)

        cart.remove("prod-001")
        assert "prod-001" not in cart
        assert "prod-002" in cart
        _assert_totals(cart)

        cart.clear()
        assert cart.total_items == 0
        assert cart.total_amount == 0


class TestCartItemSnapshot:
    def test_snapshot_copies_product_data(self):
        now = datetime(2026, 1, 5, 9, 30, tzinfo=UTC)
        product = _product(requires_prescription=True, manufacturer="Acme", category="antibiotics")
        item = CartItem.snapshot(product, 3, now)

        assert item.title == "Product prod-001"
        assert item.stock_quantity == 10
        assert item.requires_prescription is True
        assert item.manufacturer == "Acme"
        assert item.added_at == item.updated_at == now

    def test_snapshot_without_images_uses_placeholder(self):
        item = CartItem.snapshot(_product(), 1)
        assert item.image == PLACEHOLDER_IMAGE

    def test_snapshot_uses_main_image(self):
        product = _product(images=["/a.jpg", "/b.jpg"], main_image_index=1)
        assert CartItem.snapshot(product, 1).image == "/b.jpg"

    def test_refreshed_clamps_to_stock(self):
        item = CartItem.snapshot(_product(stock=10), 8)
        refreshed = item.refreshed(_product(price=30000.0, stock=3))

        assert refreshed.quantity == 3
        assert refreshed.price_value == 30000.0
        assert refreshed.stock_quantity == 3
        assert item.quantity == 8


class TestCartSession:
    def test_missing_session_gives_empty_cart(self):
        assert Cart.from_session(None).items == []
        assert Cart.from_session({}).items == []

    def test_session_round_trip_recomputes_totals(self):
        cart = Cart()
        cart.add(_product(price=10.0), 4)
        data = cart.to_session()
        data["total_amount"] = 999  # stale figure in the session

        restored = Cart.from_session(data)
        assert restored.total_amount == 40.0
        assert restored.items[0].product_id == "prod-001"


class TestCartMerge:
    def test_merge_keeps_larger_quantity(self):
        cart = Cart()
        cart.add(_product(), 2)

        cart.merge("prod-001", 5)
        assert cart.find("prod-001").quantity == 5

        cart.merge("prod-001", 1)
        assert cart.find("prod-001").quantity == 5

    def test_merge_appends_new_line_with_client_timestamp(self):
        added_at = datetime(2026, 2, 1, tzinfo=UTC)
        cart = Cart()
        cart.merge("prod-009", 2, added_at)

        item = cart.find("prod-009")
        assert item.quantity == 2
        assert item.added_at == added_at
        _assert_totals(cart)
