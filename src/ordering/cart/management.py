"""Cart management: staging items in a session before checkout.

A cart is private to its session, so no cross-request locking is needed.
Stock figures in the cart are snapshots for display only; checkout
re-validates stock independently inside the order transaction.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ordering.cart.cart import Cart
from ordering.cart.session import SessionStore
from ordering.catalogue.catalog import ProductCatalog
from ordering.errors import BusinessLogicError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

_timestamp = TypeAdapter(datetime)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    try:
        return _timestamp.validate_python(value)
    except PydanticValidationError:
        return None


class CartManager:
    def __init__(self, catalog: ProductCatalog, sessions: SessionStore):
        self._catalog = catalog
        self._sessions = sessions

    def _load(self, session_id: str) -> Cart:
        return Cart.from_session(self._sessions.load(session_id))

    def _save(self, session_id: str, cart: Cart) -> Cart:
        self._sessions.save(session_id, cart.to_session())
        return cart

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_cart(self, session_id: str) -> Cart:
        """Return the session cart, revalidated against the live catalogue."""
        cart = self.revalidate(self._load(session_id))
        return self._save(session_id, cart)

    def revalidate(self, cart: Cart) -> Cart:
        """Drop unavailable products, refresh snapshots and clamp to stock."""
        if not cart.items:
            return Cart()

        products = self._catalog.get_many(item.product_id for item in cart.items)
        validated = []
        for item in cart.items:
            product = products.get(item.product_id)
            if product is None or not product.is_active:
                logger.warning("Product no longer available, removing from cart", product_id=item.product_id)
                continue

            refreshed = item.refreshed(product)
            if refreshed.quantity < item.quantity:
                logger.warning(
                    "Cart quantity reduced to available stock",
                    product_id=item.product_id,
                    requested=item.quantity,
                    available=product.stock_quantity,
                )
            if refreshed.quantity == 0:
                continue
            validated.append(refreshed)

        result = Cart(items=validated)
        result.recalculate()
        return result

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add_item(self, session_id: str, product_id: str, quantity: int = 1) -> Cart:
        if not product_id:
            raise ValidationError.missing_fields(["product_id"])
        if not _is_positive_int(quantity):
            raise ValidationError.invalid_number("quantity", quantity, minimum=1)

        product = self._catalog.get(product_id, active_only=True)
        if product is None:
            raise NotFoundError.product(product_id)
        if quantity > product.stock_quantity:
            raise BusinessLogicError.insufficient_stock(
                "add to cart", product.id, available=product.stock_quantity, requested=quantity
            )

        cart = self._load(session_id)
        existing = cart.find(product.id)
        if existing and existing.quantity + quantity > product.stock_quantity:
            raise BusinessLogicError.insufficient_stock(
                "add to cart",
                product.id,
                available=product.stock_quantity,
                requested=quantity,
                in_cart=existing.quantity,
            )

        cart.add(product, quantity)
        logger.info("Product added to cart", session_id=session_id, product_id=product.id, quantity=quantity)
        return self._save(session_id, cart)

    def update_item(self, session_id: str, product_id: str, quantity: int) -> Cart:
        """Set a line's quantity against current stock; zero removes the line."""
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
            raise ValidationError.invalid_format("quantity", "non-negative integer")

        cart = self._load(session_id)
        if product_id not in cart:
            raise NotFoundError.product(product_id)

        if quantity > 0:
            # Re-fetch: the snapshot in the cart may be stale
            product = self._catalog.get(product_id, active_only=True)
            if product is None:
                raise NotFoundError.product(product_id)
            if quantity > product.stock_quantity:
                raise BusinessLogicError.insufficient_stock(
                    "update cart", product.id, available=product.stock_quantity, requested=quantity
                )

        cart.set_quantity(str(product_id), quantity)
        logger.info("Cart item updated", session_id=session_id, product_id=str(product_id), quantity=quantity)
        return self._save(session_id, cart)

    def remove_item(self, session_id: str, product_id: str) -> Cart:
        cart = self._load(session_id)
        if product_id not in cart:
            raise NotFoundError.product(product_id)

        cart.remove(str(product_id))
        logger.info("Product removed from cart", session_id=session_id, product_id=str(product_id))
        return self._save(session_id, cart)

    def clear(self, session_id: str) -> Cart:
        logger.info("Cart cleared", session_id=session_id)
        return self._save(session_id, Cart())

    def sync_with_local_storage(self, session_id: str, external_items: Iterable[Mapping[str, Any]]) -> Cart:
        """Merge a client-held cart into the session cart, then revalidate.

        Each external entry is ``{"id", "quantity", "added_at"?}``; entries
        without an id or a positive quantity are ignored.
        """
        if not isinstance(external_items, list):
            raise ValidationError.invalid_format("local_cart_items", "array")

        cart = self._load(session_id)
        for entry in external_items:
            if not isinstance(entry, Mapping):
                continue
            product_id = entry.get("id") or entry.get("product_id")
            quantity = entry.get("quantity")
            if not product_id or not _is_positive_int(quantity):
                continue
            cart.merge(str(product_id), quantity, _parse_timestamp(entry.get("added_at")))

        cart = self.revalidate(cart)
        logger.info("Cart synced with local storage", session_id=session_id, items=len(cart.items))
        return self._save(session_id, cart)
