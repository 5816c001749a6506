"""Shopping cart value model: the typed form of the cart kept in a session.

The cart is never persisted on its own. The session store holds a plain
mapping; :meth:`Cart.from_session` and :meth:`Cart.to_session` are the only
places where that mapping is converted, so the engine always works on typed
items. Totals are recomputed after every mutation:

    total_amount == sum(item.price_value * item.quantity)
    total_items  == sum(item.quantity)
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from ordering.catalogue.product import Product


class CartItem(BaseModel):
    product_id: str
    title: str = ""
    price_value: float = Field(default=0.0, ge=0)
    quantity: int = Field(ge=0)
    stock_quantity: int = 0
    requires_prescription: bool = False
    image: str | None = None
    manufacturer: str | None = None
    category: str | None = None
    added_at: datetime
    updated_at: datetime

    @classmethod
    def snapshot(cls, product: Product, quantity: int, now: datetime | None = None) -> "CartItem":
        now = now or datetime.now(UTC)
        return cls(
            product_id=product.id,
            title=product.title,
            price_value=product.price_value,
            quantity=quantity,
            stock_quantity=product.stock_quantity,
            requires_prescription=product.requires_prescription,
            image=product.image,
            manufacturer=product.manufacturer,
            category=product.category,
            added_at=now,
            updated_at=now,
        )

    def refreshed(self, product: Product) -> "CartItem":
        """Copy with live catalogue data and quantity clamped to current stock."""
        return self.model_copy(
            update={
                "title": product.title,
                "price_value": product.price_value,
                "stock_quantity": product.stock_quantity,
                "requires_prescription": product.requires_prescription,
                "image": product.image,
                "manufacturer": product.manufacturer,
                "category": product.category,
                "quantity": min(self.quantity, product.stock_quantity),
            }
        )

    @property
    def line_total(self) -> float:
        return self.price_value * self.quantity


class Cart(BaseModel):
    items: list[CartItem] = Field(default_factory=list)
    total_amount: float = 0.0
    total_items: int = 0

    # -------------------------------------------------------------------
    # Session boundary
    # -------------------------------------------------------------------
    @classmethod
    def from_session(cls, data: Mapping[str, Any] | None) -> "Cart":
        if not data:
            return cls()
        cart = cls.model_validate(data)
        cart.recalculate()
        return cart

    def to_session(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    def find(self, product_id: str) -> CartItem | None:
        return next((item for item in self.items if item.product_id == str(product_id)), None)

    def __contains__(self, product_id: object) -> bool:
        return self.find(str(product_id)) is not None

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def add(self, product: Product, quantity: int, now: datetime | None = None) -> CartItem:
        """Add a product, summing with an existing line for the same product."""
        now = now or datetime.now(UTC)
        existing = self.find(product.id)
        if existing:
            existing.quantity += quantity
            existing.updated_at = now
            item = existing
        else:
            item = CartItem.snapshot(product, quantity, now)
            self.items.append(item)
        self.recalculate()
        return item

    def set_quantity(self, product_id: str, quantity: int, now: datetime | None = None) -> CartItem | None:
        """Set a line's quantity; zero removes the line and returns None."""
        if quantity == 0:
            self.remove(product_id)
            return None

        item = self.find(product_id)
        if item is None:
            raise KeyError(product_id)
        item.quantity = quantity
        item.updated_at = now or datetime.now(UTC)
        self.recalculate()
        return item

    def remove(self, product_id: str) -> CartItem:
        item = self.find(product_id)
        if item is None:
            raise KeyError(product_id)
        self.items.remove(item)
        self.recalculate()
        return item

    def clear(self) -> None:
        self.items = []
        self.recalculate()

    def merge(self, product_id: str, quantity: int, added_at: datetime | None = None) -> None:
        """Merge one externally held line: keep the larger quantity, or append it.

        New lines carry no catalogue data yet; the revalidation pass that
        follows a merge fills it in (or drops the line).
        """
        now = datetime.now(UTC)
        existing = self.find(product_id)
        if existing:
            existing.quantity = max(existing.quantity, quantity)
            existing.updated_at = now
        else:
            self.items.append(
                CartItem(
                    product_id=str(product_id),
                    quantity=quantity,
                    added_at=added_at or now,
                    updated_at=now,
                )
            )
        self.recalculate()

    def recalculate(self) -> None:
        self.total_amount = sum(item.line_total for item in self.items)
        self.total_items = sum(item.quantity for item in self.items)
