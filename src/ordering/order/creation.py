"""Order creation: checkout payload validation and the reservation transaction.

Creating an order is all-or-nothing. The order row, every order item and
every stock decrement are written inside one database transaction; any
failure (unknown product, insufficient stock, a lost race, the deadline)
rolls the whole thing back.
"""

from collections.abc import Mapping
from datetime import date
from enum import Enum
from numbers import Real
from typing import Any

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ordering.catalogue.catalog import ProductCatalog
from ordering.errors import BusinessLogicError, NotFoundError, ValidationError
from ordering.order.order import (
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethod,
    enum_values,
)
from ordering.order.store import OrderStore
from ordering.utils.db import Database

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("items", "total_amount", "shipping_address")
REQUIRED_ITEM_FIELDS = ("product_id", "quantity", "unit_price")

_delivery_date = TypeAdapter(date)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _enum_field(payload: Mapping[str, Any], field: str, enum_cls: type[Enum], default: Enum) -> Enum:
    value = payload.get(field)
    if value is None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError.invalid_enum(field, value, enum_values(enum_cls)) from None


class CheckoutItem:
    """One validated line of the checkout payload."""

    def __init__(self, product_id: str, quantity: int, unit_price: float, product_sku: str | None = None):
        self.product_id = product_id
        self.quantity = quantity
        self.unit_price = unit_price
        self.product_sku = product_sku


class Checkout:
    """The validated checkout payload, ready to be written."""

    def __init__(self, order: Order, items: list[CheckoutItem]):
        self.order = order
        self.items = items

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], user_id: str) -> "Checkout":
        if not isinstance(payload, Mapping):
            raise ValidationError.invalid_format("order", "object")

        missing = [field for field in REQUIRED_FIELDS if payload.get(field) is None]
        if missing:
            raise ValidationError.missing_fields(missing)

        raw_items = payload["items"]
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationError.invalid_format("items", "non-empty array")

        total_amount = payload["total_amount"]
        if not _is_number(total_amount) or total_amount < 0:
            raise ValidationError.invalid_number("total_amount", total_amount, minimum=0)

        shipping_cost = payload.get("shipping_cost", 0)
        if shipping_cost is None:
            shipping_cost = 0
        if not _is_number(shipping_cost) or shipping_cost < 0:
            raise ValidationError.invalid_number("shipping_cost", shipping_cost, minimum=0)

        shipping_address = payload["shipping_address"]
        if not isinstance(shipping_address, Mapping):
            raise ValidationError.invalid_format("shipping_address", "object")
        billing_address = payload.get("billing_address") or shipping_address
        if not isinstance(billing_address, Mapping):
            raise ValidationError.invalid_format("billing_address", "object")

        estimated_delivery_date = payload.get("estimated_delivery_date")
        if estimated_delivery_date is not None:
            try:
                estimated_delivery_date = _delivery_date.validate_python(estimated_delivery_date)
            except PydanticValidationError:
                raise ValidationError.invalid_format("estimated_delivery_date", "YYYY-MM-DD") from None

        status = _enum_field(payload, "status", OrderStatus, OrderStatus.PENDING)
        if status is OrderStatus.CANCELLED:
            # Cancelled orders only come from cancel(), which returns the stock
            allowed = [value for value in enum_values(OrderStatus) if value != OrderStatus.CANCELLED.value]
            raise ValidationError.invalid_enum("status", payload.get("status"), allowed)

        order = Order(
            user_id=str(user_id),
            status=status,
            total_amount=float(total_amount),
            shipping_address=dict(shipping_address),
            billing_address=dict(billing_address),
            payment_method=_enum_field(payload, "payment_method", PaymentMethod, PaymentMethod.CASH_ON_DELIVERY),
            payment_status=_enum_field(payload, "payment_status", PaymentStatus, PaymentStatus.PENDING),
            shipping_method=_enum_field(payload, "shipping_method", ShippingMethod, ShippingMethod.STANDARD),
            shipping_cost=float(shipping_cost),
            notes=payload.get("notes"),
            estimated_delivery_date=estimated_delivery_date,
            prescription_required=bool(payload.get("prescription_required", False)),
            prescription_id=payload.get("prescription_id"),
        )
        return cls(order, [cls._item(raw) for raw in raw_items])

    @staticmethod
    def _item(raw: Any) -> CheckoutItem:
        if not isinstance(raw, Mapping):
            raise ValidationError.invalid_format("items", "array of objects")
        if any(raw.get(field) is None for field in REQUIRED_ITEM_FIELDS):
            raise ValidationError.missing_fields(list(REQUIRED_ITEM_FIELDS))

        quantity = raw["quantity"]
        if not _is_positive_int(quantity):
            raise ValidationError.invalid_number("quantity", quantity, minimum=1)
        unit_price = raw["unit_price"]
        if not _is_number(unit_price) or unit_price < 0:
            raise ValidationError.invalid_number("unit_price", unit_price, minimum=0)

        return CheckoutItem(
            product_id=str(raw["product_id"]),
            quantity=quantity,
            unit_price=float(unit_price),
            product_sku=raw.get("product_sku"),
        )


class OrderCreation:
    def __init__(self, database: Database, catalog: ProductCatalog, orders: OrderStore):
        self._database = database
        self._catalog = catalog
        self._orders = orders

    def create(self, payload: Mapping[str, Any], user_id: str) -> Order:
        """Create an order and reserve stock for every item, atomically.

        Items are processed in payload order. The client-supplied
        ``total_amount`` and ``unit_price`` values are trusted as given.
        """
        checkout = Checkout.from_payload(payload, user_id)
        order = checkout.order

        with self._database.transaction("create order") as tx:
            self._orders.insert_order(tx.connection, order)

            for line_number, line in enumerate(checkout.items, start=1):
                tx.check_deadline()
                item = self._reserve(tx.connection, order.id, line_number, line)
                order.items.append(item)
                order.prescription_required = order.prescription_required or item.requires_prescription

            if order.prescription_required:
                self._orders.flag_prescription_required(tx.connection, order.id)

        logger.info(
            "Order created",
            order_id=order.id,
            user_id=order.user_id,
            total_amount=order.total_amount,
            items=len(order.items),
        )
        return order

    def _reserve(self, connection, order_id: str, line_number: int, line: CheckoutItem) -> OrderItem:
        product = self._catalog.get(line.product_id, connection=connection)
        if product is None:
            raise NotFoundError.product(line.product_id)

        if product.stock_quantity < line.quantity:
            raise BusinessLogicError.insufficient_stock(
                "add product to order",
                product.id,
                available=product.stock_quantity,
                requested=line.quantity,
                title=product.title,
            )

        if not self._catalog.reserve_stock(connection, product.id, line.quantity):
            # A concurrent order took the stock between the read and the update
            current = self._catalog.get(product.id, connection=connection)
            raise BusinessLogicError.insufficient_stock(
                "add product to order",
                product.id,
                available=current.stock_quantity if current else 0,
                requested=line.quantity,
                title=product.title,
            )

        item = OrderItem.snapshot(
            order_id, line_number, product, line.quantity, line.unit_price, sku=line.product_sku
        )
        self._orders.insert_item(connection, item)
        return item
