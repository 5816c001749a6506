"""Order persistence: the ``orders`` and ``order_items`` tables and row mapping.

The store never opens connections itself. Callers pass the connection of
the transaction (or read connection) they are working in, so an order,
its items and the matching stock changes always share one transaction.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Connection,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.sql import ColumnElement

from ordering.catalogue.product import main_image, products_table
from ordering.order.order import CANCELLABLE_STATES, CancellationReason, Order, OrderItem, OrderStatus
from ordering.utils.db import metadata


def _in_list(column: str, values: Sequence[str]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


orders_table = Table(
    "orders",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("status", String(20), nullable=False, default=OrderStatus.PENDING.value),
    Column("total_amount", Numeric(12, 2, asdecimal=False), nullable=False),
    Column("shipping_address", JSON, nullable=False),
    Column("billing_address", JSON),
    Column("payment_method", String(50), nullable=False),
    Column("payment_status", String(50), nullable=False),
    Column("shipping_method", String(50), nullable=False),
    Column("shipping_cost", Numeric(10, 2, asdecimal=False), nullable=False, default=0),
    Column("notes", Text),
    Column("estimated_delivery_date", Date),
    Column("prescription_required", Boolean, nullable=False, default=False),
    Column("prescription_id", String(64), index=True),
    Column("cancellation_reason_code", String(40)),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint(_in_list("status", [s.value for s in OrderStatus]), name="chk_orders_status"),
    CheckConstraint("total_amount >= 0", name="chk_orders_total_amount"),
    CheckConstraint("shipping_cost >= 0", name="chk_orders_shipping_cost"),
)

order_items_table = Table(
    "order_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("order_id", String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("line_number", Integer, nullable=False, default=1),
    Column("product_id", String(64), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Numeric(10, 2, asdecimal=False), nullable=False),
    Column("total_price", Numeric(12, 2, asdecimal=False), nullable=False),
    Column("product_title", String(255), nullable=False),
    Column("product_sku", String(100)),
    Column("requires_prescription", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    CheckConstraint("quantity > 0", name="chk_order_items_quantity"),
    CheckConstraint("unit_price >= 0", name="chk_order_items_unit_price"),
    CheckConstraint("total_price >= 0", name="chk_order_items_total_price"),
)

_ORDER_COLUMNS = [column for column in orders_table.c]


def _order_row(order: Order) -> dict[str, Any]:
    row = order.model_dump(exclude={"items", "customer"})
    row["status"] = order.status.value
    row["payment_method"] = order.payment_method.value
    row["payment_status"] = order.payment_status.value
    row["shipping_method"] = order.shipping_method.value
    row["cancellation_reason_code"] = (
        order.cancellation_reason_code.value if order.cancellation_reason_code else None
    )
    return row


class OrderStore:
    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def insert_order(self, connection: Connection, order: Order) -> str:
        connection.execute(insert(orders_table).values(**_order_row(order)))
        return order.id

    def insert_item(self, connection: Connection, item: OrderItem) -> str:
        connection.execute(insert(order_items_table).values(**item.model_dump(exclude={"product_image"})))
        return item.id

    def flag_prescription_required(self, connection: Connection, order_id: str) -> None:
        connection.execute(
            update(orders_table).where(orders_table.c.id == order_id).values(prescription_required=True)
        )

    def update_status(
        self,
        connection: Connection,
        order_id: str,
        new_status: OrderStatus,
        expected_status: OrderStatus,
    ) -> bool:
        """Compare-and-set the status; False when the order moved meanwhile."""
        result = connection.execute(
            update(orders_table)
            .where(orders_table.c.id == order_id)
            .where(orders_table.c.status == expected_status.value)
            .values(status=new_status.value, updated_at=datetime.now(UTC))
        )
        return result.rowcount == 1

    def mark_cancelled(
        self,
        connection: Connection,
        order_id: str,
        notes: str,
        reason_code: CancellationReason,
    ) -> bool:
        """Flip a cancellable order to cancelled.

        The status guard is part of the UPDATE, so of two concurrent
        cancellations exactly one matches a row.
        """
        result = connection.execute(
            update(orders_table)
            .where(orders_table.c.id == order_id)
            .where(orders_table.c.status.in_([status.value for status in CANCELLABLE_STATES]))
            .values(
                status=OrderStatus.CANCELLED.value,
                notes=notes,
                cancellation_reason_code=reason_code.value,
                updated_at=datetime.now(UTC),
            )
        )
        return result.rowcount == 1

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def load(
        self,
        connection: Connection,
        order_id: str,
        owner_id: str | None = None,
        with_items: bool = True,
    ) -> Order | None:
        query = select(orders_table).where(orders_table.c.id == str(order_id))
        if owner_id is not None:
            query = query.where(orders_table.c.user_id == str(owner_id))

        row = connection.execute(query).mappings().first()
        if row is None:
            return None

        order = Order.model_validate(dict(row))
        if with_items:
            order.items = self.load_items(connection, order.id)
        return order

    def load_items(self, connection: Connection, order_id: str) -> list[OrderItem]:
        """Items in line order, each with the current main image of its product."""
        rows = connection.execute(
            select(order_items_table, products_table.c.images, products_table.c.main_image_index)
            .outerjoin(products_table, products_table.c.id == order_items_table.c.product_id)
            .where(order_items_table.c.order_id == order_id)
            .order_by(order_items_table.c.line_number)
        ).mappings()

        items = []
        for row in rows:
            values = dict(row)
            image = main_image(values.pop("images"), values.pop("main_image_index"))
            items.append(OrderItem.model_validate({**values, "product_image": image}))
        return items

    def count(self, connection: Connection, conditions: Sequence[ColumnElement[bool]]) -> int:
        query = select(func.count()).select_from(orders_table).where(*conditions)
        return connection.execute(query).scalar_one()

    def select_page(
        self,
        connection: Connection,
        conditions: Sequence[ColumnElement[bool]],
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        """Order rows (newest first) with an ``item_count`` column."""
        item_count = (
            select(func.count(order_items_table.c.id))
            .where(order_items_table.c.order_id == orders_table.c.id)
            .scalar_subquery()
            .label("item_count")
        )
        query = (
            select(*_ORDER_COLUMNS, item_count)
            .where(*conditions)
            .order_by(orders_table.c.created_at.desc(), orders_table.c.id.desc())
            .limit(limit)
            .offset(offset)
        )
        return [dict(row) for row in connection.execute(query).mappings()]
