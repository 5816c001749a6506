"""Order read side: single-order retrieval and filtered, paginated listing.

Both reads accept an ``owner_scope``. When given, only orders belonging to
that user are visible; an order owned by someone else is reported exactly
like a missing one.
"""

import math
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Protocol

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ordering.errors import NotFoundError, ValidationError
from ordering.order.order import (
    CustomerSummary,
    Order,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingMethod,
    enum_values,
)
from ordering.order.store import OrderStore, orders_table
from ordering.utils.db import Database


class UserDirectory(Protocol):
    """Identity-side lookup of contact details for order owners."""

    def get_customers(self, user_ids: Iterable[str]) -> Mapping[str, CustomerSummary]: ...


class OrderFilters(BaseModel):
    page: int = 1
    limit: int | None = None
    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    start_date: date | None = None
    end_date: date | None = None

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> "OrderFilters":
        """Build filters from loosely typed input such as query parameters."""
        values = {key: value for key, value in data.items() if value not in (None, "")}
        try:
            return cls.model_validate(values)
        except PydanticValidationError as exc:
            error = exc.errors()[0]
            field = str(error["loc"][0]) if error["loc"] else "filters"
            if field == "status":
                raise ValidationError.invalid_enum(field, values.get(field), enum_values(OrderStatus)) from None
            if field == "payment_status":
                raise ValidationError.invalid_enum(field, values.get(field), enum_values(PaymentStatus)) from None
            if field in ("page", "limit"):
                raise ValidationError.invalid_number(
                    "pagination", f"page: {values.get('page')}, limit: {values.get('limit')}"
                ) from None
            raise ValidationError.invalid_format(field, "YYYY-MM-DD") from None


class OrderSummary(BaseModel):
    id: str
    user_id: str
    status: OrderStatus
    total_amount: float
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    shipping_method: ShippingMethod
    prescription_required: bool
    prescription_id: str | None = None
    item_count: int
    created_at: datetime
    updated_at: datetime
    customer: CustomerSummary | None = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_records: int
    limit: int
    has_next_page: bool
    has_prev_page: bool


class OrderPage(BaseModel):
    orders: list[OrderSummary]
    pagination: Pagination
    filters: OrderFilters


def _start_of(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


class OrderQueries:
    def __init__(
        self,
        database: Database,
        orders: OrderStore,
        user_directory: UserDirectory | None = None,
        default_page_size: int = 10,
        max_page_size: int = 100,
    ):
        self._database = database
        self._orders = orders
        self._users = user_directory
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def _customers(self, user_ids: Iterable[str]) -> Mapping[str, CustomerSummary]:
        if self._users is None:
            return {}
        return self._users.get_customers(set(user_ids))

    def get_by_id(self, order_id: str, owner_scope: str | None = None) -> Order:
        if not order_id:
            raise ValidationError.missing_fields(["order_id"])

        with self._database.connect() as conn:
            order = self._orders.load(conn, order_id, owner_id=owner_scope)
        if order is None:
            raise NotFoundError.order(order_id)

        order.customer = self._customers([order.user_id]).get(order.user_id)
        return order

    def list(
        self,
        filters: OrderFilters | Mapping[str, Any] | None = None,
        owner_scope: str | None = None,
    ) -> OrderPage:
        """List orders newest first, one page at a time.

        An ``end_date`` covers the whole of that day.
        """
        if filters is None:
            filters = OrderFilters()
        elif not isinstance(filters, OrderFilters):
            filters = OrderFilters.parse(filters)

        page = filters.page
        limit = filters.limit if filters.limit is not None else self.default_page_size
        if page < 1 or limit < 1 or limit > self.max_page_size:
            raise ValidationError.invalid_number(
                "pagination", f"page: {page}, limit: {limit}", minimum=1, maximum=self.max_page_size
            )

        conditions = []
        if owner_scope is not None:
            conditions.append(orders_table.c.user_id == str(owner_scope))
        if filters.status is not None:
            conditions.append(orders_table.c.status == filters.status.value)
        if filters.payment_status is not None:
            conditions.append(orders_table.c.payment_status == filters.payment_status.value)
        if filters.start_date is not None:
            conditions.append(orders_table.c.created_at >= _start_of(filters.start_date))
        if filters.end_date is not None:
            conditions.append(orders_table.c.created_at < _start_of(filters.end_date + timedelta(days=1)))

        with self._database.connect() as conn:
            total_records = self._orders.count(conn, conditions)
            rows = self._orders.select_page(conn, conditions, limit=limit, offset=(page - 1) * limit)

        customers = self._customers(row["user_id"] for row in rows)
        summaries = [OrderSummary.model_validate({**row, "customer": customers.get(row["user_id"])}) for row in rows]

        total_pages = math.ceil(total_records / limit)
        return OrderPage(
            orders=summaries,
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_records=total_records,
                limit=limit,
                has_next_page=page < total_pages,
                has_prev_page=page > 1,
            ),
            filters=filters.model_copy(update={"limit": limit}),
        )
