"""Order and OrderItem: the persisted record of a checkout.

An order is immutable once created except for its status, payment status,
notes and cancellation reason. Order items are full snapshots taken at
creation time so later catalogue edits never alter historical orders.

State Machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    CANCELLED (from PENDING or CONFIRMED only, via cancellation)
"""

from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from ordering.catalogue.product import Product


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    E_WALLET = "e_wallet"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    SAME_DAY = "same_day"
    GRAB = "grab"


class CancellationReason(Enum):
    CHANGED_MIND = "changed_mind"
    WRONG_ORDER = "wrong_order"
    FOUND_BETTER_PRICE = "found_better_price"
    DELIVERY_TOO_LONG = "delivery_too_long"
    PAYMENT_ISSUE = "payment_issue"
    NO_LONGER_NEEDED = "no_longer_needed"
    DUPLICATE_ORDER = "duplicate_order"
    PRESCRIPTION_INVALID = "prescription_invalid"
    QUALITY_ISSUE = "quality_issue"
    PHARMACY_CLOSURE = "pharmacy_closure"
    REGULATORY_ISSUE = "regulatory_issue"
    ADDRESS_UNREACHABLE = "address_unreachable"
    OTHER = "other"


def enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# States from which cancellation is allowed
CANCELLABLE_STATES = (OrderStatus.PENDING, OrderStatus.CONFIRMED)

# Forward-only transition map, enforced when strict transitions are enabled
FORWARD_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DELIVERED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
class OrderItem(BaseModel):
    """A line item frozen at purchase time."""

    id: str = Field(default_factory=_new_id)
    order_id: str
    line_number: int = Field(default=1, ge=1)
    product_id: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    total_price: float = Field(ge=0)
    product_title: str
    product_sku: str | None = None
    requires_prescription: bool = False
    # Read from the product on load, not stored with the item
    product_image: str | None = None
    created_at: datetime = Field(default_factory=_now)

    @classmethod
    def snapshot(
        cls,
        order_id: str,
        line_number: int,
        product: Product,
        quantity: int,
        unit_price: float,
        sku: str | None = None,
    ) -> "OrderItem":
        return cls(
            order_id=order_id,
            line_number=line_number,
            product_id=product.id,
            quantity=quantity,
            unit_price=unit_price,
            total_price=quantity * unit_price,
            product_title=product.title,
            product_sku=sku or product.sku,
            requires_prescription=product.requires_prescription,
            product_image=product.image,
        )


class CustomerSummary(BaseModel):
    email: str | None = None
    name: str | None = None
    phone: str | None = None


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
class Order(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    status: OrderStatus = OrderStatus.PENDING
    total_amount: float = Field(ge=0)
    shipping_address: dict[str, Any]
    billing_address: dict[str, Any] | None = None
    payment_method: PaymentMethod = PaymentMethod.CASH_ON_DELIVERY
    payment_status: PaymentStatus = PaymentStatus.PENDING
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    shipping_cost: float = Field(default=0.0, ge=0)
    notes: str | None = None
    estimated_delivery_date: date | None = None
    prescription_required: bool = False
    prescription_id: str | None = None
    cancellation_reason_code: CancellationReason | None = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    items: list[OrderItem] = Field(default_factory=list)
    customer: CustomerSummary | None = None

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATES

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")
