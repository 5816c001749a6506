"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
engine's own models. Business validation (positive quantities, enum
membership, required item fields) stays in the engine so that HTTP and
in-process callers get the same errors.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

_ADDRESS_EXAMPLE = {
    "full_name": "Nguyen Van A",
    "phone": "0901234567",
    "street": "12 Le Loi",
    "district": "District 1",
    "city": "Ho Chi Minh City",
}


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str | None = None
    quantity: Any = 1


class UpdateCartQuantityRequest(BaseModel):
    quantity: Any


class LocalCartItem(BaseModel):
    id: str | None = None
    product_id: str | None = None
    quantity: Any = None
    added_at: datetime | None = None


class SyncCartRequest(BaseModel):
    local_cart_items: list[LocalCartItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class OrderItemSchema(BaseModel):
    product_id: str | None = None
    quantity: Any = None
    unit_price: Any = None
    product_sku: str | None = None


class CreateOrderRequest(BaseModel):
    items: list[OrderItemSchema] | None = None
    total_amount: Any = None
    shipping_address: dict[str, Any] | None = None
    billing_address: dict[str, Any] | None = None
    payment_method: str | None = None
    payment_status: str | None = None
    shipping_method: str | None = None
    shipping_cost: Any = None
    status: str | None = None
    notes: str | None = None
    estimated_delivery_date: str | None = None
    prescription_required: bool = False
    prescription_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "product_id": "prod-001",
                            "quantity": 2,
                            "unit_price": 45000,
                            "product_sku": "PARA-500",
                        }
                    ],
                    "total_amount": 120000,
                    "shipping_cost": 30000,
                    "shipping_address": _ADDRESS_EXAMPLE,
                    "payment_method": "cash_on_delivery",
                    "shipping_method": "standard",
                }
            ]
        }
    }

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(exclude_none=True)
        if "items" in payload:
            payload["items"] = [item.model_dump(exclude_none=True) for item in self.items]
        return payload


class UpdateOrderStatusRequest(BaseModel):
    status: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None
    reason_code: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class HealthResponse(BaseModel):
    status: str = "ok"
    database: str
