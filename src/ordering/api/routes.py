"""FastAPI routes for the Ordering domain: carts and orders.

Caller identity arrives in ``X-User-Id`` / ``X-User-Privileged`` headers and
the cart session in ``X-Session-Id``. Both are set by the gateway in front
of this service; nothing here authenticates.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from ordering.api.schemas import (
    AddToCartRequest,
    CancelOrderRequest,
    CreateOrderRequest,
    SyncCartRequest,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
)
from ordering.cart.cart import Cart
from ordering.domain import OrderingDomain
from ordering.order.order import Order
from ordering.order.queries import OrderPage


def get_ordering(request: Request) -> OrderingDomain:
    return request.app.state.ordering


Ordering = Annotated[OrderingDomain, Depends(get_ordering)]
SessionId = Annotated[str, Header(alias="X-Session-Id")]
UserId = Annotated[str, Header(alias="X-User-Id")]
Privileged = Annotated[bool, Header(alias="X-User-Privileged")]


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=Cart)
def get_cart(ordering: Ordering, session_id: SessionId) -> Cart:
    return ordering.carts.get_cart(session_id)


@cart_router.post("/items", response_model=Cart)
def add_cart_item(body: AddToCartRequest, ordering: Ordering, session_id: SessionId) -> Cart:
    return ordering.carts.add_item(session_id, body.product_id, body.quantity)


@cart_router.put("/items/{product_id}", response_model=Cart)
def update_cart_item(
    product_id: str, body: UpdateCartQuantityRequest, ordering: Ordering, session_id: SessionId
) -> Cart:
    return ordering.carts.update_item(session_id, product_id, body.quantity)


@cart_router.delete("/items/{product_id}", response_model=Cart)
def remove_cart_item(product_id: str, ordering: Ordering, session_id: SessionId) -> Cart:
    return ordering.carts.remove_item(session_id, product_id)


@cart_router.delete("", response_model=Cart)
def clear_cart(ordering: Ordering, session_id: SessionId) -> Cart:
    return ordering.carts.clear(session_id)


@cart_router.post("/sync", response_model=Cart)
def sync_cart(body: SyncCartRequest, ordering: Ordering, session_id: SessionId) -> Cart:
    """Merge the client's locally stored cart into the session cart."""
    items = [item.model_dump(exclude_none=True) for item in body.local_cart_items]
    return ordering.carts.sync_with_local_storage(session_id, items)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=Order)
def create_order(body: CreateOrderRequest, ordering: Ordering, user_id: UserId) -> Order:
    return ordering.creation.create(body.to_payload(), user_id)


@order_router.get("", response_model=OrderPage)
def list_orders(
    ordering: Ordering,
    user_id: UserId,
    privileged: Privileged = False,
    page: str | None = None,
    limit: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> OrderPage:
    """List orders, newest first. Regular users only see their own."""
    filters = {
        "page": page,
        "limit": limit,
        "status": status,
        "payment_status": payment_status,
        "start_date": start_date,
        "end_date": end_date,
    }
    return ordering.queries.list(filters, owner_scope=None if privileged else user_id)


@order_router.get("/{order_id}", response_model=Order)
def get_order(order_id: str, ordering: Ordering, user_id: UserId, privileged: Privileged = False) -> Order:
    return ordering.queries.get_by_id(order_id, owner_scope=None if privileged else user_id)


@order_router.put("/{order_id}/status", response_model=Order)
def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    ordering: Ordering,
    user_id: UserId,
    privileged: Privileged = False,
) -> Order:
    """Move an order along its lifecycle (staff only)."""
    if not privileged:
        raise HTTPException(status_code=403, detail="Only staff can change order status")
    return ordering.status.update_status(order_id, body.status)


@order_router.put("/{order_id}/cancel", response_model=Order)
def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    ordering: Ordering,
    user_id: UserId,
    privileged: Privileged = False,
) -> Order:
    return ordering.cancellation.cancel(
        order_id,
        user_id,
        reason_text=body.reason,
        reason_code=body.reason_code,
        is_privileged_actor=privileged,
    )
