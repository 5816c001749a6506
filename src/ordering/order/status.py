"""Order status updates.

Status moves freely among the non-cancelled states unless strict
transitions are enabled. Entering or leaving ``cancelled`` is refused
here: cancellation releases stock, so it only happens through
:class:`ordering.order.cancellation.OrderCancellation`.
"""

import structlog

from ordering.errors import BusinessLogicError, NotFoundError, ValidationError
from ordering.order.order import FORWARD_TRANSITIONS, Order, OrderStatus, enum_values
from ordering.order.store import OrderStore
from ordering.utils.db import Database

logger = structlog.get_logger(__name__)


class OrderStatusUpdater:
    def __init__(self, database: Database, orders: OrderStore, strict_transitions: bool = False):
        self._database = database
        self._orders = orders
        self.strict_transitions = strict_transitions

    def update_status(self, order_id: str, new_status: OrderStatus | str) -> Order:
        if not order_id or new_status is None or new_status == "":
            raise ValidationError.missing_fields(["order_id", "status"])
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise ValidationError.invalid_enum("status", new_status, enum_values(OrderStatus)) from None

        with self._database.transaction("update order status") as tx:
            order = self._orders.load(tx.connection, order_id, with_items=False)
            if order is None:
                raise NotFoundError.order(order_id)

            self._check_transition(order, new_status)

            if not self._orders.update_status(tx.connection, order.id, new_status, expected_status=order.status):
                raise BusinessLogicError.invalid_transition(
                    order.id, order.status.value, new_status.value, "order was modified concurrently"
                )
            previous = order.status
            order = self._orders.load(tx.connection, order.id)

        logger.info("Order status updated", order_id=order.id, previous=previous.value, status=new_status.value)
        return order

    def _check_transition(self, order: Order, new_status: OrderStatus) -> None:
        current = order.status
        if new_status is OrderStatus.CANCELLED:
            raise BusinessLogicError.invalid_transition(
                order.id, current.value, new_status.value, "use order cancellation to cancel an order"
            )
        if current is OrderStatus.CANCELLED:
            raise BusinessLogicError.invalid_transition(
                order.id, current.value, new_status.value, "cancelled orders cannot be reopened"
            )
        if self.strict_transitions and new_status is not current and new_status not in FORWARD_TRANSITIONS[current]:
            raise BusinessLogicError.invalid_transition(
                order.id, current.value, new_status.value, "only forward transitions are allowed"
            )
