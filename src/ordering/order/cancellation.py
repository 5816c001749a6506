"""Order cancellation: the compensating path that returns reserved stock.

The status flip and every stock release share one transaction. The flip
is conditional on the order still being cancellable, so a second
cancellation (sequential or concurrent) matches no row and fails before
any stock is released twice.
"""

import structlog

from ordering.catalogue.catalog import ProductCatalog
from ordering.errors import BusinessLogicError, NotFoundError, ValidationError
from ordering.order.order import CANCELLABLE_STATES, CancellationReason, Order, enum_values
from ordering.order.store import OrderStore
from ordering.utils.db import Database

logger = structlog.get_logger(__name__)

DEFAULT_CANCELLATION_NOTE = "Cancelled by customer"


def _reason_code(reason_code: CancellationReason | str | None, reason_text: str | None) -> CancellationReason:
    if reason_code == "":
        reason_code = None

    if reason_code is None:
        code = CancellationReason.OTHER
    else:
        try:
            code = CancellationReason(reason_code)
        except ValueError:
            raise ValidationError.invalid_enum(
                "reason_code", reason_code, enum_values(CancellationReason)
            ) from None

    # An explicit "other" needs an explanation
    if reason_code is not None and code is CancellationReason.OTHER and not (reason_text or "").strip():
        raise ValidationError.missing_fields(["reason"])
    return code


class OrderCancellation:
    def __init__(self, database: Database, catalog: ProductCatalog, orders: OrderStore):
        self._database = database
        self._catalog = catalog
        self._orders = orders

    def cancel(
        self,
        order_id: str,
        actor_id: str,
        reason_text: str | None = None,
        reason_code: CancellationReason | str | None = None,
        is_privileged_actor: bool = False,
    ) -> Order:
        """Cancel a pending or confirmed order and put its stock back.

        Non-privileged actors can only see, and so only cancel, their own
        orders.
        """
        if not order_id:
            raise ValidationError.missing_fields(["order_id"])

        allowed = [status.value for status in CANCELLABLE_STATES]
        with self._database.transaction("cancel order") as tx:
            owner = None if is_privileged_actor else str(actor_id)
            order = self._orders.load(tx.connection, order_id, owner_id=owner)
            if order is None:
                raise NotFoundError.order(order_id)

            if not order.is_cancellable:
                raise BusinessLogicError.not_cancellable(order.id, order.status.value, allowed)

            code = _reason_code(reason_code, reason_text)
            notes = (reason_text or "").strip() or DEFAULT_CANCELLATION_NOTE

            if not self._orders.mark_cancelled(tx.connection, order.id, notes, code):
                current = self._orders.load(tx.connection, order.id, with_items=False)
                raise BusinessLogicError.not_cancellable(order.id, current.status.value, allowed)

            for item in order.items:
                tx.check_deadline()
                self._catalog.release_stock(tx.connection, item.product_id, item.quantity)

            cancelled = self._orders.load(tx.connection, order.id)

        logger.info(
            "Order cancelled",
            order_id=order.id,
            cancelled_by=f"staff ({actor_id})" if is_privileged_actor else f"customer ({actor_id})",
            reason=notes,
            reason_code=code.value,
        )
        return cancelled
