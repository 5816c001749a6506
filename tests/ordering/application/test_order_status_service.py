"""Application tests for staff status updates."""

import pytest

from ordering.errors import BusinessLogicError, NotFoundError, ValidationError
from ordering.order.order import OrderStatus
from ordering.order.status import OrderStatusUpdater


@pytest.fixture()
def order(ordering, products, order_payload):
    return ordering.creation.create(order_payload(("prod-001", 2, 25000.0)), "user-001")


class TestUpdateStatus:
    def test_moves_order_forward(self, ordering, order):
        updated = ordering.status.update_status(order.id, "confirmed")
        assert updated.status == OrderStatus.CONFIRMED
        assert len(updated.items) == 1

    def test_accepts_enum_members(self, ordering, order):
        assert ordering.status.update_status(order.id, OrderStatus.SHIPPED).status == OrderStatus.SHIPPED

    def test_backward_moves_allowed_by_default(self, ordering, order):
        ordering.status.update_status(order.id, "shipped")
        assert ordering.status.update_status(order.id, "processing").status == OrderStatus.PROCESSING

    def test_status_change_does_not_touch_stock(self, ordering, order, stock_of):
        ordering.status.update_status(order.id, "delivered")
        assert stock_of("prod-001") == 8

    def test_cannot_cancel_through_status_update(self, ordering, order, stock_of):
        with pytest.raises(BusinessLogicError):
            ordering.status.update_status(order.id, "cancelled")
        assert ordering.queries.get_by_id(order.id).status == OrderStatus.PENDING
        assert stock_of("prod-001") == 8

    def test_cancelled_orders_cannot_be_reopened(self, ordering, order):
        ordering.cancellation.cancel(order.id, "user-001")
        with pytest.raises(BusinessLogicError):
            ordering.status.update_status(order.id, "pending")

    def test_invalid_status(self, ordering, order):
        with pytest.raises(ValidationError) as exc:
            ordering.status.update_status(order.id, "lost")
        assert exc.value.details["valid_options"] == [status.value for status in OrderStatus]

    def test_missing_status(self, ordering, order):
        with pytest.raises(ValidationError):
            ordering.status.update_status(order.id, None)

    def test_unknown_order(self, ordering, products):
        with pytest.raises(NotFoundError):
            ordering.status.update_status("no-such-order", "confirmed")


class TestStrictTransitions:
    @pytest.fixture()
    def strict(self, ordering):
        return OrderStatusUpdater(ordering.database, ordering.orders, strict_transitions=True)

    def test_forward_moves_allowed(self, strict, order):
        assert strict.update_status(order.id, "processing").status == OrderStatus.PROCESSING
        assert strict.update_status(order.id, "delivered").status == OrderStatus.DELIVERED

    def test_backward_moves_rejected(self, strict, order):
        strict.update_status(order.id, "shipped")
        with pytest.raises(BusinessLogicError) as exc:
            strict.update_status(order.id, "confirmed")
        assert exc.value.rule == "INVALID_STATUS_TRANSITION"
        assert exc.value.details["current_status"] == "shipped"
