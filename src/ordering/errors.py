"""Typed errors raised by the ordering engine.

Every error carries a machine-readable ``error_code``, the HTTP status the
API adapter maps it to, and a ``details`` mapping with enough structure for
a caller to decide on a remedy (available vs. requested stock, current vs.
allowed status, missing field names) without parsing the message.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any


class OrderingError(Exception):
    """Base class for all errors raised by the ordering engine."""

    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp.isoformat(),
            },
        }


class ValidationError(OrderingError):
    """Missing or malformed input. The caller fixes the payload and retries."""

    status_code = 400
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, **details: Any):
        super().__init__(message, {"field": field, **details})
        self.field = field

    @classmethod
    def missing_fields(cls, fields: list[str]) -> "ValidationError":
        return cls("Required fields are missing", missing_fields=list(fields))

    @classmethod
    def invalid_format(cls, field: str, expected_format: str | None = None) -> "ValidationError":
        return cls(f"Invalid {field} format", field, expected_format=expected_format)

    @classmethod
    def invalid_enum(cls, field: str, value: Any, valid_options: list[str]) -> "ValidationError":
        return cls(
            f"Invalid {field} value",
            field,
            provided_value=value,
            valid_options=list(valid_options),
        )

    @classmethod
    def invalid_number(
        cls,
        field: str,
        value: Any,
        minimum: float | None = None,
        maximum: float | None = None,
    ) -> "ValidationError":
        message = f"{field} must be a valid number"
        if minimum is not None:
            message += f" (minimum: {minimum})"
        if maximum is not None:
            message += f" (maximum: {maximum})"
        return cls(message, field, provided_value=value, minimum=minimum, maximum=maximum)


class Resource(Enum):
    ORDER = "Order"
    PRODUCT = "Product"
    PRESCRIPTION = "Prescription"


class NotFoundError(OrderingError):
    """A resource is absent, or absent within the caller's ownership scope."""

    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: Resource, identifier: Any = None):
        if identifier is not None:
            message = f"{resource.value} with identifier '{identifier}' not found"
        else:
            message = f"{resource.value} not found"
        super().__init__(message, {"resource": resource.value, "identifier": identifier})
        self.resource = resource
        self.identifier = identifier

    @classmethod
    def order(cls, order_id: Any = None) -> "NotFoundError":
        return cls(Resource.ORDER, order_id)

    @classmethod
    def product(cls, product_id: Any = None) -> "NotFoundError":
        return cls(Resource.PRODUCT, product_id)

    @classmethod
    def prescription(cls, prescription_id: Any = None) -> "NotFoundError":
        return cls(Resource.PRESCRIPTION, prescription_id)


class BusinessLogicError(OrderingError):
    """A business rule rejected the operation (stock, status, reason codes)."""

    status_code = 422
    error_code = "BUSINESS_LOGIC_ERROR"

    def __init__(self, message: str, rule: str | None = None, **details: Any):
        super().__init__(message, {"rule": rule, **details})
        self.rule = rule

    @classmethod
    def insufficient_stock(
        cls,
        operation: str,
        product_id: Any,
        available: int,
        requested: int,
        title: str | None = None,
        in_cart: int | None = None,
    ) -> "BusinessLogicError":
        if in_cart is not None:
            reason = f"Cannot add {requested} more items. Current cart: {in_cart}, Available: {available}"
        else:
            subject = f" for product {title}" if title else ""
            reason = f"Insufficient stock{subject}. Available: {available}, Requested: {requested}"
        return cls(
            f"Cannot {operation}: {reason}",
            "INSUFFICIENT_STOCK",
            operation=operation,
            product_id=product_id,
            available=available,
            requested=requested,
            in_cart=in_cart,
        )

    @classmethod
    def not_cancellable(cls, order_id: Any, status: str, allowed: list[str]) -> "BusinessLogicError":
        return cls(
            f"Cannot cancel order: cannot cancel order with status '{status}'",
            "ORDER_NOT_CANCELLABLE",
            order_id=order_id,
            current_status=status,
            allowed_statuses=list(allowed),
        )

    @classmethod
    def invalid_transition(cls, order_id: Any, current: str, requested: str, reason: str) -> "BusinessLogicError":
        return cls(
            f"Cannot change order status from '{current}' to '{requested}': {reason}",
            "INVALID_STATUS_TRANSITION",
            order_id=order_id,
            current_status=current,
            requested_status=requested,
        )


class TransactionTimeoutError(OrderingError):
    """The transaction ran past its deadline and was rolled back."""

    status_code = 504
    error_code = "TRANSACTION_TIMEOUT"

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"{operation} took longer than {timeout:g}s and was rolled back",
            {"operation": operation, "timeout": timeout},
        )
