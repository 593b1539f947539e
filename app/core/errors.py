# app/core/errors.py
"""
Domain errors raised by the service layer.

Every error is an HTTPException so routers can let them propagate untouched,
but each carries a stable machine-readable `code` in its detail so callers
can tell an expected race outcome (`already_taken`) from a real failure.
"""
from typing import Any

from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class: HTTP status + structured detail {code, message, ...}."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"

    def __init__(self, message: str, **extra: Any):
        self.message = message
        detail = {"code": self.code, "message": message, **extra}
        super().__init__(status_code=self.status_code, detail=detail)


class OrderNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "order_not_found"

    def __init__(self, order_id: Any):
        super().__init__(f"Order not found: {order_id}", order_id=str(order_id))


class InvalidTransition(DomainError):
    """FSM or permission violation. Carries the offending (from, to) pair."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"

    def __init__(self, current: str, requested: str, reason: str | None = None):
        self.current = current
        self.requested = requested
        message = f"Invalid status transition: {current} -> {requested}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, current=current, requested=requested)


class AlreadyTaken(DomainError):
    """A losing claim attempt. Expected under contention, not a system error."""

    status_code = status.HTTP_409_CONFLICT
    code = "already_taken"

    def __init__(self, order_id: Any):
        super().__init__(
            "This order was already taken by another driver",
            order_id=str(order_id),
        )


class InvalidAmount(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid-argument"

    def __init__(self, amount: Any):
        super().__init__(f"Invalid amount: {amount!r}", amount=str(amount))


class DriverNotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not-found"

    def __init__(self, driver_id: Any):
        super().__init__(f"Driver not found: {driver_id}", driver_id=str(driver_id))


class DriverNotEligible(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "driver_not_eligible"


class PermissionDenied(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "permission_denied"


class ValidationFailure(DomainError):
    """
    Terminal integrity failure at order creation (restaurant closed, item
    unavailable, trust score below floor). OrderService catches it and
    cancels the order with `reason`; checkout itself still succeeds.
    """

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_failure"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
