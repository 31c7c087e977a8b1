"""
Centralized error handling for booking/availability failures.

Services raise DomainError subclasses carrying a stable code, a user-facing message and
structured details (offending date, instance id, requested vs available quantity) so the
UI can explain why an operation failed. Routes stay thin: the exception handler below maps
each class to an HTTP status via ERROR_STATUS_RULES.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Error classes
# ---------------------------------------------------------------------------


class DomainError(Exception):
    """Base domain error with code, user-safe message and structured details."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(DomainError):
    """Malformed or missing input (bad time format, quantity < 1, ...)."""

    code = "VALIDATION_ERROR"


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"


class ParkClosed(DomainError):
    code = "PARK_CLOSED"


class OutsideWorkingHours(DomainError):
    code = "OUTSIDE_WORKING_HOURS"


class InconsistentHours(DomainError):
    code = "INCONSISTENT_HOURS"


class InvalidSelection(DomainError):
    """Pricing or instance missing, or not enough tickets when adding to cart."""

    code = "INVALID_SELECTION"


class InsufficientCapacity(DomainError):
    code = "INSUFFICIENT_CAPACITY"


class CapacityLost(DomainError):
    """A cart line no longer fits its instance at checkout time."""

    code = "CAPACITY_LOST"


class NotFound(DomainError):
    code = "NOT_FOUND"

    def __init__(self, kind: str, object_id: Any) -> None:
        super().__init__(f"{kind} not found", kind=kind, id=object_id)


class NoActiveCart(DomainError):
    code = "NO_ACTIVE_CART"

    def __init__(self) -> None:
        super().__init__("No active cart found")


class CartLocked(DomainError):
    """Cart has an open payment session; its lines and holds are frozen until it settles."""

    code = "CART_LOCKED"


class PaymentFailed(DomainError):
    code = "PAYMENT_FAILED"


class InvalidSignature(DomainError):
    code = "INVALID_SIGNATURE"

    def __init__(self) -> None:
        super().__init__("Invalid webhook signature")


class Forbidden(DomainError):
    code = "FORBIDDEN"


# ---------------------------------------------------------------------------
# Error rules: (exception class, status_code). First match wins, so keep
# subclasses before their bases. Add new rules here instead of in routes.
# ---------------------------------------------------------------------------

ERROR_STATUS_RULES: list[tuple[type[DomainError], int]] = [
    (InvalidQuantity, 400),
    (ValidationError, 400),
    (InvalidSelection, 400),
    (Forbidden, 403),
    (InvalidSignature, 403),
    (NotFound, 404),
    (NoActiveCart, 404),
    (CartLocked, 409),
    (InsufficientCapacity, 409),
    (CapacityLost, 409),
    (PaymentFailed, 402),
    (ParkClosed, 422),
    (OutsideWorkingHours, 422),
    (InconsistentHours, 422),
]

STATUS_INTERNAL_ERROR = 500


def status_for(exc: DomainError) -> int:
    for cls, status_code in ERROR_STATUS_RULES:
        if isinstance(exc, cls):
            return status_code
    return STATUS_INTERNAL_ERROR


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render a DomainError as {"error", "message", "details"} with the mapped status."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Unmapped domain error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())
