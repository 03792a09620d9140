# Overview: Exception taxonomy shared by services and routes.

"""
Every service-level failure derives from POSError and carries the HTTP status
the routes answer with, so a route only needs one except clause for domain
errors and one for everything unexpected.
"""

from __future__ import annotations


class POSError(Exception):
    """Base class for domain errors surfaced to API callers."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(POSError):
    """400-level input problem."""
    status_code = 400


class InvalidPaymentMethod(ValidationError):
    pass


class InvalidDateRange(ValidationError):
    pass


class NotFoundError(POSError):
    status_code = 404


class ProductNotFound(NotFoundError):
    pass


class CategoryNotFound(NotFoundError):
    pass


class TransactionNotFound(NotFoundError):
    pass


class UserNotFound(NotFoundError):
    pass


class ConflictError(POSError):
    """409-level business rule conflict (e.g., duplicate username)."""
    status_code = 409


class InsufficientStockError(POSError):
    status_code = 409

    def __init__(self, product_id: int, product_name: str | None, requested: int, available: int):
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available


class ConcurrencyConflictError(POSError):
    """Lost a lock/serialization race; the whole operation may be retried."""
    status_code = 409


class PersistenceError(POSError):
    """Underlying store failure; not locally recoverable."""
    status_code = 500
