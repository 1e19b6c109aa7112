# Overview: Typed failures raised by the invoicing core and mapped to HTTP by the routes.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every failure the core surfaces to its callers."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(LedgerError):
    """400-level input problem. The caller should fix the request, not retry it."""
    status_code = 400


class InvalidTransitionError(ValidationError):
    """The document's current status does not allow the requested operation."""
    status_code = 422


class NotFoundError(LedgerError):
    status_code = 404


class ConflictError(LedgerError):
    """409-level write conflict (duplicate number, lock timeout). Safe to retry."""
    status_code = 409


class DocumentLockedError(ConflictError):
    status_code = 423


class InsufficientStockError(LedgerError):
    """Requested quantity exceeds what the product's in-stock lots can supply."""
    status_code = 409

    def __init__(self, *, product_id: int, product_name: str | None, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name or f'product {product_id}'}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
                "shortfall": requested - available,
            },
        )


class InternalError(LedgerError):
    status_code = 500
