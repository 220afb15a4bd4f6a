# Overview: Domain error kinds raised by the service layer.

from __future__ import annotations


class SalesDeskError(Exception):
    """Base class for errors the core surfaces to callers."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "details": self.details}


class NotFoundError(SalesDeskError):
    """Referenced customer, product or order does not exist."""
    status_code = 404


class InsufficientStockError(SalesDeskError):
    """A stock decrement would drive quantity on hand below zero."""
    status_code = 409


class DuplicateKeyError(SalesDeskError):
    """SKU or order number uniqueness violation."""
    status_code = 409


class InvalidTransitionError(SalesDeskError):
    """Illegal order status change."""
    status_code = 409


class ConflictError(SalesDeskError):
    """Business rule refusal, e.g. deleting a product referenced by orders."""
    status_code = 409
