"""Domain error taxonomy.

Every error a request handler may surface carries a stable ``code`` and the
HTTP status it maps to. Messages are safe to show to clients; they never
include guest contact data.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for client-facing reservation engine errors."""

    code = "domain_error"
    http_status = 400

    def __init__(self, message: str, *, meta: dict | None = None) -> None:
        self.message = message
        self.meta = meta or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.code, "message": self.message}
        if self.meta:
            body["meta"] = self.meta
        return body


class ValidationError(DomainError):
    """Missing or malformed input, rejected before any write."""

    code = "validation_error"
    http_status = 400


class ProductNotFound(DomainError):
    """Room type or ticket type does not exist (or was deleted)."""

    code = "product_not_found"
    http_status = 404


class ReservationNotFound(DomainError):
    code = "reservation_not_found"
    http_status = 404


class UserNotFound(DomainError):
    code = "user_not_found"
    http_status = 404


class InsufficientInventory(DomainError):
    """Ledger lacks capacity for at least one requested date."""

    code = "insufficient_inventory"
    http_status = 409


class InvalidStateTransition(DomainError):
    code = "invalid_state_transition"
    http_status = 409


class InventoryAlreadyExists(DomainError):
    """A ledger row already exists for a (product, date) being created."""

    code = "inventory_already_exists"
    http_status = 409


class TransactionConflict(DomainError):
    """Concurrent writers kept conflicting after all retries."""

    code = "transaction_conflict"
    http_status = 503
