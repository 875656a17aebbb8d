# Overview: Ledger error taxonomy shared by services and routes.

"""
Ledger error kinds (authoritative)

- ValidationFailed: one or more field-level rule violations, rejected before
  any mutation. Carries the full list of FieldError pairs.
- NotFound: referenced item, document or customer is absent.
- InsufficientStock: applying a line would drive an item below zero.
- InvalidTransition: status or document-state change not permitted.
- Conflict: concurrent-update contention exceeded the retry budget.
- StorageUnavailable: infrastructure failure, never retried by the core.

Every error leaves stock untouched: the transaction that raised it is rolled
back before the error reaches the caller.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class LedgerError(Exception):
    """Base class for errors surfaced to the presentation layer."""

    kind = "LedgerError"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind, "details": self.details}


class ValidationFailed(LedgerError):
    kind = "ValidationFailed"
    http_status = 400

    def __init__(self, errors: list[FieldError], message: str = "Validation failed"):
        super().__init__(message, details={"errors": [e.to_dict() for e in errors]})
        self.errors = list(errors)


class NotFoundError(LedgerError):
    kind = "NotFound"
    http_status = 404


class InsufficientStockError(LedgerError):
    kind = "InsufficientStock"
    http_status = 409

    def __init__(self, item_id: int, requested: int, available: int, message: str | None = None):
        super().__init__(
            message or f"Insufficient stock for item {item_id}: requested {requested}, available {available}",
            details={"item_id": item_id, "requested": requested, "available": available},
        )
        self.item_id = item_id
        self.requested = requested
        self.available = available


class InvalidTransitionError(LedgerError):
    kind = "InvalidTransition"
    http_status = 409


class ConflictError(LedgerError):
    kind = "Conflict"
    http_status = 409


class StorageUnavailableError(LedgerError):
    kind = "StorageUnavailable"
    http_status = 503
