# backend/truckcheck/errors.py
"""
Error taxonomy for the checkout reconciliation engine.

Raised (rejected synchronously, before any write):
- ValidationError: malformed input (400)
- ConflictError: invoice numbers already claimed by another checkout (409)
- InvalidStateError: operation illegal for the checkout's status (409)
- NotFoundError: checkout / item / mapping absent (404)

Captured as data (never propagated out of the engine):
- InventoryAdjustmentError: one per item in process_stock's `errors`
- InvoiceDirectoryError: one invoice could not be fetched; recorded as
  that invoice's `error` status
"""
from __future__ import annotations


class TallyError(Exception):
    """Base for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(TallyError, ValueError):
    """400-level input problem."""


class NotFoundError(TallyError):
    status_code = 404


class ConflictError(TallyError):
    """Invoice numbers are attached to other non-cancelled checkouts."""

    status_code = 409

    def __init__(self, message: str, conflicts: list[dict] | None = None):
        super().__init__(message)
        self.conflicts = conflicts or []

    def to_dict(self) -> dict:
        return {"error": self.message, "duplicate_checkouts": self.conflicts}


class InvalidStateError(TallyError):
    status_code = 409

    def __init__(self, operation: str, status: str, detail: str | None = None):
        message = f"Cannot {operation} checkout in {status} status"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.operation = operation
        self.status = status

    def to_dict(self) -> dict:
        return {"error": self.message, "operation": self.operation, "status": self.status}


class InventoryAdjustmentError(Exception):
    """Per-item stock adjustment failure, reported in process_stock's errors."""

    def __init__(self, canonical_name: str, reason: str):
        super().__init__(f"{canonical_name}: {reason}")
        self.canonical_name = canonical_name
        self.reason = reason

    def to_dict(self) -> dict:
        return {"canonical_name": self.canonical_name, "reason": self.reason}


class InvoiceDirectoryError(Exception):
    """The invoice directory could not answer for one invoice."""
