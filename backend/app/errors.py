"""
Reconciliation error taxonomy.

Each error carries the HTTP status it maps to so the exception handlers in
``app.main`` can render the response bodies admin clients already depend on.
"""
from __future__ import annotations
from fastapi import status


class ReconciliationError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"error": self.message}


class InvalidInput(ReconciliationError):
    status_code = status.HTTP_400_BAD_REQUEST


class StoreUnavailable(ReconciliationError):
    """Ledger store is not configured for this deployment."""


class UpdateFailed(ReconciliationError):
    """The withdrawal row could not be updated; no side effects were attempted."""


class InvalidTransition(ReconciliationError):
    status_code = status.HTTP_409_CONFLICT


class PartialFailure(ReconciliationError):
    """Verification found rows that should have been deleted."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reason: str, details: list[str]):
        super().__init__(reason)
        self.reason = reason
        self.details = details

    def to_body(self) -> dict:
        return {"ok": False, "reason": self.reason, "details": self.details}


class UnexpectedError(ReconciliationError):
    pass


class NotFound(ReconciliationError):
    status_code = status.HTTP_404_NOT_FOUND
