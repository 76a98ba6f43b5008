# app/errors.py
from __future__ import annotations


class LedgerError(Exception):
    """Base for business errors raised by the assignment ledger and its collaborators.

    `kind` is the stable machine-readable code surfaced at the HTTP boundary.
    """

    kind = "LEDGER_ERROR"
    http_status = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    kind = "VALIDATION_ERROR"
    http_status = 422


class NotFoundError(LedgerError):
    # Ownership mismatches are reported through this too, so callers can't probe for ids.
    kind = "NOT_FOUND"
    http_status = 404


class InvalidStateError(LedgerError):
    kind = "INVALID_STATE"
    http_status = 409


class ConflictError(LedgerError):
    kind = "CONFLICT"
    http_status = 409
