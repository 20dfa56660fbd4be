# Overview: Error taxonomy shared by services and routes.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for stock ledger failures surfaced to callers."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError):
    """Missing or malformed input, rejected before any mutation."""

    status_code = 400


class NotFoundError(LedgerError):
    """Referenced product, store or record does not exist."""

    status_code = 404


class ConflictError(LedgerError):
    """Business rule violation (deleting a referenced record, stale quantity, ...)."""

    status_code = 409


class StorageError(LedgerError):
    """The datastore call failed; the whole operation was rolled back."""

    status_code = 503
