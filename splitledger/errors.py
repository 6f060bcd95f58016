"""
Domain Errors

Lookup and authorization failures are deterministic: they are surfaced
to the caller as-is and never retried.
"""

from typing import Optional

from splitledger.models.ledger import ValidationResult


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class NotFoundError(LedgerError):
    """Referenced group or user does not exist."""
    pass


class ForbiddenError(LedgerError):
    """Requesting user is not allowed to perform the action."""
    pass


class InvalidStateError(LedgerError):
    """Request refers to a state that does not exist (e.g. a stale invite token)."""
    pass


class ValidationFailedError(LedgerError):
    """A record was rejected by the write-side validator."""

    def __init__(self, message: str, result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.result = result
