"""
Ledger Exceptions

All errors raised by the ledger engine derive from LedgerError.

Precondition violations are caller bugs (negative amount, unknown category,
flipping the paid flag of an income entry, deleting a tuple that was never
recorded). They are raised BEFORE any total is touched, so a failed call
leaves the ledger exactly as it was.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base exception for the ledger engine."""
    pass


class PreconditionViolationError(LedgerError, ValueError):
    """A ledger operation was called with arguments that break its contract."""
    pass


class NegativeAmountError(PreconditionViolationError):
    """Amount is below zero."""
    pass


class InvalidAmountError(PreconditionViolationError):
    """Amount is not a finite number or has too many decimal places."""
    pass


class UnknownCategoryError(PreconditionViolationError):
    """Category is not part of the closed category enumeration."""
    pass


class InvalidPaidTransitionError(PreconditionViolationError):
    """Paid status change that cannot correspond to a live expense entry."""
    pass


class UnmatchedDeltaError(PreconditionViolationError):
    """Delete of a tuple whose amount was never recorded in that bucket."""
    pass


class LedgerInvariantError(LedgerError):
    """Ledger totals are internally inconsistent."""

    def __init__(self, message: str, violations: Optional[list[str]] = None):
        super().__init__(message)
        self.violations = violations or []


class LedgerPersistenceError(LedgerError):
    """
    Persisting a ledger mutation failed.

    By the time this is raised the in-memory ledger has been rolled back
    with the inverse operation.
    """

    def __init__(self, message: str, operation: str, desynchronized: bool = False):
        super().__init__(message)
        self.operation = operation
        self.desynchronized = desynchronized


class EntryValidationError(LedgerError, ValueError):
    """Entry failed validation before reaching the ledger."""

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result
