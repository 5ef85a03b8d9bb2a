"""
Balance Ledger - Source Package

A running-balance ledger engine for a personal finance tracker. One ledger
per dataset holds income, paid and unpaid expense totals, per-category
subtotals, the available balance and the projected overdraw, and is updated
incrementally as entries are added, paid, edited and deleted.

DESIGN PRINCIPLES:
1. Every mutation is an exact inverse-and-reapply operation
2. Reject bad input before touching any total
3. No silent corrections
4. Every mutation is auditable
5. Storage layer is swappable
"""

from balance_ledger.engine import Ledger
from balance_ledger.exceptions import (
    LedgerError,
    LedgerInvariantError,
    LedgerPersistenceError,
    PreconditionViolationError,
)
from balance_ledger.models import Category, Entry, EntryDelta, LedgerSnapshot

__version__ = "1.0.0"

__all__ = [
    "Category",
    "Entry",
    "EntryDelta",
    "Ledger",
    "LedgerError",
    "LedgerInvariantError",
    "LedgerPersistenceError",
    "LedgerSnapshot",
    "PreconditionViolationError",
]
