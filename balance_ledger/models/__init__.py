"""
Data Models Package

This package contains the category registry and all Pydantic models used
by the ledger engine and the services around it.
"""

from balance_ledger.models.category import (
    Category,
    all_categories,
    expense_categories,
    income_categories,
    is_expense,
    parse_category,
)
from balance_ledger.models.entry import (
    CategoryTotal,
    Entry,
    EntryDelta,
    LedgerSnapshot,
)
from balance_ledger.models.validation import (
    ValidationIssue,
    ValidationResult,
)
from balance_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Categories
    "Category",
    "all_categories",
    "expense_categories",
    "income_categories",
    "is_expense",
    "parse_category",
    # Entry and ledger state
    "CategoryTotal",
    "Entry",
    "EntryDelta",
    "LedgerSnapshot",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
