"""Ledger engine package."""

from balance_ledger.engine.budget import (
    BudgetProgress,
    BudgetStatus,
    budget_progress,
    check_budget_limits,
    normalize_budgets,
)
from balance_ledger.engine.ledger import Ledger
from balance_ledger.engine.reconcile import (
    FieldDrift,
    ReconciliationReport,
    rebuild_from_entries,
    reconcile,
)

__all__ = [
    "BudgetProgress",
    "BudgetStatus",
    "FieldDrift",
    "Ledger",
    "ReconciliationReport",
    "budget_progress",
    "check_budget_limits",
    "normalize_budgets",
    "rebuild_from_entries",
    "reconcile",
]
