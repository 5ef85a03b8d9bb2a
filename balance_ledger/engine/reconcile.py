"""
Ledger Reconciliation

The ledger is never recomputed from history during normal operation. If the
persisted totals and the entry store ever diverge (crash between the two
writes, a bug in a caller), this module is the explicit recovery path:

1. rebuild_from_entries() folds record_new over the live entries
2. reconcile() compares a live ledger against that rebuild field by field

Nothing here mutates the ledger it is given. Replacing the live totals with
the rebuilt ones is the caller's decision (see LedgerService.reconcile).
"""

from decimal import Decimal
from typing import Iterable, Union

from pydantic import BaseModel, Field

from balance_ledger.engine.ledger import Ledger
from balance_ledger.models.entry import Entry, EntryDelta


class FieldDrift(BaseModel):
    """One ledger field whose recorded value differs from the rebuilt one."""

    field: str
    recorded: Decimal
    expected: Decimal

    @property
    def difference(self) -> Decimal:
        return self.recorded - self.expected

    def to_log_dict(self) -> dict:
        return {
            "field": self.field,
            "recorded": str(self.recorded),
            "expected": str(self.expected),
            "difference": str(self.difference),
        }


class ReconciliationReport(BaseModel):
    """Outcome of comparing a live ledger against its entry history."""

    entry_count: int = Field(ge=0)
    drifts: list[FieldDrift] = Field(default_factory=list)

    @property
    def is_consistent(self) -> bool:
        return not self.drifts


def rebuild_from_entries(
    entries: Iterable[Union[Entry, EntryDelta]],
    decimal_places: int = 2,
) -> Ledger:
    """
    Build a fresh ledger by recording every entry from zero.

    Raises:
        PreconditionViolationError: If an entry cannot be recorded
    """
    ledger = Ledger(decimal_places=decimal_places)
    for item in entries:
        delta = item.to_delta() if isinstance(item, Entry) else item
        ledger.record_entry(delta)
    return ledger


def reconcile(
    ledger: Ledger,
    entries: Iterable[Union[Entry, EntryDelta]],
) -> ReconciliationReport:
    """Compare a live ledger with the totals implied by its entries."""
    entries = list(entries)
    expected = rebuild_from_entries(entries, decimal_places=ledger.decimal_places)

    drifts = []
    for name in (
        "total_income",
        "total_paid_expense",
        "total_unpaid_expense",
        "available_balance",
        "projected_overdraw",
    ):
        recorded_value = getattr(ledger, name)
        expected_value = getattr(expected, name)
        if recorded_value != expected_value:
            drifts.append(FieldDrift(field=name, recorded=recorded_value, expected=expected_value))

    recorded_categories = ledger.category_totals
    for category, pair in expected.category_totals.items():
        recorded_pair = recorded_categories[category]
        if recorded_pair.paid != pair.paid:
            drifts.append(FieldDrift(
                field=f"category_totals.{category.value}.paid",
                recorded=recorded_pair.paid,
                expected=pair.paid,
            ))
        if recorded_pair.unpaid != pair.unpaid:
            drifts.append(FieldDrift(
                field=f"category_totals.{category.value}.unpaid",
                recorded=recorded_pair.unpaid,
                expected=pair.unpaid,
            ))

    return ReconciliationReport(entry_count=len(entries), drifts=drifts)
