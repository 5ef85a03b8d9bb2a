"""Tests for rebuilding and reconciling a ledger against entry history."""

import pytest
from decimal import Decimal

from balance_ledger.engine import Ledger, rebuild_from_entries, reconcile
from balance_ledger.exceptions import PreconditionViolationError
from balance_ledger.models import Category, Entry, EntryDelta


def _entries() -> list[Entry]:
    return [
        Entry(name="Salary", amount=Decimal("5000"), category=Category.INCOME),
        Entry(name="Rent", amount=Decimal("1500"), category=Category.RENT, is_paid=True),
        Entry(name="Groceries", amount=Decimal("500"), category=Category.GROCERIES),
    ]


class TestRebuild:
    """Tests for folding entries into a fresh ledger."""

    def test_rebuild_from_entries(self):
        ledger = rebuild_from_entries(_entries())
        assert ledger.total_income == Decimal("5000")
        assert ledger.available_balance == Decimal("3500")
        assert ledger.projected_overdraw == Decimal("3000")

    def test_rebuild_accepts_deltas(self):
        deltas = [entry.to_delta() for entry in _entries()]
        assert rebuild_from_entries(deltas) == rebuild_from_entries(_entries())

    def test_rebuild_of_nothing_is_zero(self):
        assert rebuild_from_entries([]) == Ledger()

    def test_rebuild_respects_precision(self):
        """Test entries finer than the ledger precision are rejected."""
        with pytest.raises(PreconditionViolationError):
            rebuild_from_entries(
                [EntryDelta(amount=Decimal("1.50"), category=Category.INCOME)],
                decimal_places=0,
            )


class TestReconcile:
    """Tests for drift reports."""

    def test_consistent_ledger(self):
        entries = _entries()
        ledger = rebuild_from_entries(entries)

        report = reconcile(ledger, entries)

        assert report.is_consistent is True
        assert report.entry_count == 3
        assert report.drifts == []

    def test_missed_delete_is_reported(self):
        """Test a ledger that never saw a delete drifts in every affected field."""
        entries = _entries()
        ledger = rebuild_from_entries(entries)
        live = entries[:2]  # groceries deleted from the store, ledger not told

        report = reconcile(ledger, live)

        assert report.is_consistent is False
        fields = {drift.field: drift for drift in report.drifts}
        assert set(fields) == {
            "total_unpaid_expense",
            "projected_overdraw",
            "category_totals.groceries.unpaid",
        }
        assert fields["total_unpaid_expense"].difference == Decimal("500")
        assert fields["projected_overdraw"].expected == Decimal("3500")

    def test_reconcile_does_not_mutate(self):
        entries = _entries()
        ledger = rebuild_from_entries(entries)
        before = Ledger.from_snapshot(ledger.to_snapshot())

        reconcile(ledger, [])

        assert ledger == before

    def test_drift_log_dict(self):
        ledger = Ledger()
        report = reconcile(ledger, [EntryDelta(amount=Decimal("10"), category=Category.INCOME)])
        logged = [drift.to_log_dict() for drift in report.drifts]
        assert {"field": "total_income", "recorded": "0", "expected": "10.00",
                "difference": "-10.00"} in logged
