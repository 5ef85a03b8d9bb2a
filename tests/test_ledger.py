"""Unit tests for the ledger engine."""

import pytest
from decimal import Decimal

from balance_ledger.engine import Ledger
from balance_ledger.exceptions import (
    InvalidAmountError,
    InvalidPaidTransitionError,
    LedgerInvariantError,
    NegativeAmountError,
    PreconditionViolationError,
    UnknownCategoryError,
    UnmatchedDeltaError,
)
from balance_ledger.models import Category, EntryDelta, LedgerSnapshot, expense_categories


def _funded_ledger() -> Ledger:
    ledger = Ledger()
    ledger.record_new(Decimal("5000"), True, Category.INCOME)
    ledger.record_new(Decimal("1500"), True, Category.RENT)
    ledger.record_new(Decimal("500"), False, Category.GROCERIES)
    return ledger


class TestLedgerScenario:
    """Walk through a month of entries step by step."""

    def test_starts_at_zero_with_all_categories(self):
        """Test a new ledger has no missing category keys."""
        ledger = Ledger()
        assert ledger.total_income == 0
        assert ledger.available_balance == 0
        assert ledger.projected_overdraw == 0
        assert set(ledger.category_totals) == set(expense_categories())
        ledger.check_invariants()

    def test_month_walkthrough(self):
        """Test income, rent, groceries, paying groceries, deleting rent."""
        ledger = Ledger()

        ledger.record_new(Decimal("5000"), True, Category.INCOME)
        assert ledger.total_income == Decimal("5000")
        assert ledger.available_balance == Decimal("5000")
        assert ledger.projected_overdraw == Decimal("5000")

        ledger.record_new(Decimal("1500"), True, Category.RENT)
        assert ledger.total_paid_expense == Decimal("1500")
        assert ledger.available_balance == Decimal("3500")
        assert ledger.projected_overdraw == Decimal("3500")

        ledger.record_new(Decimal("500"), False, Category.GROCERIES)
        assert ledger.total_unpaid_expense == Decimal("500")
        assert ledger.available_balance == Decimal("3500")
        assert ledger.projected_overdraw == Decimal("3000")

        ledger.change_paid_status(Decimal("500"), True, Category.GROCERIES)
        assert ledger.total_paid_expense == Decimal("2000")
        assert ledger.total_unpaid_expense == Decimal("0")
        assert ledger.available_balance == Decimal("3000")
        assert ledger.projected_overdraw == Decimal("3000")

        ledger.delete(Decimal("1500"), True, Category.RENT)
        assert ledger.available_balance == Decimal("4500")
        assert ledger.projected_overdraw == Decimal("4500")
        assert ledger.category_total(Category.GROCERIES, is_paid=True) == Decimal("500")
        ledger.check_invariants()

    def test_income_ignores_paid_flag(self):
        """Test unpaid income still counts as received."""
        ledger = Ledger()
        ledger.record_new(Decimal("100"), False, Category.INCOME)
        assert ledger.total_income == Decimal("100")
        assert ledger.total_unpaid_expense == 0
        assert ledger.available_balance == Decimal("100")

    def test_overdraw_projected_when_unpaid_exceeds_balance(self):
        ledger = Ledger()
        ledger.record_new(Decimal("100"), True, Category.INCOME)
        ledger.record_new(Decimal("250"), False, Category.UTILITIES)
        assert ledger.projected_overdraw == Decimal("-150")
        assert ledger.is_overdraw_projected is True
        assert ledger.available_balance == Decimal("100")

    def test_accepts_int_str_and_float_amounts(self):
        """Test amounts are converted to exact fixed point."""
        ledger = Ledger()
        ledger.record_new(1, True, Category.INCOME)
        ledger.record_new("0.10", True, Category.INCOME)
        ledger.record_new(0.2, True, Category.INCOME)
        assert ledger.total_income == Decimal("1.30")

    def test_category_string_values(self):
        ledger = Ledger()
        ledger.record_new(Decimal("12"), False, "Entertainment")
        assert ledger.category_total("entertainment", is_paid=False) == Decimal("12")


class TestLedgerUpdate:
    """Tests for edits composed as delete + record_new."""

    def test_update_changes_category_paid_and_amount(self):
        """Test an edit that changes every field at once."""
        ledger = _funded_ledger()
        old = EntryDelta(amount=Decimal("500"), is_paid=False, category=Category.GROCERIES)
        new = EntryDelta(amount=Decimal("320.50"), is_paid=True, category=Category.HEALTHCARE)

        ledger.update(old, new)

        assert ledger.category_total(Category.GROCERIES, is_paid=False) == 0
        assert ledger.category_total(Category.HEALTHCARE, is_paid=True) == Decimal("320.50")
        assert ledger.total_unpaid_expense == 0
        assert ledger.total_paid_expense == Decimal("1820.50")
        assert ledger.available_balance == Decimal("3179.50")
        ledger.check_invariants()

    def test_update_expense_to_income(self):
        ledger = _funded_ledger()
        ledger.update(
            (Decimal("500"), False, Category.GROCERIES),
            (Decimal("500"), False, Category.INCOME),
        )
        assert ledger.total_income == Decimal("5500")
        assert ledger.projected_overdraw == Decimal("4000")

    def test_update_matches_fresh_ledger(self):
        """Test an edit leaves the same totals as never having the old entry."""
        ledger = _funded_ledger()
        ledger.update(
            (Decimal("1500"), True, Category.RENT),
            (Decimal("1400"), False, Category.RENT),
        )

        expected = Ledger()
        expected.record_new(Decimal("5000"), True, Category.INCOME)
        expected.record_new(Decimal("500"), False, Category.GROCERIES)
        expected.record_new(Decimal("1400"), False, Category.RENT)
        assert ledger == expected

    def test_update_with_invalid_new_tuple_leaves_ledger_untouched(self):
        """Test the old contribution is not removed when the new one is bad."""
        ledger = _funded_ledger()
        before = ledger.to_snapshot()

        with pytest.raises(NegativeAmountError):
            ledger.update(
                (Decimal("500"), False, Category.GROCERIES),
                (Decimal("-1"), False, Category.GROCERIES),
            )

        assert ledger == Ledger.from_snapshot(before)

    def test_update_rejects_malformed_delta(self):
        ledger = _funded_ledger()
        with pytest.raises(PreconditionViolationError):
            ledger.update((Decimal("1"), False), (Decimal("1"), False, Category.RENT))


class TestLedgerPreconditions:
    """Every rejected call must leave the totals exactly as they were."""

    @pytest.mark.parametrize(
        "call",
        [
            lambda l: l.record_new(Decimal("-1"), True, Category.RENT),
            lambda l: l.record_new(Decimal("NaN"), True, Category.RENT),
            lambda l: l.record_new(Decimal("Infinity"), True, Category.INCOME),
            lambda l: l.record_new(Decimal("1.001"), True, Category.RENT),
            lambda l: l.record_new("abc", True, Category.RENT),
            lambda l: l.record_new(True, True, Category.RENT),
            lambda l: l.record_new(None, True, Category.RENT),
            lambda l: l.record_new(Decimal("1"), "yes", Category.RENT),
            lambda l: l.record_new(Decimal("1"), True, "vacation"),
            lambda l: l.change_paid_status(Decimal("1"), True, Category.INCOME),
            lambda l: l.change_paid_status(Decimal("501"), True, Category.GROCERIES),
            lambda l: l.change_paid_status(Decimal("1"), False, Category.GROCERIES),
            lambda l: l.delete(Decimal("1500.01"), True, Category.RENT),
            lambda l: l.delete(Decimal("1"), False, Category.RENT),
            lambda l: l.delete(Decimal("5000.01"), True, Category.INCOME),
        ],
    )
    def test_rejected_call_is_all_or_nothing(self, call):
        ledger = _funded_ledger()
        before = Ledger.from_snapshot(ledger.to_snapshot())

        with pytest.raises(PreconditionViolationError):
            call(ledger)

        assert ledger == before
        ledger.check_invariants()

    def test_error_types(self):
        """Test each violation has a specific error class."""
        ledger = _funded_ledger()
        with pytest.raises(NegativeAmountError):
            ledger.record_new(Decimal("-0.01"), True, Category.RENT)
        with pytest.raises(InvalidAmountError):
            ledger.record_new(Decimal("sNaN"), True, Category.RENT)
        with pytest.raises(UnknownCategoryError):
            ledger.record_new(Decimal("1"), True, "salary")
        with pytest.raises(InvalidPaidTransitionError):
            ledger.change_paid_status(Decimal("10"), False, Category.INCOME)
        with pytest.raises(UnmatchedDeltaError):
            ledger.delete(Decimal("10"), True, Category.TRANSPORTATION)

    def test_precondition_errors_are_value_errors(self):
        ledger = Ledger()
        with pytest.raises(ValueError):
            ledger.record_new(Decimal("-5"), False, Category.OTHER)

    def test_category_total_rejects_income(self):
        with pytest.raises(PreconditionViolationError):
            Ledger().category_total(Category.INCOME, is_paid=True)

    def test_decimal_places_is_configurable(self):
        """Test a whole-unit ledger rejects cents."""
        ledger = Ledger(decimal_places=0)
        ledger.record_new(Decimal("12"), True, Category.INCOME)
        with pytest.raises(InvalidAmountError):
            ledger.record_new(Decimal("0.50"), True, Category.INCOME)

    def test_negative_decimal_places_rejected(self):
        with pytest.raises(ValueError):
            Ledger(decimal_places=-1)


class TestLedgerSnapshotRoundTrip:
    """Tests for restore from persisted totals."""

    def test_restore_is_verbatim(self):
        ledger = _funded_ledger()
        restored = Ledger.from_snapshot(ledger.to_snapshot())
        assert restored == ledger
        assert restored.summary() == ledger.summary()

    def test_restored_ledger_keeps_working(self):
        """Test operations continue from restored totals."""
        restored = Ledger.from_snapshot(_funded_ledger().to_snapshot())
        restored.change_paid_status(Decimal("500"), True, Category.GROCERIES)
        assert restored.available_balance == Decimal("3000")

    def test_snapshot_is_detached_from_ledger(self):
        ledger = _funded_ledger()
        snapshot = ledger.to_snapshot()
        ledger.record_new(Decimal("10"), True, Category.RENT)
        assert snapshot.category_totals[Category.RENT].paid == Decimal("1500")

    def test_category_totals_property_is_a_copy(self):
        ledger = _funded_ledger()
        totals = ledger.category_totals
        totals[Category.RENT].paid = Decimal("0")
        assert ledger.category_total(Category.RENT, is_paid=True) == Decimal("1500")


class TestLedgerPrecision:
    """Running totals stay exact or the call is refused."""

    LARGE = Decimal("99999999999999999999999999.99")

    def test_total_that_would_round_is_rejected(self):
        """Test a sum past the decimal precision leaves the ledger as it was."""
        ledger = Ledger()
        ledger.record_new(self.LARGE, True, Category.INCOME)
        before = Ledger.from_snapshot(ledger.to_snapshot())

        with pytest.raises(InvalidAmountError):
            ledger.record_new(self.LARGE, True, Category.INCOME)

        assert ledger == before
        ledger.delete(self.LARGE, True, Category.INCOME)
        assert ledger.total_income == 0

    def test_unpaid_total_that_would_round_is_rejected(self):
        ledger = Ledger()
        ledger.record_new(self.LARGE, True, Category.INCOME)
        ledger.record_new(self.LARGE, False, Category.RENT)
        before = Ledger.from_snapshot(ledger.to_snapshot())

        with pytest.raises(InvalidAmountError):
            ledger.record_new(self.LARGE, False, Category.UTILITIES)

        assert ledger == before
        ledger.check_invariants()

    def test_update_that_would_round_changes_nothing(self):
        """Test the delete half of an edit is not kept when the add half fails."""
        ledger = Ledger()
        ledger.record_new(self.LARGE, True, Category.INCOME)
        ledger.record_new(Decimal("1"), False, Category.GROCERIES)
        before = Ledger.from_snapshot(ledger.to_snapshot())

        with pytest.raises(InvalidAmountError):
            ledger.update(
                (Decimal("1"), False, Category.GROCERIES),
                (self.LARGE, False, Category.INCOME),
            )

        assert ledger == before

    def test_restore_rejects_snapshot_finer_than_precision(self):
        """Test persisted cents cannot enter a whole-unit ledger."""
        snapshot = Ledger().to_snapshot().model_copy(update={
            "total_income": Decimal("10.50"),
            "available_balance": Decimal("10.50"),
            "projected_overdraw": Decimal("10.50"),
        })

        with pytest.raises(LedgerInvariantError) as exc_info:
            Ledger.from_snapshot(snapshot, decimal_places=0)

        assert any("total_income" in v for v in exc_info.value.violations)

    def test_restore_accepts_snapshot_at_precision(self):
        ledger = Ledger(decimal_places=0)
        ledger.record_new(Decimal("10"), True, Category.INCOME)
        restored = Ledger.from_snapshot(ledger.to_snapshot(), decimal_places=0)
        assert restored.total_income == Decimal("10")


class TestLedgerMaintenance:
    """Tests for reset, invariant checks and summaries."""

    def test_reset_zeroes_everything(self):
        ledger = _funded_ledger()
        ledger.reset()
        assert ledger == Ledger()

    def test_check_invariants_detects_corruption(self):
        """Test a tampered total is reported."""
        ledger = _funded_ledger()
        ledger._total_paid_expense += Decimal("1")

        with pytest.raises(LedgerInvariantError) as exc_info:
            ledger.check_invariants()

        assert any("available_balance" in v for v in exc_info.value.violations)
        assert any("category paid sum" in v for v in exc_info.value.violations)

    def test_summary_is_plain_strings(self):
        summary = _funded_ledger().summary()
        assert summary["available_balance"] == "3500.00"
        assert summary["projected_overdraw"] == "3000.00"
        assert summary["overdraw_projected"] is False
        assert summary["categories"]["groceries"] == {"paid": "0", "unpaid": "500.00"}

    def test_ledger_is_unhashable(self):
        with pytest.raises(TypeError):
            hash(Ledger())

    def test_snapshot_type(self):
        assert isinstance(Ledger().to_snapshot(), LedgerSnapshot)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
