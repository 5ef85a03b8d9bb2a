"""
Entry and Ledger State Models

These models define the shapes flowing between the entry store and the
ledger engine:

1. Entry - a dated income or expense transaction, owned by the caller
2. EntryDelta - the (amount, is_paid, category) tuple the ledger consumes
3. CategoryTotal - per-category paid/unpaid running sums
4. LedgerSnapshot - the persisted form of the ledger totals

DESIGN DECISION: Money is Decimal everywhere. Floating point totals drift
after enough add/delete cycles, Decimal sums are exact.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)

from balance_ledger.models.category import Category, expense_categories


# =============================================================================
# ENTRY
# =============================================================================

class EntryDelta(BaseModel):
    """
    The only view of an entry the ledger ever receives.

    The ledger has no concept of entry identity, so this carries none.
    """
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Non-negative amount"
    )
    is_paid: bool = Field(
        default=False,
        description="Paid flag (ignored for income)"
    )
    category: Category


class Entry(BaseModel):
    """
    A single income or expense transaction.

    Identity is stable for the life of the record, every other field may be
    edited. Edits must be mirrored to the ledger as delete(old) followed by
    record_new(new); use to_delta() before and after the change.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Opaque entry ID"
    )
    name: str = Field(
        default="",
        max_length=200,
        description="Label shown in lists"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        allow_inf_nan=False,
        description="Entry amount; precision is checked against LEDGER_DECIMAL_PLACES"
    )
    entry_date: date = Field(
        default_factory=date.today,
        description="Date of the transaction (reporting only)"
    )
    is_paid: bool = Field(
        default=False,
        description="Whether an expense has been paid"
    )
    category: Category = Field(
        default=Category.OTHER,
        description="Entry category"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
    )

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
    )

    @property
    def is_income(self) -> bool:
        return self.category.is_income

    @property
    def is_settled(self) -> bool:
        """Income is always settled; expenses are settled once paid."""
        return self.category.is_income or self.is_paid

    def to_delta(self) -> EntryDelta:
        """Build the ledger delta for this entry's current field values."""
        return EntryDelta(
            amount=self.amount,
            is_paid=self.is_paid,
            category=self.category,
        )


# =============================================================================
# LEDGER STATE
# =============================================================================

class CategoryTotal(BaseModel):
    """Paid/unpaid running sums for one expense category."""

    paid: Decimal = Field(default=Decimal("0"))
    unpaid: Decimal = Field(default=Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.paid + self.unpaid


def _zero_category_totals() -> dict[Category, CategoryTotal]:
    return {category: CategoryTotal() for category in expense_categories()}


class LedgerSnapshot(BaseModel):
    """
    Persisted ledger totals.

    The persistence layer stores this verbatim and hands it back at startup.
    Nothing is recomputed from entry history on load, so a snapshot that
    breaks the ledger invariants is rejected here instead of being trusted.
    """
    model_config = ConfigDict(frozen=True)

    total_income: Decimal = Field(default=Decimal("0"), allow_inf_nan=False)
    total_paid_expense: Decimal = Field(default=Decimal("0"), allow_inf_nan=False)
    total_unpaid_expense: Decimal = Field(default=Decimal("0"), allow_inf_nan=False)
    available_balance: Decimal = Field(default=Decimal("0"), allow_inf_nan=False)
    projected_overdraw: Decimal = Field(default=Decimal("0"), allow_inf_nan=False)

    category_totals: dict[Category, CategoryTotal] = Field(
        default_factory=_zero_category_totals
    )

    saved_at: datetime = Field(
        default_factory=datetime.utcnow,
    )

    @model_validator(mode='after')
    def validate_consistency(self) -> 'LedgerSnapshot':
        """Reject snapshots that break the ledger invariants."""
        expected = set(expense_categories())
        present = set(self.category_totals)
        if present != expected:
            missing = sorted(c.value for c in expected - present)
            extra = sorted(c.value for c in present - expected)
            raise ValueError(
                f"Category totals must cover every expense category "
                f"(missing: {missing}, unexpected: {extra})"
            )

        for category, pair in self.category_totals.items():
            if not (pair.paid.is_finite() and pair.unpaid.is_finite()):
                raise ValueError(f"Non-finite subtotal for {category.value}")
            if pair.paid < 0 or pair.unpaid < 0:
                raise ValueError(f"Negative subtotal for {category.value}")

        if self.total_income < 0 or self.total_paid_expense < 0 or self.total_unpaid_expense < 0:
            raise ValueError("Grand totals cannot be negative")

        if self.available_balance != self.total_income - self.total_paid_expense:
            raise ValueError("Available balance must equal income minus paid expenses")

        if self.projected_overdraw != self.available_balance - self.total_unpaid_expense:
            raise ValueError("Projected overdraw must equal available balance minus unpaid expenses")

        paid_sum = sum((p.paid for p in self.category_totals.values()), Decimal("0"))
        unpaid_sum = sum((p.unpaid for p in self.category_totals.values()), Decimal("0"))
        if paid_sum != self.total_paid_expense:
            raise ValueError("Category paid subtotals do not sum to total paid expense")
        if unpaid_sum != self.total_unpaid_expense:
            raise ValueError("Category unpaid subtotals do not sum to total unpaid expense")

        return self
