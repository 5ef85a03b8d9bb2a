"""
Category Budget Checks

Compares each expense category's running spend (paid + unpaid subtotal)
against a budget limit. A category is flagged once its spend reaches the
alert threshold share of the limit (80% by default). Delivering the alert is
the caller's business; this module only evaluates.

The check reads the ledger's category subtotals and never mutates them.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Mapping, Union

from pydantic import BaseModel, Field

from balance_ledger.engine.ledger import Ledger
from balance_ledger.exceptions import InvalidAmountError, PreconditionViolationError
from balance_ledger.models.category import Category, parse_category


class BudgetStatus(str, Enum):
    """Where a category stands against its budget."""
    GOOD = "good"
    WARNING = "warning"
    OVER_BUDGET = "over_budget"


class BudgetProgress(BaseModel):
    """Spend for one category measured against its limit."""

    category: Category
    spent: Decimal = Field(ge=0)
    limit: Decimal = Field(gt=0)

    @property
    def ratio(self) -> Decimal:
        return self.spent / self.limit

    @property
    def percent_used(self) -> Decimal:
        return self.ratio * 100

    @property
    def remaining(self) -> Decimal:
        return self.limit - self.spent

    def status(self, threshold: Decimal) -> BudgetStatus:
        if self.spent >= self.limit:
            return BudgetStatus.OVER_BUDGET
        if self.ratio >= threshold:
            return BudgetStatus.WARNING
        return BudgetStatus.GOOD

    def to_log_dict(self) -> dict:
        return {
            "category": self.category.value,
            "spent": str(self.spent),
            "limit": str(self.limit),
            "percent_used": f"{self.percent_used:.1f}",
        }


def normalize_budgets(
    budgets: Mapping[Union[Category, str], Union[Decimal, int, float, str]],
) -> dict[Category, Decimal]:
    """
    Parse a category -> limit mapping.

    Raises:
        UnknownCategoryError: For a category outside the enumeration
        PreconditionViolationError: For income, which has no budget
        InvalidAmountError: For a limit that is not a positive finite number
    """
    normalized = {}
    for key, raw_limit in budgets.items():
        category = parse_category(key)
        if category.is_income:
            raise PreconditionViolationError("Income cannot carry a budget limit")

        if isinstance(raw_limit, bool):
            raise InvalidAmountError(f"Budget limit for {category.value} cannot be a bool")
        try:
            limit = Decimal(str(raw_limit).strip())
        except InvalidOperation:
            raise InvalidAmountError(
                f"Budget limit for {category.value} is not a number: {raw_limit!r}"
            )
        if not limit.is_finite() or limit <= 0:
            raise InvalidAmountError(
                f"Budget limit for {category.value} must be positive, got {limit}"
            )
        normalized[category] = limit
    return normalized


def budget_progress(
    ledger: Ledger,
    budgets: Mapping[Union[Category, str], Union[Decimal, int, float, str]],
) -> list[BudgetProgress]:
    """Progress for every budgeted category, highest share used first."""
    totals = ledger.category_totals
    progress = [
        BudgetProgress(category=category, spent=totals[category].total, limit=limit)
        for category, limit in normalize_budgets(budgets).items()
    ]
    progress.sort(key=lambda p: p.ratio, reverse=True)
    return progress


def check_budget_limits(
    ledger: Ledger,
    budgets: Mapping[Union[Category, str], Union[Decimal, int, float, str]],
    threshold: Union[Decimal, float, str] = Decimal("0.8"),
) -> list[BudgetProgress]:
    """
    Categories whose spend has reached threshold * limit.

    Args:
        ledger: Ledger to read category subtotals from
        budgets: Category -> limit
        threshold: Share of the limit that triggers a flag, in (0, 1]
    """
    threshold = Decimal(str(threshold))
    if not threshold.is_finite() or not Decimal("0") < threshold <= Decimal("1"):
        raise PreconditionViolationError(f"Budget threshold must be in (0, 1], got {threshold}")

    return [
        p for p in budget_progress(ledger, budgets)
        if p.status(threshold) != BudgetStatus.GOOD
    ]
