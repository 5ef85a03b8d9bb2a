"""
Category Registry

DESIGN DECISION: The category set is closed. One income tag, a fixed list
of expense tags. The ledger pre-populates a subtotal pair for every expense
category at construction, so there is never a "missing key" state.

Icons and colours belong to the UI and are not modelled here.
"""

from enum import Enum
from typing import Union

from balance_ledger.exceptions import UnknownCategoryError


class Category(str, Enum):
    """
    Supported entry categories.

    Declaration order is the display order.
    """
    # Income
    INCOME = "income"

    # Expenses
    RENT = "rent"
    UTILITIES = "utilities"
    GROCERIES = "groceries"
    TRANSPORTATION = "transportation"
    ENTERTAINMENT = "entertainment"
    HEALTHCARE = "healthcare"
    OTHER = "other"

    @property
    def is_expense(self) -> bool:
        return self is not Category.INCOME

    @property
    def is_income(self) -> bool:
        return self is Category.INCOME


def all_categories() -> tuple[Category, ...]:
    """Full ordered list of categories."""
    return tuple(Category)


def expense_categories() -> tuple[Category, ...]:
    """Expense categories only, in declaration order."""
    return tuple(c for c in Category if c.is_expense)


def income_categories() -> tuple[Category, ...]:
    return tuple(c for c in Category if c.is_income)


def is_expense(category: Union[Category, str]) -> bool:
    """Check whether a category is an expense category."""
    return parse_category(category).is_expense


def parse_category(value: Union[Category, str]) -> Category:
    """
    Resolve a Category from an enum member or its string value.

    String matching ignores case and surrounding whitespace.

    Raises:
        UnknownCategoryError: If the value is not a known category
    """
    if isinstance(value, Category):
        return value

    if isinstance(value, str):
        try:
            return Category(value.strip().lower())
        except ValueError:
            pass

    raise UnknownCategoryError(
        f"Unknown category: {value!r}. "
        f"Allowed: {[c.value for c in Category]}"
    )
