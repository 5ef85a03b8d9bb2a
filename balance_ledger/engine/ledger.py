"""
Running-Balance Ledger Engine

DESIGN DECISION: The ledger is a pure incremental accumulator. It never reads
the entry list; the caller hands it (amount, is_paid, category) deltas and it
folds them into running totals. There are exactly four mutations:

1. record_new - forward delta for a new entry
2. change_paid_status - move an expense between the unpaid and paid buckets
3. delete - inverse delta of record_new
4. update - delete(old) then record_new(new), never a direct diff

INVARIANTS (hold after every call):
- available_balance == total_income - total_paid_expense
- projected_overdraw == available_balance - total_unpaid_expense
- per-category paid/unpaid sums equal the grand paid/unpaid totals
- every total is a finite Decimal

All preconditions are checked before the first field is written. A call
either applies completely or raises and leaves the totals untouched.

The ledger is NOT thread-safe. The owner serialises access (see
LedgerService).
"""

from decimal import Decimal, Inexact, InvalidOperation, Overflow, localcontext
from typing import Any, Union

from balance_ledger.exceptions import (
    InvalidAmountError,
    InvalidPaidTransitionError,
    LedgerInvariantError,
    NegativeAmountError,
    PreconditionViolationError,
    UnmatchedDeltaError,
)
from balance_ledger.models.category import (
    Category,
    expense_categories,
    parse_category,
)
from balance_ledger.models.entry import (
    CategoryTotal,
    EntryDelta,
    LedgerSnapshot,
)


AmountLike = Union[Decimal, int, float, str]
DeltaLike = Union[EntryDelta, tuple]

ZERO = Decimal("0")


class Ledger:
    """
    Running totals for one dataset.

    Usage:
        ledger = Ledger()
        ledger.record_new(Decimal("5000"), True, Category.INCOME)
        ledger.record_new(Decimal("500"), False, Category.GROCERIES)
        ledger.change_paid_status(Decimal("500"), True, Category.GROCERIES)
    """

    def __init__(self, decimal_places: int = 2):
        """
        Create a ledger with every total at zero.

        Args:
            decimal_places: Fixed-point precision for all amounts.
        """
        if isinstance(decimal_places, bool) or not isinstance(decimal_places, int):
            raise TypeError("decimal_places must be an int")
        if decimal_places < 0:
            raise ValueError("decimal_places cannot be negative")

        self._decimal_places = decimal_places
        self._quantum = Decimal(1).scaleb(-decimal_places)

        self._total_income = ZERO
        self._total_paid_expense = ZERO
        self._total_unpaid_expense = ZERO
        self._available_balance = ZERO
        self._projected_overdraw = ZERO
        self._category_totals: dict[Category, CategoryTotal] = {
            category: CategoryTotal() for category in expense_categories()
        }
        self._recalculate_balances()

    # =========================================================================
    # RESTORE / PERSIST
    # =========================================================================

    @classmethod
    def from_snapshot(cls, snapshot: LedgerSnapshot, decimal_places: int = 2) -> "Ledger":
        """
        Restore a ledger from persisted totals, verbatim.

        Raises:
            LedgerInvariantError: If the restored totals are inconsistent or
                finer than decimal_places
        """
        ledger = cls(decimal_places=decimal_places)

        values = {
            "total_income": snapshot.total_income,
            "total_paid_expense": snapshot.total_paid_expense,
            "total_unpaid_expense": snapshot.total_unpaid_expense,
            "available_balance": snapshot.available_balance,
            "projected_overdraw": snapshot.projected_overdraw,
        }
        for category, pair in snapshot.category_totals.items():
            values[f"category_totals.{category.value}.paid"] = pair.paid
            values[f"category_totals.{category.value}.unpaid"] = pair.unpaid
        violations = [
            f"{name} {value} has more than {decimal_places} decimal places"
            for name, value in values.items()
            if not ledger._fits_precision(value)
        ]
        if violations:
            raise LedgerInvariantError("Snapshot does not fit the ledger precision", violations)

        ledger._total_income = snapshot.total_income
        ledger._total_paid_expense = snapshot.total_paid_expense
        ledger._total_unpaid_expense = snapshot.total_unpaid_expense
        ledger._available_balance = snapshot.available_balance
        ledger._projected_overdraw = snapshot.projected_overdraw
        for category in expense_categories():
            pair = snapshot.category_totals[category]
            ledger._category_totals[category] = CategoryTotal(
                paid=pair.paid,
                unpaid=pair.unpaid,
            )
        ledger.check_invariants()
        return ledger

    def to_snapshot(self) -> LedgerSnapshot:
        """Export the totals for the persistence layer."""
        return LedgerSnapshot(
            total_income=self._total_income,
            total_paid_expense=self._total_paid_expense,
            total_unpaid_expense=self._total_unpaid_expense,
            available_balance=self._available_balance,
            projected_overdraw=self._projected_overdraw,
            category_totals=self.category_totals,
        )

    # =========================================================================
    # READ-ONLY VIEW
    # =========================================================================

    @property
    def decimal_places(self) -> int:
        return self._decimal_places

    @property
    def total_income(self) -> Decimal:
        return self._total_income

    @property
    def total_paid_expense(self) -> Decimal:
        return self._total_paid_expense

    @property
    def total_unpaid_expense(self) -> Decimal:
        return self._total_unpaid_expense

    @property
    def available_balance(self) -> Decimal:
        """Money actually on hand: income minus paid expenses."""
        return self._available_balance

    @property
    def projected_overdraw(self) -> Decimal:
        """Balance if every unpaid expense were paid now. Negative = shortfall."""
        return self._projected_overdraw

    @property
    def is_overdraw_projected(self) -> bool:
        return self._projected_overdraw < ZERO

    @property
    def category_totals(self) -> dict[Category, CategoryTotal]:
        """Copy of the per-category paid/unpaid sums."""
        return {
            category: CategoryTotal(paid=pair.paid, unpaid=pair.unpaid)
            for category, pair in self._category_totals.items()
        }

    def category_total(self, category: Union[Category, str], is_paid: bool) -> Decimal:
        """Paid or unpaid running sum for one expense category."""
        category = parse_category(category)
        if category.is_income:
            raise PreconditionViolationError("Income has no paid/unpaid subtotal")
        pair = self._category_totals[category]
        return pair.paid if is_paid else pair.unpaid

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def record_new(
        self,
        amount: AmountLike,
        is_paid: bool,
        category: Union[Category, str],
    ) -> None:
        """
        Apply the forward delta of a new entry.

        Income adds to total_income (is_paid is ignored). Expenses add to the
        paid or unpaid bucket, both grand total and category subtotal.
        """
        value = self._coerce_amount(amount)
        self._require_bool(is_paid, "is_paid")
        category = parse_category(category)

        self._apply_moves(self._moves_for(value, is_paid, category, 1))

    def change_paid_status(
        self,
        amount: AmountLike,
        new_is_paid: bool,
        category: Union[Category, str],
    ) -> None:
        """
        Move one existing expense between the unpaid and paid buckets.

        unpaid -> paid lowers the available balance by amount (money is now
        spent). paid -> unpaid is the exact inverse.

        Raises:
            InvalidPaidTransitionError: For income, or when the source bucket
                of the category holds less than amount
        """
        value = self._coerce_amount(amount)
        self._require_bool(new_is_paid, "new_is_paid")
        category = parse_category(category)

        if category.is_income:
            raise InvalidPaidTransitionError(
                "Income entries are always settled; paid status cannot change"
            )

        pair = self._category_totals[category]
        source = pair.unpaid if new_is_paid else pair.paid
        if source < value:
            state = "unpaid" if new_is_paid else "paid"
            raise InvalidPaidTransitionError(
                f"Cannot move {value} out of {category.value} {state} subtotal "
                f"holding only {source}"
            )

        self._apply_moves([
            ("paid", category, value if new_is_paid else value.copy_negate()),
            ("unpaid", category, value.copy_negate() if new_is_paid else value),
        ])

    def delete(
        self,
        amount: AmountLike,
        is_paid: bool,
        category: Union[Category, str],
    ) -> None:
        """
        Remove a previously recorded entry's contribution.

        Exact inverse of record_new with the same tuple.

        Raises:
            UnmatchedDeltaError: When the bucket holds less than amount, so the
                tuple cannot match anything recorded
        """
        value = self._coerce_amount(amount)
        self._require_bool(is_paid, "is_paid")
        category = parse_category(category)

        self._check_removable(value, is_paid, category)
        self._apply_moves(self._moves_for(value, is_paid, category, -1))

    def update(self, old: DeltaLike, new: DeltaLike) -> None:
        """
        Edit an entry: delete(old) followed by record_new(new).

        Both tuples are checked before anything moves, so an invalid new
        tuple never leaves the old contribution removed.
        """
        old_value, old_paid, old_category = self._unpack(old)
        new_value, new_paid, new_category = self._unpack(new)

        self._check_removable(old_value, old_paid, old_category)

        self._apply_moves(
            self._moves_for(old_value, old_paid, old_category, -1)
            + self._moves_for(new_value, new_paid, new_category, 1)
        )

    def record_entry(self, delta: DeltaLike) -> None:
        self.record_new(*self._unpack(delta))

    def delete_entry(self, delta: DeltaLike) -> None:
        self.delete(*self._unpack(delta))

    def reset(self) -> None:
        """Zero every total. Only valid when the whole dataset is reset."""
        self._total_income = ZERO
        self._total_paid_expense = ZERO
        self._total_unpaid_expense = ZERO
        for pair in self._category_totals.values():
            pair.paid = ZERO
            pair.unpaid = ZERO
        self._recalculate_balances()

    # =========================================================================
    # CHECKS AND REPORTING
    # =========================================================================

    def check_invariants(self) -> None:
        """
        Re-derive every invariant from the stored totals.

        Raises:
            LedgerInvariantError: Listing each violated invariant
        """
        violations = []
        totals = {
            "total_income": self._total_income,
            "total_paid_expense": self._total_paid_expense,
            "total_unpaid_expense": self._total_unpaid_expense,
            "available_balance": self._available_balance,
            "projected_overdraw": self._projected_overdraw,
        }
        for name, value in totals.items():
            if not isinstance(value, Decimal) or not value.is_finite():
                violations.append(f"{name} is not a finite Decimal: {value!r}")

        if set(self._category_totals) != set(expense_categories()):
            violations.append("category totals do not cover exactly the expense categories")

        if violations:
            raise LedgerInvariantError("Ledger invariants violated", violations)

        if self._available_balance != self._total_income - self._total_paid_expense:
            violations.append("available_balance != total_income - total_paid_expense")
        if self._projected_overdraw != self._available_balance - self._total_unpaid_expense:
            violations.append("projected_overdraw != available_balance - total_unpaid_expense")

        paid_sum = sum((p.paid for p in self._category_totals.values()), ZERO)
        unpaid_sum = sum((p.unpaid for p in self._category_totals.values()), ZERO)
        if paid_sum != self._total_paid_expense:
            violations.append(
                f"category paid sum {paid_sum} != total_paid_expense {self._total_paid_expense}"
            )
        if unpaid_sum != self._total_unpaid_expense:
            violations.append(
                f"category unpaid sum {unpaid_sum} != total_unpaid_expense {self._total_unpaid_expense}"
            )

        if violations:
            raise LedgerInvariantError("Ledger invariants violated", violations)

    def summary(self) -> dict[str, Any]:
        """Plain-dict view of the totals for reporting and structured logs."""
        return {
            "total_income": str(self._total_income),
            "total_paid_expense": str(self._total_paid_expense),
            "total_unpaid_expense": str(self._total_unpaid_expense),
            "available_balance": str(self._available_balance),
            "projected_overdraw": str(self._projected_overdraw),
            "overdraw_projected": self.is_overdraw_projected,
            "categories": {
                category.value: {"paid": str(pair.paid), "unpaid": str(pair.unpaid)}
                for category, pair in self._category_totals.items()
            },
        }

    def _state(self) -> tuple:
        return (
            self._total_income,
            self._total_paid_expense,
            self._total_unpaid_expense,
            self._available_balance,
            self._projected_overdraw,
            tuple(
                (category, pair.paid, pair.unpaid)
                for category, pair in sorted(
                    self._category_totals.items(), key=lambda item: item[0].value
                )
            ),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ledger):
            return NotImplemented
        return self._state() == other._state()

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"Ledger(income={self._total_income}, paid={self._total_paid_expense}, "
            f"unpaid={self._total_unpaid_expense}, balance={self._available_balance}, "
            f"overdraw={self._projected_overdraw})"
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    @staticmethod
    def _moves_for(value: Decimal, is_paid: bool, category: Category, sign: int) -> list:
        """Bucket moves for adding (sign=1) or removing (sign=-1) one tuple."""
        signed = value if sign > 0 else value.copy_negate()
        if category.is_income:
            return [("income", None, signed)]
        return [("paid" if is_paid else "unpaid", category, signed)]

    def _apply_moves(self, moves: list) -> None:
        """
        Apply bucket moves as one step.

        Every new total is computed in an exact context before any field is
        written, so a sum that would need rounding leaves the ledger as it was.

        Raises:
            InvalidAmountError: If a total no longer fits the decimal precision
        """
        income = self._total_income
        paid = self._total_paid_expense
        unpaid = self._total_unpaid_expense
        pairs = {}

        try:
            with localcontext() as ctx:
                ctx.traps[Inexact] = True
                ctx.traps[Overflow] = True
                for bucket, category, signed in moves:
                    if bucket == "income":
                        income += signed
                        continue
                    pair = pairs.setdefault(category, list(self._pair_values(category)))
                    if bucket == "paid":
                        paid += signed
                        pair[0] += signed
                    else:
                        unpaid += signed
                        pair[1] += signed
                available = income - paid
                projected = available - unpaid
        except (Inexact, Overflow):
            raise InvalidAmountError(
                "Running totals would exceed the exact decimal precision"
            )

        self._total_income = income
        self._total_paid_expense = paid
        self._total_unpaid_expense = unpaid
        for category, (pair_paid, pair_unpaid) in pairs.items():
            self._category_totals[category].paid = pair_paid
            self._category_totals[category].unpaid = pair_unpaid
        self._available_balance = available
        self._projected_overdraw = projected

    def _fits_precision(self, value: Decimal) -> bool:
        try:
            return value.quantize(self._quantum) == value
        except InvalidOperation:
            return False

    def _pair_values(self, category: Category) -> tuple[Decimal, Decimal]:
        pair = self._category_totals[category]
        return pair.paid, pair.unpaid

    def _check_removable(self, value: Decimal, is_paid: bool, category: Category) -> None:
        if category.is_income:
            held = self._total_income
            bucket = "income"
        else:
            pair = self._category_totals[category]
            held = pair.paid if is_paid else pair.unpaid
            bucket = f"{category.value} {'paid' if is_paid else 'unpaid'}"

        if held < value:
            raise UnmatchedDeltaError(
                f"Cannot remove {value} from {bucket} total holding only {held}"
            )

    def _recalculate_balances(self) -> None:
        self._available_balance = self._total_income - self._total_paid_expense
        self._projected_overdraw = self._available_balance - self._total_unpaid_expense

    def _unpack(self, delta: DeltaLike) -> tuple[Decimal, bool, Category]:
        if isinstance(delta, EntryDelta):
            amount, is_paid, category = delta.amount, delta.is_paid, delta.category
        elif isinstance(delta, tuple) and len(delta) == 3:
            amount, is_paid, category = delta
        else:
            raise PreconditionViolationError(
                f"Expected EntryDelta or (amount, is_paid, category) tuple, got {delta!r}"
            )

        value = self._coerce_amount(amount)
        self._require_bool(is_paid, "is_paid")
        return value, is_paid, parse_category(category)

    def _coerce_amount(self, amount: AmountLike) -> Decimal:
        """
        Convert an amount to a fixed-point Decimal.

        Floats go through str() so 0.1 becomes Decimal("0.1"), not the
        binary expansion.
        """
        if isinstance(amount, bool):
            raise InvalidAmountError("Amount cannot be a bool")

        try:
            if isinstance(amount, Decimal):
                value = amount
            elif isinstance(amount, int):
                value = Decimal(amount)
            elif isinstance(amount, float):
                value = Decimal(str(amount))
            elif isinstance(amount, str):
                value = Decimal(amount.strip())
            else:
                raise InvalidAmountError(
                    f"Unsupported amount type: {type(amount).__name__}"
                )
        except InvalidOperation:
            raise InvalidAmountError(f"Amount is not a number: {amount!r}")

        if not value.is_finite():
            raise InvalidAmountError(f"Amount must be finite, got {value}")
        if value < ZERO:
            raise NegativeAmountError(f"Amount cannot be negative, got {value}")

        try:
            quantized = value.quantize(self._quantum)
        except InvalidOperation:
            raise InvalidAmountError(f"Amount {value} is too large")

        if quantized != value:
            raise InvalidAmountError(
                f"Amount {value} has more than {self._decimal_places} decimal places"
            )
        return quantized

    @staticmethod
    def _require_bool(value: Any, name: str) -> None:
        if not isinstance(value, bool):
            raise PreconditionViolationError(f"{name} must be a bool, got {value!r}")
