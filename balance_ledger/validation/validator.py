"""
Two-Stage Entry Validation

Entries are checked before they reach the ledger.

STAGE 1 - SCHEMA VALIDATION:
- Amount is a finite, non-negative number
- Amount fits the configured fixed-point precision
- Category is part of the closed enumeration

STAGE 2 - SEMANTIC VALIDATION:
- Unusually large amounts
- Dates far in the future
- Unpaid flag on income (income is always settled)
- Likely duplicates (needs entry storage)

Only stage 1 errors block an entry. Stage 2 produces warnings for the
caller to show; the ledger would accept those entries as they are.

IMPORTANT: Validation NEVER silently fixes issues.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from balance_ledger.config import get_settings
from balance_ledger.models.category import Category
from balance_ledger.models.entry import Entry
from balance_ledger.models.validation import ValidationIssue, ValidationResult
from balance_ledger.services.storage import EntryStorageInterface, StorageError


class EntryValidator:
    """
    Validates entries through a two-stage pipeline.

    Stage 1: Schema validation (can run without storage)
    Stage 2: Semantic validation (uses storage for duplicate checks)
    """

    def __init__(
        self,
        entry_storage: Optional[EntryStorageInterface] = None,
    ):
        """
        Initialize validator.

        Args:
            entry_storage: Storage interface for duplicate checking.
                         If None, duplicate checking is skipped.
        """
        self._storage = entry_storage
        self._settings = get_settings().ledger

    def _validate_schema(self, entry: Entry) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        amount = entry.amount

        if not amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be a finite number",
                severity="error",
            ))
        elif amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
                suggested_fix="Record refunds as income instead",
            ))
        else:
            places = self._settings.decimal_places
            exponent = amount.normalize().as_tuple().exponent
            if isinstance(exponent, int) and -exponent > places:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="invalid_format",
                    message=f"Amount {amount} has more than {places} decimal places",
                    severity="error",
                    suggested_fix=f"Round the amount to {places} decimal places",
                ))
            elif amount == 0:
                issues.append(ValidationIssue(
                    field="amount",
                    issue_type="suspicious_value",
                    message="Amount is zero",
                    severity="warning",
                    suggested_fix="Please verify the amount",
                ))

        if not isinstance(entry.category, Category):
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"Unknown category: {entry.category!r}",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(self, entry: Entry) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        today = date.today()

        max_amount = Decimal(str(self._settings.max_entry_amount))
        if entry.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=(
                    f"Amount ({entry.amount:,.2f} {self._settings.currency_code}) "
                    f"seems unusually high"
                ),
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if entry.entry_date > max_future_date:
            issues.append(ValidationIssue(
                field="entry_date",
                issue_type="future_date",
                message=f"Entry date ({entry.entry_date}) is far in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        if entry.category.is_income and not entry.is_paid:
            issues.append(ValidationIssue(
                field="is_paid",
                issue_type="ignored",
                message="Income is always treated as received; the unpaid flag has no effect",
                severity="info",
            ))

        if not entry.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Entry has no name",
                severity="warning",
                suggested_fix="Add a short description so the entry is easy to find",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    async def _check_duplicates(self, entry: Entry) -> list[ValidationIssue]:
        """Flag entries matching an existing one on name, amount, date and category."""
        issues = []

        if self._storage is None:
            return issues

        try:
            same_day = await self._storage.list_entries(
                category=entry.category,
                date_from=entry.entry_date,
                date_to=entry.entry_date,
            )
        except StorageError:
            # Duplicate detection is advisory
            return issues

        for other in same_day:
            if other.id == entry.id:
                continue
            if other.amount == entry.amount and other.name.lower() == entry.name.lower():
                issues.append(ValidationIssue(
                    field="duplicate",
                    issue_type="potential_duplicate",
                    message=(
                        f"A {entry.category.value} entry of {entry.amount} dated "
                        f"{entry.entry_date} may already exist"
                    ),
                    severity="warning",
                    suggested_fix="Please verify this isn't a duplicate entry",
                ))
                break

        return issues

    async def validate(
        self,
        entry: Entry,
        check_duplicates: bool = True,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            entry: The entry to validate
            check_duplicates: Whether to check for duplicates (requires storage)
        """
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(entry)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(entry)
            all_issues.extend(semantic_issues)

            if check_duplicates:
                all_issues.extend(await self._check_duplicates(entry))

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            entry_id=entry.id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """Generate a short summary of validation results for display."""
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if not result.schema_valid:
            lines.append("This entry cannot be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
