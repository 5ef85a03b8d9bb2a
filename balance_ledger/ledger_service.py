"""
Ledger Service

This module is the owning collaborator of the ledger. It ties together the
entry store, the persisted ledger totals, validation and the audit trail,
and defines the flows for:
1. Add entry (validate -> record_new -> persist)
2. Change paid status (change_paid_status -> persist)
3. Edit entry (validate -> delete(old) + record_new(new) -> persist)
4. Delete entry (delete -> persist)
5. Reset and reconciliation
6. Budget checks (audited when a category first reaches its threshold)

DESIGN DECISION: A ledger mutation and its persistence writes are one unit
of work. All flows run under a single asyncio.Lock per dataset, and if any
write fails the ledger is rolled back with the exact inverse operation
before the error is surfaced. The ledger itself never retries anything.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Mapping, Optional
from uuid import UUID

from balance_ledger.audit import AuditLogger, create_correlation_id
from balance_ledger.config import get_settings
from balance_ledger.engine import (
    BudgetProgress,
    Ledger,
    ReconciliationReport,
    check_budget_limits,
    normalize_budgets,
    rebuild_from_entries,
)
from balance_ledger.engine import reconcile as reconcile_ledger
from balance_ledger.exceptions import (
    EntryValidationError,
    InvalidPaidTransitionError,
    LedgerPersistenceError,
    PreconditionViolationError,
)
from balance_ledger.models.entry import Entry, LedgerSnapshot
from balance_ledger.models.validation import ValidationResult
from balance_ledger.services.storage import (
    EntryStorageInterface,
    LedgerStateStorageInterface,
    NotFoundError,
)
from balance_ledger.validation import EntryValidator


class LedgerService:
    """
    Owns one dataset's ledger and keeps it in step with the entry store.

    GUARANTEES:
    - Every entry change goes through exactly one ledger operation
    - Operations on the same dataset never interleave
    - A failed write never leaves the in-memory totals ahead of storage
    """

    def __init__(
        self,
        entry_storage: EntryStorageInterface,
        state_storage: LedgerStateStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[EntryValidator] = None,
        decimal_places: Optional[int] = None,
        budgets: Optional[Mapping] = None,
    ):
        settings = get_settings().ledger

        self._entries = entry_storage
        self._state = state_storage
        self._audit_logger = audit_logger if settings.audit_enabled else None
        self._validator = validator or EntryValidator(entry_storage)
        self._decimal_places = (
            settings.decimal_places if decimal_places is None else decimal_places
        )

        self._ledger = Ledger(decimal_places=self._decimal_places)
        self._lock = asyncio.Lock()
        self._loaded = False
        self._budgets = normalize_budgets(budgets or {})
        self._budget_threshold = Decimal(str(settings.budget_alert_threshold))

    @property
    def ledger(self) -> Ledger:
        """The live ledger. Read it, never mutate it directly."""
        return self._ledger

    def summary(self) -> dict[str, Any]:
        return self._ledger.summary()

    def snapshot(self) -> LedgerSnapshot:
        return self._ledger.to_snapshot()

    def set_budgets(self, budgets: Mapping) -> None:
        """Replace the category -> limit mapping used for budget checks."""
        self._budgets = normalize_budgets(budgets)

    def check_budgets(self) -> list[BudgetProgress]:
        """Categories at or past the alert threshold of their budget."""
        return check_budget_limits(self._ledger, self._budgets, self._budget_threshold)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def load(self) -> Ledger:
        """
        Restore the ledger from persisted totals, or start at zero.

        Raises:
            LedgerInvariantError: If the persisted totals are inconsistent
        """
        async with self._lock:
            snapshot = await self._state.load_snapshot()
            if snapshot is None:
                self._ledger = Ledger(decimal_places=self._decimal_places)
            else:
                self._ledger = Ledger.from_snapshot(
                    snapshot, decimal_places=self._decimal_places
                )
            self._loaded = True
            balances = self._ledger.summary()

        if self._audit_logger:
            await self._audit_logger.log_ledger_loaded(
                restored=snapshot is not None,
                balances=balances,
            )
        return self._ledger

    async def reset(self, correlation_id: Optional[UUID] = None) -> int:
        """
        Reset the whole dataset: every entry and every total.

        Returns the number of entries removed.

        Raises:
            LedgerPersistenceError: If a write failed (entries and totals
                restored)
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._ensure_loaded()

        async with self._lock:
            existing = await self._entries.list_entries()
            before = self._ledger.to_snapshot()

            def restore_totals() -> None:
                self._ledger = Ledger.from_snapshot(before, decimal_places=self._decimal_places)

            async def restore_entries() -> None:
                for entry in existing:
                    await self._entries.save_entry(entry)

            await self._commit(
                operation="reset",
                apply=self._ledger.reset,
                revert=restore_totals,
                write=self._entries.clear,
                undo_write=restore_entries,
                correlation_id=correlation_id,
            )
            removed = len(existing)

        if self._audit_logger:
            await self._audit_logger.log_ledger_reset(
                entries_removed=removed,
                correlation_id=correlation_id,
            )
        return removed

    # =========================================================================
    # ENTRY FLOWS
    # =========================================================================

    async def add_entry(
        self,
        entry: Entry,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Entry, ValidationResult]:
        """
        Validate, record and persist a new entry.

        Returns:
            (entry, validation_result) - the result carries any warnings

        Raises:
            EntryValidationError: If validation reports errors
            LedgerPersistenceError: If a write failed (ledger rolled back)
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._ensure_loaded()

        async with self._lock:
            result = await self._validate_or_raise(entry, correlation_id)
            delta = entry.to_delta()
            was_overdrawn = self._ledger.is_overdraw_projected
            flagged_before = self._flagged_categories()

            await self._commit(
                operation="record_new",
                apply=lambda: self._ledger.record_entry(delta),
                revert=lambda: self._ledger.delete_entry(delta),
                write=lambda: self._entries.save_entry(entry),
                undo_write=lambda: self._entries.delete_entry(entry.id),
                correlation_id=correlation_id,
                entry_id=entry.id,
            )
            balances = self._ledger.summary()
            alerts = self.check_budgets()

        if self._audit_logger:
            await self._audit_logger.log_entry_recorded(
                entry_id=entry.id,
                delta=delta,
                balances=balances,
                correlation_id=correlation_id,
            )
        await self._check_overdraw(was_overdrawn, balances, correlation_id)
        await self._check_budgets(flagged_before, alerts, correlation_id)
        return entry, result

    async def set_paid_status(
        self,
        entry_id: UUID,
        is_paid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> Entry:
        """
        Mark an expense entry paid or unpaid.

        Setting the status it already has is a no-op.

        Raises:
            NotFoundError: If the entry does not exist
            InvalidPaidTransitionError: For income entries
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._ensure_loaded()

        async with self._lock:
            entry = await self._get_or_raise(entry_id)
            return await self._change_paid_locked(entry, is_paid, correlation_id)

    async def toggle_paid_status(
        self,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Entry:
        """Flip an expense entry's paid flag."""
        correlation_id = correlation_id or create_correlation_id()
        await self._ensure_loaded()

        async with self._lock:
            entry = await self._get_or_raise(entry_id)
            return await self._change_paid_locked(entry, not entry.is_paid, correlation_id)

    async def edit_entry(
        self,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
        **changes: Any,
    ) -> tuple[Entry, ValidationResult]:
        """
        Apply field changes to an entry.

        The ledger sees this as delete(old tuple) followed by
        record_new(new tuple), whatever combination of amount, category and
        paid flag changed.

        Raises:
            NotFoundError: If the entry does not exist
            PreconditionViolationError: If the changes try to alter identity
            EntryValidationError: If the edited entry fails validation
        """
        correlation_id = correlation_id or create_correlation_id()
        if {"id", "created_at"} & set(changes):
            raise PreconditionViolationError("Entry identity cannot be edited")
        unknown = set(changes) - set(Entry.model_fields)
        if unknown:
            raise PreconditionViolationError(f"Unknown entry fields: {sorted(unknown)}")
        await self._ensure_loaded()

        async with self._lock:
            current = await self._get_or_raise(entry_id)
            data = current.model_dump()
            data.update(changes)
            data["updated_at"] = datetime.utcnow()
            updated = Entry.model_validate(data)

            result = await self._validate_or_raise(updated, correlation_id)
            old_delta = current.to_delta()
            new_delta = updated.to_delta()
            was_overdrawn = self._ledger.is_overdraw_projected
            flagged_before = self._flagged_categories()

            await self._commit(
                operation="update",
                apply=lambda: self._ledger.update(old_delta, new_delta),
                revert=lambda: self._ledger.update(new_delta, old_delta),
                write=lambda: self._entries.update_entry(updated),
                undo_write=lambda: self._entries.update_entry(current),
                correlation_id=correlation_id,
                entry_id=entry_id,
            )
            balances = self._ledger.summary()
            alerts = self.check_budgets()

        if self._audit_logger:
            await self._audit_logger.log_entry_updated(
                entry_id=entry_id,
                old_delta=old_delta,
                new_delta=new_delta,
                balances=balances,
                correlation_id=correlation_id,
            )
        await self._check_overdraw(was_overdrawn, balances, correlation_id)
        await self._check_budgets(flagged_before, alerts, correlation_id)
        return updated, result

    async def delete_entry(
        self,
        entry_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> Entry:
        """
        Remove an entry and its contribution to the totals.

        Returns the deleted entry.
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._ensure_loaded()

        async with self._lock:
            entry = await self._get_or_raise(entry_id)
            delta = entry.to_delta()
            was_overdrawn = self._ledger.is_overdraw_projected
            flagged_before = self._flagged_categories()

            await self._commit(
                operation="delete",
                apply=lambda: self._ledger.delete_entry(delta),
                revert=lambda: self._ledger.record_entry(delta),
                write=lambda: self._entries.delete_entry(entry_id),
                undo_write=lambda: self._entries.save_entry(entry),
                correlation_id=correlation_id,
                entry_id=entry_id,
            )
            balances = self._ledger.summary()
            alerts = self.check_budgets()

        if self._audit_logger:
            await self._audit_logger.log_entry_deleted(
                entry_id=entry_id,
                delta=delta,
                balances=balances,
                correlation_id=correlation_id,
            )
        await self._check_overdraw(was_overdrawn, balances, correlation_id)
        await self._check_budgets(flagged_before, alerts, correlation_id)
        return entry

    # =========================================================================
    # RECOVERY
    # =========================================================================

    async def reconcile(
        self,
        repair: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> ReconciliationReport:
        """
        Compare the live ledger against the stored entries.

        Args:
            repair: Replace the live totals with the ones rebuilt from the
                    entry store when they differ, and persist them

        Returns:
            The report as found, before any repair
        """
        correlation_id = correlation_id or create_correlation_id()
        await self._ensure_loaded()

        repaired = False
        async with self._lock:
            entries = await self._entries.list_entries()
            report = reconcile_ledger(self._ledger, entries)

            if repair and not report.is_consistent:
                rebuilt = rebuild_from_entries(entries, decimal_places=self._decimal_places)
                await self._state.save_snapshot(rebuilt.to_snapshot())
                self._ledger = rebuilt
                repaired = True
            balances = self._ledger.summary()

        if self._audit_logger:
            await self._audit_logger.log_reconciliation(
                entry_count=report.entry_count,
                drifts=[drift.to_log_dict() for drift in report.drifts],
                correlation_id=correlation_id,
            )
            if repaired:
                await self._audit_logger.log_ledger_repaired(
                    balances=balances,
                    correlation_id=correlation_id,
                )
        return report

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    async def _get_or_raise(self, entry_id: UUID) -> Entry:
        entry = await self._entries.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Entry {entry_id} not found")
        return entry

    async def _validate_or_raise(
        self,
        entry: Entry,
        correlation_id: UUID,
    ) -> ValidationResult:
        result = await self._validator.validate(entry)
        if result.has_errors:
            if self._audit_logger:
                issues = [
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in result.issues
                ]
                await self._audit_logger.log_validation_failed(
                    entry_id=entry.id,
                    issues=issues,
                    correlation_id=correlation_id,
                )
            raise EntryValidationError(
                self._validator.get_user_friendly_summary(result),
                result=result,
            )
        return result

    async def _change_paid_locked(
        self,
        entry: Entry,
        is_paid: bool,
        correlation_id: UUID,
    ) -> Entry:
        """Paid status change; caller holds the lock."""
        if entry.category.is_income:
            raise InvalidPaidTransitionError(
                "Income entries are always settled; paid status cannot change"
            )
        if entry.is_paid == is_paid:
            return entry

        updated = entry.model_copy(
            update={"is_paid": is_paid, "updated_at": datetime.utcnow()}
        )
        was_overdrawn = self._ledger.is_overdraw_projected
        flagged_before = self._flagged_categories()

        await self._commit(
            operation="change_paid_status",
            apply=lambda: self._ledger.change_paid_status(entry.amount, is_paid, entry.category),
            revert=lambda: self._ledger.change_paid_status(entry.amount, not is_paid, entry.category),
            write=lambda: self._entries.update_entry(updated),
            undo_write=lambda: self._entries.update_entry(entry),
            correlation_id=correlation_id,
            entry_id=entry.id,
        )

        balances = self._ledger.summary()
        alerts = self.check_budgets()

        if self._audit_logger:
            await self._audit_logger.log_paid_status_changed(
                entry_id=entry.id,
                amount=entry.amount,
                new_is_paid=is_paid,
                category=entry.category,
                balances=balances,
                correlation_id=correlation_id,
            )
        await self._check_overdraw(was_overdrawn, balances, correlation_id)
        await self._check_budgets(flagged_before, alerts, correlation_id)
        return updated

    async def _commit(
        self,
        operation: str,
        apply: Callable[[], None],
        revert: Callable[[], None],
        write: Callable[[], Awaitable[Any]],
        undo_write: Callable[[], Awaitable[Any]],
        correlation_id: UUID,
        entry_id: Optional[UUID] = None,
    ) -> None:
        """
        Apply a ledger operation and persist it as one unit.

        Order: ledger -> entry store -> snapshot. On failure the ledger is
        reverted with the inverse operation and, if the entry write already
        landed, that write is undone too. If undoing the entry write fails
        as well, the stores are out of step and the error says so.
        """
        # Precondition failures raise here, before anything is written
        apply()

        written = False
        try:
            await write()
            written = True
            await self._state.save_snapshot(self._ledger.to_snapshot())
        except Exception as exc:
            revert()

            desynchronized = False
            if written:
                try:
                    await undo_write()
                except Exception as undo_exc:
                    desynchronized = True
                    if self._audit_logger:
                        await self._audit_logger.log_error(
                            error_type="compensation_failed",
                            error_message=str(undo_exc),
                            details={"operation": operation},
                            correlation_id=correlation_id,
                        )

            if self._audit_logger:
                await self._audit_logger.log_rollback(
                    operation=operation,
                    error_message=str(exc),
                    desynchronized=desynchronized,
                    correlation_id=correlation_id,
                    entry_id=entry_id,
                )

            message = f"Persisting {operation} failed: {exc}"
            if desynchronized:
                message += " (entry store no longer matches the ledger; run reconcile)"
            raise LedgerPersistenceError(
                message,
                operation=operation,
                desynchronized=desynchronized,
            ) from exc

    async def _check_overdraw(
        self,
        was_overdrawn: bool,
        balances: dict[str, Any],
        correlation_id: UUID,
    ) -> None:
        """Audit the moment the projected overdraw turns negative."""
        if was_overdrawn or not balances["overdraw_projected"]:
            return
        if self._audit_logger:
            await self._audit_logger.log_overdraw_projected(
                projected_overdraw=balances["projected_overdraw"],
                total_unpaid_expense=balances["total_unpaid_expense"],
                correlation_id=correlation_id,
            )

    def _flagged_categories(self) -> set:
        return {progress.category for progress in self.check_budgets()}

    async def _check_budgets(
        self,
        flagged_before: set,
        alerts: list[BudgetProgress],
        correlation_id: UUID,
    ) -> None:
        """Audit each category the moment it reaches its budget threshold."""
        if not self._audit_logger:
            return
        for progress in alerts:
            if progress.category in flagged_before:
                continue
            await self._audit_logger.log_budget_threshold(
                progress=progress.to_log_dict(),
                correlation_id=correlation_id,
            )
