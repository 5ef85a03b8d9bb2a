"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged. The ledger keeps running
totals only, so the audit trail is what lets us explain a balance after
the fact.

The audit logger:
- Is async so it sits naturally inside the async service flows
- Gracefully handles storage failures (an audit write never undoes a
  committed ledger mutation)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from balance_ledger.config import get_settings
from balance_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from balance_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        logging.getLogger("balance_ledger.audit").setLevel(get_settings().app.log_level)
        self._logger = structlog.get_logger("balance_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_entry_recorded(self, entry_id: UUID, delta, balances: dict, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.entry_recorded(
            entry_id=entry_id,
            delta=delta,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_entry_updated(
        self,
        entry_id: UUID,
        old_delta,
        new_delta,
        balances: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.entry_updated(
            entry_id=entry_id,
            old_delta=old_delta,
            new_delta=new_delta,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_entry_deleted(self, entry_id: UUID, delta, balances: dict, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.entry_deleted(
            entry_id=entry_id,
            delta=delta,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_paid_status_changed(
        self,
        entry_id: UUID,
        amount,
        new_is_paid: bool,
        category,
        balances: dict,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.paid_status_changed(
            entry_id=entry_id,
            amount=amount,
            new_is_paid=new_is_paid,
            category=category,
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(self, entry_id: UUID, issues: list[dict], correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            entry_id=entry_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_ledger_loaded(self, restored: bool, balances: dict) -> None:
        await self.log(AuditEventBuilder.ledger_loaded(restored=restored, balances=balances))

    async def log_ledger_reset(self, entries_removed: int, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.ledger_reset(
            entries_removed=entries_removed,
            correlation_id=correlation_id,
        ))

    async def log_rollback(
        self,
        operation: str,
        error_message: str,
        desynchronized: bool,
        correlation_id: UUID,
        entry_id: Optional[UUID] = None,
    ) -> None:
        """Log a persistence failure that forced a ledger rollback."""
        await self.log(AuditEventBuilder.ledger_rolled_back(
            operation=operation,
            error_message=error_message,
            desynchronized=desynchronized,
            correlation_id=correlation_id,
            entry_id=entry_id,
        ))

    async def log_overdraw_projected(
        self,
        projected_overdraw,
        total_unpaid_expense,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.overdraw_projected(
            projected_overdraw=projected_overdraw,
            total_unpaid_expense=total_unpaid_expense,
            correlation_id=correlation_id,
        ))

    async def log_budget_threshold(self, progress: dict, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.budget_threshold_reached(
            correlation_id=correlation_id,
            **progress,
        ))

    async def log_reconciliation(
        self,
        entry_count: int,
        drifts: list[dict],
        correlation_id: UUID,
    ) -> None:
        if drifts:
            event = AuditEventBuilder.reconciliation_drift(
                entry_count=entry_count,
                drifts=drifts,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.reconciliation_passed(
                entry_count=entry_count,
                correlation_id=correlation_id,
            )
        await self.log(event)

    async def log_ledger_repaired(self, balances: dict, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.ledger_repaired(
            balances=balances,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a user action and pass it through all
    subsequent operations.
    """
    return uuid4()
