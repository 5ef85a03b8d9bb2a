"""
Audit Models for the Ledger

Every ledger mutation, rollback and reconciliation is logged for audit
purposes. The ledger keeps no history of its own, so the audit trail is the
only record of how the totals got where they are.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Entry mutations
    ENTRY_RECORDED = "entry_recorded"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    PAID_STATUS_CHANGED = "paid_status_changed"
    VALIDATION_FAILED = "validation_failed"

    # Ledger lifecycle
    LEDGER_LOADED = "ledger_loaded"
    LEDGER_RESET = "ledger_reset"
    LEDGER_ROLLED_BACK = "ledger_rolled_back"
    LEDGER_REPAIRED = "ledger_repaired"

    # Balance signals
    OVERDRAW_PROJECTED = "overdraw_projected"
    BUDGET_THRESHOLD_REACHED = "budget_threshold_reached"

    # Reconciliation
    RECONCILIATION_PASSED = "reconciliation_passed"
    RECONCILIATION_DRIFT = "reconciliation_drift"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'entry', 'ledger')"
    )
    entity_id: Optional[UUID] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events"
    )

    description: str = Field(
        ...,
        max_length=500,
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }

    def to_row(self) -> list:
        """
        Flatten to a row for tabular audit storage.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json, error_message]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
        ]


def _delta_details(amount, is_paid: bool, category) -> dict[str, Any]:
    return {
        "amount": str(amount),
        "is_paid": is_paid,
        "category": category.value,
    }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_recorded(entry_id, delta, summary, cid)
    """

    @staticmethod
    def entry_recorded(
        entry_id: UUID,
        delta,
        balances: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_RECORDED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Recorded {delta.category.value} entry of {delta.amount}",
            details={
                "delta": _delta_details(delta.amount, delta.is_paid, delta.category),
                "balances": balances,
            },
        )

    @staticmethod
    def entry_updated(
        entry_id: UUID,
        old_delta,
        new_delta,
        balances: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description="Entry edited (old contribution removed, new one recorded)",
            details={
                "old": _delta_details(old_delta.amount, old_delta.is_paid, old_delta.category),
                "new": _delta_details(new_delta.amount, new_delta.is_paid, new_delta.category),
                "balances": balances,
            },
        )

    @staticmethod
    def entry_deleted(
        entry_id: UUID,
        delta,
        balances: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Deleted {delta.category.value} entry of {delta.amount}",
            details={
                "delta": _delta_details(delta.amount, delta.is_paid, delta.category),
                "balances": balances,
            },
        )

    @staticmethod
    def paid_status_changed(
        entry_id: UUID,
        amount,
        new_is_paid: bool,
        category,
        balances: dict,
        correlation_id: UUID,
    ) -> AuditEvent:
        state = "paid" if new_is_paid else "unpaid"
        return AuditEvent(
            event_type=AuditEventType.PAID_STATUS_CHANGED,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"{category.value.capitalize()} entry of {amount} marked {state}",
            details={
                "delta": _delta_details(amount, new_is_paid, category),
                "balances": balances,
            },
        )

    @staticmethod
    def validation_failed(
        entry_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Entry validation failed with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def ledger_loaded(restored: bool, balances: dict) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_LOADED,
            entity_type="ledger",
            description=(
                "Ledger restored from persisted totals"
                if restored
                else "Ledger initialised at zero"
            ),
            details={"restored": restored, "balances": balances},
        )

    @staticmethod
    def ledger_reset(entries_removed: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_RESET,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Dataset reset, {entries_removed} entries removed",
            details={"entries_removed": entries_removed},
        )

    @staticmethod
    def ledger_rolled_back(
        operation: str,
        error_message: str,
        desynchronized: bool,
        correlation_id: UUID,
        entry_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_ROLLED_BACK,
            severity=AuditSeverity.CRITICAL if desynchronized else AuditSeverity.ERROR,
            entity_type="entry",
            entity_id=entry_id,
            correlation_id=correlation_id,
            description=f"Persistence failed during {operation}, ledger rolled back",
            details={
                "operation": operation,
                "desynchronized": desynchronized,
            },
            error_message=error_message,
        )

    @staticmethod
    def overdraw_projected(
        projected_overdraw,
        total_unpaid_expense,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OVERDRAW_PROJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Projected overdraw went negative: {projected_overdraw}",
            details={
                "projected_overdraw": str(projected_overdraw),
                "total_unpaid_expense": str(total_unpaid_expense),
            },
        )

    @staticmethod
    def budget_threshold_reached(
        category: str,
        spent: str,
        limit: str,
        percent_used: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_THRESHOLD_REACHED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"{percent_used}% of the {category} budget used ({spent} of {limit})",
            details={
                "category": category,
                "spent": spent,
                "limit": limit,
                "percent_used": percent_used,
            },
        )

    @staticmethod
    def reconciliation_passed(entry_count: int, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_PASSED,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger matches {entry_count} stored entries",
            details={"entry_count": entry_count},
        )

    @staticmethod
    def reconciliation_drift(
        entry_count: int,
        drifts: list[dict],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECONCILIATION_DRIFT,
            severity=AuditSeverity.ERROR,
            entity_type="ledger",
            correlation_id=correlation_id,
            description=f"Ledger drifted from stored entries in {len(drifts)} fields",
            details={"entry_count": entry_count, "drifts": drifts},
        )

    @staticmethod
    def ledger_repaired(balances: dict, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_REPAIRED,
            severity=AuditSeverity.WARNING,
            entity_type="ledger",
            correlation_id=correlation_id,
            description="Ledger replaced with totals rebuilt from entry history",
            details={"balances": balances},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
