"""
Abstract Storage Interface

DESIGN DECISION: The ledger never touches storage. The service layer talks
to these interfaces, which allows us to:
1. Keep the ledger a pure in-memory accumulator
2. Use in-memory storage for testing
3. Swap in a real database without changing ledger logic

Three stores are involved:
- entries (the authoritative list, owned by the caller)
- ledger state (the persisted totals snapshot)
- audit events (append-only)
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from balance_ledger.models.audit import AuditEvent
from balance_ledger.models.category import Category
from balance_ledger.models.entry import Entry, LedgerSnapshot


class EntryStorageInterface(ABC):
    """Abstract interface for entry storage operations."""

    @abstractmethod
    async def save_entry(self, entry: Entry) -> bool:
        """
        Save a new entry.

        Raises:
            DuplicateError: If an entry with the same ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: UUID) -> Optional[Entry]:
        """Retrieve an entry by ID, or None if it does not exist."""
        pass

    @abstractmethod
    async def update_entry(self, entry: Entry) -> bool:
        """
        Replace a stored entry.

        Raises:
            NotFoundError: If the entry doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: UUID) -> bool:
        """Delete an entry. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list_entries(
        self,
        category: Optional[Category] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        is_paid: Optional[bool] = None,
    ) -> list[Entry]:
        """
        List entries with optional filters, oldest date first.

        Args:
            category: Filter by category
            date_from: Entries on or after this date
            date_to: Entries on or before this date
            is_paid: Filter by paid flag
        """
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        pass


class LedgerStateStorageInterface(ABC):
    """
    Abstract interface for the persisted ledger totals.

    Snapshots are stored and returned verbatim; no recomputation.
    """

    @abstractmethod
    async def load_snapshot(self) -> Optional[LedgerSnapshot]:
        """Return the last saved snapshot, or None for a new dataset."""
        pass

    @abstractmethod
    async def save_snapshot(self, snapshot: LedgerSnapshot) -> bool:
        """
        Persist a snapshot, replacing the previous one.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Drop the persisted snapshot."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Events sharing a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
