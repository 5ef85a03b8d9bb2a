"""
In-Memory Storage Implementation

Process-local implementations of the storage interfaces. Used by the tests
and by embedders that persist elsewhere and only need the interface shape.

Stored models are deep-copied on the way in and on the way out, so callers
mutating an Entry they hold never change what is stored.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from balance_ledger.models.audit import AuditEvent
from balance_ledger.models.category import Category
from balance_ledger.models.entry import Entry, LedgerSnapshot
from balance_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    EntryStorageInterface,
    LedgerStateStorageInterface,
    NotFoundError,
)


class InMemoryEntryStorage(EntryStorageInterface):
    """Entry store backed by a dict keyed by entry ID."""

    def __init__(self):
        self._entries: dict[UUID, Entry] = {}

    async def save_entry(self, entry: Entry) -> bool:
        if entry.id in self._entries:
            raise DuplicateError(f"Entry {entry.id} already exists")
        self._entries[entry.id] = entry.model_copy(deep=True)
        return True

    async def get_entry(self, entry_id: UUID) -> Optional[Entry]:
        entry = self._entries.get(entry_id)
        return entry.model_copy(deep=True) if entry else None

    async def update_entry(self, entry: Entry) -> bool:
        if entry.id not in self._entries:
            raise NotFoundError(f"Entry {entry.id} not found")
        self._entries[entry.id] = entry.model_copy(deep=True)
        return True

    async def delete_entry(self, entry_id: UUID) -> bool:
        return self._entries.pop(entry_id, None) is not None

    async def list_entries(
        self,
        category: Optional[Category] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        is_paid: Optional[bool] = None,
    ) -> list[Entry]:
        results = []
        for entry in self._entries.values():
            if category is not None and entry.category != category:
                continue
            if date_from is not None and entry.entry_date < date_from:
                continue
            if date_to is not None and entry.entry_date > date_to:
                continue
            if is_paid is not None and entry.is_paid != is_paid:
                continue
            results.append(entry.model_copy(deep=True))

        results.sort(key=lambda e: (e.entry_date, e.created_at))
        return results

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count


class InMemoryLedgerStateStorage(LedgerStateStorageInterface):
    """Holds the latest ledger snapshot."""

    def __init__(self, snapshot: Optional[LedgerSnapshot] = None):
        self._snapshot = snapshot

    async def load_snapshot(self) -> Optional[LedgerSnapshot]:
        return self._snapshot

    async def save_snapshot(self, snapshot: LedgerSnapshot) -> bool:
        # Snapshots are frozen, but their nested CategoryTotal values are not
        self._snapshot = snapshot.model_copy(deep=True)
        return True

    async def clear(self) -> None:
        self._snapshot = None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
