"""
Storage Services Package

Provides abstract interfaces and in-memory implementations for entries,
persisted ledger totals and audit events.
"""

from balance_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    EntryStorageInterface,
    LedgerStateStorageInterface,
    NotFoundError,
    StorageError,
)
from balance_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryEntryStorage,
    InMemoryLedgerStateStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "EntryStorageInterface",
    "LedgerStateStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryEntryStorage",
    "InMemoryLedgerStateStorage",
]
