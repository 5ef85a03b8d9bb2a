"""Services package."""

from balance_ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    EntryStorageInterface,
    InMemoryAuditStorage,
    InMemoryEntryStorage,
    InMemoryLedgerStateStorage,
    LedgerStateStorageInterface,
    NotFoundError,
    StorageError,
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
