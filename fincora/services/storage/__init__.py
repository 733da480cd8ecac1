"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The ledger is kept in a local JSON key-value file, designed to be swappable.
"""

from fincora.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    NotFoundError,
    PersistenceError,
    StorageError,
)
from fincora.services.storage.json_file import (
    BUDGETS_KEY,
    TRANSACTIONS_KEY,
    JsonFileLedgerStorage,
    JsonLinesAuditStorage,
)
from fincora.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "NotFoundError",
    "PersistenceError",
    "StorageError",
    # JSON file implementation
    "BUDGETS_KEY",
    "TRANSACTIONS_KEY",
    "JsonFileLedgerStorage",
    "JsonLinesAuditStorage",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
