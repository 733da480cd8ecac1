"""
Abstract Storage Interface

DESIGN DECISION: The ledger talks to storage only through these interfaces.
This allows us to:
1. Keep the on-disk format out of the ledger's logic
2. Use in-memory storage for testing
3. Swap the JSON file for a real database later

The interface is intentionally small. The ledger holds everything in
memory and writes the whole collection back after each mutation, the way
a key-value store is used on the device.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from fincora.models.audit import AuditEvent
from fincora.models.transaction import Budget, Transaction


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation (JSON file, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    def load_transactions(self) -> Optional[list[Transaction]]:
        """
        Load all stored transactions.

        Returns:
            The stored transactions, or None if nothing was ever saved

        Raises:
            PersistenceError: If stored data exists but cannot be read
        """
        pass

    @abstractmethod
    def save_transactions(self, transactions: list[Transaction]) -> None:
        """
        Replace the stored transactions.

        Raises:
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    def load_budgets(self) -> Optional[list[Budget]]:
        """Load all stored budgets, or None if nothing was ever saved."""
        pass

    @abstractmethod
    def save_budgets(self, budgets: list[Budget]) -> None:
        """Replace the stored budgets."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one statement import).

        Returns:
            List of related events in chronological order
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class PersistenceError(StorageError):
    """Stored data could not be read or written."""
    pass
