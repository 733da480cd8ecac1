"""In-memory storage, for tests and for running without a ledger file."""

from typing import Optional
from uuid import UUID

from fincora.models.audit import AuditEvent
from fincora.models.transaction import Budget, Transaction
from fincora.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Keeps copies of whatever was last saved."""

    def __init__(
        self,
        transactions: Optional[list[Transaction]] = None,
        budgets: Optional[list[Budget]] = None,
    ):
        self._transactions = list(transactions) if transactions is not None else None
        self._budgets = list(budgets) if budgets is not None else None
        self.save_count = 0

    def load_transactions(self) -> Optional[list[Transaction]]:
        if self._transactions is None:
            return None
        return [t.model_copy() for t in self._transactions]

    def save_transactions(self, transactions: list[Transaction]) -> None:
        self._transactions = [t.model_copy() for t in transactions]
        self.save_count += 1

    def load_budgets(self) -> Optional[list[Budget]]:
        if self._budgets is None:
            return None
        return [b.model_copy() for b in self._budgets]

    def save_budgets(self, budgets: list[Budget]) -> None:
        self._budgets = [b.model_copy() for b in budgets]
        self.save_count += 1


class InMemoryAuditStorage(AuditStorageInterface):
    """Collects audit events in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]
