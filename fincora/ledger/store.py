"""
Transaction Ledger

The ledger is the ONLY owner of committed transactions. It keeps them in
memory, writes the whole collection back to storage after every mutation,
and notifies subscribers after each change.

Aggregates (totals, category breakdowns, monthly series) are computed on
demand from the in-memory list; nothing derived is stored.

The import pipeline only ever calls append_many(). Edits and deletes come from
the surrounding CRUD screens.
"""

import calendar
import threading
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Optional
from uuid import UUID

import structlog

from fincora.models.category import TransactionCategory
from fincora.models.transaction import (
    Budget,
    CategorySpending,
    MonthlyData,
    Transaction,
    TrendDirection,
)
from fincora.services.storage import (
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


LedgerObserver = Callable[["TransactionLedger"], None]

ZERO = Decimal("0")

logger = structlog.get_logger(__name__)


def _previous_month(year: int, month: int) -> tuple[int, int]:
    return (year - 1, 12) if month == 1 else (year, month - 1)


class TransactionLedger:
    """
    Observable, persisted collection of committed transactions.

    Order is insertion order. Use recent() for a date-sorted view.
    """

    def __init__(self, storage: Optional[LedgerStorageInterface] = None):
        self._storage = storage if storage is not None else InMemoryLedgerStorage()
        self._lock = threading.RLock()
        self._observers: list[LedgerObserver] = []
        self._transactions: list[Transaction] = self._storage.load_transactions() or []
        self._budgets: list[Budget] = self._storage.load_budgets() or []

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    def subscribe(self, observer: LedgerObserver) -> Callable[[], None]:
        """
        Register a callback run after every change.

        Returns:
            A function that removes the callback again
        """
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            observer(self)

    def _persist_transactions(self) -> None:
        self._storage.save_transactions(self._transactions)

    def _replace_transactions(self, transactions: list[Transaction]) -> None:
        """Swap in a new list, keeping the old one if the write fails."""
        previous = self._transactions
        self._transactions = transactions
        try:
            self._persist_transactions()
        except StorageError:
            self._transactions = previous
            raise

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def append(self, transaction: Transaction) -> None:
        """Add a transaction and persist the ledger."""
        self.append_many([transaction])

    def append_many(self, transactions: Iterable[Transaction]) -> int:
        """
        Add a batch of transactions with a single write.

        Either the whole batch is stored or none of it: if the write fails
        the in-memory ledger is put back as it was.

        Returns:
            Number of transactions added

        Raises:
            StorageError: If the ledger could not be persisted
        """
        batch = list(transactions)
        if not batch:
            return 0

        with self._lock:
            self._replace_transactions(self._transactions + batch)
        logger.debug("ledger_appended", count=len(batch))
        self._notify()
        return len(batch)

    def all(self) -> list[Transaction]:
        """Copy of every transaction, in insertion order."""
        with self._lock:
            return list(self._transactions)

    def recent(self, limit: Optional[int] = None) -> list[Transaction]:
        """Transactions newest first by date."""
        ordered = sorted(self.all(), key=lambda t: t.date, reverse=True)
        return ordered[:limit] if limit is not None else ordered

    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        with self._lock:
            for transaction in self._transactions:
                if transaction.id == transaction_id:
                    return transaction
        return None

    def update(self, transaction: Transaction) -> None:
        """
        Replace the stored transaction with the same ID.

        Raises:
            NotFoundError: If no transaction has that ID
        """
        with self._lock:
            ids = [t.id for t in self._transactions]
            if transaction.id not in ids:
                raise NotFoundError(f"Transaction {transaction.id} not found")
            updated = list(self._transactions)
            updated[ids.index(transaction.id)] = transaction
            self._replace_transactions(updated)
        self._notify()

    def delete(self, transaction_id: UUID) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if a transaction was removed
        """
        with self._lock:
            remaining = [t for t in self._transactions if t.id != transaction_id]
            if len(remaining) == len(self._transactions):
                return False
            self._replace_transactions(remaining)
        self._notify()
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._transactions)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def set_budget(self, budget: Budget) -> None:
        """Add a budget, replacing any existing budget for the same category."""
        with self._lock:
            for index, existing in enumerate(self._budgets):
                if existing.category == budget.category:
                    self._budgets[index] = budget
                    break
            else:
                self._budgets.append(budget)
            self._storage.save_budgets(self._budgets)
        self._notify()

    @property
    def budgets(self) -> list[Budget]:
        with self._lock:
            return list(self._budgets)

    @property
    def total_budget_limit(self) -> Decimal:
        return sum((b.limit for b in self.budgets), ZERO)

    @property
    def total_budget_spent(self) -> Decimal:
        return sum((self.spent_for(b.category) for b in self.budgets), ZERO)

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    @property
    def total_income(self) -> Decimal:
        return sum((t.amount for t in self.all() if not t.is_expense), ZERO)

    @property
    def total_expenses(self) -> Decimal:
        return sum((t.amount for t in self.all() if t.is_expense), ZERO)

    @property
    def balance(self) -> Decimal:
        return self.total_income - self.total_expenses

    @property
    def savings_rate(self) -> float:
        """Percentage of income not spent; 0 when there is no income."""
        income = self.total_income
        if income <= 0:
            return 0.0
        return float((income - self.total_expenses) / income * 100)

    def spent_for(self, category: TransactionCategory) -> Decimal:
        return sum(
            (t.amount for t in self.all() if t.is_expense and t.category == category),
            ZERO,
        )

    def month_expenses(self, year: int, month: int) -> Decimal:
        return sum(
            (
                t.amount for t in self.all()
                if t.is_expense and t.date.year == year and t.date.month == month
            ),
            ZERO,
        )

    def this_month_expenses(self, today: Optional[date] = None) -> Decimal:
        today = today or date.today()
        return self.month_expenses(today.year, today.month)

    def last_month_expenses(self, today: Optional[date] = None) -> Decimal:
        """Expenses of the previous calendar month (0 when there are none)."""
        today = today or date.today()
        return self.month_expenses(*_previous_month(today.year, today.month))

    def monthly_trend(self, today: Optional[date] = None) -> TrendDirection:
        if self.this_month_expenses(today) > self.last_month_expenses(today):
            return TrendDirection.UP
        return TrendDirection.DOWN

    def category_spending(self) -> list[CategorySpending]:
        """Expenses per category, largest first, with share of all expenses."""
        totals: dict[TransactionCategory, Decimal] = defaultdict(lambda: ZERO)
        for t in self.all():
            if t.is_expense:
                totals[t.category] += t.amount

        grand_total = sum(totals.values(), ZERO)
        spending = [
            CategorySpending(
                category=category,
                amount=amount,
                percentage=float(amount / grand_total) if grand_total > 0 else 0.0,
            )
            for category, amount in totals.items()
        ]
        return sorted(spending, key=lambda s: s.amount, reverse=True)

    def monthly_series(
        self,
        months: int = 6,
        today: Optional[date] = None,
    ) -> list[MonthlyData]:
        """
        Income and expenses for the last `months` calendar months.

        Oldest month first; the current month is the last entry.
        Months without transactions are reported with zeros.
        """
        if months < 1:
            raise ValueError("months must be at least 1")

        today = today or date.today()
        keys = [(today.year, today.month)]
        while len(keys) < months:
            keys.append(_previous_month(*keys[-1]))
        keys.reverse()

        income: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
        expenses: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
        for t in self.all():
            key = (t.date.year, t.date.month)
            if t.is_expense:
                expenses[key] += t.amount
            else:
                income[key] += t.amount

        return [
            MonthlyData(
                month=calendar.month_abbr[month],
                year=year,
                income=income[(year, month)],
                expenses=expenses[(year, month)],
            )
            for year, month in keys
        ]
