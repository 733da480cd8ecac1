"""
Core Transaction Models for Fincora

Two kinds of transaction live in the system:

1. ParsedTransaction - a CANDIDATE produced by the statement parser.
   It only exists inside one import review session.
2. Transaction - a committed ledger entry. Only these are persisted.

DESIGN DECISION: Amounts are always stored as a non-negative magnitude.
The direction of money is carried separately by `is_expense`, so a
negative amount can never sneak into a total.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from fincora.models.category import TransactionCategory


# Longest title kept from merchant/details text
MAX_TITLE_LENGTH = 80


class TrendDirection(str, Enum):
    """Month-over-month direction of spending."""
    UP = "up"
    DOWN = "down"


# =============================================================================
# LEDGER MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    A committed ledger entry.

    Created by manual entry or by committing selected ParsedTransactions.
    Mutated only by an explicit edit (TransactionLedger.update).
    """
    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    title: str = Field(
        ...,
        max_length=200,
        description="Short human label"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Positive magnitude of the transaction"
    )
    category: TransactionCategory = Field(
        ...,
        description="Canonical category"
    )
    date: date
    is_expense: bool = Field(
        ...,
        description="True when money left the account"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Free-form user note"
    )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with sign, for net calculations."""
        return -self.amount if self.is_expense else self.amount

    @property
    def formatted_amount(self) -> str:
        sign = "-" if self.is_expense else "+"
        return f"{sign}${self.amount:,.2f}"


class ParsedTransaction(BaseModel):
    """
    A transaction proposed by the statement classifier.

    CRITICAL: This is PROPOSED data. It only reaches the ledger through
    ImportReviewSession.commit(), and only if the user left it selected.
    """
    # Generated locally, never taken from the server
    id: UUID = Field(default_factory=uuid4)
    is_selected: bool = Field(
        default=True,
        description="User-controlled import flag"
    )

    date: date
    title: str = Field(
        ...,
        max_length=MAX_TITLE_LENGTH,
        description="Merchant or detail text, trimmed"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative magnitude; sign lives in is_expense"
    )
    is_expense: bool
    category: TransactionCategory
    bank_name: Optional[str] = Field(
        default=None,
        description="Detected financial institution"
    )
    details: Optional[str] = Field(
        default=None,
        description="Raw merchant/description text kept for display"
    )

    @property
    def formatted_amount(self) -> str:
        """Statement currency is tenge; shown without decimals."""
        sign = "-" if self.is_expense else "+"
        return f"{sign}₸{self.amount:.0f}"

    @property
    def formatted_date(self) -> str:
        return self.date.strftime("%d.%m.%Y")

    def to_transaction(self) -> Transaction:
        """Convert to a ledger Transaction with a fresh ID."""
        return Transaction(
            title=self.title,
            amount=self.amount,
            category=self.category,
            date=self.date,
            is_expense=self.is_expense,
        )


class Budget(BaseModel):
    """Spending limit for one category. At most one budget per category."""

    id: UUID = Field(default_factory=uuid4)
    category: TransactionCategory
    limit: Decimal = Field(..., ge=0)
    period: str = Field(default="Monthly")


# =============================================================================
# AGGREGATE MODELS
# =============================================================================

class CategorySpending(BaseModel):
    """Total expenses in one category and its share of all expenses."""

    category: TransactionCategory
    amount: Decimal
    percentage: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Share of total expenses (0-1)"
    )


class MonthlyData(BaseModel):
    """Income and expenses for one calendar month."""

    month: str = Field(..., description="Short month label, e.g. 'Jan'")
    year: int
    income: Decimal
    expenses: Decimal

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses
