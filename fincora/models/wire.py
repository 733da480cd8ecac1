"""
Wire models for the statement classification service.

Every field the server sends is independently nullable. These models keep
each field optional and leave the fallback rules to the parser, so that
the rules are written down in one place instead of hidden in coalescing.

A response is decoded in two steps: the envelope first, then each record
on its own. A malformed record is dropped by the parser; it never fails
the envelope.
"""

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClassifySummary(BaseModel):
    """Optional per-response summary some server versions send."""
    model_config = ConfigDict(extra="ignore")

    total_transactions: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)


class ClassifyResponse(BaseModel):
    """Envelope of a POST /classify response."""
    model_config = ConfigDict(extra="ignore")

    bank: Optional[str] = None
    # Kept raw; each item is validated separately as RawStatementRecord
    transactions: list[Any] = Field(default_factory=list)
    summary: Optional[ClassifySummary] = None
    error: Optional[str] = None

    @field_validator("transactions", mode="before")
    @classmethod
    def null_transactions_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class RawStatementRecord(BaseModel):
    """One transaction as the classifier reported it."""
    model_config = ConfigDict(extra="ignore")

    date: Optional[str] = None
    amount: Optional[float] = None
    merchant: Optional[str] = None
    details: Optional[str] = None
    category: Optional[str] = None
    bank: Optional[str] = None
    currency: Optional[str] = None
    operation: Optional[str] = None
    amount_raw: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def only_finite_numbers(cls, v: Any) -> Any:
        """Amounts must be real JSON numbers; "12.5" or true are rejected."""
        if v is None:
            return None
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"amount is not a number: {v!r}")
        if not math.isfinite(v):
            raise ValueError(f"amount is not finite: {v!r}")
        return v

    @field_validator(
        "date", "merchant", "details", "category", "bank",
        "currency", "operation", "amount_raw",
        mode="before",
    )
    @classmethod
    def text_as_str(cls, v: Any) -> Any:
        """Servers occasionally send numbers for text fields."""
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return None
