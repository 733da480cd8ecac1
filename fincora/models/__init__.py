"""
Data Models Package

This package contains all Pydantic models used in Fincora.
All data flowing through the import pipeline must conform to these schemas.
"""

from fincora.models.category import (
    CATEGORY_SYNONYMS,
    MUTED_COLOR,
    TransactionCategory,
    normalize_category,
)
from fincora.models.transaction import (
    MAX_TITLE_LENGTH,
    Budget,
    CategorySpending,
    MonthlyData,
    ParsedTransaction,
    Transaction,
    TrendDirection,
)
from fincora.models.wire import (
    ClassifyResponse,
    ClassifySummary,
    RawStatementRecord,
)
from fincora.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Category taxonomy
    "CATEGORY_SYNONYMS",
    "MUTED_COLOR",
    "TransactionCategory",
    "normalize_category",
    # Transaction models
    "MAX_TITLE_LENGTH",
    "Budget",
    "CategorySpending",
    "MonthlyData",
    "ParsedTransaction",
    "Transaction",
    "TrendDirection",
    # Wire models
    "ClassifyResponse",
    "ClassifySummary",
    "RawStatementRecord",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
