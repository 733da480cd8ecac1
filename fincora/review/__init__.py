"""Import review session package."""

from fincora.review.session import (
    ALL_CATEGORIES,
    SUMMARY_TOP_CATEGORIES,
    CategoryCount,
    ImportReviewSession,
    ImportSummary,
    LedgerSink,
    SessionState,
)

__all__ = [
    "ALL_CATEGORIES",
    "SUMMARY_TOP_CATEGORIES",
    "CategoryCount",
    "ImportReviewSession",
    "ImportSummary",
    "LedgerSink",
    "SessionState",
]
