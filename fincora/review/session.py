"""
Import Review Session

Holds ONE batch of parsed candidates between "the classifier answered" and
"the user pressed Import". The UI drives it; the ledger only sees the
result of commit().

State machine:

    EMPTY --load--> LOADED --commit--> COMMITTED
                      |
                      +----reset----> EMPTY

Filtering and selection mutate a LOADED session in place. There is no
partial commit: commit() moves every selected candidate at once and ends
the session.

DESIGN DECISION: Select all / deselect all are FILTER-SCOPED by default.
With the filter on "Food", "Deselect all" unticks the food rows only and
leaves every other category exactly as the user left it.

THREAD SAFETY: All mutable state is guarded by one re-entrant lock so a
toggle can never race a commit into a stale selection snapshot.
Observers are called after the lock is released.
"""

import threading
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol, Union
from uuid import UUID, uuid4

import structlog
from pydantic import BaseModel, Field

from fincora.models.category import MUTED_COLOR, TransactionCategory
from fincora.models.transaction import ParsedTransaction, Transaction


logger = structlog.get_logger(__name__)

# Filter value meaning "no category filter"
ALL_CATEGORIES = "All"

# The summary card lists this many categories, then "+N more"
SUMMARY_TOP_CATEGORIES = 4

CategoryFilter = Union[TransactionCategory, str]
SessionObserver = Callable[["ImportReviewSession"], None]


class LedgerSink(Protocol):
    """The only ledger operation an import needs."""

    def append_many(self, transactions: Iterable[Transaction]) -> int: ...


class SessionState(str, Enum):
    EMPTY = "empty"
    LOADED = "loaded"
    COMMITTED = "committed"


class CategoryCount(BaseModel):
    """One filter chip / breakdown row."""

    label: str
    count: int = Field(ge=0)
    color: str


class ImportSummary(BaseModel):
    """Everything the summary card and the import button need."""

    total_count: int = Field(ge=0)
    selected_count: int = Field(ge=0)
    category_breakdown: list[CategoryCount] = Field(default_factory=list)
    detected_bank: Optional[str] = None

    def top_categories(self, limit: int = SUMMARY_TOP_CATEGORIES) -> list[CategoryCount]:
        return self.category_breakdown[:limit]

    def hidden_category_count(self, limit: int = SUMMARY_TOP_CATEGORIES) -> int:
        """How many categories the "+N more" line stands for."""
        return max(len(self.category_breakdown) - limit, 0)


def _filter_label(value: CategoryFilter) -> str:
    """
    Normalize a filter argument to "All" or a category label.

    Raises:
        ValueError: If a string is neither "All" nor a category label
    """
    if isinstance(value, TransactionCategory):
        return value.value
    if value == ALL_CATEGORIES:
        return ALL_CATEGORIES
    return TransactionCategory.from_label(value).value


class ImportReviewSession:
    """
    Review state for one uploaded statement.

    Candidates keep server order as re-sorted by the parser (newest first).
    Callers only ever receive copies of candidates.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._observers: list[SessionObserver] = []
        self._session_id = uuid4()
        self._state = SessionState.EMPTY
        self._candidates: list[ParsedTransaction] = []
        self._category_filter = ALL_CATEGORIES
        self._committed_count = 0

    # -------------------------------------------------------------------------
    # Observation
    # -------------------------------------------------------------------------

    def subscribe(self, observer: SessionObserver) -> Callable[[], None]:
        """
        Register a callback run after candidates, the filter or a
        selection flag change.

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

    # -------------------------------------------------------------------------
    # Read-only state
    # -------------------------------------------------------------------------

    @property
    def session_id(self) -> UUID:
        """Changes every time a new batch is loaded."""
        return self._session_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def category_filter(self) -> str:
        """"All" or the label of the filtered category."""
        return self._category_filter

    @property
    def committed_count(self) -> int:
        return self._committed_count

    @property
    def detected_bank(self) -> Optional[str]:
        with self._lock:
            if not self._candidates:
                return None
            return self._candidates[0].bank_name

    @property
    def total_count(self) -> int:
        with self._lock:
            return len(self._candidates)

    @property
    def selected_count(self) -> int:
        with self._lock:
            return sum(1 for c in self._candidates if c.is_selected)

    def _matches(self, candidate: ParsedTransaction, label: str) -> bool:
        return label == ALL_CATEGORIES or candidate.category.value == label

    def get_candidates(self, category_filter: Optional[CategoryFilter] = None) -> list[ParsedTransaction]:
        """
        Copies of the candidates visible under a filter.

        Args:
            category_filter: "All", a category, or None for the active filter
        """
        with self._lock:
            label = self._category_filter if category_filter is None else _filter_label(category_filter)
            return [c.model_copy() for c in self._candidates if self._matches(c, label)]

    def category_summary(self) -> list[CategoryCount]:
        """
        Candidates grouped by category label, most frequent first.

        Ties keep the order in which categories first appear.
        """
        with self._lock:
            counts: dict[TransactionCategory, int] = {}
            for candidate in self._candidates:
                counts[candidate.category] = counts.get(candidate.category, 0) + 1

        summary = [
            CategoryCount(label=category.value, count=count, color=category.color)
            for category, count in counts.items()
        ]
        return sorted(summary, key=lambda item: item.count, reverse=True)

    def get_summary(self) -> ImportSummary:
        with self._lock:
            return ImportSummary(
                total_count=self.total_count,
                selected_count=self.selected_count,
                category_breakdown=self.category_summary(),
                detected_bank=self.detected_bank,
            )

    @staticmethod
    def filter_color(label: str) -> str:
        """Chip color for a filter label; the "All" chip is muted."""
        try:
            return TransactionCategory.from_label(label).color
        except ValueError:
            return MUTED_COLOR

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def load(self, candidates: list[ParsedTransaction]) -> None:
        """
        Start reviewing a new batch, replacing whatever was loaded before.

        Every candidate starts selected; the filter goes back to "All".
        """
        with self._lock:
            self._session_id = uuid4()
            self._candidates = [c.model_copy(update={"is_selected": True}) for c in candidates]
            self._category_filter = ALL_CATEGORIES
            self._committed_count = 0
            self._state = SessionState.LOADED if self._candidates else SessionState.EMPTY
        logger.debug("import_session_loaded", session_id=str(self._session_id), count=len(candidates))
        self._notify()

    def set_filter(self, category_filter: CategoryFilter) -> None:
        """
        Show only one category (or "All"). Selection flags are untouched.

        Raises:
            ValueError: If the label is not "All" or a category label
        """
        label = _filter_label(category_filter)
        with self._lock:
            self._category_filter = label
        self._notify()

    def toggle_selection(self, candidate_id: UUID) -> bool:
        """
        Flip one candidate's selection.

        Returns:
            The candidate's new is_selected value

        Raises:
            KeyError: If no loaded candidate has that ID
        """
        with self._lock:
            for candidate in self._candidates:
                if candidate.id == candidate_id:
                    candidate.is_selected = not candidate.is_selected
                    selected = candidate.is_selected
                    break
            else:
                raise KeyError(candidate_id)
        self._notify()
        return selected

    def _set_selected(self, value: bool, respecting_filter: bool) -> int:
        with self._lock:
            label = self._category_filter if respecting_filter else ALL_CATEGORIES
            changed = 0
            for candidate in self._candidates:
                if self._matches(candidate, label) and candidate.is_selected != value:
                    candidate.is_selected = value
                    changed += 1
        self._notify()
        return changed

    def select_all(self, respecting_filter: bool = True) -> int:
        """
        Select every candidate in the active filter.

        Returns:
            Number of candidates whose flag changed
        """
        return self._set_selected(True, respecting_filter)

    def deselect_all(self, respecting_filter: bool = True) -> int:
        """
        Deselect every candidate in the active filter.

        Returns:
            Number of candidates whose flag changed
        """
        return self._set_selected(False, respecting_filter)

    def commit(self, ledger: LedgerSink) -> int:
        """
        Append every selected candidate to the ledger and end the session.

        This is the ONLY path from candidates into persistent storage.
        Unselected candidates are dropped without a trace.

        The selection goes to the ledger as one batch. If the ledger cannot
        store it, the error propagates and the session stays LOADED with
        the selection intact, so the user can retry.

        Returns:
            Number of transactions appended (0 for an empty selection)

        Raises:
            StorageError: If the ledger could not persist the batch
        """
        with self._lock:
            selected = [c for c in self._candidates if c.is_selected]
            ledger.append_many(c.to_transaction() for c in selected)

            if self._state == SessionState.LOADED:
                self._state = SessionState.COMMITTED
                self._candidates = []
                self._category_filter = ALL_CATEGORIES
                self._committed_count = len(selected)

        logger.info(
            "import_session_committed",
            session_id=str(self._session_id),
            committed=len(selected),
        )
        self._notify()
        return len(selected)

    def reset(self) -> int:
        """
        Throw the batch away and go back to EMPTY.

        Returns:
            Number of candidates discarded
        """
        with self._lock:
            discarded = len(self._candidates)
            self._candidates = []
            self._category_filter = ALL_CATEGORIES
            self._committed_count = 0
            self._state = SessionState.EMPTY
        self._notify()
        return discarded
