"""
Transaction Category Taxonomy

The app works with a CLOSED set of categories. Everything that comes from
outside (the statement classification service, older saved data, manual
entry) is funnelled into this set.

DESIGN DECISION: Category mapping is total. An unknown, empty or missing
label becomes OTHER - it never raises. One odd label from the classifier
must not block the import of a whole statement.
"""

from enum import Enum
from typing import Optional


class TransactionCategory(str, Enum):
    """
    Canonical transaction categories.

    The value is the display label shown to the user.
    """
    SALARY = "Salary"
    FREELANCE = "Freelance"
    INVESTMENT = "Investment"
    TRANSFER = "Transfer"
    SHOPPING = "Shopping"
    FOOD = "Food"
    HOUSING = "Housing"
    TRANSPORT = "Transport"
    HEALTH = "Health"
    ENTERTAINMENT = "Entertainment"
    UTILITIES = "Utilities"
    SUBSCRIPTIONS = "Subscriptions"
    OTHER = "Other"

    @property
    def is_income(self) -> bool:
        """Income categories are shown on the positive side of the ledger."""
        return self in _INCOME_CATEGORIES

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @property
    def color(self) -> str:
        """Hex color token for chips, dots and bars."""
        return _COLORS[self]

    @property
    def soft_color(self) -> str:
        """The color token at 18% opacity, for icon backgrounds."""
        hex_value = self.color.lstrip("#")
        red, green, blue = (int(hex_value[i:i + 2], 16) for i in (0, 2, 4))
        return f"rgba({red}, {green}, {blue}, 0.18)"

    @classmethod
    def from_label(cls, label: str) -> "TransactionCategory":
        """
        Look up a category by its display label.

        Unlike normalize_category(), this is strict: it is used for values
        the app itself produced (filter chips, saved data).

        Raises:
            ValueError: If the label is not a known category
        """
        for category in cls:
            if category.value == label:
                return category
        raise ValueError(f"Unknown category label: {label!r}")


_INCOME_CATEGORIES = frozenset({
    TransactionCategory.SALARY,
    TransactionCategory.FREELANCE,
    TransactionCategory.INVESTMENT,
})

# Theme palette
_GREEN = "#10B981"
_ACCENT = "#5D5CDE"
_YELLOW = "#F59E0B"
_MUTED = "#6B7280"
_ORANGE = "#F97316"
_TEAL = "#06B6D4"

_ICONS = {
    TransactionCategory.SALARY: "💼",
    TransactionCategory.FREELANCE: "💻",
    TransactionCategory.INVESTMENT: "📈",
    TransactionCategory.TRANSFER: "🔁",
    TransactionCategory.SHOPPING: "🛍️",
    TransactionCategory.FOOD: "🍽️",
    TransactionCategory.HOUSING: "🏠",
    TransactionCategory.TRANSPORT: "🚕",
    TransactionCategory.HEALTH: "💊",
    TransactionCategory.ENTERTAINMENT: "🎬",
    TransactionCategory.UTILITIES: "💡",
    TransactionCategory.SUBSCRIPTIONS: "📺",
    TransactionCategory.OTHER: "📦",
}

_COLORS = {
    TransactionCategory.SALARY: _GREEN,
    TransactionCategory.FREELANCE: _ACCENT,
    TransactionCategory.INVESTMENT: _YELLOW,
    TransactionCategory.TRANSFER: _MUTED,
    TransactionCategory.SHOPPING: _ORANGE,
    TransactionCategory.FOOD: "#FF6B9D",
    TransactionCategory.HOUSING: "#F7B731",
    TransactionCategory.TRANSPORT: _TEAL,
    TransactionCategory.HEALTH: "#FF5F6D",
    TransactionCategory.ENTERTAINMENT: _ACCENT,
    TransactionCategory.UTILITIES: _YELLOW,
    TransactionCategory.SUBSCRIPTIONS: "#A78BFA",
    TransactionCategory.OTHER: _MUTED,
}

# Default color for labels that are not a category (e.g. the "All" chip)
MUTED_COLOR = _MUTED


# =============================================================================
# LABEL TRANSLATION TABLE
# =============================================================================

# Keys are lower-cased. The classifier answers in Russian for the Kazakh
# banks (Kaspi, Halyk, Freedom, Jusan) and sometimes in English.
CATEGORY_SYNONYMS: dict[str, TransactionCategory] = {
    # Transfers
    "переводы": TransactionCategory.TRANSFER,
    "перевод": TransactionCategory.TRANSFER,
    "transfer": TransactionCategory.TRANSFER,
    "transfers": TransactionCategory.TRANSFER,

    # Shopping and marketplaces
    "покупки": TransactionCategory.SHOPPING,
    "маркетплейсы": TransactionCategory.SHOPPING,
    "shopping": TransactionCategory.SHOPPING,
    "marketplace": TransactionCategory.SHOPPING,
    "marketplaces": TransactionCategory.SHOPPING,

    # Groceries count as food
    "супермаркеты": TransactionCategory.FOOD,
    "продукты": TransactionCategory.FOOD,
    "groceries": TransactionCategory.FOOD,
    "supermarket": TransactionCategory.FOOD,
    "supermarkets": TransactionCategory.FOOD,

    # Restaurants and cafes
    "рестораны и кафе": TransactionCategory.FOOD,
    "рестораны": TransactionCategory.FOOD,
    "кафе": TransactionCategory.FOOD,
    "food": TransactionCategory.FOOD,
    "cafe": TransactionCategory.FOOD,
    "restaurant": TransactionCategory.FOOD,
    "restaurants": TransactionCategory.FOOD,

    "транспорт": TransactionCategory.TRANSPORT,
    "такси": TransactionCategory.TRANSPORT,
    "transport": TransactionCategory.TRANSPORT,
    "taxi": TransactionCategory.TRANSPORT,

    "подписки": TransactionCategory.SUBSCRIPTIONS,
    "subscriptions": TransactionCategory.SUBSCRIPTIONS,
    "subscription": TransactionCategory.SUBSCRIPTIONS,

    "здоровье": TransactionCategory.HEALTH,
    "аптеки": TransactionCategory.HEALTH,
    "health": TransactionCategory.HEALTH,
    "pharmacy": TransactionCategory.HEALTH,

    "развлечения": TransactionCategory.ENTERTAINMENT,
    "entertainment": TransactionCategory.ENTERTAINMENT,

    # Utilities
    "коммунальные": TransactionCategory.UTILITIES,
    "коммунальные услуги": TransactionCategory.UTILITIES,
    "utilities": TransactionCategory.UTILITIES,
    "communal": TransactionCategory.UTILITIES,

    "жильё": TransactionCategory.HOUSING,
    "жилье": TransactionCategory.HOUSING,
    "аренда": TransactionCategory.HOUSING,
    "housing": TransactionCategory.HOUSING,
    "rent": TransactionCategory.HOUSING,

    # Income
    "зарплата": TransactionCategory.SALARY,
    "salary": TransactionCategory.SALARY,
    "фриланс": TransactionCategory.FREELANCE,
    "freelance": TransactionCategory.FREELANCE,
    "инвестиции": TransactionCategory.INVESTMENT,
    "investment": TransactionCategory.INVESTMENT,
    "investments": TransactionCategory.INVESTMENT,

    "другое": TransactionCategory.OTHER,
    "other": TransactionCategory.OTHER,
}


def normalize_category(raw_label: Optional[str]) -> TransactionCategory:
    """
    Map a free-text label from the classifier to a canonical category.

    Matching is exact after trimming and lower-casing, so "Рестораны и кафе"
    and " FOOD " both land on FOOD while "food court" does not.

    Args:
        raw_label: Label as sent by the server (may be None or empty)

    Returns:
        The matching category, or OTHER when nothing matches
    """
    if not isinstance(raw_label, str):
        return TransactionCategory.OTHER

    key = raw_label.strip().lower()
    if not key:
        return TransactionCategory.OTHER

    return CATEGORY_SYNONYMS.get(key, TransactionCategory.OTHER)
