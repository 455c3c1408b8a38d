"""Category assignment for descriptions and store names.

Everything here is pure. :func:`categorize` works on statement descriptions
against the merchant dictionary; :func:`default_description` and
:func:`default_category` are the keyword heuristics used when a store is seen
for the first time and nothing has been learned about it yet.
"""

from __future__ import annotations

from decimal import Decimal

from .merchants import MerchantTables
from .models import DEFAULT_CATEGORY

UNKNOWN_PURCHASE = "Unknown Purchase"

# (label, keywords); first label with any keyword contained in the store wins.
DESCRIPTION_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Coffee", ("coffee", "cafe")),
    ("Petrol", ("petrol", "gas", "fuel", "shell", "engen", "sasol", "bp")),
    ("Groceries", ("grocery", "supermarket", "pick", "checkers", "woolworths", "spar")),
    ("Food", ("restaurant", "food", "mcdonalds", "kfc", "nandos")),
    ("Pharmacy", ("pharmacy", "dischem", "clicks")),
    ("Online Purchase", ("online", "takealot", "take2")),
)

# (upper bound exclusive, label) for stores no keyword recognizes.
AMOUNT_BUCKETS: tuple[tuple[Decimal, str], ...] = (
    (Decimal("50"), "Small Purchase"),
    (Decimal("200"), "Medium Purchase"),
    (Decimal("500"), "Large Purchase"),
)

CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Food",
        (
            "coffee", "cafe", "restaurant", "food", "dining", "grocery", "supermarket",
            "pick", "checkers", "woolworths", "spar", "mcdonalds", "kfc", "nandos",
        ),
    ),
    ("Transport", ("petrol", "gas", "fuel", "shell", "engen", "sasol", "bp", "station")),
    ("Healthcare", ("pharmacy", "dischem", "clicks", "medical", "health")),
    (
        "Entertainment",
        ("entertainment", "movie", "theater", "netflix", "spotify", "showmax", "dstv"),
    ),
    (
        "Bills",
        (
            "electric", "water", "internet", "phone", "bill", "utility",
            "municipality", "rates", "eskom",
        ),
    ),
)


def categorize(description: str, tables: MerchantTables) -> str:
    """Return the category for a statement description.

    Order: dictionary merchant (substring), then the first keyword pattern in
    table order with a keyword contained in the description, then
    ``"Other"``.
    """

    lowered = description.lower()
    for name, category in tables.merchants:
        if name.lower() in lowered:
            return category
    for category, keywords in tables.patterns:
        if any(k in lowered for k in keywords):
            return category
    return DEFAULT_CATEGORY


def default_description(store: str, amount: Decimal | None = None) -> str:
    store = store.strip()
    if not store:
        return UNKNOWN_PURCHASE
    lowered = store.lower()
    for label, keywords in DESCRIPTION_RULES:
        if any(k in lowered for k in keywords):
            return label
    if amount is not None:
        for bound, label in AMOUNT_BUCKETS:
            if amount < bound:
                return label
    return f"Purchase at {store}"


def default_category(store: str) -> str:
    lowered = store.strip().lower()
    for category, keywords in CATEGORY_RULES:
        if any(k in lowered for k in keywords):
            return category
    return DEFAULT_CATEGORY


__all__ = [
    "UNKNOWN_PURCHASE",
    "categorize",
    "default_category",
    "default_description",
]
