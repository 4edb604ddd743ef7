"""Category vocabulary handling.

Remote models and heuristics both propose free-form names; everything goes
through :func:`resolve_category` so that only vocabulary members (or the
catch-all) ever reach a row.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

CATCH_ALL_CATEGORY = "Other"

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Groceries",
    "Restaurants",
    "Coffee",
    "Food Delivery",
    "Shopping",
    "Subscriptions",
    "Utilities",
    "Housing",
    "Public Transport",
    "Taxi/Rideshare",
    "Fuel",
    "Parking",
    "Travel",
    "Health & Fitness",
    "Entertainment",
    "Insurance",
    "Taxes",
    "Bank Fees",
    "Cash Withdrawal",
    "Salary",
    "Bonus",
    "Refunds",
    "Income",
    "Transfers",
    "Savings",
    "Other",
)

# Lower-cased name -> candidates tried in order against the active vocabulary
CATEGORY_ALIASES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "grocery": ("Groceries",),
    "groceries": ("Groceries",),
    "grocery store": ("Groceries",),
    "supermarket": ("Groceries",),
    "food": ("Groceries", "Restaurants"),
    "dining": ("Restaurants",),
    "restaurant": ("Restaurants",),
    "restaurants": ("Restaurants",),
    "eating out": ("Restaurants",),
    "cafe": ("Coffee", "Restaurants"),
    "coffee": ("Coffee", "Restaurants"),
    "coffee shop": ("Coffee", "Restaurants"),
    "takeaway": ("Food Delivery", "Restaurants"),
    "takeaway/delivery": ("Food Delivery", "Restaurants"),
    "delivery": ("Food Delivery", "Restaurants"),
    "food delivery": ("Food Delivery", "Restaurants"),
    "subscription": ("Subscriptions",),
    "subscriptions": ("Subscriptions",),
    "streaming": ("Subscriptions", "Entertainment"),
    "shopping": ("Shopping",),
    "retail": ("Shopping",),
    "utility": ("Utilities",),
    "utilities": ("Utilities",),
    "bills": ("Utilities",),
    "rent": ("Housing",),
    "transport": ("Public Transport", "Transport"),
    "public transport": ("Public Transport", "Transport"),
    "transportation": ("Public Transport", "Transport"),
    "taxi": ("Taxi/Rideshare", "Transport"),
    "rideshare": ("Taxi/Rideshare", "Transport"),
    "taxi/rideshare": ("Taxi/Rideshare", "Transport"),
    "gas": ("Fuel", "Transport"),
    "fuel": ("Fuel", "Transport"),
    "parking": ("Parking", "Transport"),
    "travel": ("Travel",),
    "health": ("Health & Fitness",),
    "fitness": ("Health & Fitness",),
    "health & fitness": ("Health & Fitness",),
    "bank fee": ("Bank Fees",),
    "bank fees": ("Bank Fees",),
    "fee": ("Bank Fees",),
    "fees": ("Bank Fees",),
    "atm": ("Cash Withdrawal", "Bank Fees"),
    "cash": ("Cash Withdrawal", "Bank Fees"),
    "cash withdrawal": ("Cash Withdrawal", "Bank Fees"),
    "salary": ("Salary", "Income"),
    "payroll": ("Salary", "Income"),
    "income": ("Income", "Salary"),
    "bonus": ("Bonus", "Income"),
    "refund": ("Refunds", "Income"),
    "refunds": ("Refunds", "Income"),
    "transfer": ("Transfers",),
    "transfers": ("Transfers",),
    "savings": ("Savings",),
})


def normalize_vocabulary(categories: Iterable[str] | None) -> list[str]:
    """Trim names and drop blanks and case-insensitive duplicates, keeping order."""
    if categories is None:
        return list(DEFAULT_CATEGORIES)
    seen: set[str] = set()
    vocabulary: list[str] = []
    for name in categories:
        if not isinstance(name, str):
            continue
        cleaned = name.strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        vocabulary.append(cleaned)
    return vocabulary


def catch_all_category(vocabulary: Iterable[str]) -> str:
    for name in vocabulary:
        if name.lower() == CATCH_ALL_CATEGORY.lower():
            return name
    return CATCH_ALL_CATEGORY


def _lookup(name: str, vocabulary: Iterable[str]) -> str | None:
    lower = name.strip().lower()
    for candidate in vocabulary:
        if candidate.lower() == lower:
            return candidate
    return None


def resolve_category(name: str | None, vocabulary: list[str]) -> str:
    """Map a proposed name onto the vocabulary.

    Exact case-insensitive match first, then the alias table, then the
    catch-all.
    """
    if name and name.strip():
        exact = _lookup(name, vocabulary)
        if exact:
            return exact
        for candidate in CATEGORY_ALIASES.get(name.strip().lower(), ()):
            aliased = _lookup(candidate, vocabulary)
            if aliased:
                return aliased
    return catch_all_category(vocabulary)


def is_catch_all(category: str | None, vocabulary: list[str]) -> bool:
    if not category:
        return True
    return category.lower() == catch_all_category(vocabulary).lower()
