"""Data-driven heuristic tables for column inference and classification.

Everything here is ordered, immutable data consumed by small lookup helpers
elsewhere in the package. Tables are swappable: callers and tests may pass
their own tables where a function accepts one.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ColumnMapping

# ---------------------------------------------------------------------------
# Column role keywords (priority order within each role)
# ---------------------------------------------------------------------------

ROLE_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType(
    {
        "date": ("date", "transaction date", "posted date", "trans date", "post date"),
        "description": ("description", "memo", "details", "transaction", "merchant", "payee"),
        "amount": ("amount", "debit", "credit", "value", "total", "$"),
        "type": ("type", "transaction type", "debit/credit", "dr/cr"),
        "category": ("category", "merchant category", "classification"),
        "note": ("note", "memo", "reference", "check number"),
    }
)

# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

DEFAULT_CATEGORY = "Other"

CATEGORIES: tuple[str, ...] = (
    "Food",
    "Transportation",
    "Shopping",
    "Bills",
    "Entertainment",
    "Health",
    DEFAULT_CATEGORY,
)

# First matching entry wins.
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Food",
        ("restaurant", "cafe", "starbucks", "mcdonald", "food", "dining", "grocery",
         "supermarket", "walmart"),
    ),
    ("Transportation", ("gas", "fuel", "uber", "lyft", "taxi", "parking", "metro", "bus", "train")),
    ("Shopping", ("amazon", "target", "mall", "store", "retail", "purchase")),
    ("Bills", ("electric", "water", "internet", "phone", "utility", "bill", "payment", "service")),
    ("Entertainment", ("movie", "theater", "netflix", "spotify", "game", "entertainment")),
    ("Health", ("pharmacy", "hospital", "doctor", "medical", "health", "cvs")),
)

# ---------------------------------------------------------------------------
# Type column vocabulary (checked income first)
# ---------------------------------------------------------------------------

INCOME_WORDS: tuple[str, ...] = ("income", "deposit", "credit", "refund", "payment")
EXPENSE_WORDS: tuple[str, ...] = ("expense", "debit", "withdrawal", "purchase", "charge")


# ---------------------------------------------------------------------------
# Issuer profiles
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IssuerProfile:
    """A known export shape recognized from the mapping alone.

    ``date_contains`` is a substring test; ``description`` and ``amount`` are
    exact (case-insensitive) header names. A matching issuer reports charges as
    positive amounts. When ``drop_income`` is set, payments and credits are
    removed from the imported rows.
    """

    name: str
    date_contains: str
    description: str
    amount: str
    positive_is_expense: bool = True
    drop_income: bool = False

    def matches(self, mapping: ColumnMapping) -> bool:
        d = (mapping.date or "").lower()
        desc = (mapping.description or "").lower()
        amt = (mapping.amount or "").lower()
        return (
            self.date_contains in d
            and desc == self.description
            and amt == self.amount
        )


DISCOVER = IssuerProfile(
    name="discover",
    date_contains="trans. date",
    description="description",
    amount="amount",
    positive_is_expense=True,
    drop_income=True,
)

ISSUER_PROFILES: tuple[IssuerProfile, ...] = (DISCOVER,)


def match_issuer(
    mapping: ColumnMapping, profiles: tuple[IssuerProfile, ...] = ISSUER_PROFILES
) -> IssuerProfile | None:
    for profile in profiles:
        if profile.matches(mapping):
            return profile
    return None


# ---------------------------------------------------------------------------
# Merchant normalization
# ---------------------------------------------------------------------------

MERCHANT_NOISE_RE = re.compile(
    r"\b(pos|purchase|check ?card|visa|debit|credit|payment|auth|id)\b", re.IGNORECASE
)
STORE_NUMBER_RE = re.compile(r"#?\d{3,}")

MERCHANT_CHAINS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), name)
    for pattern, name in (
        (r"walmart|wal\s*mart", "Walmart"),
        (r"target", "Target"),
        (r"costco", "Costco"),
        (r"kroger", "Kroger"),
        (r"safeway", "Safeway"),
        (r"amazon", "Amazon"),
        (r"starbucks", "Starbucks"),
        (r"mcdonald", "McDonald's"),
        (r"chipotle", "Chipotle"),
        (r"shell", "Shell"),
        (r"chevron", "Chevron"),
        (r"exxon", "Exxon"),
        (r"netflix", "Netflix"),
        (r"spotify", "Spotify"),
        (r"apple\s*(store|services)?", "Apple"),
        (r"google", "Google"),
    )
)

GENERIC_MERCHANT_WORDS: frozenset[str] = frozenset(
    {"store", "market", "super", "supermarket", "gas", "fuel", "restaurant", "cafe", "co", "inc"}
)


__all__ = [
    "ROLE_KEYWORDS",
    "DEFAULT_CATEGORY",
    "CATEGORIES",
    "CATEGORY_KEYWORDS",
    "INCOME_WORDS",
    "EXPENSE_WORDS",
    "IssuerProfile",
    "DISCOVER",
    "ISSUER_PROFILES",
    "match_issuer",
    "MERCHANT_NOISE_RE",
    "STORE_NUMBER_RE",
    "MERCHANT_CHAINS",
    "GENERIC_MERCHANT_WORDS",
]
