"""Pure field normalizers: dates, amounts, transaction type and category.

All functions raise ``ValueError`` with a short reason on input they cannot
interpret. Nothing here defaults a bad value to "today" or to zero; the row
mapper turns the failure into a row-level error.
"""

from __future__ import annotations

import datetime as dt
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from openpyxl.utils.datetime import MAC_EPOCH, WINDOWS_EPOCH, from_excel

from .heuristics import (
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORY,
    EXPENSE_WORDS,
    INCOME_WORDS,
    IssuerProfile,
)
from .models import Cell, SignPolicy, TransactionType

CENTS = Decimal("0.01")

# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_US_SLASH_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_US_DASH_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_TIMESTAMP_PREFIX_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?=$|[ T])")


def epoch_for_datemode(datemode: int) -> dt.datetime:
    """Map an Excel ``datemode`` flag (0 = 1900 system, 1 = 1904) to its epoch."""
    return MAC_EPOCH if datemode == 1 else WINDOWS_EPOCH


def _calendar(year: str, month: str, day: str) -> str:
    try:
        return dt.date(int(year), int(month), int(day)).isoformat()
    except ValueError as exc:
        raise ValueError(f"not a calendar date: {year}-{month}-{day}") from exc


def _serial_to_iso(serial: float, epoch: dt.datetime) -> str:
    if not math.isfinite(serial) or serial < 1:
        raise ValueError(f"invalid spreadsheet serial date: {serial!r}")
    try:
        value = from_excel(serial, epoch)
    except (OverflowError, ValueError) as exc:
        raise ValueError(f"invalid spreadsheet serial date: {serial!r}") from exc
    if not isinstance(value, dt.datetime):
        raise ValueError(f"invalid spreadsheet serial date: {serial!r}")
    return value.date().isoformat()


def normalize_date(value: Cell, *, epoch: dt.datetime = WINDOWS_EPOCH) -> str:
    """Return the canonical ``YYYY-MM-DD`` for a date cell.

    Parameters
    ----------
    value:
        A typed spreadsheet cell (``date``/``datetime`` or a numeric serial)
        or text in one of ``YYYY-MM-DD`` (single-digit month and day allowed),
        ``MM/DD/YYYY``, ``MM-DD-YYYY`` or a timestamp such as
        ``2024-01-05 13:45:00`` / ``2024-01-05T13:45``.
    epoch:
        Epoch of the originating workbook's date system, used for serials.
    """

    if value is None:
        raise ValueError("date is empty")
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, bool):
        raise ValueError(f"unsupported date value: {value!r}")
    if isinstance(value, int | float | Decimal):
        return _serial_to_iso(float(value), epoch)

    s = str(value).strip()
    if not s:
        raise ValueError("date is empty")

    m = _ISO_RE.match(s)
    if m:
        return _calendar(m.group(1), m.group(2), m.group(3))
    m = _US_SLASH_RE.match(s) or _US_DASH_RE.match(s)
    if m:
        return _calendar(m.group(3), m.group(1), m.group(2))
    m = _TIMESTAMP_PREFIX_RE.match(s)
    if m:
        return _calendar(m.group(1), m.group(2), m.group(3))
    raise ValueError(f"unsupported date format: {s!r}")


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_MINUS_SIGNS = ("-", "−")
_CURRENCY_SYMBOLS = ("$", "€", "£", "¥", "₹")
_PLAIN_NUMBER_RE = re.compile(r"^(?:\d+\.?\d*|\.\d+)$")


def normalize_amount(value: Cell) -> Decimal:
    """Return the signed decimal amount of a cell.

    Accepts numeric cells and strings such as ``"$1,234.56"``,
    ``"(1,234.56)"``, ``"-1234.56"``, ``"− 12.00"`` or ``"-($5)"``.
    Parentheses and leading minus signs mark a negative value.
    """

    if value is None:
        raise ValueError("amount is empty")
    if isinstance(value, bool) or isinstance(value, dt.date):
        raise ValueError(f"unsupported amount value: {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"invalid amount: {value!r}")
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"invalid amount: {value!r}")
        # repr() keeps the shortest round-tripping form (1234.56, not 1234.5599...)
        return Decimal(repr(value))

    raw = str(value)
    s = raw.strip()
    if not s:
        raise ValueError("amount is empty")

    negative = False
    # Strip sign, currency and surrounding parentheses in any order until stable.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith(_MINUS_SIGNS):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s.startswith(_CURRENCY_SYMBOLS):
            s = s[1:].lstrip()
            changed = True
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    # "," is always a thousands separator: "1,50" reads as 150, never 1.50
    s = "".join(s.split()).replace(",", "")
    if not _PLAIN_NUMBER_RE.match(s):
        raise ValueError(f"invalid amount: {raw.strip()!r}")
    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid amount: {raw.strip()!r}") from exc
    return -d if negative else d


def to_cents(amount: Decimal) -> int:
    """Integer minor units, rounding half up."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quantize_amount(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Type inference and categorization
# ---------------------------------------------------------------------------


def _contains_any(text: str, words: tuple[str, ...]) -> bool:
    return any(w in text for w in words)


def infer_type(
    signed_amount: Decimal,
    *,
    issuer: IssuerProfile | None = None,
    type_value: Cell = None,
    sign_policy: SignPolicy = SignPolicy.NEGATIVE_IS_INCOME,
) -> TransactionType:
    """Decide expense vs income.

    Priority: a recognized issuer profile, then an explicit type column matched
    against the income/expense vocabulary, then ``sign_policy`` applied to the
    sign of ``signed_amount``.
    """

    if issuer is not None:
        positive = signed_amount > 0
        if positive == issuer.positive_is_expense:
            return TransactionType.EXPENSE
        return TransactionType.INCOME

    if type_value is not None:
        t = str(type_value).strip().lower()
        if t:
            if _contains_any(t, INCOME_WORDS):
                return TransactionType.INCOME
            if _contains_any(t, EXPENSE_WORDS):
                return TransactionType.EXPENSE

    if sign_policy is SignPolicy.NEGATIVE_IS_EXPENSE:
        return TransactionType.INCOME if signed_amount > 0 else TransactionType.EXPENSE
    return TransactionType.INCOME if signed_amount < 0 else TransactionType.EXPENSE


def categorize_description(
    description: str,
    table: tuple[tuple[str, tuple[str, ...]], ...] = CATEGORY_KEYWORDS,
    default: str = DEFAULT_CATEGORY,
) -> str:
    """Naive keyword categorizer; first matching category wins."""
    desc = description.lower()
    for category, keywords in table:
        if _contains_any(desc, keywords):
            return category
    return default


__all__ = [
    "CENTS",
    "epoch_for_datemode",
    "normalize_date",
    "normalize_amount",
    "to_cents",
    "quantize_amount",
    "infer_type",
    "categorize_description",
]
