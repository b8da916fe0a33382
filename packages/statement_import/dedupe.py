"""Dedupe hashing and duplicate estimation.

The dedupe hash is the idempotency key of persisted transactions, unique per
user. Any writer of ``si_transactions`` (including manual entry) must build it
with :func:`compute_dedupe_hash` to stay compatible.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence
from decimal import Decimal

from .models import HashedTransaction, ImportableTransaction, RecentTransaction
from .normalizers import quantize_amount

AMOUNT_TOLERANCE = Decimal("0.01")
SIMILARITY_THRESHOLD = 0.8


def normalize_description(description: str) -> str:
    """Lower-case and collapse internal whitespace."""
    return " ".join(description.lower().split())


def compute_dedupe_hash(
    *,
    date: str,
    amount: Decimal,
    description: str,
    account_id: str | None = None,
) -> str:
    """SHA-256 hex of ``account|date|amount(2dp)|normalized description``.

    ``amount`` is the non-negative stored amount; ``date`` is ``YYYY-MM-DD``.
    """

    key = "|".join(
        (
            account_id or "",
            date,
            f"{quantize_amount(amount):.2f}",
            normalize_description(description),
        )
    )
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def hash_transactions(
    rows: Iterable[ImportableTransaction], *, account_id: str | None = None
) -> list[HashedTransaction]:
    return [
        HashedTransaction(
            tx=tx,
            dedupe_hash=compute_dedupe_hash(
                date=tx.date,
                amount=tx.amount,
                description=tx.description,
                account_id=account_id,
            ),
        )
        for tx in rows
    ]


def similar_strings(a: str, b: str, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    """Word-set Jaccard similarity; identical strings always match."""
    left = a.lower().strip()
    right = b.lower().strip()
    if left == right:
        return True
    words_a = set(left.split())
    words_b = set(right.split())
    union = words_a | words_b
    if not union:
        return False
    return len(words_a & words_b) / len(union) >= threshold


def estimate_duplicates(
    items: Sequence[HashedTransaction], recent: Sequence[RecentTransaction]
) -> list[HashedTransaction]:
    """Flag items that probably already exist among ``recent`` records.

    When any recent record carries a dedupe hash, membership in that hash set
    decides. Otherwise a record with the same date, an amount within one cent
    and a similar description counts as a duplicate.
    """

    hashes = {r.dedupe_hash for r in recent if r.dedupe_hash}
    if hashes:
        return [item for item in items if item.dedupe_hash in hashes]

    duplicates: list[HashedTransaction] = []
    for item in items:
        tx = item.tx
        for r in recent:
            if (
                r.date == tx.date
                and abs(r.amount - tx.amount) < AMOUNT_TOLERANCE
                and similar_strings(r.description, tx.description)
            ):
                duplicates.append(item)
                break
    return duplicates


__all__ = [
    "AMOUNT_TOLERANCE",
    "SIMILARITY_THRESHOLD",
    "normalize_description",
    "compute_dedupe_hash",
    "hash_transactions",
    "similar_strings",
    "estimate_duplicates",
]
