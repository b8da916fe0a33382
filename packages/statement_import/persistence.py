# ruff: noqa: I001
"""Persistence integration for ``statement_import``.

Functions here read and write the shared ledger tables owned by ``libs/db``
(``si_transactions``, ``si_import_rules``, ``si_import_presets``). Every
function takes an open SQLAlchemy ``Session``; transaction boundaries belong
to the caller (see ``db.client.session_scope``).

Scope:
- Transaction store: recent records for duplicate estimation and the
  per-row conditional upsert keyed by ``(user_id, dedupe_hash)``.
- Rule store: ordered enabled rules plus save/list/delete.
- Preset store: saved column mappings keyed by header signature.
- Re-applying rules to already persisted records.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from db.models.ledger import SiImportPreset, SiImportRule, SiTransaction
from .heuristics import DEFAULT_CATEGORY
from .logging_setup import get_logger
from .models import (
    ColumnMapping,
    HashedTransaction,
    ImportPreset,
    ImportRowError,
    ImportRule,
    RecentTransaction,
    RuleAction,
    RuleCondition,
)
from .normalizers import to_cents
from .rules import first_match, merge_tags, order_rules

_logger = get_logger("statement_import.persistence")

_TX_TABLE = SiTransaction.__table__
_CONFLICT_KEYS = ["user_id", "dedupe_hash"]
_OVERWRITE_COLUMNS = (
    "account_id",
    "date",
    "description",
    "type",
    "amount_cents",
    "category",
    "note",
    "tags",
    "merchant_canonical",
    "category_suggested",
    "category_confidence",
    "source",
)


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UpsertOutcome:
    processed: int
    inserted: int
    updated: int
    errors: list[ImportRowError] = field(default_factory=list)


def _insert_factory(session: Session) -> Callable[[Any], Any]:
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Unsupported database dialect for upserts: {dialect}")


def _confidence(value: float | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def transaction_values(
    *, user_id: str, item: HashedTransaction, account_id: str | None = None
) -> dict[str, Any]:
    """Column values of the persisted form of ``item``."""

    tx = item.tx
    return {
        "user_id": user_id,
        "account_id": account_id,
        "dedupe_hash": item.dedupe_hash,
        "date": dt.date.fromisoformat(tx.date),
        "description": tx.description,
        "type": tx.type.value,
        "amount_cents": to_cents(tx.amount),
        "category": tx.category or tx.category_suggested or DEFAULT_CATEGORY,
        "note": tx.note,
        "tags": list(tx.tags),
        "merchant_canonical": tx.merchant_canonical,
        "category_suggested": tx.category_suggested,
        "category_confidence": _confidence(tx.category_confidence),
        "source": "import",
    }


def find_existing_hashes(session: Session, *, user_id: str, hashes: Iterable[str]) -> set[str]:
    wanted = list(dict.fromkeys(hashes))
    if not wanted:
        return set()
    stmt = select(SiTransaction.dedupe_hash).where(
        SiTransaction.user_id == user_id, SiTransaction.dedupe_hash.in_(wanted)
    )
    return set(session.scalars(stmt))


def find_recent(session: Session, *, user_id: str, limit: int) -> list[RecentTransaction]:
    """Most recent ``limit`` records of ``user_id`` (by transaction date)."""

    stmt = (
        select(
            SiTransaction.dedupe_hash,
            SiTransaction.date,
            SiTransaction.amount_cents,
            SiTransaction.description,
        )
        .where(SiTransaction.user_id == user_id)
        .order_by(SiTransaction.date.desc(), SiTransaction.id.desc())
        .limit(limit)
    )
    return [
        RecentTransaction(
            dedupe_hash=h,
            date=d.isoformat(),
            amount=Decimal(cents) / 100,
            description=desc,
        )
        for h, d, cents, desc in session.execute(stmt)
    ]


def find_recent_hashes(session: Session, *, user_id: str, limit: int) -> set[str]:
    return {r.dedupe_hash for r in find_recent(session, user_id=user_id, limit=limit) if r.dedupe_hash}


def bulk_upsert_by_hash(
    session: Session,
    *,
    user_id: str,
    items: Sequence[HashedTransaction],
    overwrite: bool = False,
    account_id: str | None = None,
) -> UpsertOutcome:
    """Upsert ``items`` one row at a time, keyed by ``(user_id, dedupe_hash)``.

    Each row runs in its own SAVEPOINT so a row rejected by the database is
    reported as an ``ImportRowError`` (field ``persistence``) while the other
    rows still apply. Without ``overwrite`` an existing row is left untouched;
    with it, the stored values are replaced and the row counts as updated
    when the hash was stored before this batch.

    Integrity and data errors are per-row; any other database error propagates.
    """

    insert = _insert_factory(session)
    existing = find_existing_hashes(session, user_id=user_id, hashes=(i.dedupe_hash for i in items))
    seen = set(existing)
    inserted = updated = 0
    errors: list[ImportRowError] = []

    for item in items:
        values = transaction_values(user_id=user_id, item=item, account_id=account_id)
        stmt = insert(_TX_TABLE).values(**values)
        if overwrite:
            stmt = stmt.on_conflict_do_update(
                index_elements=_CONFLICT_KEYS,
                set_={
                    **{name: getattr(stmt.excluded, name) for name in _OVERWRITE_COLUMNS},
                    "updated_at": func.now(),
                },
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=_CONFLICT_KEYS)

        try:
            with session.begin_nested():
                result = session.execute(stmt)
        except (IntegrityError, DataError) as exc:
            message = str(exc.orig) if exc.orig is not None else str(exc)
            _logger.warning(
                "bulk_upsert:row_failed user_id=%s row=%d error=%s", user_id, item.tx.row, message
            )
            errors.append(ImportRowError(row=item.tx.row, field="persistence", message=message))
            continue

        if item.dedupe_hash in seen:
            # a repeat of a hash first inserted by this batch is not an update
            if overwrite and result.rowcount and item.dedupe_hash in existing:
                updated += 1
        elif result.rowcount:
            inserted += 1
            seen.add(item.dedupe_hash)

    return UpsertOutcome(processed=len(items), inserted=inserted, updated=updated, errors=errors)


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _rule_from_row(row: SiImportRule) -> ImportRule:
    return ImportRule(
        id=row.id,
        name=row.name,
        sort_order=row.sort_order,
        enabled=row.enabled,
        when=RuleCondition(field=row.match_field, kind=row.match_kind, value=row.match_value),
        action=RuleAction(category=row.set_category, tags=tuple(row.set_tags or ())),
        created_at=row.created_at,
    )


def list_rules(session: Session, *, user_id: str, enabled_only: bool = False) -> list[ImportRule]:
    """Rules of ``user_id`` in evaluation order."""

    stmt = select(SiImportRule).where(SiImportRule.user_id == user_id)
    if enabled_only:
        stmt = stmt.where(SiImportRule.enabled.is_(True))
    return order_rules(_rule_from_row(r) for r in session.scalars(stmt))


def list_enabled_rules(session: Session, *, user_id: str) -> list[ImportRule]:
    return list_rules(session, user_id=user_id, enabled_only=True)


def save_rule(session: Session, *, user_id: str, rule: ImportRule) -> ImportRule:
    """Insert ``rule`` or, when it carries an ``id``, update that rule.

    Raises ``LookupError`` when ``rule.id`` does not name a rule of ``user_id``.
    """

    if rule.id is not None:
        row = session.scalar(
            select(SiImportRule).where(SiImportRule.id == rule.id, SiImportRule.user_id == user_id)
        )
        if row is None:
            raise LookupError(f"rule {rule.id} not found")
        row.updated_at = func.now()
    else:
        row = SiImportRule(user_id=user_id)
        session.add(row)

    row.name = rule.name
    row.sort_order = rule.sort_order
    row.enabled = rule.enabled
    row.match_field = rule.when.field
    row.match_kind = rule.when.kind
    row.match_value = rule.when.value
    row.set_category = rule.action.category
    row.set_tags = list(rule.action.tags)
    session.flush()
    session.refresh(row)
    _logger.info("save_rule:done user_id=%s rule_id=%d", user_id, row.id)
    return _rule_from_row(row)


def delete_rule(session: Session, *, user_id: str, rule_id: int) -> bool:
    result = session.execute(
        delete(SiImportRule).where(SiImportRule.id == rule_id, SiImportRule.user_id == user_id)
    )
    return bool(result.rowcount)


def apply_rules_to_existing(session: Session, *, user_id: str) -> int:
    """Re-run enabled rules over persisted records of ``user_id``.

    Only records whose category or tags actually change are written. Returns
    the number of updated records.
    """

    rules = list_enabled_rules(session, user_id=user_id)
    if not rules:
        return 0

    changed = 0
    stmt = select(SiTransaction).where(SiTransaction.user_id == user_id).order_by(SiTransaction.id)
    for row in session.scalars(stmt).all():
        rule = first_match(rules, lambda name, r=row: getattr(r, name))
        if rule is None:
            continue
        current_tags = list(row.tags or [])
        category = rule.action.category or row.category
        tags = list(merge_tags(current_tags, rule.action.tags)) if rule.action.tags else current_tags
        if category == row.category and tags == current_tags:
            continue
        row.category = category
        row.tags = tags
        row.updated_at = func.now()
        changed += 1

    session.flush()
    _logger.info("apply_rules_to_existing:done user_id=%s updated=%d", user_id, changed)
    return changed


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


def _preset_from_row(row: SiImportPreset) -> ImportPreset:
    return ImportPreset(
        id=row.id,
        name=row.name,
        signature=row.signature,
        mapping=ColumnMapping.model_validate(row.mapping),
    )


def find_preset(session: Session, *, user_id: str, signature: str) -> ImportPreset | None:
    row = session.scalar(
        select(SiImportPreset).where(
            SiImportPreset.user_id == user_id, SiImportPreset.signature == signature
        )
    )
    return _preset_from_row(row) if row is not None else None


def save_preset(
    session: Session,
    *,
    user_id: str,
    name: str,
    signature: str,
    mapping: ColumnMapping,
) -> ImportPreset:
    """Create or replace the preset of ``user_id`` for ``signature``."""

    row = session.scalar(
        select(SiImportPreset).where(
            SiImportPreset.user_id == user_id, SiImportPreset.signature == signature
        )
    )
    if row is None:
        row = SiImportPreset(user_id=user_id, signature=signature)
        session.add(row)
    else:
        row.updated_at = func.now()
    row.name = name
    row.mapping = mapping.model_dump(mode="json")
    session.flush()
    return _preset_from_row(row)


__all__ = [
    "UpsertOutcome",
    "transaction_values",
    "find_existing_hashes",
    "find_recent",
    "find_recent_hashes",
    "bulk_upsert_by_hash",
    "list_rules",
    "list_enabled_rules",
    "save_rule",
    "delete_rule",
    "apply_rules_to_existing",
    "find_preset",
    "save_preset",
]
