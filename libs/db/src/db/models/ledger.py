from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr

# SQLite only auto-increments an ``INTEGER PRIMARY KEY`` (rowid alias).
_PK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: si_transactions
# ---------------------------


class SiTransaction(Base):
    __tablename__ = "si_transactions"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # sha256 over account|date|amount(2dp)|normalized description; the
    # idempotency key for imports. Manual entry must compute the same shape.
    dedupe_hash: Mapped[str] = mapped_column(CHAR(64), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    # Minor units are the source of truth; polarity lives in ``type``.
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, server_default=text("'[]'"))
    merchant_canonical: Mapped[str | None] = mapped_column(Text, nullable=True)
    category_suggested: Mapped[str | None] = mapped_column(String, nullable=True)
    category_confidence: Mapped[Decimal | None] = mapped_column(Numeric(3, 2), nullable=True)
    source: Mapped[str] = mapped_column(String, nullable=False, server_default=text("'import'"))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "dedupe_hash", name="uq_si_tx_user_dedupe_hash"),
        Index("ix_si_tx_user_date", "user_id", "date"),
        CheckConstraint("type in ('expense','income')", name="ck_si_tx_type"),
        CheckConstraint("amount_cents >= 0", name="ck_si_tx_amount_non_negative"),
        CheckConstraint("source in ('import','manual')", name="ck_si_tx_source"),
        CheckConstraint(
            (
                "category_confidence IS NULL OR "
                "(category_confidence >= 0 AND category_confidence <= 1)"
            ),
            name="ck_si_tx_category_confidence",
        ),
    )


# ---------------------------
# User rules: si_import_rules
# ---------------------------


class SiImportRule(Base):
    __tablename__ = "si_import_rules"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # Rules without an explicit order sort after ordered ones.
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=sa_expr.true())
    match_field: Mapped[str] = mapped_column(String, nullable=False)
    match_kind: Mapped[str] = mapped_column(String, nullable=False)
    match_value: Mapped[str] = mapped_column(Text, nullable=False)
    set_category: Mapped[str | None] = mapped_column(String, nullable=True)
    set_tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, server_default=text("'[]'"))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_si_rules_user_order", "user_id", "sort_order"),
        CheckConstraint(
            "match_field in ('description','note','merchant_canonical')",
            name="ck_si_rules_match_field",
        ),
        CheckConstraint("match_kind in ('contains','regex')", name="ck_si_rules_match_kind"),
    )


# ---------------------------
# Saved mappings: si_import_presets
# ---------------------------


class SiImportPreset(Base):
    __tablename__ = "si_import_presets"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    # sha256 of the sorted, lower-cased header set (see ingest.columns).
    signature: Mapped[str] = mapped_column(CHAR(64), nullable=False)
    mapping: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "signature", name="uq_si_presets_user_signature"),
    )


__all__ = [
    "Base",
    "SiTransaction",
    "SiImportRule",
    "SiImportPreset",
]
