# ruff: noqa: I001
"""Ledger core tables: transactions, import rules, import presets.

Revision ID: 0001_si_core
Revises: None
Create Date: 2026-10-17
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_si_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


# SQLite only auto-increments an ``INTEGER PRIMARY KEY`` (rowid alias).
_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "si_transactions",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), nullable=True),
        sa.Column("dedupe_hash", sa.CHAR(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("merchant_canonical", sa.Text(), nullable=True),
        sa.Column("category_suggested", sa.String(), nullable=True),
        sa.Column("category_confidence", sa.Numeric(3, 2), nullable=True),
        sa.Column("source", sa.String(), nullable=False, server_default=sa.text("'import'")),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "dedupe_hash", name="uq_si_tx_user_dedupe_hash"),
        sa.CheckConstraint("type in ('expense','income')", name="ck_si_tx_type"),
        sa.CheckConstraint("amount_cents >= 0", name="ck_si_tx_amount_non_negative"),
        sa.CheckConstraint("source in ('import','manual')", name="ck_si_tx_source"),
        sa.CheckConstraint(
            "category_confidence IS NULL OR "
            "(category_confidence >= 0 AND category_confidence <= 1)",
            name="ck_si_tx_category_confidence",
        ),
    )
    op.create_index("ix_si_tx_user_date", "si_transactions", ["user_id", "date"])

    op.create_table(
        "si_import_rules",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("match_field", sa.String(), nullable=False),
        sa.Column("match_kind", sa.String(), nullable=False),
        sa.Column("match_value", sa.Text(), nullable=False),
        sa.Column("set_category", sa.String(), nullable=True),
        sa.Column("set_tags", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        *_timestamps(),
        sa.CheckConstraint(
            "match_field in ('description','note','merchant_canonical')",
            name="ck_si_rules_match_field",
        ),
        sa.CheckConstraint("match_kind in ('contains','regex')", name="ck_si_rules_match_kind"),
    )
    op.create_index("ix_si_rules_user_order", "si_import_rules", ["user_id", "sort_order"])

    op.create_table(
        "si_import_presets",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("signature", sa.CHAR(64), nullable=False),
        sa.Column("mapping", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "signature", name="uq_si_presets_user_signature"),
    )


def downgrade() -> None:
    op.drop_table("si_import_presets")
    op.drop_index("ix_si_rules_user_order", table_name="si_import_rules")
    op.drop_table("si_import_rules")
    op.drop_index("ix_si_tx_user_date", table_name="si_transactions")
    op.drop_table("si_transactions")
