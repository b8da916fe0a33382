"""DB helpers for tests: bootstrap a temporary SQLite DB and seed records."""

from __future__ import annotations

import datetime as dt
from pathlib import Path

from sqlalchemy import select

from db import Base
from db.client import get_engine, session_scope
from db.models.ledger import SiTransaction


def bootstrap_sqlite_db(db_file: Path) -> str:
    """Create a SQLite database file, initialize the schema, and return the URL.

    Using a file-backed SQLite DB ensures multiple SQLAlchemy connections share
    the same state (in-memory DBs are per-connection by default).
    """

    url = f"sqlite+pysqlite:///{db_file}"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    engine = get_engine(database_url=url)
    Base.metadata.create_all(bind=engine)
    return url


def seed_transaction(
    *,
    database_url: str,
    user_id: str,
    dedupe_hash: str,
    date: str,
    description: str,
    amount_cents: int,
    type_: str = "expense",
    category: str | None = "Other",
    tags: list[str] | None = None,
) -> int:
    with session_scope(database_url=database_url) as session:
        row = SiTransaction(
            user_id=user_id,
            dedupe_hash=dedupe_hash,
            date=dt.date.fromisoformat(date),
            description=description,
            type=type_,
            amount_cents=amount_cents,
            category=category,
            tags=list(tags or []),
            source="manual",
        )
        session.add(row)
        session.flush()
        return row.id


def fetch_transactions(*, database_url: str, user_id: str) -> list[SiTransaction]:
    with session_scope(database_url=database_url) as session:
        stmt = (
            select(SiTransaction)
            .where(SiTransaction.user_id == user_id)
            .order_by(SiTransaction.date, SiTransaction.id)
        )
        return list(session.scalars(stmt))

