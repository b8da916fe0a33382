# ruff: noqa: I001
"""
Alembic environment for the statement-import ledger tables.

``DATABASE_URL`` (optionally from a workspace ``.env``) takes precedence over
``sqlalchemy.url`` in ``alembic.ini``. SQLite targets run in batch mode so
column alterations work without native ``ALTER`` support.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from dotenv import load_dotenv, find_dotenv

import db as _db_pkg

config = context.config
target_metadata = _db_pkg.metadata

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _resolve_url() -> str:
    # usecwd=True finds the repo .env from either the repo root or libs/db
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(dotenv_path=env_file, override=False)

    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError(
            "No database configured: export DATABASE_URL or set sqlalchemy.url in alembic.ini"
        )
    config.set_main_option("sqlalchemy.url", url)
    return url


def _configure(**kwargs: object) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline(url: str) -> None:
    """Emit migration SQL to stdout without connecting."""
    _configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})


def run_migrations_online(url: str) -> None:
    """Apply migrations over a short-lived NullPool connection."""
    section = dict(config.get_section(config.config_ini_section) or {})
    section["sqlalchemy.url"] = url
    engine = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _configure(
                connection=connection,
                render_as_batch=connection.dialect.name == "sqlite",
            )
    finally:
        engine.dispose()


_url = _resolve_url()
if context.is_offline_mode():
    run_migrations_offline(_url)
else:
    run_migrations_online(_url)
