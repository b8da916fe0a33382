"""Pytest configuration for test isolation.

Tests never reach the network: ``OPENAI_API_KEY`` is removed and enrichment is
switched off through ``SI_ENRICHMENT`` unless a test opts back in. Database
tests get a fresh file-backed SQLite database per test (``db_url``); cached
engines are disposed afterwards so no connection outlives its file.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from db.client import dispose_engines
from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep tests hermetic with respect to OpenAI and the ambient database."""

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("SI_ENRICHMENT", "off")


@pytest.fixture
def db_url(tmp_path: Path) -> Iterator[str]:
    url = bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")
    yield url
    dispose_engines()
