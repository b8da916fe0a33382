"""Runtime tunables for the import pipeline.

All values come from environment variables (a ``.env`` is loaded by the CLI)
and fall back to defaults when unset or malformed. A malformed value is logged
and ignored rather than failing the process.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

from .logging_setup import get_logger

_logger = get_logger("statement_import.settings")

type EnrichmentMode = Literal["auto", "openai", "off"]

_MIB = 1024 * 1024


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        _logger.warning("settings:invalid_int name=%s value=%r default=%d", name, raw, default)
        return default
    if value < minimum:
        _logger.warning("settings:out_of_range name=%s value=%d default=%d", name, value, default)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        _logger.warning("settings:invalid_float name=%s value=%r default=%s", name, raw, default)
        return default
    return value if value > 0 else default


def _env_enrichment_mode() -> EnrichmentMode:
    raw = (os.getenv("SI_ENRICHMENT") or "auto").strip().lower()
    if raw in {"0", "false", "no", "off"}:
        return "off"
    if raw == "openai":
        return "openai"
    if raw != "auto":
        _logger.warning("settings:invalid_enrichment_mode value=%r default=auto", raw)
    return "auto"


@dataclass(frozen=True, slots=True)
class ImportSettings:
    max_upload_bytes: int = 25 * _MIB
    preview_rows: int = 20
    recent_window: int = 5000
    csv_peek_bytes: int = 256 * 1024
    enrich_batch_limit: int = 200
    enrich_timeout_sec: float = 15.0
    enrichment: EnrichmentMode = "auto"
    openai_model: str = "gpt-4o-mini"
    commit_chunk_size: int = 500
    job_workers: int = 2

    @classmethod
    def from_env(cls) -> ImportSettings:
        defaults = cls()
        return cls(
            max_upload_bytes=_env_int("SI_MAX_UPLOAD_BYTES", defaults.max_upload_bytes),
            preview_rows=_env_int("SI_PREVIEW_ROWS", defaults.preview_rows),
            recent_window=_env_int("SI_RECENT_WINDOW", defaults.recent_window),
            csv_peek_bytes=_env_int("SI_CSV_PEEK_BYTES", defaults.csv_peek_bytes),
            enrich_batch_limit=_env_int("SI_ENRICH_BATCH_LIMIT", defaults.enrich_batch_limit),
            enrich_timeout_sec=_env_float("SI_ENRICH_TIMEOUT_SEC", defaults.enrich_timeout_sec),
            enrichment=_env_enrichment_mode(),
            openai_model=(os.getenv("SI_OPENAI_MODEL") or "").strip() or defaults.openai_model,
            commit_chunk_size=_env_int("SI_COMMIT_CHUNK_SIZE", defaults.commit_chunk_size),
            job_workers=_env_int("SI_JOB_WORKERS", defaults.job_workers),
        )


__all__ = ["EnrichmentMode", "ImportSettings"]
