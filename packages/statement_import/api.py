"""Public API of the ``statement_import`` package.

Boundary operations over an uploaded file (bytes + filename + content type):

- :func:`detect_columns`: header, sheets, suggested mapping, signature and a
  saved preset for that signature.
- :func:`preview`: capped, read-only dry run with a duplicate estimate.
- :func:`commit`: full import, synchronous or queued on a job queue.
- :func:`job_status`: poll a queued commit.

Plus rule and preset management used by the CLI. Database access goes through
``db.client.session_scope``; ``database_url`` defaults to ``DATABASE_URL``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from db.client import session_scope

from . import persistence
from .dedupe import estimate_duplicates, hash_transactions
from .enrichment import Enricher, build_enricher
from .errors import ImportRejected, QueueUnavailable
from .ingest.columns import columns_signature, inspect_columns, resolve_mapping, suggest_mapping
from .ingest.formats import ensure_within_size_limit, require_kind
from .jobs import ImportJobPayload, InProcessJobQueue, JobQueue
from .logging_setup import get_logger
from .models import (
    ColumnMapping,
    CommitOptions,
    CommitResult,
    DetectedColumns,
    FileKind,
    ImportPreset,
    ImportRule,
    JobStatus,
    PreviewResult,
    PreviewRow,
    QueuedCommit,
)
from .pipeline import normalize_file, prepare_rows, run_commit
from .settings import ImportSettings

_logger = get_logger("statement_import.api")


def _resolve_settings(settings: ImportSettings | None) -> ImportSettings:
    return settings if settings is not None else ImportSettings.from_env()


def _resolve_enricher(enricher: Enricher | None, settings: ImportSettings) -> Enricher:
    if enricher is not None:
        return enricher
    return build_enricher(settings, api_key=os.getenv("OPENAI_API_KEY"))


def coerce_mapping(mapping: ColumnMapping | Mapping[str, Any]) -> ColumnMapping:
    """Accept a :class:`ColumnMapping` or a plain ``{role: column}`` mapping."""
    if isinstance(mapping, ColumnMapping):
        return mapping
    try:
        return ColumnMapping.model_validate(dict(mapping))
    except ValidationError as exc:
        raise ImportRejected("invalid_mapping", f"Invalid column mapping: {exc}") from exc


def _admit(
    data: bytes, filename: str | None, content_type: str | None, settings: ImportSettings
) -> FileKind:
    ensure_within_size_limit(data, settings.max_upload_bytes)
    return require_kind(filename, content_type)


def detect_columns(
    data: bytes,
    filename: str | None,
    content_type: str | None,
    *,
    user_id: str | None = None,
    sheet: str | None = None,
    database_url: str | None = None,
    settings: ImportSettings | None = None,
) -> DetectedColumns:
    """Inspect the header without parsing the body.

    When ``user_id`` is given, a preset saved for the detected header
    signature is returned alongside the suggestion.
    """

    settings = _resolve_settings(settings)
    kind = _admit(data, filename, content_type, settings)
    info = inspect_columns(data, kind, peek_bytes=settings.csv_peek_bytes, sheet=sheet)
    signature = columns_signature(info.columns)

    preset: ImportPreset | None = None
    if user_id is not None:
        with session_scope(database_url=database_url) as session:
            preset = persistence.find_preset(session, user_id=user_id, signature=signature)

    _logger.info(
        "detect_columns:done kind=%s columns=%d sheets=%d preset=%s",
        kind.value,
        len(info.columns),
        len(info.sheets),
        preset is not None,
    )
    return DetectedColumns(
        kind=kind,
        columns=info.columns,
        sheets=info.sheets,
        delimiter=info.delimiter,
        suggested_mapping=suggest_mapping(info.columns),
        signature=signature,
        preset=preset,
    )


def preview(
    data: bytes,
    filename: str | None,
    content_type: str | None,
    mapping: ColumnMapping | Mapping[str, Any],
    *,
    user_id: str,
    account_id: str | None = None,
    sheet: str | None = None,
    database_url: str | None = None,
    enricher: Enricher | None = None,
    settings: ImportSettings | None = None,
    apply_suggested_category: bool = False,
) -> PreviewResult:
    """Run the pipeline on the first ``settings.preview_rows`` good rows.

    Pure read: nothing is written. Duplicates are estimated against the
    user's ``settings.recent_window`` most recent records. Pass the same
    ``apply_suggested_category`` as the later commit so the previewed
    categories match what it stores.
    """

    settings = _resolve_settings(settings)
    kind = _admit(data, filename, content_type, settings)
    resolved = coerce_mapping(mapping)

    parsed = normalize_file(
        data, resolved, kind, sheet=sheet, preview_row_limit=settings.preview_rows
    )
    with session_scope(database_url=database_url) as session:
        rules = persistence.list_enabled_rules(session, user_id=user_id)
        recent = persistence.find_recent(session, user_id=user_id, limit=settings.recent_window)

    rows = prepare_rows(
        parsed.rows,
        rules=rules,
        enricher=_resolve_enricher(enricher, settings),
        settings=settings,
        apply_suggested_category=apply_suggested_category,
    )
    hashed = hash_transactions(rows, account_id=account_id)
    duplicates = estimate_duplicates(hashed, recent)

    _logger.info(
        "import_preview:done user_id=%s kind=%s rows=%d total_rows=%d errors=%d duplicates=%d",
        user_id,
        kind.value,
        len(hashed),
        parsed.total_rows,
        len(parsed.errors),
        len(duplicates),
    )
    return PreviewResult(
        preview_rows=[PreviewRow.from_hashed(h) for h in hashed],
        total_rows=parsed.total_rows,
        errors=parsed.errors,
        duplicates=[PreviewRow.from_hashed(h) for h in duplicates],
    )


def commit(
    data: bytes,
    filename: str | None,
    content_type: str | None,
    mapping: ColumnMapping | Mapping[str, Any],
    *,
    user_id: str,
    options: CommitOptions | None = None,
    sheet: str | None = None,
    database_url: str | None = None,
    enricher: Enricher | None = None,
    job_queue: JobQueue | None = None,
    settings: ImportSettings | None = None,
) -> CommitResult | QueuedCommit:
    """Import the whole file.

    With ``options.run_async`` the file and mapping are validated up front and
    the work is handed to ``job_queue``; a :class:`QueuedCommit` handle is
    returned immediately.

    Raises
    ------
    ImportRejected
        Unsupported or oversized file, or a mapping that does not fit it.
    QueueUnavailable
        ``run_async`` was requested without a job queue.
    """

    settings = _resolve_settings(settings)
    options = options or CommitOptions()
    kind = _admit(data, filename, content_type, settings)
    resolved = coerce_mapping(mapping)

    if options.run_async:
        if job_queue is None:
            raise QueueUnavailable("queue_unavailable")
        info = inspect_columns(data, kind, peek_bytes=settings.csv_peek_bytes, sheet=sheet)
        resolved = resolve_mapping(resolved, info.columns)
        payload = ImportJobPayload.build(
            user_id=user_id, data=data, kind=kind, mapping=resolved, options=options, sheet=sheet
        )
        return QueuedCommit(job_id=job_queue.enqueue(payload))

    return run_commit(
        data,
        resolved,
        kind,
        user_id=user_id,
        options=options,
        enricher=_resolve_enricher(enricher, settings),
        settings=settings,
        sheet=sheet,
        database_url=database_url,
    )


def job_status(job_id: str, *, job_queue: JobQueue | None) -> JobStatus:
    if job_queue is None:
        raise QueueUnavailable("queue_unavailable")
    return job_queue.status(job_id)


def build_job_queue(
    *,
    database_url: str | None = None,
    enricher: Enricher | None = None,
    settings: ImportSettings | None = None,
) -> InProcessJobQueue:
    """In-process queue whose workers run the same commit as :func:`commit`."""

    settings = _resolve_settings(settings)
    resolved_enricher = _resolve_enricher(enricher, settings)

    def _runner(payload: ImportJobPayload) -> CommitResult:
        return run_commit(
            payload.file_bytes(),
            payload.mapping,
            payload.kind,
            user_id=payload.user_id,
            options=payload.options,
            enricher=resolved_enricher,
            settings=settings,
            sheet=payload.sheet,
            database_url=database_url,
        )

    return InProcessJobQueue(_runner, max_workers=settings.job_workers)


# ---- Rules and presets -------------------------------------------------------


def save_rule(user_id: str, rule: ImportRule, *, database_url: str | None = None) -> ImportRule:
    with session_scope(database_url=database_url) as session:
        return persistence.save_rule(session, user_id=user_id, rule=rule)


def list_rules(user_id: str, *, database_url: str | None = None) -> list[ImportRule]:
    with session_scope(database_url=database_url) as session:
        return persistence.list_rules(session, user_id=user_id)


def delete_rule(user_id: str, rule_id: int, *, database_url: str | None = None) -> bool:
    with session_scope(database_url=database_url) as session:
        return persistence.delete_rule(session, user_id=user_id, rule_id=rule_id)


def apply_rules_to_existing(user_id: str, *, database_url: str | None = None) -> int:
    with session_scope(database_url=database_url) as session:
        return persistence.apply_rules_to_existing(session, user_id=user_id)


def save_preset(
    user_id: str,
    name: str,
    mapping: ColumnMapping | Mapping[str, Any],
    *,
    signature: str,
    database_url: str | None = None,
) -> ImportPreset:
    resolved = coerce_mapping(mapping)
    with session_scope(database_url=database_url) as session:
        return persistence.save_preset(
            session, user_id=user_id, name=name, signature=signature, mapping=resolved
        )


__all__ = [
    "coerce_mapping",
    "detect_columns",
    "preview",
    "commit",
    "job_status",
    "build_job_queue",
    "save_rule",
    "list_rules",
    "delete_rule",
    "apply_rules_to_existing",
    "save_preset",
]
