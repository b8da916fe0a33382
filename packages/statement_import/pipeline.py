"""Shared pipeline stages for preview and commit.

``run_commit`` is the single commit implementation: the synchronous API call
and the job queue worker both run it, so they produce identical results for
the same input.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import replace

from db.client import session_scope

from .dedupe import hash_transactions
from .enrichment import Enricher, enrich_transactions
from .heuristics import match_issuer
from .ingest.parser import parse
from .logging_setup import get_logger
from .models import (
    ColumnMapping,
    CommitOptions,
    CommitResult,
    FileKind,
    ImportableTransaction,
    ImportRowError,
    ImportRule,
    ParseResult,
    TransactionType,
)
from .persistence import bulk_upsert_by_hash, list_enabled_rules
from .rules import apply_rules
from .settings import ImportSettings

_logger = get_logger("statement_import.pipeline")


def normalize_file(
    data: bytes,
    mapping: ColumnMapping,
    kind: FileKind,
    *,
    sheet: str | None = None,
    preview_row_limit: int | None = None,
) -> ParseResult:
    """Parse ``data`` and drop rows the recognized issuer profile excludes."""

    parsed = parse(data, mapping, kind, preview_row_limit=preview_row_limit, sheet=sheet)
    issuer = match_issuer(mapping)
    if issuer is None or not issuer.drop_income:
        return parsed
    kept = [tx for tx in parsed.rows if tx.type is TransactionType.EXPENSE]
    if len(kept) != len(parsed.rows):
        _logger.info(
            "normalize_file:issuer_filter issuer=%s dropped=%d",
            issuer.name,
            len(parsed.rows) - len(kept),
        )
    return replace(parsed, rows=kept)


def prepare_rows(
    rows: Sequence[ImportableTransaction],
    *,
    rules: Sequence[ImportRule],
    enricher: Enricher | None,
    settings: ImportSettings,
    apply_suggested_category: bool = False,
) -> list[ImportableTransaction]:
    """Enrichment (best effort) followed by the rule matcher."""

    prepared = list(rows)
    if enricher is not None:
        prepared = enrich_transactions(
            prepared,
            enricher,
            batch_limit=settings.enrich_batch_limit,
            timeout=settings.enrich_timeout_sec,
            apply_suggested_category=apply_suggested_category,
        )
    if rules:
        prepared = [apply_rules(tx, rules) for tx in prepared]
    return prepared


def _chunks[T](items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def run_commit(
    data: bytes,
    mapping: ColumnMapping,
    kind: FileKind,
    *,
    user_id: str,
    options: CommitOptions,
    enricher: Enricher | None,
    settings: ImportSettings,
    sheet: str | None = None,
    database_url: str | None = None,
) -> CommitResult:
    """Parse the whole file and upsert every normalized row.

    Rows are written in chunks of ``settings.commit_chunk_size``, each chunk in
    its own database transaction, so chunks already written survive a later
    failure; a retry is safe because upserts are keyed by the dedupe hash.

    Raises
    ------
    ImportRejected
        When the file or mapping cannot be imported.
    """

    parsed = normalize_file(data, mapping, kind, sheet=sheet)

    with session_scope(database_url=database_url) as session:
        rules = list_enabled_rules(session, user_id=user_id)

    rows = prepare_rows(
        parsed.rows,
        rules=rules,
        enricher=enricher if options.use_enrichment else None,
        settings=settings,
        apply_suggested_category=options.apply_suggested_category,
    )
    hashed = hash_transactions(rows, account_id=options.account_id)

    inserted = updated = 0
    persistence_errors: list[ImportRowError] = []
    for chunk in _chunks(hashed, settings.commit_chunk_size):
        with session_scope(database_url=database_url) as session:
            outcome = bulk_upsert_by_hash(
                session,
                user_id=user_id,
                items=chunk,
                overwrite=options.overwrite_duplicates,
                account_id=options.account_id,
            )
        inserted += outcome.inserted
        updated += outcome.updated
        persistence_errors.extend(outcome.errors)

    processed = len(hashed)
    if options.skip_duplicates and not options.overwrite_duplicates:
        duplicates_skipped = processed - inserted - len(persistence_errors)
    else:
        duplicates_skipped = 0

    result = CommitResult(
        total_processed=processed,
        inserted=inserted,
        updated=updated,
        duplicates_skipped=duplicates_skipped,
        errors=[*parsed.errors, *persistence_errors],
        total_rows=parsed.total_rows,
    )
    _logger.info(
        "import_commit:done user_id=%s kind=%s processed=%d inserted=%d updated=%d "
        "duplicates_skipped=%d errors=%d",
        user_id,
        kind.value,
        processed,
        inserted,
        updated,
        duplicates_skipped,
        len(result.errors),
    )
    return result


__all__ = ["normalize_file", "prepare_rows", "run_commit"]
