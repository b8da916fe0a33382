"""Single parse contract shared by every file kind."""

from __future__ import annotations

from contextlib import closing

from ..errors import RowValueError
from ..heuristics import match_issuer
from ..logging_setup import get_logger
from ..models import ColumnMapping, FileKind, ImportableTransaction, ImportRowError, ParseResult
from ..row_mapper import map_row
from . import open_row_source
from .columns import resolve_mapping

_logger = get_logger("statement_import.ingest.parser")


def parse(
    data: bytes,
    mapping: ColumnMapping,
    kind: FileKind,
    *,
    preview_row_limit: int | None = None,
    sheet: str | None = None,
) -> ParseResult:
    """Normalize every data row of ``data`` under ``mapping``.

    Row failures are collected as :class:`ImportRowError` and never abort the
    batch. With ``preview_row_limit`` parsing stops once that many rows have
    normalized successfully; ``total_rows`` then counts the data rows scanned
    so far. Blank rows are skipped and not counted.

    Raises
    ------
    ImportRejected
        When the file cannot be opened or ``mapping`` does not fit its header.
    """

    rows: list[ImportableTransaction] = []
    errors: list[ImportRowError] = []
    total = 0
    truncated = False

    with closing(open_row_source(data, kind, sheet=sheet)) as source:
        resolved = resolve_mapping(mapping, source.headers)
        issuer = match_issuer(resolved)
        for row_number, raw in source:
            total += 1
            try:
                tx = map_row(raw, resolved, row_number, epoch=source.epoch, issuer=issuer)
            except RowValueError as exc:
                _logger.debug("parse:row_error row=%d field=%s", row_number, exc.field)
                errors.append(ImportRowError(row=row_number, field=exc.field, message=str(exc)))
                continue
            rows.append(tx)
            if preview_row_limit is not None and len(rows) >= preview_row_limit:
                truncated = True
                break

    _logger.info(
        "parse:done kind=%s total_rows=%d rows=%d errors=%d truncated=%s",
        kind.value,
        total,
        len(rows),
        len(errors),
        truncated,
    )
    return ParseResult(rows=rows, total_rows=total, errors=errors, truncated=truncated)


__all__ = ["parse"]
