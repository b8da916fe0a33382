"""Header inspection, suggested mapping and mapping validation."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from ..errors import ImportRejected
from ..heuristics import ROLE_KEYWORDS
from ..logging_setup import get_logger
from ..models import OPTIONAL_ROLES, REQUIRED_ROLES, ColumnMapping, FileKind
from . import open_row_source
from .adapters.csv_source import peek_csv_header

_logger = get_logger("statement_import.ingest.columns")

_ROLE_ORDER: tuple[str, ...] = (*REQUIRED_ROLES, *OPTIONAL_ROLES)


@dataclass(frozen=True, slots=True)
class HeaderInfo:
    columns: list[str]
    sheets: list[str] = field(default_factory=list)
    delimiter: str | None = None


def inspect_columns(
    data: bytes,
    kind: FileKind,
    *,
    peek_bytes: int = 256 * 1024,
    sheet: str | None = None,
) -> HeaderInfo:
    """Read only the header row (and, for workbooks, the sheet names).

    CSV input is decoded up to ``peek_bytes``; workbooks are opened in
    streaming mode and only their first row is read.
    """

    if kind is FileKind.CSV:
        headers, delimiter = peek_csv_header(data, peek_bytes)
        return HeaderInfo(columns=[h for h in headers if h], delimiter=delimiter)

    source = open_row_source(data, kind, sheet=sheet)
    try:
        return HeaderInfo(columns=[h for h in source.headers if h], sheets=list(source.sheets))
    finally:
        source.close()


def suggest_mapping(
    headers: Sequence[str],
    table: Mapping[str, tuple[str, ...]] = ROLE_KEYWORDS,
) -> ColumnMapping:
    """Guess a mapping by case-insensitive substring search.

    For each role, keywords are tried in priority order and the first header
    containing the keyword wins. A header is assigned to at most one role;
    roles are filled in the order date, description, amount, type, category,
    note. Unmatched roles stay unset.
    """

    lowered = [(h, h.lower()) for h in headers if h]
    taken: set[str] = set()
    picks: dict[str, str] = {}
    for role in _ROLE_ORDER:
        for keyword in table.get(role, ()):
            hit = next((h for h, low in lowered if keyword in low and h not in taken), None)
            if hit is not None:
                picks[role] = hit
                taken.add(hit)
                break
    return ColumnMapping(**picks)


def columns_signature(headers: Iterable[str]) -> str:
    """Order-independent fingerprint of a header set (sha256 hex)."""
    names = sorted({h.strip().lower() for h in headers if h and h.strip()})
    return hashlib.sha256("|".join(names).encode("utf-8")).hexdigest()


def resolve_mapping(mapping: ColumnMapping, headers: Sequence[str]) -> ColumnMapping:
    """Validate ``mapping`` against ``headers`` before any row is parsed.

    Column names match exactly, else case-insensitively (the mapping is then
    rewritten to the header's exact spelling). Required roles that are unset
    or absent reject the import; absent optional roles are dropped.

    Raises
    ------
    ImportRejected
        ``missing_columns`` when a required role is unset, ``unknown_columns``
        when a required role names a column the file does not have.
    """

    missing = mapping.missing_required()
    if missing:
        raise ImportRejected(
            "missing_columns", f"Missing required column(s): {', '.join(missing)}"
        )

    exact = {h for h in headers if h}
    folded: dict[str, str] = {}
    for h in headers:
        if h:
            folded.setdefault(h.lower(), h)

    updates: dict[str, str | None] = {}
    unknown: list[str] = []
    for role, column in mapping.roles():
        if column in exact:
            continue
        match = folded.get(column.lower())
        if match is not None:
            updates[role] = match
        elif role in REQUIRED_ROLES:
            unknown.append(f"{role}={column!r}")
        else:
            _logger.warning("resolve_mapping:optional_column_missing role=%s column=%r", role, column)
            updates[role] = None

    if unknown:
        raise ImportRejected(
            "unknown_columns", f"Mapped column(s) not found in file: {', '.join(unknown)}"
        )
    return mapping.model_copy(update=updates) if updates else mapping


__all__ = [
    "HeaderInfo",
    "inspect_columns",
    "suggest_mapping",
    "columns_signature",
    "resolve_mapping",
]
