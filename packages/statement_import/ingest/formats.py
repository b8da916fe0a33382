"""Upload classification and CSV text decoding.

- :func:`detect_kind` / :func:`require_kind`: filename extension first, then
  declared content type.
- :func:`ensure_within_size_limit`: reject oversized uploads before parsing.
- :func:`decode_text` and :func:`sniff_delimiter` for the CSV path.
"""

from __future__ import annotations

import codecs
from pathlib import PurePath

from ..errors import ImportRejected
from ..logging_setup import get_logger
from ..models import FileKind

_logger = get_logger("statement_import.ingest.formats")

_EXTENSIONS: dict[str, FileKind] = {
    ".csv": FileKind.CSV,
    ".xlsx": FileKind.XLSX,
    ".xls": FileKind.XLS,
}

# Ordered substring tests against the lower-cased content type.
_CONTENT_TYPES: tuple[tuple[str, FileKind], ...] = (
    ("csv", FileKind.CSV),
    ("comma-separated", FileKind.CSV),
    ("spreadsheetml", FileKind.XLSX),
    ("spreadsheet", FileKind.XLSX),
    ("application/vnd.ms-excel", FileKind.XLS),
    ("application/x-excel", FileKind.XLS),
    ("application/excel", FileKind.XLS),
)

# Tie order matters: the first delimiter wins when counts are equal.
DELIMITERS: tuple[str, ...] = (",", ";", "\t")
SNIFF_PREFIX_BYTES = 4096


def detect_kind(filename: str | None, content_type: str | None) -> FileKind | None:
    """Classify an upload; ``None`` when unsupported."""

    if filename:
        kind = _EXTENSIONS.get(PurePath(filename.strip()).suffix.lower())
        if kind is not None:
            return kind
    ct = (content_type or "").lower()
    for needle, kind in _CONTENT_TYPES:
        if needle in ct:
            return kind
    return None


def require_kind(filename: str | None, content_type: str | None) -> FileKind:
    kind = detect_kind(filename, content_type)
    if kind is None:
        raise ImportRejected(
            "unsupported_file_type",
            f"Unsupported file format: {filename or '<unnamed>'} ({content_type or 'unknown type'}). "
            "Only CSV/XLSX/XLS are allowed.",
        )
    return kind


def ensure_within_size_limit(data: bytes, max_bytes: int) -> None:
    if len(data) > max_bytes:
        raise ImportRejected(
            "file_too_large",
            f"File is {len(data)} bytes; the limit is {max_bytes} bytes",
        )


def decode_text(data: bytes, *, final: bool = True) -> str:
    """Decode CSV bytes as UTF-8 (BOM stripped), falling back to Latin-1.

    With ``final=False`` a truncated multi-byte sequence at the end of
    ``data`` is dropped instead of failing, so a byte prefix can be decoded.
    """

    decoder = codecs.getincrementaldecoder("utf-8-sig")()
    try:
        return decoder.decode(data, final=final)
    except UnicodeDecodeError:
        _logger.warning("decode_text:fallback encoding=latin-1 bytes=%d", len(data))
        return data.decode("latin-1")


def first_non_empty_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line
    return ""


def sniff_delimiter(text: str) -> str:
    """Most frequent of comma/semicolon/tab on the first non-empty line."""

    line = first_non_empty_line(text[:SNIFF_PREFIX_BYTES])
    best = DELIMITERS[0]
    best_count = line.count(best)
    for candidate in DELIMITERS[1:]:
        count = line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count
    return best


__all__ = [
    "DELIMITERS",
    "SNIFF_PREFIX_BYTES",
    "detect_kind",
    "require_kind",
    "ensure_within_size_limit",
    "decode_text",
    "first_non_empty_line",
    "sniff_delimiter",
]
