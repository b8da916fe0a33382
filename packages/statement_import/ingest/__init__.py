"""File ingestion: format detection, row sources, column inspection, parsing."""

from __future__ import annotations

from ..models import FileKind
from .adapters import RowSource
from .adapters.csv_source import CsvRowSource
from .adapters.spreadsheet_source import XlsRowSource, XlsxRowSource


def open_row_source(data: bytes, kind: FileKind, *, sheet: str | None = None) -> RowSource:
    """Open the row source for ``kind``; ``sheet`` is ignored for CSV."""
    if kind is FileKind.CSV:
        return CsvRowSource.from_bytes(data)
    if kind is FileKind.XLSX:
        return XlsxRowSource(data, sheet=sheet)
    return XlsRowSource(data, sheet=sheet)


__all__ = ["RowSource", "open_row_source"]
