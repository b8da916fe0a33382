"""CSV row source.

Reads delimited text with the stdlib ``csv`` module (RFC 4180 quoting,
embedded newlines) and yields rows keyed by the cleaned header. Ragged rows
are tolerated: missing trailing cells are absent, surplus cells are dropped.
"""

from __future__ import annotations

import csv
import datetime as dt
from collections.abc import Iterator
from io import StringIO

from openpyxl.utils.datetime import WINDOWS_EPOCH

from ...errors import ImportRejected
from ...models import RawRow
from ..formats import decode_text, sniff_delimiter
from . import clean_header, is_blank_row


class CsvRowSource:
    """Iterate ``(ordinal, row)`` pairs over a CSV document.

    ``ordinal`` is the 1-based position among non-blank data rows (the header
    is not counted).
    """

    # CSV cells are text; this only matters for typed numeric cells.
    epoch: dt.datetime = WINDOWS_EPOCH

    def __init__(self, text: str, *, delimiter: str | None = None) -> None:
        self.delimiter = delimiter or sniff_delimiter(text)
        self._buffer = StringIO(text, newline="")
        self._reader = csv.reader(self._buffer, delimiter=self.delimiter)
        self.headers = self._read_header()
        self.sheets: list[str] = []

    @classmethod
    def from_bytes(cls, data: bytes, *, delimiter: str | None = None) -> CsvRowSource:
        return cls(decode_text(data), delimiter=delimiter)

    def _read_header(self) -> list[str]:
        for record in self._reader:
            if not is_blank_row(record):
                return [clean_header(cell) for cell in record]
        raise ImportRejected("no_header", "The file has no header row")

    def __iter__(self) -> Iterator[tuple[int, RawRow]]:
        ordinal = 0
        for record in self._reader:
            if is_blank_row(record):
                continue
            ordinal += 1
            row = {
                name: record[i]
                for i, name in enumerate(self.headers)
                if name and i < len(record)
            }
            yield ordinal, row

    def close(self) -> None:
        self._buffer.close()

    def __enter__(self) -> CsvRowSource:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def peek_csv_header(data: bytes, peek_bytes: int) -> tuple[list[str], str]:
    """Return ``(headers, delimiter)`` decoding at most ``peek_bytes`` of ``data``."""

    text = decode_text(data[:peek_bytes], final=len(data) <= peek_bytes)
    source = CsvRowSource(text)
    try:
        return source.headers, source.delimiter
    finally:
        source.close()


__all__ = ["CsvRowSource", "peek_csv_header"]
