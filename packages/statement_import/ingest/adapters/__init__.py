"""Row sources: one iterator contract over CSV, XLSX and XLS inputs.

Every source exposes ``headers`` (cleaned header names), ``sheets`` (empty
for CSV), ``epoch`` (date system for serial dates) and iterates
``(row_number, RawRow)`` pairs, skipping blank rows. Sources are context
managers; ``close()`` releases workbook resources.
"""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterator, Sequence
from typing import Protocol

from ...models import Cell, RawRow

_QUOTES = "\"'"


def clean_header(value: Cell) -> str:
    """Trim whitespace, a UTF-8 BOM and stray surrounding quotes."""
    if value is None:
        return ""
    s = str(value).replace("\ufeff", "").strip()
    return s.strip(_QUOTES).strip()


def is_blank_row(cells: Sequence[Cell]) -> bool:
    return all(c is None or (isinstance(c, str) and not c.strip()) for c in cells)


class RowSource(Protocol):
    headers: list[str]
    sheets: list[str]
    epoch: dt.datetime

    def __iter__(self) -> Iterator[tuple[int, RawRow]]: ...

    def close(self) -> None: ...


__all__ = ["RowSource", "clean_header", "is_blank_row"]
