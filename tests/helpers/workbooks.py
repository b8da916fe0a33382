"""Workbook builders for spreadsheet tests.

XLSX bytes are written with ``openpyxl``. Nothing in the dependency stack
writes legacy XLS, so XLS tests substitute a small in-memory object with the
``xlrd`` book/sheet/cell surface the row source reads.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

import xlrd
from openpyxl import Workbook
from openpyxl.utils.datetime import MAC_EPOCH


def xlsx_bytes(sheets: dict[str, Sequence[Sequence[Any]]], *, date1904: bool = False) -> bytes:
    """Build an XLSX workbook; the first key becomes the first sheet."""

    wb = Workbook()
    wb.remove(wb.active)
    if date1904:
        wb.epoch = MAC_EPOCH
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


@dataclass
class FakeCell:
    ctype: int
    value: Any


def text(value: str) -> FakeCell:
    return FakeCell(xlrd.XL_CELL_TEXT, value)


def number(value: float) -> FakeCell:
    return FakeCell(xlrd.XL_CELL_NUMBER, value)


def date_serial(value: float) -> FakeCell:
    return FakeCell(xlrd.XL_CELL_DATE, value)


def empty() -> FakeCell:
    return FakeCell(xlrd.XL_CELL_EMPTY, "")


@dataclass
class FakeSheet:
    rows: list[list[FakeCell]]

    @property
    def nrows(self) -> int:
        return len(self.rows)

    def row(self, rowx: int) -> list[FakeCell]:
        return self.rows[rowx]


@dataclass
class FakeBook:
    sheets: dict[str, FakeSheet]
    datemode: int = 0
    released: list[bool] = field(default_factory=list)

    def sheet_names(self) -> list[str]:
        return list(self.sheets)

    def sheet_by_name(self, name: str) -> FakeSheet:
        return self.sheets[name]

    def release_resources(self) -> None:
        self.released.append(True)
