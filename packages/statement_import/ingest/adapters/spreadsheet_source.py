"""Spreadsheet row sources: XLSX via ``openpyxl`` and legacy XLS via ``xlrd``.

Row 1 of the selected sheet (named, else the first) is the header; data rows
are mapped positionally against it. The reported row number is the sheet row
number, i.e. data index + 2.
"""

from __future__ import annotations

import datetime as dt
import zipfile
from collections.abc import Iterator, Sequence
from io import BytesIO
from typing import Any

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from xlrd.xldate import XLDateError, xldate_as_datetime

from ...errors import ImportRejected
from ...logging_setup import get_logger
from ...models import Cell, RawRow
from ...normalizers import epoch_for_datemode
from . import clean_header, is_blank_row

_logger = get_logger("statement_import.ingest.spreadsheet")

HEADER_ROWS = 1


def _coerce_cell(value: Any) -> Cell:
    if isinstance(value, dt.time):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return str(value)
    return value


def _row_dict(headers: Sequence[str], cells: Sequence[Cell]) -> RawRow:
    return {
        name: cells[i]
        for i, name in enumerate(headers)
        if name and i < len(cells)
    }


def _select_sheet_name(names: list[str], sheet: str | None) -> str:
    if not names:
        raise ImportRejected("unreadable_file", "The workbook has no sheets")
    if sheet is None:
        return names[0]
    if sheet in names:
        return sheet
    raise ImportRejected(
        "sheet_not_found", f"Sheet {sheet!r} not found; available: {', '.join(names)}"
    )


def _headers_from(cells: Sequence[Cell] | None) -> list[str]:
    headers = [clean_header(c) for c in (cells or ())]
    if not any(headers):
        raise ImportRejected("no_header", "The first row of the sheet is empty")
    return headers


class XlsxRowSource:
    def __init__(self, data: bytes, *, sheet: str | None = None) -> None:
        try:
            self._wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
            raise ImportRejected("unreadable_file", f"Excel parsing failed: {exc}") from exc
        try:
            self.sheets: list[str] = list(self._wb.sheetnames)
            self.sheet = _select_sheet_name(self.sheets, sheet)
            self.epoch: dt.datetime = self._wb.epoch
            self._rows = self._wb[self.sheet].iter_rows(values_only=True)
            self.headers = _headers_from(next(self._rows, None))
        except Exception:
            self._wb.close()
            raise

    def __iter__(self) -> Iterator[tuple[int, RawRow]]:
        for index, values in enumerate(self._rows):
            cells = [_coerce_cell(v) for v in values]
            if is_blank_row(cells):
                continue
            yield index + 1 + HEADER_ROWS, _row_dict(self.headers, cells)

    def close(self) -> None:
        self._wb.close()

    def __enter__(self) -> XlsxRowSource:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class XlsRowSource:
    def __init__(self, data: bytes, *, sheet: str | None = None) -> None:
        try:
            self._book = xlrd.open_workbook(file_contents=data, on_demand=True)
        except (xlrd.XLRDError, OSError, ValueError, AssertionError) as exc:
            raise ImportRejected("unreadable_file", f"Excel parsing failed: {exc}") from exc
        try:
            self.sheets: list[str] = list(self._book.sheet_names())
            self.sheet = _select_sheet_name(self.sheets, sheet)
            self.epoch: dt.datetime = epoch_for_datemode(self._book.datemode)
            self._sheet = self._book.sheet_by_name(self.sheet)
            first = self._cells(0) if self._sheet.nrows else None
            self.headers = _headers_from(first)
        except Exception:
            self._book.release_resources()
            raise

    def _cell_value(self, cell: Any) -> Cell:
        ctype = cell.ctype
        if ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
            return None
        if ctype == xlrd.XL_CELL_DATE:
            try:
                return xldate_as_datetime(cell.value, self._book.datemode)
            except (XLDateError, ValueError, OverflowError):
                _logger.debug("xls:bad_date_cell value=%r", cell.value)
                return cell.value
        if ctype == xlrd.XL_CELL_BOOLEAN:
            return bool(cell.value)
        return cell.value

    def _cells(self, rowx: int) -> list[Cell]:
        return [self._cell_value(c) for c in self._sheet.row(rowx)]

    def __iter__(self) -> Iterator[tuple[int, RawRow]]:
        for rowx in range(HEADER_ROWS, self._sheet.nrows):
            cells = self._cells(rowx)
            if is_blank_row(cells):
                continue
            yield rowx + 1, _row_dict(self.headers, cells)

    def close(self) -> None:
        self._book.release_resources()

    def __enter__(self) -> XlsRowSource:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


__all__ = ["HEADER_ROWS", "XlsxRowSource", "XlsRowSource"]
