"""Map one raw source row onto an :class:`ImportableTransaction`."""

from __future__ import annotations

import datetime as dt

from openpyxl.utils.datetime import WINDOWS_EPOCH

from .errors import RowValueError
from .heuristics import IssuerProfile, match_issuer
from .models import Cell, ColumnMapping, ImportableTransaction, RawRow
from .normalizers import (
    categorize_description,
    infer_type,
    normalize_amount,
    normalize_date,
    quantize_amount,
)


def _is_blank(value: Cell) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _cell(row: RawRow, column: str | None) -> Cell:
    if column is None:
        return None
    return row.get(column)


def _text(value: Cell) -> str | None:
    if _is_blank(value):
        return None
    return str(value).strip()


def map_row(
    row: RawRow,
    mapping: ColumnMapping,
    row_index: int,
    *,
    epoch: dt.datetime = WINDOWS_EPOCH,
    issuer: IssuerProfile | None = None,
) -> ImportableTransaction:
    """Normalize ``row`` under ``mapping``.

    Raises :class:`RowValueError` naming the failing field (``date``,
    ``description`` or ``amount``). ``issuer`` defaults to the profile
    recognized from ``mapping``; callers mapping many rows pass it once.
    """

    if issuer is None:
        issuer = match_issuer(mapping)

    date_value = _cell(row, mapping.date)
    if _is_blank(date_value):
        raise RowValueError("date", f"Date is required (row {row_index})")
    try:
        date = normalize_date(date_value, epoch=epoch)
    except ValueError as exc:
        raise RowValueError(
            "date", f'Invalid date format: "{date_value}" (row {row_index})'
        ) from exc

    description = _text(_cell(row, mapping.description))
    if description is None:
        raise RowValueError("description", f"Description is required (row {row_index})")

    amount_value = _cell(row, mapping.amount)
    if _is_blank(amount_value):
        raise RowValueError("amount", f"Amount is required (row {row_index})")
    try:
        signed = normalize_amount(amount_value)
    except ValueError as exc:
        raise RowValueError(
            "amount", f'Invalid amount: "{amount_value}" (row {row_index})'
        ) from exc

    tx_type = infer_type(
        signed,
        issuer=issuer,
        type_value=_cell(row, mapping.type),
        sign_policy=mapping.sign_policy,
    )

    category = _text(_cell(row, mapping.category)) or categorize_description(description)

    return ImportableTransaction(
        date=date,
        description=description,
        amount=quantize_amount(abs(signed)),
        type=tx_type,
        category=category,
        note=_text(_cell(row, mapping.note)),
        row=row_index,
    )


__all__ = ["map_row"]
