import datetime as dt
from decimal import Decimal

import pytest

from statement_import.errors import ImportRejected
from statement_import.ingest.parser import parse
from statement_import.models import ColumnMapping, FileKind, SignPolicy, TransactionType
from statement_import.pipeline import normalize_file
from tests.helpers.workbooks import xlsx_bytes

SCENARIO = b"Date,Desc,Amt\n2024-01-05,Coffee Shop,-4.50\n01/06/2024,Netflix,15.99\n(bad),X,1\n"
SCENARIO_MAPPING = ColumnMapping(date="Date", description="Desc", amount="Amt")


def test_three_row_scenario_default_sign_policy():
    result = parse(SCENARIO, SCENARIO_MAPPING, FileKind.CSV)

    assert result.total_rows == 3
    assert [tx.description for tx in result.rows] == ["Coffee Shop", "Netflix"]
    coffee, netflix = result.rows
    assert (coffee.date, coffee.amount, coffee.type) == (
        "2024-01-05",
        Decimal("4.50"),
        TransactionType.INCOME,
    )
    assert (netflix.date, netflix.amount, netflix.type) == (
        "2024-01-06",
        Decimal("15.99"),
        TransactionType.EXPENSE,
    )
    assert netflix.category == "Entertainment"

    assert len(result.errors) == 1
    error = result.errors[0]
    assert (error.row, error.field) == (3, "date")
    assert "(bad)" in error.message
    assert result.truncated is False


def test_three_row_scenario_negative_is_expense():
    mapping = SCENARIO_MAPPING.model_copy(update={"sign_policy": SignPolicy.NEGATIVE_IS_EXPENSE})
    result = parse(SCENARIO, mapping, FileKind.CSV)
    coffee, netflix = result.rows
    assert coffee.type is TransactionType.EXPENSE
    assert netflix.type is TransactionType.INCOME


def test_preview_limit_stops_after_successes():
    lines = ["Date,Description,Amount"] + [f"2024-01-{d:02d},Item {d},{d}.00" for d in range(1, 29)]
    mapping = ColumnMapping(date="Date", description="Description", amount="Amount")
    result = parse("\n".join(lines).encode(), mapping, FileKind.CSV, preview_row_limit=5)
    assert len(result.rows) == 5
    assert result.total_rows == 5
    assert result.truncated is True


def test_blank_lines_are_skipped_and_not_counted():
    data = b"Date,Description,Amount\n\n2024-01-05,A,1\n,,\n\n2024-01-06,B,2\n"
    mapping = ColumnMapping(date="Date", description="Description", amount="Amount")
    result = parse(data, mapping, FileKind.CSV)
    assert result.total_rows == 2
    assert [tx.row for tx in result.rows] == [1, 2]
    assert result.errors == []


def test_quoted_fields_embedded_newlines_and_ragged_rows():
    data = (
        b"Date;Description;Amount\n"
        b'2024-01-05;"Line one\nline two";"1,234.50"\n'
        b"2024-01-06;Short row\n"
        b"2024-01-07;Tail;3\n"
    )
    result = parse(
        data, ColumnMapping(date="Date", description="Description", amount="Amount"), FileKind.CSV
    )
    assert [tx.description for tx in result.rows] == ["Line one\nline two", "Tail"]
    assert result.rows[0].amount == Decimal("1234.50")
    assert [(e.row, e.field) for e in result.errors] == [(2, "amount")]
    assert result.errors[0].message == "Amount is required (row 2)"


def test_mapping_must_fit_header_before_any_row_is_parsed():
    with pytest.raises(ImportRejected) as exc:
        parse(SCENARIO, ColumnMapping(date="Date", description="Memo", amount="Amt"), FileKind.CSV)
    assert exc.value.reason == "unknown_columns"


def test_xlsx_rows_use_sheet_row_numbers_and_typed_cells():
    data = xlsx_bytes(
        {
            "Activity": [
                ["Date", "Description", "Amount"],
                [dt.datetime(2024, 1, 5), "Coffee Shop", -4.5],
                [None, None, None],
                ["01/07/2024", "Uber", 12],
                ["nope", "Broken", 1],
            ]
        }
    )
    result = parse(
        data,
        ColumnMapping(date="Date", description="Description", amount="Amount"),
        FileKind.XLSX,
    )
    assert [(tx.row, tx.date, tx.amount) for tx in result.rows] == [
        (2, "2024-01-05", Decimal("4.50")),
        (4, "2024-01-07", Decimal("12.00")),
    ]
    assert [(e.row, e.field) for e in result.errors] == [(5, "date")]
    assert result.total_rows == 3


def test_xlsx_serial_dates_follow_workbook_date_system():
    rows = [["Date", "Description", "Amount"], [43834, "Serial", 1]]
    mapping = ColumnMapping(date="Date", description="Description", amount="Amount")
    mac = parse(xlsx_bytes({"S": rows}, date1904=True), mapping, FileKind.XLSX)
    win = parse(xlsx_bytes({"S": rows}), mapping, FileKind.XLSX)
    assert mac.rows[0].date == "2024-01-05"
    assert win.rows[0].date == "2020-01-04"


def test_xlsx_selected_sheet():
    data = xlsx_bytes(
        {
            "Cover": [["Title"], ["Statement"]],
            "Data": [["Date", "Description", "Amount"], ["2024-01-05", "A", 1]],
        }
    )
    mapping = ColumnMapping(date="Date", description="Description", amount="Amount")
    result = parse(data, mapping, FileKind.XLSX, sheet="Data")
    assert len(result.rows) == 1


def test_issuer_profile_drops_payments_and_credits():
    data = (
        b"Trans. Date,Post Date,Description,Amount,Category\n"
        b"01/05/2024,01/06/2024,SHELL OIL 123,40.00,Gasoline\n"
        b"01/07/2024,01/07/2024,INTERNET PAYMENT - THANK YOU,-500.00,Payments and Credits\n"
        b"01/08/2024,01/09/2024,AMAZON MKTPLACE,19.99,Merchandise\n"
    )
    mapping = ColumnMapping(
        date="Trans. Date", description="Description", amount="Amount", category="Category"
    )
    result = normalize_file(data, mapping, FileKind.CSV)
    assert [tx.description for tx in result.rows] == ["SHELL OIL 123", "AMAZON MKTPLACE"]
    assert all(tx.type is TransactionType.EXPENSE for tx in result.rows)
    assert result.total_rows == 3
