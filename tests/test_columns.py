import pytest

from statement_import.errors import ImportRejected
from statement_import.ingest.columns import (
    columns_signature,
    inspect_columns,
    resolve_mapping,
    suggest_mapping,
)
from statement_import.models import ColumnMapping, FileKind
from tests.helpers.workbooks import xlsx_bytes


def test_inspect_csv_header_with_bom_quotes_and_semicolons():
    data = '\ufeff"Date";" Description ";Amount\n2024-01-05;Coffee;4.50\n'.encode()
    info = inspect_columns(data, FileKind.CSV)
    assert info.columns == ["Date", "Description", "Amount"]
    assert info.delimiter == ";"
    assert info.sheets == []


def test_inspect_csv_reads_only_the_prefix():
    header = "Date,Description,Amount\n"
    body = "2024-01-05,Coffee,4.50\n" * 5000
    info = inspect_columns((header + body).encode(), FileKind.CSV, peek_bytes=64)
    assert info.columns == ["Date", "Description", "Amount"]


def test_inspect_csv_without_header_is_rejected():
    with pytest.raises(ImportRejected) as exc:
        inspect_columns(b"\n\n  \n", FileKind.CSV)
    assert exc.value.reason == "no_header"


def test_inspect_xlsx_lists_sheets_and_selected_header():
    data = xlsx_bytes(
        {
            "Summary": [["Account", "Balance"]],
            "Activity": [["Posted Date", "Payee", "Amount"], ["2024-01-05", "Cafe", 4.5]],
        }
    )
    first = inspect_columns(data, FileKind.XLSX)
    assert first.sheets == ["Summary", "Activity"]
    assert first.columns == ["Account", "Balance"]

    chosen = inspect_columns(data, FileKind.XLSX, sheet="Activity")
    assert chosen.columns == ["Posted Date", "Payee", "Amount"]


def test_inspect_xlsx_unknown_sheet():
    data = xlsx_bytes({"Sheet1": [["Date", "Amount"]]})
    with pytest.raises(ImportRejected) as exc:
        inspect_columns(data, FileKind.XLSX, sheet="Missing")
    assert exc.value.reason == "sheet_not_found"


def test_inspect_corrupt_workbook_is_unreadable():
    with pytest.raises(ImportRejected) as exc:
        inspect_columns(b"definitely not a zip archive", FileKind.XLSX)
    assert exc.value.reason == "unreadable_file"


def test_suggest_mapping_common_bank_headers():
    mapping = suggest_mapping(["Transaction Date", "Memo", "Debit", "Type", "Category"])
    assert mapping.date == "Transaction Date"
    assert mapping.description == "Memo"
    assert mapping.amount == "Debit"
    assert mapping.type == "Type"
    assert mapping.category == "Category"
    # "Memo" already serves as description
    assert mapping.note is None


def test_suggest_mapping_uses_each_header_once():
    mapping = suggest_mapping(["Date", "Description", "Amount"])
    assert mapping == ColumnMapping(date="Date", description="Description", amount="Amount")


def test_suggest_mapping_leaves_unmatched_roles_unset():
    mapping = suggest_mapping(["Foo", "Bar"])
    assert mapping.missing_required() == ["date", "description", "amount"]


def test_signature_ignores_order_case_and_whitespace():
    a = columns_signature(["Date", "Description", "Amount"])
    b = columns_signature([" amount", "DESCRIPTION", "date "])
    assert a == b
    assert len(a) == 64
    assert a != columns_signature(["Date", "Description", "Amount", "Note"])


def test_resolve_mapping_rewrites_case_insensitive_matches():
    mapping = ColumnMapping(date="date", description="DESCRIPTION", amount="Amount")
    resolved = resolve_mapping(mapping, ["Date", "Description", "Amount"])
    assert (resolved.date, resolved.description, resolved.amount) == (
        "Date",
        "Description",
        "Amount",
    )


def test_resolve_mapping_missing_required_role():
    with pytest.raises(ImportRejected) as exc:
        resolve_mapping(ColumnMapping(date="Date", amount="Amount"), ["Date", "Amount"])
    assert exc.value.reason == "missing_columns"
    assert "description" in str(exc.value)


def test_resolve_mapping_unknown_required_column():
    mapping = ColumnMapping(date="Date", description="Payee", amount="Amount")
    with pytest.raises(ImportRejected) as exc:
        resolve_mapping(mapping, ["Date", "Description", "Amount"])
    assert exc.value.reason == "unknown_columns"


def test_resolve_mapping_drops_absent_optional_column():
    mapping = ColumnMapping(
        date="Date", description="Description", amount="Amount", note="Memo"
    )
    resolved = resolve_mapping(mapping, ["Date", "Description", "Amount"])
    assert resolved.note is None
