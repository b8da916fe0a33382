import datetime as dt
import hashlib
from decimal import Decimal

from statement_import.dedupe import (
    compute_dedupe_hash,
    estimate_duplicates,
    hash_transactions,
    normalize_description,
    similar_strings,
)
from statement_import.ingest.parser import parse
from statement_import.models import (
    ColumnMapping,
    FileKind,
    ImportableTransaction,
    RecentTransaction,
    TransactionType,
)
from tests.helpers.workbooks import xlsx_bytes


def _tx(date="2024-01-05", description="Coffee Shop", amount="4.50", **kw):
    return ImportableTransaction(
        date=date,
        description=description,
        amount=Decimal(amount),
        type=kw.pop("type", TransactionType.EXPENSE),
        **kw,
    )


def test_hash_layout_is_account_date_amount_description():
    expected = hashlib.sha256(b"|2024-01-05|4.50|coffee shop").hexdigest()
    assert compute_dedupe_hash(date="2024-01-05", amount=Decimal("4.5"), description="Coffee Shop") == expected
    with_account = hashlib.sha256(b"acct-1|2024-01-05|4.50|coffee shop").hexdigest()
    assert (
        compute_dedupe_hash(
            date="2024-01-05", amount=Decimal("4.50"), description="Coffee Shop", account_id="acct-1"
        )
        == with_account
    )


def test_hash_is_stable_under_cosmetic_description_changes():
    a = compute_dedupe_hash(date="2024-01-05", amount=Decimal("4.50"), description="Coffee Shop")
    b = compute_dedupe_hash(date="2024-01-05", amount=Decimal("4.500"), description="  COFFEE   shop ")
    assert a == b
    assert normalize_description("  COFFEE \t shop ") == "coffee shop"


def test_hash_is_identical_across_column_order_delimiter_and_format():
    mapping = ColumnMapping(date="Date", description="Desc", amount="Amt")
    comma = b"Date,Desc,Amt\n2024-01-05,Coffee Shop,-4.50\n"
    semicolon = b"Amt;Desc;Date\n-4.5;coffee  shop;01/05/2024\n"
    workbook = xlsx_bytes(
        {"Sheet1": [["Date", "Desc", "Amt"], [dt.datetime(2024, 1, 5), "Coffee Shop", -4.5]]}
    )

    hashes = []
    for data, kind in [(comma, FileKind.CSV), (semicolon, FileKind.CSV), (workbook, FileKind.XLSX)]:
        result = parse(data, mapping, kind)
        assert result.errors == []
        hashes.append(hash_transactions(result.rows)[0].dedupe_hash)

    assert hashes[0] == hashes[1] == hashes[2]


def test_hash_changes_with_content():
    base = compute_dedupe_hash(date="2024-01-05", amount=Decimal("4.50"), description="Coffee")
    assert base != compute_dedupe_hash(date="2024-01-06", amount=Decimal("4.50"), description="Coffee")
    assert base != compute_dedupe_hash(date="2024-01-05", amount=Decimal("4.51"), description="Coffee")
    assert base != compute_dedupe_hash(date="2024-01-05", amount=Decimal("4.50"), description="Tea")


def test_hash_ignores_category_and_type():
    a, b = hash_transactions(
        [_tx(category="Food"), _tx(category="Other", type=TransactionType.INCOME)]
    )
    assert a.dedupe_hash == b.dedupe_hash


def test_similar_strings():
    assert similar_strings("Coffee Shop", "coffee shop ")
    assert similar_strings("a b c", "a b c d") is False
    assert similar_strings("uber trip sf ca usa", "uber trip sf ca usa x") is True
    assert similar_strings("", "anything") is False


def test_estimate_duplicates_by_hash_membership():
    items = hash_transactions([_tx(), _tx(description="Tea")])
    recent = [
        RecentTransaction(
            dedupe_hash=items[1].dedupe_hash, date="2024-01-05", amount=Decimal("4.50"), description="Tea"
        )
    ]
    assert estimate_duplicates(items, recent) == [items[1]]


def test_estimate_duplicates_heuristic_without_hashes():
    items = hash_transactions(
        [_tx(), _tx(description="Bookstore", amount="20.00"), _tx(date="2024-01-06")]
    )
    recent = [
        RecentTransaction(dedupe_hash=None, date="2024-01-05", amount=Decimal("4.505"), description="coffee shop"),
        RecentTransaction(dedupe_hash=None, date="2024-01-05", amount=Decimal("20.00"), description="Gas station"),
    ]
    assert estimate_duplicates(items, recent) == [items[0]]


def test_estimate_duplicates_with_no_history():
    assert estimate_duplicates(hash_transactions([_tx()]), []) == []
