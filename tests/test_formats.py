import pytest

from statement_import.errors import ImportRejected
from statement_import.ingest.formats import (
    decode_text,
    detect_kind,
    ensure_within_size_limit,
    require_kind,
    sniff_delimiter,
)
from statement_import.models import FileKind


@pytest.mark.parametrize(
    ("filename", "content_type", "expected"),
    [
        ("statement.csv", None, FileKind.CSV),
        ("Statement.XLSX", None, FileKind.XLSX),
        ("legacy.xls", "application/octet-stream", FileKind.XLS),
        # Extension wins over a contradicting content type
        ("statement.csv", "application/vnd.ms-excel", FileKind.CSV),
        (None, "text/csv", FileKind.CSV),
        ("upload", "text/comma-separated-values", FileKind.CSV),
        (
            "upload",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            FileKind.XLSX,
        ),
        ("upload", "application/vnd.ms-excel", FileKind.XLS),
        ("report.pdf", "application/pdf", None),
        (None, None, None),
    ],
)
def test_detect_kind(filename, content_type, expected):
    assert detect_kind(filename, content_type) is expected


def test_require_kind_rejects_unsupported_upload():
    with pytest.raises(ImportRejected) as exc:
        require_kind("notes.txt", "text/plain")
    assert exc.value.reason == "unsupported_file_type"
    assert "Only CSV/XLSX/XLS" in str(exc.value)


def test_size_limit():
    ensure_within_size_limit(b"x" * 10, 10)
    with pytest.raises(ImportRejected) as exc:
        ensure_within_size_limit(b"x" * 11, 10)
    assert exc.value.reason == "file_too_large"


def test_decode_text_strips_bom_and_falls_back_to_latin1():
    assert decode_text("\ufeffDate,Amount".encode()) == "Date,Amount"
    assert decode_text(b"caf\xe9") == "café"


def test_decode_text_prefix_drops_partial_multibyte_sequence():
    data = "abé".encode()
    assert decode_text(data[:-1], final=False) == "ab"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("Date;Description;Amount\n1;2;3", ";"),
        ("Date\tDescription\tAmount\n", "\t"),
        ("Date,Description,Amount\n", ","),
        ("\n\nDate;Amount\n", ";"),
        # Tie resolves to the earlier candidate
        ("a,b;c\n", ","),
        ("", ","),
    ],
)
def test_sniff_delimiter(text, expected):
    assert sniff_delimiter(text) == expected
