from unittest.mock import patch

import pytest

from packages.core.errors import NoTransactionsFoundError, UnsupportedFileTypeError
from packages.ingestion_engine.import_transactions import (
    FileType,
    detect_file_type,
    merge_statements,
    parse_file,
    validate_transactions,
)
from packages.ingestion_engine.models import (
    ParsedStatement,
    StatementMetadata,
    StatementPeriod,
    Transaction,
)
from packages.ingestion_engine.pdf.document import PdfDocument

CSV_CONTENT = b"Date,Description,Amount\n01/03/2024,CARD PAYMENT TO TESCO STORES 1234,-3.20\n"

HSBC_LINES = [
    "HSBC UK Bank plc",
    "Date Payment type and details Paid out Paid in Balance",
    "23 Jul 25 ))) COFFEE HOUSE",
    "LONDON 3.50",
]


@pytest.mark.parametrize(
    "filename,content_type,expected",
    [
        ("march.csv", None, FileType.CSV),
        ("REPORT.PDF", None, FileType.PDF),
        ("download", "text/csv", FileType.CSV),
        ("download", "application/pdf", FileType.PDF),
        ("bank statement.txt", None, FileType.CSV),
    ],
)
def test_detect_file_type(filename, content_type, expected):
    assert detect_file_type(filename, content_type) is expected


@pytest.mark.parametrize("filename", ["budget.xlsx", "notes.txt", ""])
def test_unsupported_file_type(filename):
    with pytest.raises(UnsupportedFileTypeError) as exc_info:
        detect_file_type(filename)

    assert exc_info.value.to_dict()["type"] == "unsupported-file-type"


def test_parse_csv_file_attaches_validation():
    statement = parse_file(CSV_CONTENT, "march.csv")

    assert len(statement) == 1
    assert statement.transactions[0].merchant_canonical == "Tesco"
    assert statement.validation.valid
    assert statement.validation.warnings == []


@patch("packages.ingestion_engine.pdf.parser.extract_document")
def test_parse_pdf_file(mock_extract):
    mock_extract.return_value = PdfDocument.from_lines([HSBC_LINES])

    statement = parse_file(b"%PDF-1.4", "july.pdf", content_type="application/pdf")

    assert [t.amount for t in statement.transactions] == [-3.50]
    assert statement.metadata.bank == "hsbc"
    assert statement.validation.valid


@patch("packages.ingestion_engine.pdf.parser.extract_document")
def test_parse_pdf_without_transactions_is_fatal(mock_extract):
    mock_extract.return_value = PdfDocument.from_lines([["Nothing here"]])

    with pytest.raises(NoTransactionsFoundError):
        parse_file(b"%PDF-1.4", "empty.pdf")


def test_validate_transactions_reports_problems():
    report = validate_transactions([Transaction("", 0.0, "", "")])

    assert report.errors == [
        "Transaction 1: Missing date",
        "Transaction 1: Amount is zero",
        "Transaction 1: Missing merchant/description",
    ]
    assert validate_transactions([]).errors == ["No transactions found"]


def make_statement(filename, rows, currency="GBP"):
    txns = [Transaction(d, a, m.upper(), m, currency=currency) for d, a, m in rows]
    period = StatementPeriod(min(r[0] for r in rows), max(r[0] for r in rows))
    return ParsedStatement(filename, txns, StatementMetadata(currency=currency, period=period))


def test_merge_statements_sorts_and_deduplicates():
    first = make_statement("a.csv", [("2024-03-02", -1.0, "Tesco"), ("2024-03-01", -2.0, "Shell")], "EUR")
    second = make_statement("b.csv", [("2024-03-02", -1.0, "Tesco"), ("2024-03-03", -5.0, "Asda")])

    merged = merge_statements([first, second])

    assert merged.filename == "Merged (2 files)"
    assert [t.merchant_canonical for t in merged.transactions] == ["Shell", "Tesco", "Asda"]
    # First occurrence wins
    assert merged.transactions[1].id == first.transactions[0].id
    assert (merged.metadata.period.start, merged.metadata.period.end) == ("2024-03-01", "2024-03-03")
    assert merged.metadata.currency == "EUR"


def test_merge_keeps_same_day_different_amounts():
    statement = make_statement("a.csv", [("2024-03-02", -1.0, "Tesco"), ("2024-03-02", -1.5, "Tesco")])

    assert len(merge_statements([statement])) == 2
