from datetime import date

import pytest

from packages.core.errors import NoTransactionsFoundError, StatementError
from packages.ingestion_engine.models import Transaction
from packages.ingestion_engine.pdf import banks
from packages.ingestion_engine.pdf.banks import detect_bank_format, get_strategy, register_strategy
from packages.ingestion_engine.pdf.document import PdfDocument
from packages.ingestion_engine.pdf.generic import GenericStatementStrategy
from packages.ingestion_engine.pdf.hsbc import HsbcStatementStrategy
from packages.ingestion_engine.pdf.parser import (
    find_account_number,
    parse_pdf_document,
    validate_pdf_transactions,
)

HSBC_LINES = [
    "HSBC UK Bank plc",
    "Account Number 87654321",
    "Date Payment type and details Paid out Paid in Balance",
    "23 Jul 25 ))) COFFEE HOUSE",
    "LONDON 3.50",
]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Barclays Bank UK PLC", "barclays"),
        ("HSBC UK", "hsbc"),
        ("The Royal Bank of Scotland", "natwest"),
        ("American Express Statement", "amex"),
        ("Barclays payment from HSBC", "barclays"),
        ("Acme Credit Union", "generic"),
        ("", "generic"),
    ],
)
def test_detect_bank_format(text, expected):
    assert detect_bank_format(text) == expected


def test_strategy_lookup():
    assert get_strategy("hsbc") is HsbcStatementStrategy
    assert get_strategy("HSBC") is HsbcStatementStrategy
    assert get_strategy("monzo") is GenericStatementStrategy


def test_register_strategy(monkeypatch):
    monkeypatch.setattr(banks, "STRATEGIES", dict(banks.STRATEGIES))

    class MonzoStrategy(GenericStatementStrategy):
        bank_name = "monzo"

    register_strategy("Monzo", MonzoStrategy)

    assert get_strategy("monzo") is MonzoStrategy


def test_find_account_number_is_redacted():
    assert find_account_number("Account No: 1234 5678") == "****5678"
    assert find_account_number("no numbers here") is None


def test_parse_hsbc_document():
    statement = parse_pdf_document(PdfDocument.from_lines([HSBC_LINES]), filename="jul.pdf")

    assert statement.filename == "jul.pdf"
    assert len(statement) == 1
    assert statement.metadata.bank == "hsbc"
    assert statement.metadata.account_id == "****4321"
    assert statement.metadata.period.start == "2025-07-23"


def test_unrecognized_layout_raises_no_transactions():
    document = PdfDocument.from_lines([["Welcome to your statement", "Nothing to see"]])

    with pytest.raises(NoTransactionsFoundError) as exc_info:
        parse_pdf_document(document)

    assert "Detected format: generic" in exc_info.value.detail


def test_strategy_crash_becomes_statement_error(monkeypatch):
    def explode(self, page):
        raise KeyError("boom")

    monkeypatch.setattr(GenericStatementStrategy, "extract_page", explode)

    with pytest.raises(StatementError) as exc_info:
        parse_pdf_document(PdfDocument.from_lines([["anything"]]), today=date(2024, 1, 1))

    assert exc_info.value.detail.startswith("Failed to parse PDF")
    assert isinstance(exc_info.value.__cause__, KeyError)


def make_txn(iso_date, amount=-1.0, merchant="Tesco"):
    return Transaction(iso_date, amount, merchant.upper(), merchant)


def test_validate_warns_on_repeated_adjacent_lines():
    txns = [make_txn("2024-03-01") for _ in range(5)]

    report = validate_pdf_transactions(txns)

    assert report.warnings == ["Found 4 potential duplicate transactions"]
    assert report.valid


def test_validate_allows_a_few_duplicates():
    txns = [make_txn("2024-03-01") for _ in range(4)]

    assert validate_pdf_transactions(txns).warnings == []


def test_validate_warns_on_long_date_range():
    txns = [make_txn("2023-01-01"), make_txn("2024-03-01", merchant="Shell")]

    report = validate_pdf_transactions(txns)

    assert report.warnings == ["Transaction range spans more than 13 months - verify accuracy"]
