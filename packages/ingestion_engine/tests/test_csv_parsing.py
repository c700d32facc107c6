import pytest

from packages.categorization.constants import Category
from packages.core.diagnostics import DiagnosticCollector
from packages.core.errors import EmptyStatementError
from packages.ingestion_engine.parser import (
    BankStatementParser,
    detect_column_mapping,
    parse_bank_statement,
)


@pytest.fixture
def collector():
    return DiagnosticCollector()


def test_parse_csv_sign_normalization(collector):
    """
    Test that Debits are normalized to Negative values and Credits to Positive.
    A row with both cells zero is dropped.
    """
    csv_data = """Date,Description,Debit,Credit
12/02/2026,Salary,,5000.00
13/02/2026,Rent,2000.00,
14/02/2026,Nothing,0,0"""

    statement = parse_bank_statement(csv_data, filename="feb.csv", sink=collector)

    assert len(statement) == 2
    salary, rent = statement.transactions
    assert salary.amount == 5000.00
    assert salary.is_income
    assert rent.amount == -2000.00
    assert rent.is_expense
    assert "row_zero_amount" in collector.codes()


def test_parse_csv_amount_column():
    """
    Test single 'Amount' column where negatives are explicit with - sign.
    """
    csv_data = """Date,Description,Amount
2026-02-12,Coffee,-5.00
2026-02-13,Refund,10.00"""

    statement = parse_bank_statement(csv_data)

    coffee, refund = statement.transactions
    assert coffee.amount == -5.00
    assert coffee.date == "2026-02-12"
    assert refund.amount == 10.00


def test_transactions_start_uncategorized():
    csv_data = "Date,Description,Amount\n01/03/2024,CARD PAYMENT TO TESCO STORES 1234,-3.20"

    txn = parse_bank_statement(csv_data, filename="march.csv").transactions[0]

    assert txn.category == Category.UNKNOWN
    assert txn.confidence == 0.0
    assert txn.source_file == "march.csv"
    assert txn.currency == "GBP"


def test_description_is_resolved_to_canonical_merchant():
    csv_data = "Date,Description,Amount\n01/03/2024,CARD PAYMENT TO TESCO STORES 1234,-3.20"

    txn = parse_bank_statement(csv_data).transactions[0]

    assert txn.merchant_raw == "TESCO STORES"
    assert txn.merchant_canonical == "Tesco"
    assert txn.original_description == "CARD PAYMENT TO TESCO STORES 1234"


def test_malformed_row_does_not_abort_batch(collector):
    """10 rows, one without a date: 9 transactions and exactly one warning."""
    rows = [f"{day:02d}/03/2024,SHOP {day},-{day}.50" for day in range(1, 11)]
    rows[4] = ",SHOP 5,-5.50"
    csv_data = "Date,Description,Amount\n" + "\n".join(rows)

    statement = parse_bank_statement(csv_data, sink=collector)

    assert len(statement) == 9
    assert len(collector.warnings) == 1
    assert collector.warnings[0].code == "row_missing_date"
    assert collector.warnings[0].context["row"] == 5


def test_row_with_extra_fields_is_skipped(collector):
    csv_data = (
        "Date,Description,Amount\n"
        "01/09/2024,Tesco,-12.50\n"
        "02/09/2024,Foo,bar,-3.00\n"
        "03/09/2024,Boots,-4.00\n"
    )

    statement = parse_bank_statement(csv_data, sink=collector)

    assert [t.original_description for t in statement.transactions] == ["Tesco", "Boots"]
    assert [e.code for e in collector.warnings] == ["row_malformed"]
    assert collector.warnings[0].context["fields"] == 4


def test_unparseable_values_are_dropped_with_warning(collector):
    csv_data = """Date,Description,Amount
01/03/2024,Good,-1.00
31/31/2024,Bad date,-1.00
02/03/2024,Bad amount,abc"""

    statement = parse_bank_statement(csv_data, sink=collector)

    assert len(statement) == 1
    assert [e.code for e in collector.warnings] == ["row_invalid_date", "row_invalid_amount"]


def test_conflicting_debit_and_credit_prefers_debit(collector):
    csv_data = "Date,Description,Debit,Credit\n01/03/2024,Odd row,10.00,20.00"

    txn = parse_bank_statement(csv_data, sink=collector).transactions[0]

    assert txn.amount == -10.00
    assert collector.codes() == ["ambiguous_debit_credit"]


def test_debit_amount_header_is_not_a_signed_amount_column():
    csv_data = """Date,Description,Debit Amount,Credit Amount
01/03/2024,Shop,4.00,
02/03/2024,Refund,,4.00"""

    shop, refund = parse_bank_statement(csv_data).transactions

    assert shop.amount == -4.00
    assert refund.amount == 4.00


def test_currency_column_is_used_when_present():
    csv_data = "Date,Description,Amount,Currency\n01/03/2024,Paris cafe,-3.00,eur"

    txn = parse_bank_statement(csv_data).transactions[0]

    assert txn.currency == "EUR"


def test_default_currency_comes_from_settings(monkeypatch):
    monkeypatch.setenv("DEFAULT_CURRENCY", "USD")
    csv_data = "Date,Description,Amount\n01/03/2024,Shop,-3.00"

    statement = parse_bank_statement(csv_data)

    assert statement.transactions[0].currency == "USD"
    assert statement.metadata.currency == "USD"


def test_statement_period_metadata():
    csv_data = """Date,Description,Amount
15/03/2024,B,-1.00
01/03/2024,A,-1.00
31/03/2024,C,-1.00"""

    statement = parse_bank_statement(csv_data)

    assert statement.metadata.period.start == "2024-03-01"
    assert statement.metadata.period.end == "2024-03-31"
    # Source order is preserved
    assert [t.merchant_raw for t in statement.transactions] == ["B", "A", "C"]


def test_bytes_with_latin1_encoding():
    csv_bytes = "Date,Description,Amount\n01/03/2024,Café Nero,-2.80".encode("latin-1")

    txn = parse_bank_statement(csv_bytes).transactions[0]

    assert txn.original_description == "Café Nero"


@pytest.mark.parametrize("content", [b"", "Date,Description,Amount\n", "\n\n"])
def test_empty_file_is_fatal(content):
    with pytest.raises(EmptyStatementError):
        parse_bank_statement(content)


def test_progress_callback_reports_each_row():
    calls = []
    csv_data = "Date,Description,Amount\n01/03/2024,A,-1\n02/03/2024,B,-2\n03/03/2024,C,-3"

    BankStatementParser(csv_data, progress_callback=lambda c, t: calls.append((c, t))).parse()

    assert calls == [(1, 3), (2, 3), (3, 3)]


def test_detect_column_mapping():
    mapping = detect_column_mapping(
        ["Transaction Date", "Details", "Paid Out", "Paid In", "Balance"]
    )

    assert mapping.date == "Transaction Date"
    assert mapping.description == "Details"
    assert mapping.amount is None
    assert mapping.debit == "Paid Out"
    assert mapping.credit == "Paid In"
    assert mapping.balance == "Balance"
    assert mapping.has_amount_source


def test_missing_columns_are_reported(collector):
    csv_data = "Posted,Memo\nfoo,bar"

    statement = parse_bank_statement(csv_data, sink=collector)

    assert len(statement) == 0
    assert "no_date_column" in collector.codes()
    assert "no_amount_column" in collector.codes()
