import pytest

from packages.core.diagnostics import DiagnosticCollector
from packages.ingestion_engine.pdf.document import PdfDocument
from packages.ingestion_engine.pdf.hsbc import (
    HsbcStatementStrategy,
    date_prefix,
    find_amount_backward,
    find_date_forward,
    find_header_index,
    is_summary_line,
)

HEADER = "Date Payment type and details Paid out Paid in Balance"

STATEMENT_LINES = [
    "HSBC UK Bank plc",
    "Your Statement",
    "Account Number 87654321",
    HEADER,
    "23 Jul 25 ))) COFFEE HOUSE",
    "LONDON 3.50",
    "VIS TESCO STORES",
    "LONDON 12.50 926.78",
    "24 Jul 25 CR ACME PAYROLL Paid in 2,000.00",
    "BALANCE CARRIED FORWARD 2,926.78",
]


@pytest.fixture
def collector():
    return DiagnosticCollector()


@pytest.fixture
def strategy(collector):
    return HsbcStatementStrategy(filename="hsbc.pdf", sink=collector)


def extract(strategy, lines):
    return strategy.extract(PdfDocument.from_lines([lines]))


@pytest.mark.parametrize(
    "line,expected",
    [
        ("23 Jul 25 ))) COFFEE HOUSE", "23 Jul 25"),
        ("5 September 2025 DD COUNCIL TAX", "5 September 2025"),
        ("1 Jul 25 to 31 Jul 25", None),
        ("LONDON 3.50", None),
    ],
)
def test_date_prefix(line, expected):
    assert date_prefix(line) == expected


def test_summary_lines():
    assert is_summary_line("BALANCE BROUGHT FORWARD 100.00")
    assert not is_summary_line("VIS TESCO STORES")


def test_header_found_in_bottom_up_lines():
    lines = list(reversed(STATEMENT_LINES))

    assert find_header_index(lines) == 6


def test_find_amount_backward_stops_at_dated_line():
    lines = ["LONDON 3.50", "24 Jul 25 VIS SHOP", "VIS OTHER"]

    assert find_amount_backward(lines, 2) is None
    found = find_amount_backward(lines, 1)
    assert (found.amount_text, found.location, found.index) == ("3.50", "LONDON", 0)


def test_find_amount_backward_summary_handling():
    lines = ["LONDON 3.50", "BALANCE CARRIED FORWARD 9.00", "VIS SHOP"]

    assert find_amount_backward(lines, 2) is None
    assert find_amount_backward(lines, 2, skip_summary=True).amount_text == "3.50"


def test_find_date_forward():
    positions = [(1, "24 Jul 25"), (5, "23 Jul 25")]

    assert find_date_forward(positions, 3) == "23 Jul 25"
    assert find_date_forward(positions, 6) == "23 Jul 25"
    assert find_date_forward([], 0) is None


def test_multi_line_statement(strategy, collector):
    coffee, tesco, payroll = extract(strategy, STATEMENT_LINES)

    assert (coffee.date, coffee.amount, coffee.merchant_raw) == ("2025-07-23", -3.50, "COFFEE HOUSE")
    assert coffee.original_description == "COFFEE HOUSE (LONDON)"

    assert (tesco.date, tesco.amount) == ("2025-07-23", -12.50)
    assert tesco.merchant_canonical == "Tesco"

    assert (payroll.date, payroll.amount) == ("2025-07-24", 2000.00)
    assert payroll.merchant_raw == "CR ACME PAYROLL"

    assert collector.warnings == []


def test_billing_line_takes_amount_before_balance(strategy):
    lines = [
        "Date Paid out Paid in Balance",
        "05 Aug 25 VIS CAFE",
        "LONDON 4.00",
        "APPLE.COM/BILL 0.99 95.01",
    ]

    cafe, apple = extract(strategy, lines)

    assert (cafe.merchant_raw, cafe.amount, cafe.date) == ("VIS CAFE", -4.00, "2025-08-05")
    assert (apple.amount, apple.date) == (-0.99, "2025-08-05")
    assert apple.merchant_canonical == "Apple iCloud"


def test_paid_in_column_detected_by_position(strategy):
    credit = extract(strategy, [HEADER, "12 Aug 25  TFR SAVINGS  ACC 99      150.00"])[0]
    debit = extract(strategy, [HEADER, "12 Aug 25 TFR SAVINGS 150.00"])[0]

    assert credit.amount == 150.00
    assert debit.amount == -150.00


def test_dated_line_without_amount_is_reported(strategy, collector):
    assert extract(strategy, [HEADER, "06 Aug 25 VIS SHOP"]) == []
    assert collector.codes() == ["amount_not_found"]


def test_invalid_date_is_reported_and_skipped(strategy, collector):
    transactions = extract(strategy, [HEADER, "31 Feb 25 VIS SHOP 5.00", "01 Mar 25 VIS SHOP 6.00"])

    assert [t.amount for t in transactions] == [-6.00]
    assert collector.codes() == ["line_invalid"]
