from datetime import date, datetime
from unittest.mock import MagicMock

import pytest

from packages.core.errors import AmountParseError, DateParseError
from packages.ingestion_engine.parser import (
    ProgressTracker,
    expand_year,
    parse_amount,
    parse_date,
    parse_optional_amount,
)


@pytest.mark.parametrize(
    "value",
    ["05/03/2024", "05/03/24", "2024-03-05", "5 Mar 2024", "05 March 2024", "05-03-2024"],
)
def test_every_accepted_format_maps_to_same_date(value):
    assert parse_date(value) == "2024-03-05"


def test_two_digit_year_expansion():
    assert expand_year(49) == 2049
    assert expand_year(50) == 1950
    assert parse_date("01/01/49") == "2049-01-01"
    assert parse_date("01/01/50") == "1950-01-01"


def test_yearless_date_uses_current_year():
    assert parse_date("15 Feb", today=date(2024, 3, 1)) == "2024-02-15"


def test_yearless_date_in_future_rolls_back_a_year():
    assert parse_date("15 Dec", today=date(2024, 3, 1)) == "2023-12-15"


def test_date_objects_pass_through():
    assert parse_date(date(2024, 3, 5)) == "2024-03-05"
    assert parse_date(datetime(2024, 3, 5, 13, 45)) == "2024-03-05"


@pytest.mark.parametrize("value", ["not a date", "", None, "   "])
def test_unparseable_date_raises(value):
    with pytest.raises(DateParseError):
        parse_date(value)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("£1,234.56", 1234.56),
        ("1234.56", 1234.56),
        ("(100.00)", -100.00),
        ("-£5.00", -5.00),
        ("€ 12", 12.0),
        (7, 7.0),
    ],
)
def test_parse_amount(value, expected):
    assert parse_amount(value) == pytest.approx(expected)


def test_parse_amount_is_idempotent():
    once = parse_amount("£1,234.56")
    assert parse_amount(once) == once


@pytest.mark.parametrize("value", ["abc", "", None, "12.3.4"])
def test_unparseable_amount_raises(value):
    with pytest.raises(AmountParseError):
        parse_amount(value)


def test_optional_amount_treats_blank_as_zero():
    assert parse_optional_amount("") == 0.0
    assert parse_optional_amount("  ") == 0.0
    assert parse_optional_amount("2.50") == 2.50


class TestProgressTracker:
    def test_callback_receives_current_and_total(self):
        callback = MagicMock()
        tracker = ProgressTracker(2, callback)

        tracker.update()
        tracker.update()

        assert [c.args for c in callback.call_args_list] == [(1, 2), (2, 2)]

    def test_finish_completes_progress(self):
        callback = MagicMock()
        tracker = ProgressTracker(5, callback)

        tracker.update()
        tracker.finish()

        assert tracker.current == 5
        callback.assert_called_with(5, 5)

    def test_without_callback_does_not_fail(self):
        tracker = ProgressTracker(0)
        tracker.update()
        assert tracker.current == 1
