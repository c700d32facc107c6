"""Tests for the edge-case rule table and keyword fallback."""
import pytest

from packages.categorization.constants import Category
from packages.categorization.rules import (
    EDGE_CASE,
    EDGE_CASE_RULES,
    FALLBACK,
    KeywordMatcher,
    RuleContext,
    amount_plausibility_factor,
    contains_keyword,
    find_edge_case_rule,
    handle_uncategorized,
    is_off_license,
    is_refund,
    is_small_cafe,
    keyword_confidence,
    match_edge_case,
)
from packages.ingestion_engine.models import Transaction


def make_txn(merchant_raw, merchant_canonical, amount, description=None, **kwargs):
    return Transaction(
        "2024-03-01",
        amount,
        merchant_raw,
        merchant_canonical,
        original_description=description if description is not None else merchant_raw,
        **kwargs,
    )


def ctx(merchant="", amount=-10.0, description="", merchant_raw=None):
    return RuleContext(merchant, merchant_raw if merchant_raw is not None else merchant, description, amount)


@pytest.mark.parametrize(
    "text,keyword,expected",
    [
        ("monthly rent", "rent", True),
        ("current account", "rent", False),  # short keywords are whole words
        ("cashpoint london", "cashpoint", True),
        ("", "atm", False),
    ],
)
def test_contains_keyword(text, keyword, expected):
    assert contains_keyword(text, keyword) is expected


def test_rule_names_in_priority_order():
    assert [r.name for r in EDGE_CASE_RULES] == [
        "atm",
        "rent",
        "personal_transfer",
        "off_license",
        "small_cafe",
        "bank_fee",
        "interest",
        "refund",
        "salary",
        "internal_transfer",
        "foreign_exchange",
    ]


def test_atm_beats_person_name():
    result = match_edge_case(make_txn("JOHN SMITH", "John Smith", -20.0, "ATM WITHDRAWAL"))

    assert result.category == Category.CASH
    assert result.subcategory == "ATM Withdrawal"
    assert result.confidence == 0.95
    assert result.method == EDGE_CASE


def test_standing_order_to_person_is_rent():
    txn = make_txn("JO BLOGGS", "Jo Bloggs", -850.0, "STANDING ORDER JO BLOGGS")

    assert find_edge_case_rule(txn).name == "rent"
    assert match_edge_case(txn).subcategory == "Rent"


def test_small_standing_order_to_person_is_a_transfer():
    txn = make_txn("JO BLOGGS", "Jo Bloggs", -40.0, "STANDING ORDER JO BLOGGS")

    result = match_edge_case(txn)

    assert (result.category, result.subcategory) == (Category.TRANSFERS, "Friends")


def test_current_account_is_not_rent():
    raw = "TFR 0123 CURRENT ACCOUNT SWEEP"
    txn = make_txn(raw, "Tfr 0123 Current Account Sweep", -100.0)

    assert find_edge_case_rule(txn).name == "internal_transfer"


def test_company_credit_is_salary():
    txn = make_txn("ACME WIDGET HOLDINGS GROUP LTD", "Acme Widget Holdings Group", 2500.0)

    result = match_edge_case(txn)

    assert (result.category, result.subcategory, result.confidence) == (Category.INCOME, "Salary", 0.90)


def test_small_company_credit_is_not_salary():
    txn = make_txn("ACME WIDGET HOLDINGS GROUP LTD", "Acme Widget Holdings Group", 250.0)

    assert match_edge_case(txn) is None


def test_individual_predicates():
    assert is_off_license(ctx("bargain booze"))
    assert is_small_cafe(ctx("corner cafe", amount=-4.5))
    assert not is_small_cafe(ctx("corner cafe", amount=-40.0))
    assert is_refund(ctx("shop", amount=12.0, description="refund order 99"))
    assert not is_refund(ctx("shop", amount=-12.0, description="refund order 99"))


class TestKeywordMatcher:
    def test_best_category_wins(self):
        category, matches = KeywordMatcher().score("Grand Hotel Booking Services")

        assert category == Category.TRAVEL
        assert matches == 2

    def test_no_match_is_unknown(self):
        assert KeywordMatcher().score("qx 77 unit") == (Category.UNKNOWN, 0)

    def test_tie_keeps_earlier_category(self):
        # one Food keyword, one Shopping keyword
        category, _ = KeywordMatcher().score("supermarket store")

        assert category == Category.FOOD


@pytest.mark.parametrize("count,expected", [(0, 0.3), (1, 0.6), (2, 0.7), (5, 0.7)])
def test_keyword_confidence(count, expected):
    assert keyword_confidence(count) == pytest.approx(expected)


@pytest.mark.parametrize(
    "amount,category,expected",
    [
        (-0.5, Category.SHOPPING, 0.6),
        (-20000, Category.SHOPPING, 0.7),
        (-250, Category.FOOD, 0.7),
        (-250, Category.SHOPPING, 1.0),
    ],
)
def test_amount_plausibility_factor(amount, category, expected):
    assert amount_plausibility_factor(amount, category) == expected


def test_handle_uncategorized_uses_mcc():
    result = handle_uncategorized(make_txn("QX", "Qx", -12.0, mcc="5411"))

    assert result.category == Category.FOOD
    assert result.confidence == 0.8
    assert result.notes == "Categorized using MCC code 5411"
    assert result.method == FALLBACK


def test_handle_uncategorized_tiny_amount():
    result = handle_uncategorized(make_txn("QX", "Qx", -0.2))

    assert result.category == Category.UNKNOWN
    assert result.confidence == 0.5


def test_handle_uncategorized_gives_up():
    assert handle_uncategorized(make_txn("QX", "Qx", -12.0, mcc="9999")) is None
