"""
Rule layers of the classification cascade.

Edge-case rules are an ordered table of (predicate, result) pairs; the
first predicate that holds wins. The keyword fallback scores every
category by how many of its configured keywords appear in the text.
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Tuple

from packages.categorization.constants import (
    CATEGORY_CONFIG,
    MCC_CATEGORY_MAP,
    Category,
)
from packages.ingestion_engine.merchant_extractor import looks_like_person_name
from packages.ingestion_engine.models import Transaction

KNOWN_MERCHANT = "known_merchant"
EDGE_CASE = "edge_case"
FALLBACK = "fallback"
ERROR = "error"


@dataclass(frozen=True)
class CategorizationResult:
    """Outcome of one cascade stage."""

    category: Category
    subcategory: Optional[str]
    confidence: float
    notes: str
    method: str


def contains_keyword(text: str, keyword: str) -> bool:
    """Substring match; keywords of 4 chars or fewer must be whole words."""
    if not text:
        return False
    if len(keyword) <= 4:
        # word boundary check for short keywords (e.g. "rent" inside "current")
        return re.search(r"\b" + re.escape(keyword) + r"\b", text) is not None
    return keyword in text


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(contains_keyword(text, keyword) for keyword in keywords)


ATM_KEYWORDS = ("atm", "cash", "withdrawal", "dispense", "cashpoint", "cash machine")
RENT_KEYWORDS = ("rent", "landlord", "letting", "property", "estate")
STANDING_ORDER_KEYWORDS = ("standing order", "so")
OFF_LICENSE_KEYWORDS = (
    "off license",
    "off licence",
    "booze",
    "wine shop",
    "liquor",
    "wines",
    "beer shop",
)
CAFE_KEYWORDS = ("cafe", "coffee", "tea room", "bistro", "deli", "bakery")
BANK_FEE_KEYWORDS = (
    "bank fee",
    "service charge",
    "account fee",
    "monthly fee",
    "admin fee",
    "maintenance fee",
)
INTEREST_KEYWORDS = ("interest", "interest charge", "overdraft interest", "credit interest")
REFUND_KEYWORDS = ("refund", "reversal", "chargeback", "returned", "credit adjustment")
SALARY_KEYWORDS = ("salary", "wage", "payroll", "pay", "wages", "income")
COMPANY_INDICATORS = ("ltd", "limited", "inc", "corp", "plc", "llc")
INTERNAL_TRANSFER_KEYWORDS = (
    "transfer to",
    "transfer from",
    "internal transfer",
    "own account",
    "savings transfer",
    "current account",
    "savings account",
)
FX_KEYWORDS = (
    "foreign exchange",
    "fx fee",
    "currency conversion",
    "exchange rate",
    "non-sterling",
)


@dataclass(frozen=True)
class RuleContext:
    """Lowercased views of a transaction, computed once per classification."""

    merchant: str
    merchant_raw: str
    description: str
    amount: float

    @property
    def magnitude(self) -> float:
        return abs(self.amount)

    @classmethod
    def from_transaction(cls, txn: Transaction) -> "RuleContext":
        return cls(
            merchant=(txn.merchant_canonical or "").lower(),
            merchant_raw=(txn.merchant_raw or "").lower(),
            description=(txn.original_description or "").lower(),
            amount=txn.amount,
        )


def is_atm_withdrawal(ctx: RuleContext) -> bool:
    return contains_any(ctx.merchant, ATM_KEYWORDS) or contains_any(ctx.description, ATM_KEYWORDS)


def is_rent_payment(ctx: RuleContext) -> bool:
    if contains_any(ctx.merchant, RENT_KEYWORDS) or contains_any(ctx.description, RENT_KEYWORDS):
        return True
    return (
        500 <= ctx.magnitude <= 5000
        and contains_any(ctx.description, STANDING_ORDER_KEYWORDS)
        and looks_like_person_name(ctx.merchant)
    )


def is_personal_transfer(ctx: RuleContext) -> bool:
    return looks_like_person_name(ctx.merchant)


def is_off_license(ctx: RuleContext) -> bool:
    return contains_any(ctx.merchant, OFF_LICENSE_KEYWORDS)


def is_small_cafe(ctx: RuleContext) -> bool:
    return contains_any(ctx.merchant, CAFE_KEYWORDS) and 2 <= ctx.magnitude <= 15


def is_bank_fee(ctx: RuleContext) -> bool:
    return contains_any(ctx.merchant, BANK_FEE_KEYWORDS) or contains_any(
        ctx.description, BANK_FEE_KEYWORDS
    )


def is_interest_charge(ctx: RuleContext) -> bool:
    return contains_any(ctx.description, INTEREST_KEYWORDS)


def is_refund(ctx: RuleContext) -> bool:
    return ctx.amount > 0 and contains_any(ctx.description, REFUND_KEYWORDS)


def looks_like_company_name(ctx: RuleContext) -> bool:
    # Canonical names have legal suffixes stripped, so check the raw text too
    return contains_any(ctx.merchant, COMPANY_INDICATORS) or contains_any(
        ctx.merchant_raw, COMPANY_INDICATORS
    )


def is_salary(ctx: RuleContext) -> bool:
    if ctx.amount <= 0:
        return False
    has_keyword = contains_any(ctx.merchant, SALARY_KEYWORDS) or contains_any(
        ctx.description, SALARY_KEYWORDS
    )
    return has_keyword or (ctx.amount >= 1000 and looks_like_company_name(ctx))


def is_internal_transfer(ctx: RuleContext) -> bool:
    return contains_any(ctx.merchant, INTERNAL_TRANSFER_KEYWORDS) or contains_any(
        ctx.description, INTERNAL_TRANSFER_KEYWORDS
    )


def is_foreign_exchange_fee(ctx: RuleContext) -> bool:
    return contains_any(ctx.description, FX_KEYWORDS)


@dataclass(frozen=True)
class EdgeCaseRule:
    name: str
    predicate: Callable[[RuleContext], bool]
    category: Category
    subcategory: str
    confidence: float
    notes: str

    def result(self) -> CategorizationResult:
        return CategorizationResult(
            category=self.category,
            subcategory=self.subcategory,
            confidence=self.confidence,
            notes=self.notes,
            method=EDGE_CASE,
        )


# Priority order: predicates overlap, the first one that holds wins
EDGE_CASE_RULES: Tuple[EdgeCaseRule, ...] = (
    EdgeCaseRule("atm", is_atm_withdrawal, Category.CASH, "ATM Withdrawal", 0.95, "ATM cash withdrawal"),
    EdgeCaseRule(
        "rent",
        is_rent_payment,
        Category.HOUSING,
        "Rent",
        0.85,
        "Likely rent payment based on amount and description",
    ),
    EdgeCaseRule(
        "personal_transfer",
        is_personal_transfer,
        Category.TRANSFERS,
        "Friends",
        0.70,
        "Appears to be a personal transfer (person name detected)",
    ),
    EdgeCaseRule("off_license", is_off_license, Category.SHOPPING, "General", 0.80, "Off-license or alcohol shop"),
    EdgeCaseRule(
        "small_cafe",
        is_small_cafe,
        Category.FOOD,
        "Eating out",
        0.75,
        "Small transaction at potential cafe/restaurant",
    ),
    EdgeCaseRule("bank_fee", is_bank_fee, Category.FEES_INTEREST, "Bank fees", 0.90, "Bank fee or charge"),
    EdgeCaseRule("interest", is_interest_charge, Category.FEES_INTEREST, "Interest charges", 0.95, "Interest charge"),
    EdgeCaseRule("refund", is_refund, Category.INCOME, "Refund", 0.85, "Transaction marked as refund"),
    EdgeCaseRule("salary", is_salary, Category.INCOME, "Salary", 0.90, "Salary or wage payment"),
    EdgeCaseRule(
        "internal_transfer",
        is_internal_transfer,
        Category.TRANSFERS,
        "Other accounts",
        0.90,
        "Transfer between own accounts",
    ),
    EdgeCaseRule(
        "foreign_exchange",
        is_foreign_exchange_fee,
        Category.FEES_INTEREST,
        "Foreign exchange",
        0.90,
        "Foreign exchange fee",
    ),
)


def find_edge_case_rule(
    txn: Transaction, rules: Tuple[EdgeCaseRule, ...] = EDGE_CASE_RULES
) -> Optional[EdgeCaseRule]:
    ctx = RuleContext.from_transaction(txn)
    for rule in rules:
        if rule.predicate(ctx):
            return rule
    return None


def match_edge_case(txn: Transaction) -> Optional[CategorizationResult]:
    """Result of the first edge-case rule that holds, or None."""
    rule = find_edge_case_rule(txn)
    return rule.result() if rule else None


class KeywordMatcher:
    """Scores categories by configured keyword hits."""

    def __init__(self, category_config=CATEGORY_CONFIG):
        # Keys should be lowercase for case-insensitive matching
        self.rules = {
            category: tuple(k.lower() for k in config.keywords)
            for category, config in category_config.items()
            if config.keywords
        }

    def count(self, text: str, category: Category) -> int:
        return sum(1 for keyword in self.rules.get(category, ()) if contains_keyword(text, keyword))

    def score(self, text: str) -> Tuple[Category, int]:
        """
        Best category for the text and its keyword hit count.
        Returns (Category.UNKNOWN, 0) when nothing matches.
        """
        text_lower = (text or "").lower()
        best, best_count, best_confidence = Category.UNKNOWN, 0, 0.3

        # Dictionary order is declaration order, so ties keep the earlier category
        for category in self.rules:
            matches = self.count(text_lower, category)
            if not matches:
                continue
            confidence = keyword_confidence(matches)
            if confidence > best_confidence:
                best, best_count, best_confidence = category, matches, confidence

        return best, best_count


def keyword_confidence(match_count: int) -> float:
    if match_count <= 0:
        return 0.3
    return min(0.7, 0.5 + 0.1 * match_count)


def amount_plausibility_factor(amount: float, category: Category) -> float:
    """Scale-down factor for amounts that are unusual for a category."""
    magnitude = abs(amount)

    # Very small amounts are often noise
    if magnitude < 1:
        return 0.6
    # Very large amounts should be reviewed
    if magnitude > 10000:
        return 0.7
    # Unlikely single purchase at a restaurant or shop
    if category == Category.FOOD and magnitude > 200:
        return 0.7
    return 1.0


def handle_uncategorized(txn: Transaction) -> Optional[CategorizationResult]:
    """
    Extra pass for Unknown records: merchant category code, then tiny amounts.
    Returns None when neither applies.
    """
    if txn.mcc:
        category = MCC_CATEGORY_MAP.get(str(txn.mcc).strip())
        if category:
            return CategorizationResult(
                category=category,
                subcategory=None,
                confidence=0.8,
                notes=f"Categorized using MCC code {txn.mcc}",
                method=FALLBACK,
            )

    if abs(txn.amount) < 0.5:
        return CategorizationResult(
            category=Category.UNKNOWN,
            subcategory=None,
            confidence=0.5,
            notes="Very small amount - likely fee or adjustment",
            method=FALLBACK,
        )

    return None
