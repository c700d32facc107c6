"""
Spending aggregates over a transaction list.

Everything goes through transactions_to_frame so the query layer and these
helpers agree on one tabular view.
"""

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pandas as pd

from packages.categorization.constants import Category
from packages.ingestion_engine.models import Transaction, transactions_to_frame

SUBSCRIPTION_KEYWORDS = (
    "netflix",
    "spotify",
    "disney",
    "amazon prime",
    "apple tv",
    "apple music",
    "youtube",
    "hbo",
    "paramount",
    "hulu",
    "audible",
    "kindle",
    "voxi",
    "ee",
    "o2",
    "three",
    "vodafone",
    "giffgaff",
    "sky",
    "virgin media",
    "bt",
    "icloud",
    "google one",
    "dropbox",
    "apple.com",
    "uber one",
    "pending.uber",
    "ubr pending uber",
)

# Look like subscriptions by keyword but are one-off spending
SUBSCRIPTION_EXCLUSIONS = (
    "bp",
    "bp petrol",
    "ticket machine",
    "lul ticket",
    "blank street",
    "starbucks",
    "pret",
    "costa",
    "uber eats",
    "uber * eats",
    "eats pend",
    "deliveroo",
    "just eat",
)


def _keyword_pattern(keywords) -> re.Pattern:
    # Short keywords ("ee", "bt", "o2", "sky") only as whole words
    parts = [
        rf"\b{re.escape(k)}\b" if len(k) <= 4 else re.escape(k)
        for k in keywords
    ]
    return re.compile("|".join(parts), re.IGNORECASE)


SUBSCRIPTION_PATTERN = _keyword_pattern(SUBSCRIPTION_KEYWORDS)
EXCLUSION_PATTERN = _keyword_pattern(SUBSCRIPTION_EXCLUSIONS)


@dataclass(frozen=True)
class SpendingSummary:
    total_spending: float
    total_income: float
    expense_count: int
    income_count: int
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    @property
    def net(self) -> float:
        return self.total_income - self.total_spending


def summarize(transactions: List[Transaction]) -> SpendingSummary:
    df = transactions_to_frame(transactions)
    if df.empty:
        return SpendingSummary(0.0, 0.0, 0, 0)

    expenses = df[df["amount"] < 0]
    income = df[df["amount"] > 0]

    return SpendingSummary(
        total_spending=float(expenses["amount"].abs().sum()),
        total_income=float(income["amount"].sum()),
        expense_count=int(len(expenses)),
        income_count=int(len(income)),
        start_date=df["date"].min().date().isoformat(),
        end_date=df["date"].max().date().isoformat(),
    )


def spending_by_category(transactions: List[Transaction]) -> Dict[str, Tuple[float, int]]:
    """Category -> (total spent, count), expenses only, largest total first."""
    df = transactions_to_frame(transactions)
    expenses = df[df["amount"] < 0].copy()
    if expenses.empty:
        return {}

    expenses["spend"] = expenses["amount"].abs()
    grouped = expenses.groupby("category", sort=False)["spend"].agg(["sum", "count"])
    grouped = grouped.sort_values("sum", ascending=False, kind="stable")

    return OrderedDict(
        (category, (float(row["sum"]), int(row["count"]))) for category, row in grouped.iterrows()
    )


def top_transactions(transactions: List[Transaction], n: int = 5) -> List[Transaction]:
    """The n largest expenses by absolute amount."""
    expenses = [t for t in transactions if t.amount < 0]
    return sorted(expenses, key=lambda t: abs(t.amount), reverse=True)[:n]


def totals_by_merchant(transactions: List[Transaction]) -> Dict[str, Dict[str, float]]:
    """Merchant -> {"money_out", "money_in", "count"}, in first-seen order."""
    df = transactions_to_frame(transactions)
    if df.empty:
        return {}

    df["money_out"] = df["amount"].where(df["amount"] < 0, 0.0).abs()
    df["money_in"] = df["amount"].where(df["amount"] > 0, 0.0)
    grouped = df.groupby("merchant_canonical", sort=False).agg(
        money_out=("money_out", "sum"),
        money_in=("money_in", "sum"),
        count=("amount", "size"),
    )

    return OrderedDict(
        (
            merchant,
            {
                "money_out": float(row["money_out"]),
                "money_in": float(row["money_in"]),
                "count": int(row["count"]),
            },
        )
        for merchant, row in grouped.iterrows()
    )


def is_subscription_like(txn: Transaction) -> bool:
    if txn.amount >= 0:
        return False
    text = f"{txn.merchant_canonical} {txn.merchant_raw} {txn.original_description or ''}"
    if EXCLUSION_PATTERN.search(text):
        return False
    return txn.category == Category.SUBSCRIPTIONS or bool(SUBSCRIPTION_PATTERN.search(text))


def subscription_spend(transactions: List[Transaction]) -> Dict[str, Tuple[float, int]]:
    """Merchant -> (total, count) over subscription-like expenses, largest first."""
    matches = [t for t in transactions if is_subscription_like(t)]
    df = transactions_to_frame(matches)
    if df.empty:
        return {}

    df["spend"] = df["amount"].abs()
    grouped = df.groupby("merchant_canonical", sort=False)["spend"].agg(["sum", "count"])
    grouped = grouped.sort_values("sum", ascending=False, kind="stable")

    return OrderedDict(
        (merchant, (float(row["sum"]), int(row["count"]))) for merchant, row in grouped.iterrows()
    )


def detect_split_payments(
    transactions: List[Transaction],
) -> Dict[Tuple[str, str], List[Transaction]]:
    """Same-day, same-merchant groups with more than one record."""
    groups: Dict[Tuple[str, str], List[Transaction]] = {}
    for txn in transactions:
        groups.setdefault((txn.date, txn.merchant_canonical), []).append(txn)
    return {key: txns for key, txns in groups.items() if len(txns) > 1}


def frame_by_month(transactions: List[Transaction]) -> pd.DataFrame:
    """Monthly spend and income totals, indexed by month start."""
    df = transactions_to_frame(transactions)
    if df.empty:
        return pd.DataFrame(columns=["spend", "income"])

    df = df.set_index("date")
    spend = df[df["amount"] < 0]["amount"].abs().resample("MS").sum()
    income = df[df["amount"] > 0]["amount"].resample("MS").sum()
    return pd.DataFrame({"spend": spend, "income": income}).fillna(0.0)
