"""
Recurring payment (subscription) detection.

Subscriptions are derived views: recomputed from the transaction list on
every call and never written back to it.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List, Optional

import pandas as pd
import structlog

from packages.core.config import get_settings
from packages.ingestion_engine.merchant_extractor import group_by_merchant
from packages.ingestion_engine.models import Transaction

logger = structlog.get_logger(__name__)


class Cadence(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    IRREGULAR = "irregular"  # reserved; not produced by detect_subscriptions


@dataclass(frozen=True)
class CadenceRule:
    cadence: Cadence
    max_average_gap: float
    expected_days: int
    tolerance: int
    step: pd.DateOffset


CADENCE_RULES = (
    CadenceRule(Cadence.WEEKLY, 10, 7, 3, pd.DateOffset(days=7)),
    CadenceRule(Cadence.MONTHLY, 40, 30, 5, pd.DateOffset(months=1)),
    CadenceRule(Cadence.QUARTERLY, 100, 90, 10, pd.DateOffset(months=3)),
    CadenceRule(Cadence.YEARLY, float("inf"), 365, 15, pd.DateOffset(years=1)),
)
CADENCE_BY_NAME = {rule.cadence: rule for rule in CADENCE_RULES}

MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95
AMOUNT_VARIANCE_RATIO = 0.2
ACTIVE_WINDOW_FACTOR = 1.5

MONTHLY_FACTORS = {
    Cadence.WEEKLY: 4.33,
    Cadence.MONTHLY: 1.0,
    Cadence.QUARTERLY: 1 / 3,
    Cadence.YEARLY: 1 / 12,
}

# People rarely forget these
WELL_KNOWN_SERVICES = (
    "netflix",
    "spotify",
    "disney",
    "amazon prime",
    "apple",
    "youtube",
    "hulu",
    "hbo",
    "gym",
    "insurance",
)


@dataclass(frozen=True)
class Subscription:
    merchant: str
    amount: float
    currency: str
    cadence: Cadence
    confidence: float
    transactions: List[Transaction] = field(default_factory=list)
    last_charge: str = ""
    next_due: Optional[str] = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    average_amount: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE


@dataclass(frozen=True)
class PriceChange:
    has_changed: bool
    old_amount: Optional[float] = None
    new_amount: Optional[float] = None
    change_percent: Optional[float] = None


def _to_date(iso_date: str) -> date:
    return date.fromisoformat(iso_date)


def day_gaps(transactions: List[Transaction]) -> List[int]:
    """Days between consecutive (date-sorted) transactions."""
    dates = [_to_date(t.date) for t in transactions]
    return [(later - earlier).days for earlier, later in zip(dates, dates[1:])]


def classify_cadence(gaps: List[int]):
    """
    Bucket the average gap into a cadence and score how regular it is.

    Returns:
        (CadenceRule, confidence) or None when confidence < 0.5
    """
    if not gaps:
        return None

    series = pd.Series(gaps, dtype=float)
    average = series.mean()
    std_dev = series.std(ddof=0)

    rule = next(r for r in CADENCE_RULES if average <= r.max_average_gap)

    consistency = max(0.0, 1 - std_dev / rule.expected_days)
    match = max(0.0, 1 - abs(average - rule.expected_days) / rule.tolerance)
    confidence = consistency * 0.6 + match * 0.4

    if confidence < MIN_CONFIDENCE:
        return None
    return rule, min(MAX_CONFIDENCE, confidence)


def next_due_date(last_charge: str, cadence: Cadence) -> str:
    """Advance by one calendar unit; month ends clamp (31 Jan -> 28/29 Feb)."""
    advanced = pd.Timestamp(last_charge) + CADENCE_BY_NAME[Cadence(cadence)].step
    return advanced.date().isoformat()


def detect_subscriptions(
    transactions: List[Transaction], today: Optional[date] = None
) -> List[Subscription]:
    """
    Find merchants charging on a regular cadence at a steady amount.

    Args:
        transactions: Any mix of income and expenses
        today: Reference date for active/cancelled (defaults to date.today())

    Returns:
        Subscriptions, most confident first, then largest amount
    """
    today = today or date.today()
    subscriptions: List[Subscription] = []

    for merchant, txns in group_by_merchant(transactions).items():
        expenses = sorted((t for t in txns if t.amount < 0), key=lambda t: t.date)
        if len(expenses) < 2:
            continue

        pattern = classify_cadence(day_gaps(expenses))
        if pattern is None:
            continue
        rule, confidence = pattern

        amounts = pd.Series([abs(t.amount) for t in expenses], dtype=float)
        average_amount = float(amounts.mean())
        if amounts.var(ddof=0) >= average_amount * AMOUNT_VARIANCE_RATIO:
            logger.debug("subscription_amount_inconsistent", merchant=merchant)
            continue

        last_charge = expenses[-1].date
        days_since = (today - _to_date(last_charge)).days
        active = days_since <= rule.expected_days * ACTIVE_WINDOW_FACTOR

        subscriptions.append(
            Subscription(
                merchant=merchant,
                amount=average_amount,
                currency=expenses[0].currency,
                cadence=rule.cadence,
                confidence=confidence,
                transactions=expenses,
                last_charge=last_charge,
                next_due=next_due_date(last_charge, rule.cadence) if active else None,
                status=SubscriptionStatus.ACTIVE if active else SubscriptionStatus.CANCELLED,
                average_amount=average_amount,
            )
        )

    subscriptions.sort(key=lambda s: (-s.confidence, -s.amount))
    logger.info("subscriptions_detected", count=len(subscriptions))
    return subscriptions


def calculate_monthly_cost(subscriptions: List[Subscription]) -> float:
    """Monthly-equivalent spend over active subscriptions."""
    return sum(s.amount * MONTHLY_FACTORS[s.cadence] for s in subscriptions if s.is_active)


def get_upcoming_subscriptions(
    subscriptions: List[Subscription],
    days_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> List[Subscription]:
    """Active subscriptions due between today and today + days_ahead (inclusive)."""
    if days_ahead is None:
        days_ahead = get_settings().UPCOMING_WINDOW_DAYS
    today = today or date.today()
    horizon = today + timedelta(days=days_ahead)

    return [
        s
        for s in subscriptions
        if s.is_active and s.next_due and today <= _to_date(s.next_due) <= horizon
    ]


def detect_price_change(subscription: Subscription, threshold_percent: float = 5.0) -> PriceChange:
    """Compare the last 3 charges against everything before them."""
    ordered = sorted(subscription.transactions, key=lambda t: t.date)
    recent, older = ordered[-3:], ordered[:-3]
    if len(ordered) < 3 or not older:
        return PriceChange(has_changed=False)

    recent_avg = sum(abs(t.amount) for t in recent) / len(recent)
    older_avg = sum(abs(t.amount) for t in older) / len(older)
    change_percent = (recent_avg - older_avg) / older_avg * 100

    if abs(change_percent) > threshold_percent:
        return PriceChange(True, older_avg, recent_avg, change_percent)
    return PriceChange(has_changed=False)


def find_forgotten_subscriptions(subscriptions: List[Subscription]) -> List[Subscription]:
    """Active subscriptions that are not well-known services."""
    return [
        s
        for s in subscriptions
        if s.is_active and not any(name in s.merchant.lower() for name in WELL_KNOWN_SERVICES)
    ]


def group_subscriptions_by_category(
    subscriptions: List[Subscription], transactions: Optional[List[Transaction]] = None
) -> Dict[str, List[Subscription]]:
    """
    Group by category name.

    The category comes from the subscription's first charge, or from the
    first matching record in ``transactions`` when it has none.
    """
    groups: Dict[str, List[Subscription]] = {}
    for sub in subscriptions:
        source = sub.transactions[0] if sub.transactions else None
        if source is None and transactions:
            source = next((t for t in transactions if t.merchant_canonical == sub.merchant), None)
        category = source.category.value if source else "Unknown"
        groups.setdefault(category, []).append(sub)
    return groups
