"""
Confidence levels, review prioritization and threshold tuning.

Thresholds come from Settings (CONFIDENCE_LOW_THRESHOLD /
CONFIDENCE_HIGH_THRESHOLD) unless passed explicitly.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple

import pandas as pd

from packages.categorization.constants import Category
from packages.core.config import get_settings
from packages.ingestion_engine.models import Transaction


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def _thresholds(low: Optional[float] = None, high: Optional[float] = None) -> Tuple[float, float]:
    settings = get_settings()
    return (
        settings.CONFIDENCE_LOW_THRESHOLD if low is None else low,
        settings.CONFIDENCE_HIGH_THRESHOLD if high is None else high,
    )


def get_confidence_level(
    confidence: float, low: Optional[float] = None, high: Optional[float] = None
) -> ConfidenceLevel:
    low, high = _thresholds(low, high)
    if confidence >= high:
        return ConfidenceLevel.HIGH
    if confidence >= low:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def confidence_label(confidence: float) -> str:
    """'High' / 'Medium' / 'Low'."""
    return get_confidence_level(confidence).value.capitalize()


def format_confidence(confidence: float) -> str:
    return f"{round(confidence * 100)}%"


def filter_by_confidence(transactions: List[Transaction], level: ConfidenceLevel) -> List[Transaction]:
    level = ConfidenceLevel(level)
    low, high = _thresholds()
    return [t for t in transactions if get_confidence_level(t.confidence, low, high) == level]


def get_transactions_needing_review(
    transactions: List[Transaction], threshold: Optional[float] = None
) -> List[Transaction]:
    """Records below the threshold, least confident first."""
    threshold = _thresholds(low=threshold)[0]
    return sorted(
        (t for t in transactions if t.confidence < threshold), key=lambda t: t.confidence
    )


def prioritize_reviews(transactions: List[Transaction]) -> List[Transaction]:
    """Low-confidence records ordered by (1 - confidence) * |amount|, largest first."""
    low, _ = _thresholds()
    return sorted(
        (t for t in transactions if t.confidence < low),
        key=lambda t: (1 - t.confidence) * abs(t.amount),
        reverse=True,
    )


def get_confidence_breakdown(transactions: List[Transaction]) -> Dict[str, Dict]:
    """
    Count and percentage of records per level.

    Returns:
        {"counts": {"high": n, ...}, "percentages": {"high": pct, ...}}
    """
    low, high = _thresholds()
    counts = {level.value: 0 for level in ConfidenceLevel}
    for txn in transactions:
        counts[get_confidence_level(txn.confidence, low, high).value] += 1

    total = len(transactions)
    percentages = {
        level: (count / total) * 100 if total else 0.0 for level, count in counts.items()
    }
    return {"counts": counts, "percentages": percentages}


def calculate_overall_confidence(transactions: List[Transaction]) -> float:
    if not transactions:
        return 0.0
    return sum(t.confidence for t in transactions) / len(transactions)


def get_confidence_stats(transactions: List[Transaction]) -> Dict[str, float]:
    if not transactions:
        return {"average": 0.0, "median": 0.0, "min": 0.0, "max": 0.0, "std_dev": 0.0}

    confidences = pd.Series([t.confidence for t in transactions], dtype=float).sort_values(
        ignore_index=True
    )

    return {
        "average": float(confidences.mean()),
        # Upper middle element for even counts
        "median": float(confidences.iloc[len(confidences) // 2]),
        "min": float(confidences.iloc[0]),
        "max": float(confidences.iloc[-1]),
        "std_dev": float(confidences.std(ddof=0)),
    }


def boost_confidence_after_confirmation(txn: Transaction, boost: float = 0.3) -> Transaction:
    return replace(
        txn,
        confidence=min(1.0, txn.confidence + boost),
        notes=(txn.notes or "") + " [User confirmed]",
    )


@dataclass(frozen=True)
class Recommendation:
    should_review: bool
    reason: str
    priority: str  # high | medium | low


def get_recommendation(txn: Transaction) -> Recommendation:
    level = get_confidence_level(txn.confidence)
    amount = abs(txn.amount)

    if level == ConfidenceLevel.LOW:
        if amount > 100:
            return Recommendation(True, "Low confidence on large transaction", "high")
        return Recommendation(True, "Low confidence - please verify", "medium")

    if level == ConfidenceLevel.MEDIUM:
        if amount > 200:
            return Recommendation(True, "Medium confidence on large transaction", "medium")
        return Recommendation(False, "Likely correct", "low")

    return Recommendation(False, "High confidence", "low")


@dataclass(frozen=True)
class CorrectionRecord:
    original_confidence: float
    was_correct: bool
    category: Optional[Category] = None


@dataclass
class ConfidenceTracker:
    """Learns a review threshold from user corrections."""

    corrections: List[CorrectionRecord] = field(default_factory=list)
    min_corrections: int = 10

    def record_correction(
        self,
        original_confidence: float,
        was_correct: bool,
        category: Optional[Category] = None,
    ) -> None:
        self.corrections.append(CorrectionRecord(original_confidence, was_correct, category))

    def get_optimal_threshold(self) -> float:
        """
        Threshold in 0.30..0.90 that best separates wrong from right guesses.

        A correction below the threshold is a true positive when the guess was
        wrong and a false positive when it was right; score = TP - 0.5 * FP.
        """
        default = get_settings().CONFIDENCE_LOW_THRESHOLD
        if len(self.corrections) < self.min_corrections:
            return default

        best_threshold, best_score = default, 0.0
        for step in range(13):
            threshold = round(0.3 + 0.05 * step, 2)
            flagged = [c for c in self.corrections if c.original_confidence < threshold]
            true_positives = sum(1 for c in flagged if not c.was_correct)
            false_positives = len(flagged) - true_positives
            score = true_positives - 0.5 * false_positives
            if score > best_score:
                best_threshold, best_score = threshold, score

        return best_threshold

    def get_accuracy_by_confidence(self) -> Dict[str, Optional[float]]:
        """Share of correct guesses per High/Medium/Low bucket (None if empty)."""
        low, high = _thresholds()
        buckets: Dict[str, List[bool]] = {level.value: [] for level in ConfidenceLevel}
        for correction in self.corrections:
            level = get_confidence_level(correction.original_confidence, low, high)
            buckets[level.value].append(correction.was_correct)
        return {
            level: (sum(results) / len(results) if results else None)
            for level, results in buckets.items()
        }

    def get_category_accuracy(self, category: Category) -> float:
        relevant = [c for c in self.corrections if c.category == category]
        if not relevant:
            return 1.0
        return sum(1 for c in relevant if c.was_correct) / len(relevant)
