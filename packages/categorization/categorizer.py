"""
Classification cascade.

    known merchant → edge-case rules → keyword fallback → MCC

Every stage returns a CategorizationResult; classify() never raises, and
records are never mutated (a classified copy is returned instead).
"""

from collections import defaultdict
from dataclasses import replace
from typing import Callable, Dict, List, Optional

import structlog

from packages.categorization.constants import CATEGORY_CONFIG, Category, is_valid_subcategory
from packages.categorization.rules import (
    ERROR,
    FALLBACK,
    KNOWN_MERCHANT,
    CategorizationResult,
    KeywordMatcher,
    amount_plausibility_factor,
    handle_uncategorized,
    keyword_confidence,
    match_edge_case,
)
from packages.core.config import get_settings
from packages.ingestion_engine.merchant_extractor import MerchantResolver
from packages.ingestion_engine.models import Transaction

logger = structlog.get_logger(__name__)

_resolver = MerchantResolver()
_matcher = KeywordMatcher()


def match_known_merchant(
    txn: Transaction, resolver: Optional[MerchantResolver] = None
) -> Optional[CategorizationResult]:
    resolution = (resolver or _resolver).resolve(txn.merchant_raw)
    metadata = resolution.metadata
    if metadata is None:
        return None
    return CategorizationResult(
        category=metadata.category,
        subcategory=metadata.subcategory,
        confidence=metadata.confidence,
        notes=f"Matched known merchant: {metadata.canonical_name}",
        method=KNOWN_MERCHANT,
    )


def categorize_with_keywords(txn: Transaction) -> CategorizationResult:
    """Keyword fallback, scaled by how plausible the amount is."""
    search_text = f"{txn.merchant_canonical} {txn.original_description or ''}"
    category, matches = _matcher.score(search_text)

    confidence = keyword_confidence(matches) * amount_plausibility_factor(txn.amount, category)
    subcategory = CATEGORY_CONFIG[category].default_subcategory if matches else None

    return CategorizationResult(
        category=category,
        subcategory=subcategory,
        confidence=confidence,
        notes=(
            f"Matched keywords for {category.value}"
            if confidence > 0.5
            else "No clear match - needs review"
        ),
        method=FALLBACK,
    )


def classify(txn: Transaction, resolver: Optional[MerchantResolver] = None) -> CategorizationResult:
    """
    Run the cascade on one transaction.

    Step 1: known merchant table
    Step 2: edge-case rules
    Step 3: keyword fallback
    Step 4: merchant category code or tiny-amount pass for anything still Unknown
    """
    result = (
        match_known_merchant(txn, resolver)
        or match_edge_case(txn)
        or categorize_with_keywords(txn)
    )
    if result.category == Category.UNKNOWN:
        return handle_uncategorized(txn) or result
    return result


def categorize_transactions(
    transactions: List[Transaction],
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> List[Transaction]:
    """
    Classify a batch. A record that fails is marked Unknown instead of
    aborting the batch.

    Args:
        transactions: Provisional records
        progress_callback: Callback(current, total) after each record

    Returns:
        New list of classified copies, in input order
    """
    total = len(transactions)
    categorized: List[Transaction] = []

    for i, txn in enumerate(transactions):
        try:
            categorized.append(txn.with_classification(classify(txn)))
        except Exception as e:
            logger.error("categorization_failed", transaction_id=txn.id, error=str(e))
            categorized.append(
                txn.with_classification(
                    CategorizationResult(Category.UNKNOWN, None, 0.0, "Categorization failed", ERROR)
                )
            )

        if progress_callback:
            progress_callback(i + 1, total)

    logger.info("transactions_categorized", count=total)
    return categorized


def apply_correction_to_similar(
    corrected: Transaction, transactions: List[Transaction]
) -> List[Transaction]:
    """Copy a corrected category onto every other record with the same merchant."""
    inherited_confidence = min(0.9, corrected.confidence + 0.1)
    updated = []
    for txn in transactions:
        if txn.id != corrected.id and txn.merchant_canonical == corrected.merchant_canonical:
            txn = replace(
                txn,
                category=corrected.category,
                subcategory=corrected.subcategory,
                confidence=inherited_confidence,
                notes="Applied correction from similar transaction",
            )
        updated.append(txn)
    return updated


def correct_transaction(
    transactions: List[Transaction],
    transaction_id: str,
    category: Category,
    subcategory: Optional[str] = None,
) -> List[Transaction]:
    """
    Apply a user correction and propagate it to the same merchant.

    Raises:
        ValueError: Unknown transaction id or subcategory not in category.
    """
    category = Category(category)
    if not is_valid_subcategory(category, subcategory):
        raise ValueError(f"{subcategory!r} is not a subcategory of {category.value}")

    target = next((t for t in transactions if t.id == transaction_id), None)
    if target is None:
        raise ValueError(f"No transaction with id {transaction_id!r}")

    corrected = replace(
        target,
        category=category,
        subcategory=subcategory,
        confidence=1.0,
        notes="Corrected by user",
    )
    logger.info(
        "transaction_corrected",
        transaction_id=transaction_id,
        merchant=corrected.merchant_canonical,
        category=category.value,
    )

    updated = [corrected if t.id == transaction_id else t for t in transactions]
    return apply_correction_to_similar(corrected, updated)


def get_uncertain_transactions(
    transactions: List[Transaction], threshold: Optional[float] = None
) -> List[Transaction]:
    if threshold is None:
        threshold = get_settings().CONFIDENCE_LOW_THRESHOLD
    return [t for t in transactions if t.confidence < threshold]


def get_categorization_stats(transactions: List[Transaction]) -> Dict:
    """
    Summary of a classified batch.

    Returns:
        {"total": n, "low_confidence": k,
         "by_category": {"Food": {"count", "total_confidence", "avg_confidence"}, ...}}
    """
    low_threshold = get_settings().CONFIDENCE_LOW_THRESHOLD
    by_category: Dict[str, Dict] = defaultdict(lambda: {"count": 0, "total_confidence": 0.0})

    for txn in transactions:
        entry = by_category[txn.category.value]
        entry["count"] += 1
        entry["total_confidence"] += txn.confidence

    for entry in by_category.values():
        entry["avg_confidence"] = entry["total_confidence"] / entry["count"]

    return {
        "total": len(transactions),
        "low_confidence": sum(1 for t in transactions if t.confidence < low_threshold),
        "by_category": dict(by_category),
    }
