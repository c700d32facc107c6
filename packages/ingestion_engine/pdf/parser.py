"""
Rendered-statement (PDF) pipeline.

extract_document → detect_bank_format → strategy.extract, plus statement
metadata and the PDF-only validation warnings.
"""

import re
from datetime import date, datetime
from typing import Callable, List, Optional

import structlog

from packages.core.config import get_settings
from packages.core.diagnostics import DiagnosticSink
from packages.core.errors import NoTransactionsFoundError, StatementError

from ..models import (
    ParsedStatement,
    StatementMetadata,
    Transaction,
    ValidationReport,
    redact_account_number,
    statement_period,
)
from .banks import detect_bank_format, get_strategy
from .document import PdfDocument, extract_document

logger = structlog.get_logger(__name__)

ACCOUNT_NUMBER = re.compile(r"account\s*(?:number|no\.?)?\s*:?\s*(\d[\d\s-]{5,}\d)", re.IGNORECASE)

DUPLICATE_WARNING_THRESHOLD = 3
MAX_RANGE_MONTHS = 13


def find_account_number(text: str) -> Optional[str]:
    """Redacted account number printed on the statement, if any."""
    match = ACCOUNT_NUMBER.search(text or "")
    return redact_account_number(match.group(1)) if match else None


def parse_pdf_document(
    document: PdfDocument,
    filename: str = "statement.pdf",
    sink: Optional[DiagnosticSink] = None,
    today: Optional[date] = None,
) -> ParsedStatement:
    """
    Run the bank-appropriate strategy over an extracted document.

    Raises:
        NoTransactionsFoundError: If no strategy recovers any transaction.
        StatementError: If the strategy fails unexpectedly.
    """
    bank = detect_bank_format(document.full_text)
    strategy_cls = get_strategy(bank)
    logger.info("pdf_bank_detected", filename=filename, bank=bank, strategy=strategy_cls.__name__)

    strategy = strategy_cls(filename=filename, sink=sink, today=today)
    try:
        transactions = strategy.extract(document)
    except StatementError:
        raise
    except Exception as e:
        logger.error("pdf_strategy_failed", filename=filename, bank=bank, error=str(e))
        raise StatementError(f"Failed to parse PDF: {e}") from e

    if not transactions:
        raise NoTransactionsFoundError(
            f"No transactions found in PDF. Detected format: {bank}. "
            "The statement layout may not be supported yet."
        )

    metadata = StatementMetadata(
        currency=get_settings().DEFAULT_CURRENCY,
        account_id=find_account_number(document.full_text),
        period=statement_period(transactions),
        bank=bank,
    )
    logger.info("pdf_parsed", filename=filename, bank=bank, transactions=len(transactions))
    return ParsedStatement(filename=filename, transactions=transactions, metadata=metadata)


def parse_pdf(
    content,
    filename: str = "statement.pdf",
    sink: Optional[DiagnosticSink] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    today: Optional[date] = None,
) -> ParsedStatement:
    """Extract and parse a PDF statement in one call."""
    document = extract_document(content, progress_callback=progress_callback)
    return parse_pdf_document(document, filename=filename, sink=sink, today=today)


def validate_pdf_transactions(transactions: List[Transaction]) -> ValidationReport:
    """Extra advisories for document-extracted transactions."""
    warnings: List[str] = []

    duplicates = 0
    for previous, current in zip(transactions, transactions[1:]):
        if (previous.date, previous.amount, previous.merchant_canonical) == (
            current.date,
            current.amount,
            current.merchant_canonical,
        ):
            duplicates += 1
    if duplicates > DUPLICATE_WARNING_THRESHOLD:
        warnings.append(f"Found {duplicates} potential duplicate transactions")

    dates = sorted(t.date for t in transactions if t.date)
    if dates:
        first = datetime.strptime(dates[0], "%Y-%m-%d")
        last = datetime.strptime(dates[-1], "%Y-%m-%d")
        if (last - first).days / 30 > MAX_RANGE_MONTHS:
            warnings.append("Transaction range spans more than 13 months - verify accuracy")

    return ValidationReport(warnings=warnings)
