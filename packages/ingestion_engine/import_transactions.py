"""
Statement import entry point.

Detects the file type, dispatches to the delimited parser or the PDF
pipeline, attaches a validation report, and merges statements.
"""

from datetime import date
from enum import Enum
from typing import Callable, Iterable, List, Optional

import structlog

from packages.core.diagnostics import DiagnosticSink
from packages.core.errors import UnsupportedFileTypeError

from .models import (
    ParsedStatement,
    StatementMetadata,
    StatementPeriod,
    Transaction,
    ValidationReport,
    generate_fingerprint,
    normalize_merchant,
)
from .parser import parse_bank_statement

logger = structlog.get_logger(__name__)

__all__ = [
    "FileType",
    "detect_file_type",
    "generate_fingerprint",
    "normalize_merchant",
    "merge_statements",
    "parse_file",
    "validate_transactions",
]


class FileType(str, Enum):
    CSV = "csv"
    PDF = "pdf"


def detect_file_type(filename: str, content_type: Optional[str] = None) -> FileType:
    """
    Work out the statement type from its name, then its content type.

    Raises:
        UnsupportedFileTypeError: If neither identifies CSV or PDF.
    """
    filename_lower = (filename or "").lower()

    if filename_lower.endswith(".csv"):
        return FileType.CSV
    if filename_lower.endswith(".pdf"):
        return FileType.PDF

    content_type_lower = (content_type or "").lower()
    if "csv" in content_type_lower:
        return FileType.CSV
    if "pdf" in content_type_lower:
        return FileType.PDF

    # Some banks export CSV as statement.txt
    if filename_lower.endswith(".txt") and "statement" in filename_lower:
        return FileType.CSV

    raise UnsupportedFileTypeError()


def validate_transactions(transactions: List[Transaction]) -> ValidationReport:
    """Report missing fields; never blocks the result."""
    errors: List[str] = []

    if not transactions:
        errors.append("No transactions found")

    for i, txn in enumerate(transactions, start=1):
        if not txn.date:
            errors.append(f"Transaction {i}: Missing date")
        if txn.amount == 0:
            errors.append(f"Transaction {i}: Amount is zero")
        if not txn.merchant_raw and not txn.original_description:
            errors.append(f"Transaction {i}: Missing merchant/description")

    return ValidationReport(errors=errors)


def parse_file(
    content,
    filename: str,
    content_type: Optional[str] = None,
    sink: Optional[DiagnosticSink] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    today: Optional[date] = None,
) -> ParsedStatement:
    """
    Parse a statement file (CSV or PDF) based on extension/content type.

    Args:
        content: Raw file bytes (CSV may also be str)
        filename: Original file name
        content_type: Declared MIME type, if any
        sink: Receiver for record-level diagnostics
        progress_callback: Callback(current, total)
        today: Reference date for year-less dates

    Returns:
        ParsedStatement with a validation report attached

    Raises:
        StatementError: A subclass describing why the file could not be used.
    """
    file_type = detect_file_type(filename, content_type)

    if file_type is FileType.CSV:
        statement = parse_bank_statement(
            content,
            filename=filename,
            sink=sink,
            progress_callback=progress_callback,
            today=today,
        )
        report = validate_transactions(statement.transactions)
    else:
        # PDF support pulls in pdfplumber; keep it off the CSV import path
        from .pdf import parse_pdf, validate_pdf_transactions

        statement = parse_pdf(
            content,
            filename=filename,
            sink=sink,
            progress_callback=progress_callback,
            today=today,
        )
        report = validate_transactions(statement.transactions).merged(
            validate_pdf_transactions(statement.transactions)
        )

    statement.validation = report
    logger.info(
        "statement_parsed",
        filename=filename,
        file_type=file_type.value,
        count=len(statement.transactions),
        errors=len(report.errors),
        warnings=len(report.warnings),
    )
    return statement


def merge_statements(statements: Iterable[ParsedStatement]) -> ParsedStatement:
    """
    Combine statements into one, sorted by date and de-duplicated.

    The first occurrence of each (date, amount, merchant) fingerprint wins.
    """
    statements = list(statements)
    combined = [txn for statement in statements for txn in statement.transactions]
    combined.sort(key=lambda t: t.date)

    seen = set()
    merged: List[Transaction] = []
    for txn in combined:
        fingerprint = txn.fingerprint
        if fingerprint in seen:
            continue
        seen.add(fingerprint)
        merged.append(txn)

    periods = [s.metadata.period for s in statements if s.metadata and s.metadata.period]
    period = (
        StatementPeriod(start=min(p.start for p in periods), end=max(p.end for p in periods))
        if periods
        else None
    )
    first_metadata = next((s.metadata for s in statements if s.metadata), None)
    currency = first_metadata.currency if first_metadata else StatementMetadata().currency

    logger.info(
        "statements_merged",
        files=len(statements),
        transactions=len(combined),
        duplicates=len(combined) - len(merged),
    )
    return ParsedStatement(
        filename=f"Merged ({len(statements)} files)",
        transactions=merged,
        metadata=StatementMetadata(currency=currency, period=period),
    )
