"""
Bank Statement Parser - delimited (CSV) statements.

Features: per-file column role detection, debit/credit sign handling,
shared date and amount normalization (also used by the PDF strategies),
and progress reporting for large files.
"""

import io
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

import pandas as pd
import structlog

from packages.core.config import get_settings
from packages.core.diagnostics import DiagnosticReporter, DiagnosticSink
from packages.core.errors import AmountParseError, DateParseError, EmptyStatementError

from .merchant_extractor import MerchantResolver, extract_merchant_from_description
from .models import ParsedStatement, StatementMetadata, Transaction, statement_period

logger = structlog.get_logger(__name__)

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
MONTH_PATTERN = "jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec"

# Date shapes in priority order
DMY_FULL = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})$")
DMY_SHORT = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2})$")
ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
DAY_MONTH_NAME = re.compile(
    rf"^(\d{{1,2}})\s+({MONTH_PATTERN})[a-z]*\.?(?:\s+(\d{{4}}|\d{{2}}))?$", re.IGNORECASE
)


def expand_year(two_digit: int) -> int:
    """<50 → 2000s, else 1900s."""
    return 2000 + two_digit if two_digit < 50 else 1900 + two_digit


def _build(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value, today: Optional[date] = None) -> str:
    """
    Parse a statement date into canonical YYYY-MM-DD.

    Accepts DD/MM/YYYY, DD/MM/YY, YYYY-MM-DD and "DD Mon [YYYY]" (``/`` or
    ``-`` separators), then falls back to pandas day-first parsing.

    Args:
        value: Raw cell or line fragment
        today: Reference date for year-less dates (defaults to date.today())

    Raises:
        DateParseError: When no format matches.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        raise DateParseError(value)

    text = str(value).strip()
    if not text:
        raise DateParseError(value)

    parsed: Optional[date] = None

    match = DMY_FULL.match(text)
    if match:
        day, month, year = map(int, match.groups())
        parsed = _build(year, month, day)

    if parsed is None:
        match = DMY_SHORT.match(text)
        if match:
            day, month, year = map(int, match.groups())
            parsed = _build(expand_year(year), month, day)

    if parsed is None:
        match = ISO_DATE.match(text)
        if match:
            year, month, day = map(int, match.groups())
            parsed = _build(year, month, day)

    if parsed is None:
        match = DAY_MONTH_NAME.match(text)
        if match:
            day = int(match.group(1))
            month = MONTHS[match.group(2).lower()[:3]]
            year_text = match.group(3)
            if year_text:
                year = int(year_text)
                parsed = _build(expand_year(year) if len(year_text) == 2 else year, month, day)
            else:
                today = today or date.today()
                parsed = _build(today.year, month, day)
                # A year-less date can't be in the future
                if parsed and parsed > today:
                    parsed = _build(today.year - 1, month, day)

    if parsed is None:
        try:
            fallback = pd.to_datetime(text, dayfirst=True)
        except (ValueError, TypeError, OverflowError):
            fallback = pd.NaT
        if pd.notna(fallback):
            parsed = fallback.date()

    if parsed is None:
        raise DateParseError(value)

    return parsed.isoformat()


def parse_amount(value) -> float:
    """
    Parse an amount, handling currency symbols, commas and (accounting) negatives.

    "£1,234.56" → 1234.56, "(100.00)" → -100.0

    Raises:
        AmountParseError: When the cleaned text is not a number.
    """
    if isinstance(value, bool):
        raise AmountParseError(value)
    if isinstance(value, (int, float)):
        if pd.isna(value):
            raise AmountParseError(value)
        return float(value)
    if value is None:
        raise AmountParseError(value)

    amount_str = re.sub(r"[₹$€£¥\s]", "", str(value))

    # Handle parentheses for negative numbers
    negative = amount_str.startswith("(") and amount_str.endswith(")")
    if negative:
        amount_str = amount_str[1:-1]

    amount_str = amount_str.replace(",", "")

    try:
        amount = float(amount_str)
    except ValueError:
        raise AmountParseError(value) from None

    if amount != amount or amount in (float("inf"), float("-inf")):
        raise AmountParseError(value)

    return -abs(amount) if negative else amount


def parse_optional_amount(value) -> float:
    """Like parse_amount, but an empty cell counts as zero."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0.0
    return parse_amount(value)


class ProgressTracker:
    """Tracks progress for large file processing.

    The callback receives ``(current, total)`` on every update. Without a
    callback, progress is logged every 10%.
    """

    def __init__(self, total: int, callback: Optional[Callable[[int, int], None]] = None):
        self.total = total
        self.current = 0
        self.callback = callback
        self.last_percent = 0

    def update(self, increment: int = 1):
        """Update progress."""
        self.current += increment
        if self.callback:
            self.callback(self.current, self.total)
            return

        percent = int((self.current / self.total) * 100) if self.total else 100
        if percent != self.last_percent and percent % 10 == 0:
            self.last_percent = percent
            logger.info("progress", percent=percent, current=self.current, total=self.total)

    def finish(self):
        """Mark as complete."""
        if self.current < self.total:
            self.current = self.total
            if self.callback:
                self.callback(self.current, self.total)


# Ordered header patterns per column role. First pattern that hits any
# header wins.
COLUMN_PATTERNS: Dict[str, List[str]] = {
    "date": ["date", "transaction date", "posted date", "trans date", "value date"],
    "description": ["description", "merchant", "details", "transaction", "narrative"],
    "amount": ["amount", "value", "transaction amount"],
    "debit": ["debit", "paid out", "withdrawal"],
    "credit": ["credit", "paid in", "deposit"],
    "currency": ["currency", "ccy"],
    "balance": ["balance", "running balance"],
}

# A signed amount column must be named exactly, so "Debit Amount" stays a debit.
EXACT_MATCH_ROLES = {"amount"}


@dataclass(frozen=True)
class ColumnMapping:
    """Which header plays which role in a delimited file."""

    date: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[str] = None
    debit: Optional[str] = None
    credit: Optional[str] = None
    currency: Optional[str] = None
    balance: Optional[str] = None

    @property
    def has_amount_source(self) -> bool:
        return bool(self.amount or self.debit or self.credit)


def detect_column_mapping(headers: List[str]) -> ColumnMapping:
    """Infer column roles from header names (case-insensitive)."""
    normalized = [(h, str(h).strip().lower()) for h in headers]
    found: Dict[str, str] = {}

    for role, patterns in COLUMN_PATTERNS.items():
        for pattern in patterns:
            if role in EXACT_MATCH_ROLES:
                hit = next((h for h, low in normalized if low == pattern), None)
            else:
                hit = next((h for h, low in normalized if pattern in low), None)
            if hit is not None:
                found[role] = hit
                break

    return ColumnMapping(**found)


class BankStatementParser:
    """
    Parser for delimited bank statements.

    Column roles are inferred once per file. Malformed rows are dropped with
    a diagnostic; only an empty file is fatal.
    """

    ENCODINGS = ["utf-8", "utf-8-sig", "latin-1", "cp1252"]

    def __init__(
        self,
        content,
        filename: str = "statement.csv",
        sink: Optional[DiagnosticSink] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        resolver: Optional[MerchantResolver] = None,
        today: Optional[date] = None,
    ):
        """
        Initialize parser.

        Args:
            content: File content as bytes or str
            filename: Source file name, tagged onto every transaction
            sink: Receiver for per-row diagnostics
            progress_callback: Callback(current, total) for progress updates
            resolver: Merchant resolver (defaults to the known-merchant table)
            today: Reference date for year-less dates
        """
        self.content = content
        self.filename = filename
        self.diagnostics = DiagnosticReporter(sink, filename=filename)
        self.progress_callback = progress_callback
        self.resolver = resolver or MerchantResolver()
        self.today = today
        self.default_currency = get_settings().DEFAULT_CURRENCY

    def _read_csv(self) -> pd.DataFrame:
        """Read CSV content as strings."""
        if isinstance(self.content, str):
            return self._read_buffer(io.StringIO(self.content))

        # Try different encodings
        for encoding in self.ENCODINGS:
            try:
                return self._read_buffer(io.BytesIO(self.content), encoding=encoding)
            except UnicodeDecodeError:
                continue

        raise EmptyStatementError("Could not decode CSV file with any known encoding")

    def _read_buffer(self, buffer, encoding: Optional[str] = None) -> pd.DataFrame:
        try:
            return pd.read_csv(
                buffer,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                skipinitialspace=True,
                encoding=encoding,
                engine="python",
                on_bad_lines=self._skip_bad_line,
            )
        except pd.errors.EmptyDataError:
            raise EmptyStatementError() from None

    def _skip_bad_line(self, fields: List[str]) -> None:
        self.diagnostics.warning(
            "row_malformed",
            "Row has more fields than the header; skipping",
            fields=len(fields),
            content=",".join(fields),
        )
        return None

    def _row_amount(self, row: pd.Series, mapping: ColumnMapping, row_number: int) -> float:
        if mapping.amount:
            return parse_amount(row[mapping.amount])

        debit = parse_optional_amount(row[mapping.debit]) if mapping.debit else 0.0
        credit = parse_optional_amount(row[mapping.credit]) if mapping.credit else 0.0

        if debit and credit:
            self.diagnostics.warning(
                "ambiguous_debit_credit",
                "Row has both debit and credit values; using debit",
                row=row_number,
                debit=debit,
                credit=credit,
            )
        if debit:
            return -abs(debit)
        if credit:
            return abs(credit)
        return 0.0

    def _row_to_transaction(
        self, row: pd.Series, mapping: ColumnMapping, row_number: int
    ) -> Optional[Transaction]:
        raw_date = row[mapping.date] if mapping.date else ""
        if not str(raw_date).strip():
            self.diagnostics.warning("row_missing_date", "Row has no date", row=row_number)
            return None

        try:
            txn_date = parse_date(raw_date, today=self.today)
        except DateParseError as e:
            self.diagnostics.warning("row_invalid_date", e.detail, row=row_number)
            return None

        try:
            amount = self._row_amount(row, mapping, row_number)
        except AmountParseError as e:
            self.diagnostics.warning("row_invalid_amount", e.detail, row=row_number)
            return None

        if amount == 0:
            self.diagnostics.debug("row_zero_amount", "Dropping zero-amount row", row=row_number)
            return None

        description = str(row[mapping.description]).strip() if mapping.description else ""
        merchant_raw = extract_merchant_from_description(description) or description
        currency = str(row[mapping.currency]).strip().upper() if mapping.currency else ""

        return Transaction(
            date=txn_date,
            amount=amount,
            currency=currency or self.default_currency,
            merchant_raw=merchant_raw,
            merchant_canonical=self.resolver.canonical_name(merchant_raw),
            original_description=description or None,
            source_file=self.filename,
        )

    def parse(self) -> ParsedStatement:
        """
        Parse the statement.

        Returns:
            ParsedStatement with transactions in file order

        Raises:
            EmptyStatementError: If the file has no header or no data rows.
        """
        df = self._read_csv()
        if df.empty or len(df.columns) == 0:
            raise EmptyStatementError()

        # Drop rows where every cell is blank
        df = df[df.apply(lambda r: any(str(v).strip() for v in r.values), axis=1)]
        if df.empty:
            raise EmptyStatementError()

        mapping = detect_column_mapping(list(df.columns))
        logger.info("column_mapping_detected", filename=self.filename, mapping=asdict(mapping))
        if not mapping.date:
            self.diagnostics.warning("no_date_column", "No date column detected")
        if not mapping.has_amount_source:
            self.diagnostics.warning("no_amount_column", "No amount, debit or credit column detected")

        transactions: List[Transaction] = []
        progress = ProgressTracker(len(df), self.progress_callback)

        # Row numbers are 1-based data rows (header excluded)
        for row_number, (_, row) in enumerate(df.iterrows(), start=1):
            txn = self._row_to_transaction(row, mapping, row_number)
            if txn is not None:
                transactions.append(txn)
            progress.update()

        progress.finish()
        logger.info("csv_parsed", filename=self.filename, rows=len(df), transactions=len(transactions))

        return ParsedStatement(
            filename=self.filename,
            transactions=transactions,
            metadata=StatementMetadata(
                currency=self.default_currency,
                period=statement_period(transactions),
            ),
        )


def parse_bank_statement(
    content,
    filename: str = "statement.csv",
    sink: Optional[DiagnosticSink] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    today: Optional[date] = None,
) -> ParsedStatement:
    """
    Convenience function to parse a delimited bank statement.

    Args:
        content: File content as bytes or str
        filename: Source file name
        sink: Receiver for per-row diagnostics
        progress_callback: Callback(current, total) for progress updates
        today: Reference date for year-less dates

    Returns:
        ParsedStatement with parsed transactions
    """
    parser = BankStatementParser(
        content,
        filename=filename,
        sink=sink,
        progress_callback=progress_callback,
        today=today,
    )
    return parser.parse()
