"""
HSBC statement strategy.

HSBC prints one transaction across several lines: the date and merchant on
one line, the location and amount on the line beneath, and further
same-day transactions as dateless merchant lines. The page is scanned
bottom-up so that the amount line precedes the merchant it belongs to.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from packages.core.errors import RecordError

from ..models import Transaction
from ..parser import MONTH_PATTERN
from ..text_normalizer import normalize_character_spacing, split_columns
from .base import StatementStrategy
from .document import PdfPage

DATE_PREFIX = re.compile(rf"^(\d{{1,2}})\s+({MONTH_PATTERN})[a-z]*\s+(\d{{2,4}})", re.IGNORECASE)
# Amount, optionally followed by the running balance
TRAILING_AMOUNT = re.compile(r"([\d,]+\.\d{2})(?:\s+[\d,]+\.\d{2})?\s*$")
AMOUNT_AND_BALANCE = re.compile(r"([\d,]+\.\d{2})\s+([\d,]+\.\d{2})\s*$")
# Contactless, Visa, credit, direct debit, standing order, transfer, ATM, cheque
MERCHANT_LINE = re.compile(r"^(\)\)\)|VIS\s|CR\s|DD\s|SO\s|TFR\s|ATM\s|CHQ\s)", re.IGNORECASE)
BILLING_LINE = re.compile(r"\.(com|co\.uk)/bil", re.IGNORECASE)
PAYMENT_MARKER = re.compile(r"^[\)\(]{2,}\s*")
DIRECTION_LABEL = re.compile(r"\s*\b(paid in|paid out)\s*$", re.IGNORECASE)

SUMMARY_PHRASES = ("balance brought forward", "balance carried forward", "total")
BANNER_PHRASES = ("your bank account", "your business banking account")
HEADER_SEARCH_WINDOW = 10


def normalize_line(line: str) -> str:
    return normalize_character_spacing(re.sub(r"\s+", " ", line).strip())


def is_summary_line(line: str) -> bool:
    lower = line.lower()
    return any(phrase in lower for phrase in SUMMARY_PHRASES)


def date_prefix(line: str) -> Optional[str]:
    """Leading 'DD Mon YY' of a transaction line; period banners ('x to y') excluded."""
    normalized = normalize_line(line)
    match = DATE_PREFIX.match(normalized)
    if not match or " to " in normalized.lower():
        return None
    return match.group(0)


def _is_header(line: str) -> bool:
    lower = line.lower()
    return "date" in lower and ("paid out" in lower or "paidout" in lower)


def find_header_index(lines: Sequence[str]) -> Optional[int]:
    """Index of the column header line in a bottom-up line array."""
    for i, line in enumerate(lines):
        lower = normalize_line(line).lower()
        if any(banner in lower for banner in BANNER_PHRASES):
            for j in range(max(0, i - HEADER_SEARCH_WINDOW), i):
                if _is_header(normalize_line(lines[j])):
                    return j
        if _is_header(lower):
            return i
    return None


@dataclass(frozen=True)
class AmountMatch:
    amount_text: str
    location: str
    index: int


def find_amount_backward(
    lines: Sequence[str],
    index: int,
    lookback: int = 4,
    floor: int = 0,
    skip_summary: bool = False,
) -> Optional[AmountMatch]:
    """
    Search up to ``lookback`` lines before ``index`` for a trailing amount.

    Stops at a dated line (another transaction). Summary lines either stop
    the search or, with ``skip_summary``, are stepped over.
    """
    j = index - 1
    while j >= floor and j >= index - lookback:
        line = normalize_line(lines[j])
        if DATE_PREFIX.match(line):
            return None
        if is_summary_line(line):
            if not skip_summary:
                return None
            j -= 1
            continue
        match = TRAILING_AMOUNT.search(line)
        if match:
            return AmountMatch(match.group(1), line[: match.start()].strip(), j)
        j -= 1
    return None


def find_date_forward(date_positions: Sequence[Tuple[int, str]], index: int) -> Optional[str]:
    """Nearest date at or after ``index``; else the last known date."""
    for position, date_text in date_positions:
        if position >= index:
            return date_text
    return date_positions[-1][1] if date_positions else None


def _with_location(text: str, location: str) -> str:
    return f"{text} ({location})" if len(location) > 1 else text


class HsbcStatementStrategy(StatementStrategy):
    """Multi-line HSBC personal and business statement layout."""

    bank_name = "hsbc"

    def _is_credit(self, raw_line: str, normalized: str, amount_start: int, amount_text: str) -> bool:
        before = normalized[:amount_start].lower()
        if "paid in" in before or "credit" in before:
            return True
        if "paid out" in before or "debit" in before:
            return False
        # No keyword: a paid-in amount sits one column further right
        raw_before = raw_line[: raw_line.rfind(amount_text)]
        return len(split_columns(raw_before)) >= 3

    def _dated_line(self, lines, i, date_text) -> Optional[Transaction]:
        raw_line = lines[i]
        normalized = normalize_line(raw_line)
        rest = normalized[len(date_text) :].strip()

        same_line = TRAILING_AMOUNT.search(rest)
        if same_line:
            amount_text = same_line.group(1)
            description = PAYMENT_MARKER.sub("", rest[: same_line.start()])
            description = DIRECTION_LABEL.sub("", description).strip()
            offset = len(normalized) - len(rest) + same_line.start()
            credit = self._is_credit(raw_line, normalized, offset, amount_text)
            amount = self._amount(amount_text, credit)
            return self.build_transaction(date_text, amount, description)

        description = PAYMENT_MARKER.sub("", rest).strip()
        found = find_amount_backward(lines, i, lookback=self.settings.AMOUNT_LOOKBACK_LINES)
        if not found:
            self.diagnostics.warning(
                "amount_not_found", "No amount near dated line", line=normalized, index=i
            )
            return None

        # Default to paid out when nothing says otherwise
        amount = self._amount(found.amount_text, credit=False)
        return self.build_transaction(
            date_text, amount, description, _with_location(description, found.location)
        )

    def _dateless_line(self, lines, i, date_positions) -> Optional[Transaction]:
        normalized = normalize_line(lines[i])

        if BILLING_LINE.search(normalized):
            match = AMOUNT_AND_BALANCE.search(normalized)
            date_text = find_date_forward(date_positions, i)
            if not match or not date_text:
                return None
            merchant = normalized[: match.start()].strip()
            return self.build_transaction(date_text, self._amount(match.group(1), False), merchant)

        if MERCHANT_LINE.match(normalized):
            found = find_amount_backward(
                lines, i, lookback=self.settings.AMOUNT_LOOKBACK_LINES, skip_summary=True
            )
            date_text = find_date_forward(date_positions, i)
            if not found or not date_text:
                return None
            merchant = PAYMENT_MARKER.sub("", normalized).strip()
            amount = self._amount(found.amount_text, credit=False)
            return self.build_transaction(
                date_text, amount, merchant, _with_location(merchant, found.location)
            )

        return None

    @staticmethod
    def _amount(amount_text: str, credit: bool) -> float:
        value = float(amount_text.replace(",", ""))
        return value if credit else -value

    def extract_page(self, page: PdfPage) -> List[Transaction]:
        lines = list(reversed(page.lines))

        header = find_header_index(lines)
        end = header if header is not None else len(lines)
        if header is None:
            self.diagnostics.debug("no_table_header", "Scanning whole page", page=page.page_number)

        dates = [date_prefix(line) for line in lines[:end]]
        date_positions = [(i, d) for i, d in enumerate(dates) if d]

        transactions: List[Transaction] = []
        for i in range(end):
            date_text = dates[i]
            try:
                if date_text:
                    txn = self._dated_line(lines, i, date_text)
                else:
                    txn = self._dateless_line(lines, i, date_positions)
            except RecordError as e:
                self.diagnostics.warning(
                    "line_invalid", e.detail, page=page.page_number, line=normalize_line(lines[i])
                )
                continue
            if txn is not None and txn.amount != 0:
                transactions.append(txn)

        # Back to reading order
        transactions.reverse()
        return transactions
