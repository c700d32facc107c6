"""
Generic line-pattern strategy.

Finds the transaction table on each page by its header row, stops at a
total/balance/page marker (or a run of near-empty lines), and matches each
candidate line against an ordered list of line shapes.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

from packages.core.errors import RecordError

from ..merchant_extractor import extract_merchant_from_description
from ..models import Transaction
from ..parser import MONTH_PATTERN
from .base import StatementStrategy
from .document import PdfPage

HEADER_PATTERNS = [
    re.compile(r"date.*description.*amount", re.IGNORECASE),
    re.compile(r"date.*details.*debit.*credit", re.IGNORECASE),
    re.compile(r"transaction date.*merchant.*value", re.IGNORECASE),
    re.compile(r"posting date.*description.*amount", re.IGNORECASE),
]

END_PATTERNS = [
    re.compile(r"^total", re.IGNORECASE),
    re.compile(r"^balance", re.IGNORECASE),
    re.compile(r"^subtotal", re.IGNORECASE),
    re.compile(r"^page \d+", re.IGNORECASE),
    re.compile(r"^statement period", re.IGNORECASE),
]

NEAR_EMPTY_LENGTH = 5
NEAR_EMPTY_RUN = 3
NEAR_EMPTY_WINDOW = 5

HAS_DATE = re.compile(rf"\d{{1,2}}[/\-\s]({MONTH_PATTERN}|\d{{1,2}})", re.IGNORECASE)
HAS_AMOUNT = re.compile(r"[£$€]?\s*\d+[,.]?\d*\.?\d{0,2}")

AMOUNT = r"(-?[£$€]?\s*-?\d+[,.]?\d*\.?\d{0,2})"


@dataclass(frozen=True)
class LineShape:
    """One line layout: captures (date, description, amount)."""

    name: str
    pattern: Pattern

    def match(self, line: str) -> Optional[Tuple[str, str, str]]:
        found = self.pattern.match(line)
        if not found:
            return None
        date_text, description, amount = found.groups()
        return date_text, description.strip(), amount


LINE_SHAPES = [
    # "01 Sep TESCO STORES -12.95" (a following year belongs to the last shape)
    LineShape(
        "day_month",
        re.compile(
            rf"^(\d{{1,2}}\s+(?:{MONTH_PATTERN})[a-z]*)(?!\s+\d{{4}}\b)\s+(.+?)\s+{AMOUNT}\s*$",
            re.IGNORECASE,
        ),
    ),
    # "15/09/2024 Amazon.co.uk 29.99"
    LineShape(
        "numeric_date",
        re.compile(rf"^(\d{{1,2}}[/\-]\d{{1,2}}[/\-]\d{{2,4}})\s+(.+?)\s+{AMOUNT}\s*$"),
    ),
    # "2024-09-01 SHELL FUEL STATION -45.20 100.00"
    LineShape(
        "iso_date_balance",
        re.compile(rf"^(\d{{4}}-\d{{2}}-\d{{2}})\s+(.+?)\s+{AMOUNT}\s+\d+[,.]?\d*\.?\d{{0,2}}\s*$"),
    ),
    # "01 Sep 2024 TESCO STORES -12.95"
    LineShape(
        "day_month_year",
        re.compile(
            rf"^(\d{{1,2}}\s+(?:{MONTH_PATTERN})[a-z]*\s+\d{{4}})\s+(.+?)\s+{AMOUNT}\s*$",
            re.IGNORECASE,
        ),
    ),
]


def find_table_boundaries(lines: List[str]) -> Optional[Tuple[int, int]]:
    """Return (start, end) line indexes of the transaction table, or None."""
    start = None
    for i, line in enumerate(lines):
        if any(p.search(line) for p in HEADER_PATTERNS):
            start = i + 1
            break

    if start is None:
        return None

    end = len(lines)
    for i in range(start, len(lines)):
        line = lines[i].strip()
        if any(p.search(line) for p in END_PATTERNS):
            end = i
            break

        # Several short lines in a row mean the table is over
        if len(line) < NEAR_EMPTY_LENGTH:
            window = lines[i + 1 : i + NEAR_EMPTY_WINDOW]
            short = 1 + sum(1 for w in window if len(w.strip()) < NEAR_EMPTY_LENGTH)
            if short >= NEAR_EMPTY_RUN:
                end = i
                break

    return start, end


def looks_like_transaction(line: str) -> bool:
    return bool(HAS_DATE.search(line) and HAS_AMOUNT.search(line))


class GenericStatementStrategy(StatementStrategy):
    """Line-shape matcher used for every bank without its own layout."""

    bank_name = "generic"
    line_shapes = LINE_SHAPES

    def parse_line(self, line: str) -> Optional[Transaction]:
        """First shape that matches and parses wins."""
        for shape in self.line_shapes:
            matched = shape.match(line)
            if not matched:
                continue
            date_text, description, amount_text = matched
            try:
                merchant_raw = extract_merchant_from_description(description) or description
                return self.build_transaction(date_text, amount_text, merchant_raw, description)
            except RecordError as e:
                self.diagnostics.debug("line_shape_rejected", e.detail, shape=shape.name, line=line)
                continue
        return None

    def extract_page(self, page: PdfPage) -> List[Transaction]:
        boundaries = find_table_boundaries(page.lines)
        if not boundaries:
            self.diagnostics.debug("no_table_header", "No transaction table on page", page=page.page_number)
            return []

        start, end = boundaries
        transactions = []
        for line in page.lines[start:end]:
            if not looks_like_transaction(line):
                continue
            txn = self.parse_line(line)
            if txn is None:
                self.diagnostics.warning(
                    "line_unmatched",
                    "Line looks like a transaction but matches no known shape",
                    page=page.page_number,
                    line=line,
                )
                continue
            if txn.amount == 0:
                self.diagnostics.debug(
                    "line_zero_amount", "Dropping zero-amount line", page=page.page_number, line=line
                )
                continue
            transactions.append(txn)
        return transactions
