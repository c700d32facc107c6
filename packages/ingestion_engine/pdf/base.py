"""
Base class for rendered-statement strategies.

A strategy turns the lines of a PdfDocument into provisional transactions
(category Unknown, confidence 0). Bad lines are reported to the diagnostics
sink and skipped.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from packages.core.config import get_settings
from packages.core.diagnostics import DiagnosticReporter, DiagnosticSink

from ..merchant_extractor import MerchantResolver
from ..models import Transaction
from ..parser import parse_amount, parse_date
from .document import PdfDocument, PdfPage


class StatementStrategy(ABC):
    """Abstract base for all PDF statement strategies."""

    bank_name = "generic"

    def __init__(
        self,
        filename: str = "statement.pdf",
        sink: Optional[DiagnosticSink] = None,
        resolver: Optional[MerchantResolver] = None,
        today: Optional[date] = None,
    ):
        self.filename = filename
        self.diagnostics = DiagnosticReporter(sink, filename=filename, bank=self.bank_name)
        self.resolver = resolver or MerchantResolver()
        self.today = today
        self.settings = get_settings()

    def extract(self, document: PdfDocument) -> List[Transaction]:
        """Template method: run extract_page over every page, in order."""
        transactions: List[Transaction] = []
        for page in document.pages:
            transactions.extend(self.extract_page(page))
        return transactions

    @abstractmethod
    def extract_page(self, page: PdfPage) -> List[Transaction]:
        """Extract transactions from a single page."""

    def build_transaction(
        self,
        date_text: str,
        amount,
        merchant_raw: str,
        description: Optional[str] = None,
    ) -> Transaction:
        """Create a provisional transaction; raises RecordError on bad input."""
        if not isinstance(amount, float):
            amount = parse_amount(amount)
        merchant_raw = merchant_raw.strip()
        return Transaction(
            date=parse_date(date_text, today=self.today),
            amount=amount,
            currency=self.settings.DEFAULT_CURRENCY,
            merchant_raw=merchant_raw,
            merchant_canonical=self.resolver.canonical_name(merchant_raw),
            original_description=(description or merchant_raw).strip() or None,
            source_file=self.filename,
        )
