"""Transaction and statement data model."""

import hashlib
import re
import uuid
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional

import pandas as pd

from packages.categorization.constants import Category, is_valid_subcategory

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

FRAME_COLUMNS = [
    "id",
    "date",
    "amount",
    "currency",
    "merchant_raw",
    "merchant_canonical",
    "category",
    "subcategory",
    "confidence",
    "notes",
    "mcc",
    "original_description",
    "source_file",
]


@dataclass(frozen=True)
class Transaction:
    """A single normalized statement line.

    Created by a parser as Unknown/0.0, classified once by the categorizer,
    and only changed afterwards by an explicit user correction. Every change
    produces a new instance.
    """

    date: str  # canonical YYYY-MM-DD
    amount: float  # negative = money out
    merchant_raw: str
    merchant_canonical: str
    currency: str = "GBP"
    category: Category = Category.UNKNOWN
    subcategory: Optional[str] = None
    confidence: float = 0.0
    notes: Optional[str] = None
    mcc: Optional[str] = None
    original_description: Optional[str] = None
    source_file: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        if not isinstance(self.category, Category):
            object.__setattr__(self, "category", Category(self.category))
        if self.date and not ISO_DATE.match(self.date):
            raise ValueError(f"Transaction date must be YYYY-MM-DD, got {self.date!r}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be within [0, 1], got {self.confidence}")
        if not is_valid_subcategory(self.category, self.subcategory):
            raise ValueError(
                f"{self.subcategory!r} is not a subcategory of {self.category.value}"
            )

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    @property
    def fingerprint(self) -> str:
        """Merge identity: same date, amount and canonical merchant."""
        return generate_fingerprint(self.date, self.amount, self.merchant_canonical)

    def with_classification(self, result) -> "Transaction":
        """Return a copy carrying a categorization result."""
        return replace(
            self,
            category=result.category,
            subcategory=result.subcategory,
            confidence=result.confidence,
            notes=result.notes,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for DataFrame creation."""
        data = asdict(self)
        data["category"] = self.category.value
        return data


@dataclass(frozen=True)
class StatementPeriod:
    start: str
    end: str


@dataclass(frozen=True)
class StatementMetadata:
    """Optional statement-level facts. account_id is always redacted."""

    currency: str = "GBP"
    account_id: Optional[str] = None
    period: Optional[StatementPeriod] = None
    bank: Optional[str] = None


@dataclass(frozen=True)
class ValidationReport:
    """Non-blocking findings about a parsed statement."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def merged(self, other: "ValidationReport") -> "ValidationReport":
        return ValidationReport(
            errors=self.errors + other.errors, warnings=self.warnings + other.warnings
        )


@dataclass
class ParsedStatement:
    """All transactions recovered from one input file, in source order."""

    filename: str
    transactions: List[Transaction]
    metadata: Optional[StatementMetadata] = None
    validation: Optional[ValidationReport] = None

    def __len__(self) -> int:
        return len(self.transactions)

    def to_frame(self) -> pd.DataFrame:
        return transactions_to_frame(self.transactions)


def statement_period(transactions: List[Transaction]) -> Optional[StatementPeriod]:
    """Earliest and latest transaction dates, or None when there are none."""
    dates = sorted(t.date for t in transactions if t.date)
    if not dates:
        return None
    return StatementPeriod(start=dates[0], end=dates[-1])


def redact_account_number(account_number: str) -> str:
    """Keep only the last four digits of an account number."""
    digits = re.sub(r"\D", "", account_number or "")
    if len(digits) < 4:
        return "****"
    return f"****{digits[-4:]}"


def transactions_to_frame(transactions: List[Transaction]) -> pd.DataFrame:
    """Build a DataFrame (one row per transaction) with a parsed date column."""
    df = pd.DataFrame([t.to_dict() for t in transactions], columns=FRAME_COLUMNS)
    df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d")
    df["amount"] = df["amount"].astype(float)
    return df


def normalize_merchant(merchant: str) -> str:
    """
    Normalizes merchant string by uppercasing and stripping whitespace.
    """
    if not merchant:
        return ""
    return str(merchant).strip().upper()


def generate_fingerprint(iso_date: str, amount: float, merchant: str) -> str:
    """
    Generates a SHA256 fingerprint for a transaction.
    Format: SHA256({ISO_Date}|{Amount_Float}|{Merchant_Normalized})
    """
    raw_string = f"{iso_date}|{float(amount)}|{normalize_merchant(merchant)}"
    return hashlib.sha256(raw_string.encode("utf-8")).hexdigest()
