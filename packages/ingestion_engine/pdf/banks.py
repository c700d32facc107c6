"""Bank detection and the strategy table."""

import re
from typing import Dict, List, Tuple, Type

from .base import StatementStrategy
from .generic import GenericStatementStrategy
from .hsbc import HsbcStatementStrategy

# Checked in order; first hit wins
BANK_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("barclays", re.compile(r"barclays", re.IGNORECASE)),
    ("hsbc", re.compile(r"hsbc", re.IGNORECASE)),
    ("lloyds", re.compile(r"lloyds", re.IGNORECASE)),
    ("natwest", re.compile(r"natwest|royal bank", re.IGNORECASE)),
    ("santander", re.compile(r"santander", re.IGNORECASE)),
    ("monzo", re.compile(r"monzo", re.IGNORECASE)),
    ("revolut", re.compile(r"revolut", re.IGNORECASE)),
    ("amex", re.compile(r"amex|american express", re.IGNORECASE)),
]

# Banks without an entry here use the generic strategy
STRATEGIES: Dict[str, Type[StatementStrategy]] = {
    "hsbc": HsbcStatementStrategy,
}


def detect_bank_format(text: str) -> str:
    for bank, pattern in BANK_PATTERNS:
        if pattern.search(text or ""):
            return bank
    return "generic"


def register_strategy(bank: str, strategy: Type[StatementStrategy]) -> None:
    """Add or replace the strategy used for ``bank``."""
    STRATEGIES[bank.lower()] = strategy


def get_strategy(bank: str) -> Type[StatementStrategy]:
    return STRATEGIES.get(bank.lower(), GenericStatementStrategy)
