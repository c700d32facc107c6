"""
SpendSense Ingestion Engine

Statement ingestion, parsing, and normalization.
"""

__version__ = "0.1.0"

from .import_transactions import FileType, detect_file_type, merge_statements, parse_file
from .merchant_extractor import MerchantResolver, resolve_merchant
from .models import ParsedStatement, StatementMetadata, Transaction, ValidationReport
from .parser import BankStatementParser, parse_bank_statement

__all__ = [
    "FileType",
    "detect_file_type",
    "merge_statements",
    "parse_file",
    "MerchantResolver",
    "resolve_merchant",
    "ParsedStatement",
    "StatementMetadata",
    "Transaction",
    "ValidationReport",
    "BankStatementParser",
    "parse_bank_statement",
]
