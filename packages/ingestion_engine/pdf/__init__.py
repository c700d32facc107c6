"""
Rendered-statement (PDF) parsing.

The page model is built once by ``extract_document``; bank-specific
strategies only ever see text lines.
"""

from .banks import STRATEGIES, detect_bank_format, get_strategy, register_strategy
from .base import StatementStrategy
from .document import PdfDocument, PdfPage, extract_document
from .generic import GenericStatementStrategy
from .hsbc import HsbcStatementStrategy
from .parser import parse_pdf, parse_pdf_document, validate_pdf_transactions

__all__ = [
    "STRATEGIES",
    "detect_bank_format",
    "get_strategy",
    "register_strategy",
    "StatementStrategy",
    "PdfDocument",
    "PdfPage",
    "extract_document",
    "GenericStatementStrategy",
    "HsbcStatementStrategy",
    "parse_pdf",
    "parse_pdf_document",
    "validate_pdf_transactions",
]
