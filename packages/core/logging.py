"""Structured logging for the statement pipeline.

Parsers, the categorizer and the insight passes all log through
``structlog.get_logger(__name__)`` with snake_case event names
(``statement_parsed``, ``pdf_bank_detected``, ``transactions_categorized``).
Call ``setup_logging`` once at process start to pick the renderer; record
level diagnostics reach the same loggers via ``log_diagnostic``.

pdfminer (under pdfplumber) logs every content-stream operator at DEBUG,
so it is held at WARNING unless ``quiet_pdf_logs`` is turned off.
"""

import logging
import sys

import structlog

PDF_LOGGERS = ("pdfminer", "pdfplumber")


def build_processors(json_output: bool = True) -> list:
    """Processor chain shared by the JSON and console renderers."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        # Chained StatementError causes end up as a string field
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.UnicodeDecoder())
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.processors.UnicodeDecoder())
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_logging(log_level: str = "INFO", json_output: bool = True, quiet_pdf_logs: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Python log level string (DEBUG, INFO, WARNING, ERROR).
        json_output: JSON lines when True, colorized console output otherwise.
        quiet_pdf_logs: Hold the PDF reader's loggers at WARNING.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=build_processors(json_output),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    for name in PDF_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING if quiet_pdf_logs else level)


def setup_logging_from_settings(settings=None) -> None:
    """Configure logging from a Settings instance (defaults to get_settings())."""
    from packages.core.config import get_settings

    settings = settings or get_settings()
    setup_logging(log_level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
