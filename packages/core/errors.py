"""Error taxonomy for statement ingestion.

File-level failures abort a whole file and reach the caller as a single
StatementError subclass. Record-level failures (RecordError) are raised by
the shared date/amount routines and are contained by the parsers.

Each error renders as a small problem-detail dict:

    {
        "type": "no-transactions",
        "title": "No Transactions Found",
        "detail": "No transactions found in PDF (detected bank: hsbc)"
    }
"""


class StatementError(Exception):
    """Base statement processing error."""

    title = "Statement Error"

    def __init__(self, detail: str, error_type: str = "statement-error"):
        self.detail = detail
        self.error_type = error_type
        super().__init__(detail)

    def to_dict(self) -> dict:
        return {"type": self.error_type, "title": self.title, "detail": self.detail}


class UnsupportedFileTypeError(StatementError):
    """File type could not be detected."""

    title = "Unsupported File Type"

    def __init__(self, detail: str = "Unsupported file type. Supported: CSV, PDF"):
        super().__init__(detail=detail, error_type="unsupported-file-type")


class EmptyStatementError(StatementError):
    """Delimited file has no header or no data rows."""

    title = "Empty Statement"

    def __init__(self, detail: str = "CSV file is empty"):
        super().__init__(detail=detail, error_type="empty-statement")


class NoTransactionsFoundError(StatementError):
    """Document was readable but yielded zero transactions."""

    title = "No Transactions Found"

    def __init__(self, detail: str = "No transactions found"):
        super().__init__(detail=detail, error_type="no-transactions")


class DocumentExtractionError(StatementError):
    """Rendered document could not be opened or read."""

    title = "Unreadable Document"

    def __init__(self, detail: str = "Could not read document"):
        super().__init__(detail=detail, error_type="unreadable-document")


class RecordError(StatementError):
    """A single row or line could not be turned into a transaction."""

    title = "Invalid Record"

    def __init__(self, detail: str, error_type: str = "invalid-record"):
        super().__init__(detail=detail, error_type=error_type)


class DateParseError(RecordError):
    """Date value matched no supported format."""

    def __init__(self, value):
        self.value = value
        super().__init__(detail=f"Unrecognized date: {value!r}", error_type="invalid-date")


class AmountParseError(RecordError):
    """Amount value is not a number."""

    def __init__(self, value):
        self.value = value
        super().__init__(detail=f"Unrecognized amount: {value!r}", error_type="invalid-amount")
