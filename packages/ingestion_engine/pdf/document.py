"""
Page model for rendered (PDF) statements and the pdfplumber adapter that
builds it.

Strategies only ever see ``PdfDocument``: pages of reconstructed text lines
plus the full text used for bank detection.
"""

import io
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import structlog

from packages.core.errors import DocumentExtractionError

from ..parser import ProgressTracker
from ..text_normalizer import TextFragment, reconstruct_lines

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PdfPage:
    page_number: int
    lines: List[str]

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class PdfDocument:
    pages: List[PdfPage]
    full_text: str = ""
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_lines(cls, pages: List[List[str]]) -> "PdfDocument":
        """Build a document from already-reconstructed page lines."""
        built = [PdfPage(page_number=i, lines=list(lines)) for i, lines in enumerate(pages, start=1)]
        return cls(pages=built, full_text="\n\n".join(p.text for p in built))


def words_to_fragments(words: List[dict]) -> List[TextFragment]:
    """Convert pdfplumber ``extract_words()`` dicts to TextFragments."""
    fragments = []
    for word in words:
        x0 = float(word["x0"])
        x1 = float(word.get("x1", x0))
        size = word.get("size")
        fragments.append(
            TextFragment(
                text=word["text"],
                x=x0,
                y=float(word["top"]),
                width=(x1 - x0) or None,
                size=float(size) if size else None,
            )
        )
    return fragments


def extract_document(
    content,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> PdfDocument:
    """
    Read a PDF into the page model.

    Args:
        content: PDF bytes or a file-like object
        progress_callback: Callback(current_page, total_pages)

    Raises:
        DocumentExtractionError: If pdfplumber cannot open or read the file.
    """
    import pdfplumber

    source = io.BytesIO(content) if isinstance(content, (bytes, bytearray)) else content
    pages: List[PdfPage] = []

    try:
        with pdfplumber.open(source) as pdf:
            progress = ProgressTracker(len(pdf.pages), progress_callback)
            for number, page in enumerate(pdf.pages, start=1):
                words = page.extract_words(keep_blank_chars=False, extra_attrs=["size"])
                lines = reconstruct_lines(words_to_fragments(words))
                pages.append(PdfPage(page_number=number, lines=lines))
                progress.update()
            metadata = dict(pdf.metadata or {})
    except Exception as e:
        logger.error("pdf_extraction_failed", error=str(e))
        raise DocumentExtractionError(f"Failed to extract text from PDF: {e}") from e

    logger.info("pdf_extracted", pages=len(pages))
    return PdfDocument(
        pages=pages,
        full_text="\n\n".join(p.text for p in pages),
        metadata=metadata,
    )
