"""
PDF processing service using pypdf.

Reads the plain text of a PDF receipt. Layout is not preserved: the text runs
of every page are joined with single spaces, in page order.
"""

import asyncio
import io
import logging
from typing import Any, BinaryIO, Callable, NamedTuple

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from ..exceptions import PdfParseError

logger = logging.getLogger(__name__)

PDF_PARSE_ERROR_MESSAGE = "Failed to parse PDF file - please check it's a valid PDF"


class PdfText(NamedTuple):
    """Plain text read from a PDF."""

    text: str
    page_count: int


class PDFService:
    """
    Service for PDF text extraction.

    Uses pypdf to walk each page's content stream and collect its text runs.
    """

    def __init__(
        self,
        timeout: float | None = 30.0,
        reader_factory: Callable[[BinaryIO], Any] = PdfReader,
    ):
        """
        Initialize the PDF service.

        Args:
            timeout: Seconds allowed for asynchronous extraction. None disables it.
            reader_factory: Callable that opens a byte stream as a document.
        """
        self.timeout = timeout
        self.reader_factory = reader_factory

    def _open(self, file_bytes: bytes | BinaryIO) -> Any:
        """Open the PDF, raising PdfParseError on anything unreadable."""
        # Ensure we have bytes
        if hasattr(file_bytes, "read"):
            pdf_bytes = file_bytes.read()
        else:
            pdf_bytes = file_bytes

        if not pdf_bytes:
            logger.error("Empty PDF file provided")
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE)

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            logger.error("Invalid PDF file: does not start with PDF header")
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE)

        try:
            return self.reader_factory(io.BytesIO(pdf_bytes))
        except PyPdfError as e:
            logger.error("PDF read error: %s", e)
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE) from e
        except Exception as e:
            logger.exception("Unexpected error opening PDF")
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE) from e

    @staticmethod
    def _page_text_runs(page: Any) -> list[str]:
        """Collect the text runs pypdf reports for a page."""
        runs: list[str] = []

        def visitor(text, *_args):
            run = " ".join(text.split())
            if run:
                runs.append(run)

        page.extract_text(visitor_text=visitor)
        return runs

    def read_document(self, file_bytes: bytes | BinaryIO) -> PdfText:
        """
        Read every page of a PDF into a single space-joined string.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            PdfText with all text runs of all pages, in page order, joined
            with single spaces, and the number of pages read.

        Raises:
            PdfParseError: If the document cannot be opened or read.
        """
        reader = self._open(file_bytes)

        try:
            runs: list[str] = []
            page_count = 0
            for page_number, page in enumerate(reader.pages, start=1):
                page_runs = self._page_text_runs(page)
                logger.debug("Page %d: %d text run(s)", page_number, len(page_runs))
                runs.extend(page_runs)
                page_count = page_number
        except PyPdfError as e:
            logger.error("PDF text extraction failed: %s", e)
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE) from e
        except Exception as e:
            logger.exception("Unexpected error during PDF text extraction")
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE) from e

        text = " ".join(runs)
        logger.info("Extracted %d characters from %d page(s)", len(text), page_count)
        return PdfText(text=text, page_count=page_count)

    def extract_text(self, file_bytes: bytes | BinaryIO) -> str:
        """Convenience method returning only the extracted text."""
        return self.read_document(file_bytes).text

    async def read_document_async(self, file_bytes: bytes) -> PdfText:
        """
        Read the document in a worker thread, bounded by the configured timeout.

        The timeout bounds how long the caller waits, not the work itself.
        A worker thread cannot be cancelled, so on timeout it keeps parsing
        in the default executor until pypdf returns, and its result is
        discarded.

        Raises:
            PdfParseError: If extraction fails or exceeds the timeout.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.read_document, file_bytes),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("PDF text extraction timed out after %ss", self.timeout)
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE) from e

    def get_page_count(self, file_bytes: bytes | BinaryIO) -> int:
        """
        Get the total number of pages in a PDF.

        Raises:
            PdfParseError: If the document cannot be opened.
        """
        reader = self._open(file_bytes)
        try:
            return len(reader.pages)
        except Exception as e:
            logger.error("Could not get page count: %s", e)
            raise PdfParseError(PDF_PARSE_ERROR_MESSAGE) from e


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        from ..config import get_settings

        _pdf_service = PDFService(timeout=get_settings().pdf_timeout)
    return _pdf_service
