"""
End-to-end receipt processing: PDF text, model extraction, validation.
"""

import logging
from dataclasses import dataclass, field

from ..models import ExtractedReceipt
from .ai import ReceiptAIService, get_ai_service
from .pdf_service import PDFService, get_pdf_service
from .validation import validate_receipt

logger = logging.getLogger(__name__)


@dataclass
class ProcessingResult:
    """Outcome of one successful processing run."""

    receipt: ExtractedReceipt
    warnings: list[str] = field(default_factory=list)
    page_count: int = 0
    text_length: int = 0


class ReceiptProcessor:
    """Runs the two suspension points in sequence, then validates the result."""

    def __init__(self, pdf_service: PDFService, ai_service: ReceiptAIService):
        self.pdf_service = pdf_service
        self.ai_service = ai_service

    async def run(self, file_bytes: bytes, source_file: str = "") -> ProcessingResult:
        """
        Process one PDF receipt.

        Raises:
            PdfParseError: If the PDF cannot be read.
            AIServiceError: If the model request or its parsing fails.
        """
        logger.info("Processing receipt %s (%d bytes)", source_file or "<upload>", len(file_bytes))

        document = await self.pdf_service.read_document_async(file_bytes)
        logger.debug("Extracted PDF text: %s", document.text[:500])

        receipt = await self.ai_service.extract_receipt(document.text)
        warnings = validate_receipt(receipt)

        return ProcessingResult(
            receipt=receipt,
            warnings=warnings,
            page_count=document.page_count,
            text_length=len(document.text),
        )


_receipt_processor: ReceiptProcessor | None = None


def get_receipt_processor() -> ReceiptProcessor:
    """Get or create the receipt processor singleton."""
    global _receipt_processor
    if _receipt_processor is None:
        _receipt_processor = ReceiptProcessor(get_pdf_service(), get_ai_service())
    return _receipt_processor
