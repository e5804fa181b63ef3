"""
Services package for the receipt processing application.

Contains:
- pdf_service: PDF text extraction
- ai: Gemini integration for structured receipt extraction
- validation: Advisory checks on extracted receipts
- export_service: Spreadsheet export
- receipt_processor: End-to-end processing pipeline
"""

from .ai import ReceiptAIService
from .export_service import ExportService
from .pdf_service import PDFService
from .receipt_processor import ReceiptProcessor

__all__ = ["PDFService", "ReceiptAIService", "ExportService", "ReceiptProcessor"]
