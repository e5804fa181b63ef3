"""
Router for one-shot receipt endpoints.

Handles:
- PDF upload and extraction in a single request
- Spreadsheet export of a receipt supplied by the client
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status

from ..config import Settings, get_settings
from ..models import ExtractedReceipt, ExtractionResponse
from ..presentation import build_receipt_view
from ..services.export_service import (
    EXPORT_FILENAME,
    XLSX_MEDIA_TYPE,
    ExportService,
    get_export_service,
)
from ..services.receipt_processor import ReceiptProcessor, get_receipt_processor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["receipts"])

PDF_MEDIA_TYPE = "application/pdf"


async def read_pdf_upload(file: UploadFile, settings: Settings) -> bytes:
    """
    Read an uploaded file, accepting only PDFs.

    The file must declare the application/pdf content type or carry a .pdf
    name. Its content is not inspected here. At most `max_upload_bytes + 1`
    bytes are read; anything longer is rejected with 413.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No filename provided",
        )

    is_pdf = file.content_type == PDF_MEDIA_TYPE or file.filename.lower().endswith(".pdf")
    if not is_pdf:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF files are accepted",
        )

    limit = settings.max_upload_bytes
    too_large = HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"File exceeds the {limit} byte limit",
    )
    try:
        if file.size is not None and file.size > limit:
            raise too_large
        # Never hold more than limit + 1 bytes
        file_bytes = await file.read(limit + 1)
    finally:
        await file.close()

    if len(file_bytes) > limit:
        raise too_large
    return file_bytes


def xlsx_response(content: bytes) -> Response:
    """Wrap workbook bytes as a download with the fixed export name."""
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"',
        },
    )


@router.post("/extract", response_model=ExtractionResponse)
async def extract_receipt(
    file: Annotated[UploadFile, File(description="PDF receipt to process")],
    download: Annotated[
        bool, Query(description="Return the spreadsheet instead of JSON")
    ] = False,
    settings: Settings = Depends(get_settings),
    processor: ReceiptProcessor = Depends(get_receipt_processor),
    exporter: ExportService = Depends(get_export_service),
):
    """
    Extract structured data from a PDF receipt.

    Reads the PDF text, asks the language model for the receipt fields and
    returns them with a summary view. With `download=true` the result is
    returned directly as `receipt-details.xlsx`.
    """
    file_bytes = await read_pdf_upload(file, settings)
    result = await processor.run(file_bytes, file.filename)

    if download:
        return xlsx_response(exporter.build_workbook(result.receipt))

    return ExtractionResponse(
        source_file=file.filename,
        receipt=result.receipt,
        view=build_receipt_view(result.receipt),
        warnings=result.warnings,
        page_count=result.page_count,
    )


@router.post("/export")
async def export_receipt(
    receipt: ExtractedReceipt,
    exporter: ExportService = Depends(get_export_service),
) -> Response:
    """Export a receipt (as returned by /extract) to `receipt-details.xlsx`."""
    return xlsx_response(exporter.build_workbook(receipt))
