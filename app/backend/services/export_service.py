"""
Spreadsheet export of extracted receipts using openpyxl.

Produces one workbook with three sheets: "Store Info", "Items" and "Payment".
"""

import io
import logging
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.worksheet.worksheet import Worksheet

from ..models import ExtractedReceipt, PaymentInfo, ReceiptItem, StoreInfo

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "receipt-details.xlsx"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

STORE_SHEET = "Store Info"
ITEMS_SHEET = "Items"
PAYMENT_SHEET = "Payment"


def _wire_keys(model: type) -> list[str]:
    """Column headers for a section model: its camelCase keys in field order."""
    return list(model().model_dump(by_alias=True))


def _write_rows(sheet: Worksheet, headers: list[str], rows: list[dict[str, Any]]) -> None:
    """Write a bold header row followed by one row per record."""
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        sheet.append([row.get(key) for key in headers])


class ExportService:
    """Builds the receipt workbook in memory."""

    def build_workbook(self, receipt: ExtractedReceipt) -> bytes:
        """
        Serialize a receipt into an .xlsx workbook.

        Args:
            receipt: The receipt to export.

        Returns:
            The workbook as bytes.
        """
        data = receipt.to_wire()

        workbook = Workbook()
        store_sheet = workbook.active
        store_sheet.title = STORE_SHEET
        _write_rows(store_sheet, _wire_keys(StoreInfo), [data["store"]])

        items_sheet = workbook.create_sheet(ITEMS_SHEET)
        _write_rows(items_sheet, _wire_keys(ReceiptItem), data["items"])

        payment_sheet = workbook.create_sheet(PAYMENT_SHEET)
        _write_rows(payment_sheet, _wire_keys(PaymentInfo), [data["payment"]])

        buffer = io.BytesIO()
        workbook.save(buffer)
        content = buffer.getvalue()

        logger.info(
            "Built workbook with %d item row(s), %d bytes",
            len(data["items"]),
            len(content),
        )
        return content


# Singleton instance for convenience
_export_service: ExportService | None = None


def get_export_service() -> ExportService:
    """Get or create the export service singleton."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
