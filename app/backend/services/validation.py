"""
Advisory validation of extracted receipts.

Handles:
- Line item math (quantity x unit price vs total)
- Items total vs amount paid
- Date and time format checks

Checks only produce warnings. Values are never rewritten or rejected: the
receipt keeps whatever free text the model returned.
"""

import logging
import re
from typing import Any

from dateutil import parser as date_parser
from price_parser import Price

from ..models import ExtractedReceipt

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_TIME = re.compile(r"^\d{2}:\d{2}:\d{2}$")


def parse_amount(value: Any) -> float | None:
    """
    Parse a quantity or price string to float using price-parser.

    Handles "$1,234.56", "1.234,56 €", "2 x" and plain numbers.
    Returns None when no number can be found.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str) or not value.strip():
        return None
    return Price.fromstring(value).amount_float


def normalize_date(value: str | None) -> str | None:
    """
    Parse a date string to YYYY-MM-DD.

    Returns None if parsing fails.
    """
    if not value or not value.strip():
        return None
    value = value.strip()
    if _ISO_DATE.match(value):
        return value
    try:
        return date_parser.parse(value, dayfirst=True).strftime("%Y-%m-%d")
    except (ValueError, OverflowError):
        return None


def _amounts_match(left: float, right: float) -> bool:
    """Compare with a 1% tolerance (at least 0.02) for rounding errors."""
    if left == 0 and right == 0:
        return True
    tolerance = max(abs(left) * 0.01, abs(right) * 0.01, 0.02)
    return abs(left - right) <= tolerance


def validate_receipt(receipt: ExtractedReceipt) -> list[str]:
    """
    Run advisory checks on an extracted receipt.

    Args:
        receipt: The validated receipt model.

    Returns:
        List of warning messages, in check order.
    """
    warnings: list[str] = []

    if not receipt.store.name:
        warnings.append("Store name was not found on the receipt")

    if not receipt.items:
        warnings.append("No line items were found on the receipt")

    # Line item math
    item_totals: list[float] = []
    for index, item in enumerate(receipt.items, start=1):
        quantity = parse_amount(item.quantity)
        unit_price = parse_amount(item.unit_price)
        total = parse_amount(item.total)
        if total is not None:
            item_totals.append(total)
        if quantity is None or unit_price is None or total is None:
            continue
        expected = quantity * unit_price
        if not _amounts_match(expected, total):
            label = item.code or item.description or f"#{index}"
            warnings.append(
                f"Item {label}: quantity x unit price = {expected:.2f} "
                f"but total is {total:.2f}"
            )

    # Items total vs amount paid
    paid = parse_amount(receipt.payment.amount)
    if paid is not None and item_totals and len(item_totals) == len(receipt.items):
        items_sum = sum(item_totals)
        if not _amounts_match(items_sum, paid):
            warnings.append(
                f"Sum of item totals {items_sum:.2f} does not match "
                f"amount paid {paid:.2f}"
            )

    # Date and time formats
    date = receipt.transaction.date
    if date and not _ISO_DATE.match(date.strip()):
        normalized = normalize_date(date)
        if normalized:
            warnings.append(f"Date '{date}' is not YYYY-MM-DD (looks like {normalized})")
        else:
            warnings.append(f"Date '{date}' is not YYYY-MM-DD")

    time = receipt.transaction.time
    if time and not _ISO_TIME.match(time.strip()):
        warnings.append(f"Time '{time}' is not HH:MM:SS")

    for warning in warnings:
        logger.warning("Receipt validation: %s", warning)

    return warnings
