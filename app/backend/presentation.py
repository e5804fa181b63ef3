"""
Read-only summary view of an extracted receipt.
"""

from .models import ExtractedReceipt, ReceiptView, StoreCard, TransactionCard


def build_receipt_view(receipt: ExtractedReceipt) -> ReceiptView:
    """Derive the store card, transaction card and item grid from a receipt."""
    return ReceiptView(
        store=StoreCard(
            name=receipt.store.name,
            address=receipt.store.address,
        ),
        transaction=TransactionCard(
            receipt_number=receipt.transaction.receipt_number,
            date=receipt.transaction.date,
            time=receipt.transaction.time,
        ),
        items=[item.model_copy() for item in receipt.items],
    )
