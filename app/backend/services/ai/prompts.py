"""
Prompt construction for receipt extraction.
"""

import json

# Literal template inlined into the prompt. Keys match ExtractedReceipt's wire names.
RECEIPT_SCHEMA_TEMPLATE: dict = {
    "store": {
        "name": "Company name",
        "address": "Full address",
        "taxId": "Tax Identification Number",
        "uniqueReceiptNumber": "Unique Receipt Number",
        "serialNumber": "Serial number",
    },
    "transaction": {
        "receiptNumber": "Receipt number",
        "date": "Date in YYYY-MM-DD",
        "time": "Time in HH:MM:SS",
        "clerkId": "Clerk ID",
        "machineNumber": "Machine number",
    },
    "items": [
        {
            "code": "Product code",
            "description": "Product name",
            "quantity": "Quantity",
            "unitPrice": "Unit price",
            "total": "Total price",
        }
    ],
    "payment": {
        "bank": "Bank name",
        "cardType": "Card type",
        "amount": "Total amount paid",
        "authorizationCode": "Authorization code",
    },
    "verificationCode": "Receipt verification code",
}


def build_extraction_prompt(receipt_text: str) -> str:
    """
    Build the single extraction prompt.

    The prompt demands JSON-only output, inlines the schema template, and
    appends the receipt text verbatim as its final part.
    """
    template = json.dumps(RECEIPT_SCHEMA_TEMPLATE, indent=2)
    return (
        "ONLY OUTPUT VALID JSON. Extract receipt data using this structure:\n"
        f"{template}\n"
        f"From this receipt text: {receipt_text}"
    )
