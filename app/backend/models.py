"""
Pydantic models for the receipt processing service.

The receipt models mirror the JSON structure requested from the language
model. Every field is optional and defaulted: the model output is only as
reliable as the model, so validation normalizes its shape instead of
rejecting it. Values are kept as free text.
"""

import json
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _as_text(value: Any) -> str | None:
    """Keep strings as-is, render anything else the model returned as text."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class ReceiptSection(BaseModel):
    """Base for the flat receipt sections whose fields are all free text."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("*", mode="before")
    @classmethod
    def coerce_to_text(cls, v: Any) -> str | None:
        """Accept numbers and nested values by rendering them as text."""
        return _as_text(v)


# =============================================================================
# Extracted Receipt Models
# =============================================================================


class StoreInfo(ReceiptSection):
    """Issuing store details."""

    name: str | None = None
    address: str | None = None
    tax_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("taxId", "tin", "tax_id"),
        serialization_alias="taxId",
    )
    unique_receipt_number: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "uniqueReceiptNumber", "urn", "unique_receipt_number"
        ),
        serialization_alias="uniqueReceiptNumber",
    )
    serial_number: str | None = None


class TransactionInfo(ReceiptSection):
    """
    Transaction metadata.

    `date` is expected as YYYY-MM-DD and `time` as HH:MM:SS, but neither
    is enforced.
    """

    receipt_number: str | None = None
    date: str | None = None
    time: str | None = None
    clerk_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("clerkId", "clerk", "clerk_id"),
        serialization_alias="clerkId",
    )
    machine_number: str | None = None


class ReceiptItem(ReceiptSection):
    """A single purchased line. Quantities and prices are not guaranteed numeric."""

    code: str | None = None
    description: str | None = None
    quantity: str | None = None
    unit_price: str | None = None
    total: str | None = None


class PaymentInfo(ReceiptSection):
    """How the receipt was paid."""

    bank: str | None = None
    card_type: str | None = None
    amount: str | None = None
    authorization_code: str | None = None


class ExtractedReceipt(BaseModel):
    """
    Structured receipt data returned by the language model.

    Attributes:
        store: Issuing store details.
        transaction: Receipt number, date, time, clerk and machine.
        items: Purchased lines in receipt order.
        payment: Payment method and amount.
        verification_code: Receipt verification code.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    store: StoreInfo = Field(default_factory=StoreInfo)
    transaction: TransactionInfo = Field(default_factory=TransactionInfo)
    items: list[ReceiptItem] = Field(default_factory=list)
    payment: PaymentInfo = Field(default_factory=PaymentInfo)
    verification_code: str | None = None

    @field_validator("store", "transaction", "payment", mode="before")
    @classmethod
    def default_missing_section(cls, v: Any) -> Any:
        """Treat a null or non-object section as empty."""
        if not isinstance(v, (dict, BaseModel)):
            return {}
        return v

    @field_validator("items", mode="before")
    @classmethod
    def clean_items(cls, v: Any) -> list[Any]:
        """Wrap a lone item and drop null or non-object entries."""
        if v is None:
            return []
        if isinstance(v, (dict, BaseModel)):
            v = [v]
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, (dict, BaseModel))]

    @field_validator("verification_code", mode="before")
    @classmethod
    def coerce_verification_code(cls, v: Any) -> str | None:
        """Render a non-string verification code as text."""
        return _as_text(v)

    def to_wire(self) -> dict[str, Any]:
        """Dump with the camelCase keys used in prompts, responses and exports."""
        return self.model_dump(by_alias=True)


# =============================================================================
# Session / Presentation Models
# =============================================================================


class ProcessingState(str, Enum):
    """Lifecycle of a receipt session."""

    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class ViewCard(BaseModel):
    """Summary card; keys use the same camelCase as the receipt and its items."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StoreCard(ViewCard):
    """Store summary card."""

    name: str | None = None
    address: str | None = None


class TransactionCard(ViewCard):
    """Transaction summary card."""

    receipt_number: str | None = None
    date: str | None = None
    time: str | None = None


class ReceiptView(BaseModel):
    """Read-only rendering of an extracted receipt: two cards plus the item grid."""

    store: StoreCard
    transaction: TransactionCard
    items: list[ReceiptItem] = Field(default_factory=list)


class SessionResponse(BaseModel):
    """Snapshot of a receipt session."""

    id: str = Field(..., description="Session ID (UUID)")
    state: ProcessingState = Field(..., description="Current processing state")
    file_name: str | None = Field(default=None, description="Selected file name")
    error: str | None = Field(default=None, description="Last error message")
    receipt: ExtractedReceipt | None = Field(
        default=None,
        description="Extracted receipt (once processing succeeded)",
    )
    view: ReceiptView | None = Field(
        default=None,
        description="Summary view derived from the receipt",
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Advisory validation warnings",
    )
    busy: bool = Field(default=False, description="Whether processing is in flight")
    can_process: bool = Field(
        default=False,
        description="Whether the process control is enabled",
    )
    can_export: bool = Field(
        default=False,
        description="Whether the download control is enabled",
    )


class ExtractionResponse(BaseModel):
    """Response model for the one-shot extract endpoint."""

    source_file: str = Field(..., description="Original filename")
    receipt: ExtractedReceipt = Field(..., description="Extracted receipt data")
    view: ReceiptView = Field(..., description="Summary view of the receipt")
    warnings: list[str] = Field(default_factory=list, description="Warnings")
    page_count: int = Field(..., ge=0, description="Pages read from the PDF")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    message: str = Field(default="")
    version: str = Field(default="1.0.0")
