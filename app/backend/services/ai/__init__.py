"""
AI service package for structured receipt extraction.

This package is split into:
- client: HTTP client for the generative-language API
- prompts: Extraction prompt and schema template
- extraction: Response unwrapping, JSON cleanup and parsing

The ReceiptAIService class ties them together behind one call.
"""

import logging

import httpx

from ...models import (
    ExtractedReceipt,
    PaymentInfo,
    ReceiptItem,
    StoreInfo,
    TransactionInfo,
)
from .client import GeminiClient
from .exceptions import (
    AIServiceError,
    InvalidResponseError,
    JsonParseError,
    NetworkOrHttpError,
)
from .extraction import (
    clean_response_text,
    extract_receipt as _extract_receipt,
    get_response_text,
    parse_receipt_json,
)
from .prompts import RECEIPT_SCHEMA_TEMPLATE, build_extraction_prompt

logger = logging.getLogger(__name__)

__all__ = [
    "ReceiptAIService",
    "AIServiceError",
    "NetworkOrHttpError",
    "InvalidResponseError",
    "JsonParseError",
    "GeminiClient",
    "RECEIPT_SCHEMA_TEMPLATE",
    "build_extraction_prompt",
    "clean_response_text",
    "get_response_text",
    "parse_receipt_json",
    "get_ai_service",
]


class ReceiptAIService:
    """
    Service for AI-powered receipt extraction.

    Sends the receipt text to a Gemini model and returns a validated
    ExtractedReceipt.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        use_mock: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the AI service.

        Arguments left as None are read from application settings.

        Args:
            api_key: Gemini API key.
            model: Gemini model name.
            base_url: API root URL.
            timeout: Seconds allowed per request attempt.
            max_retries: Extra attempts for retryable failures.
            use_mock: If True, return a canned receipt instead of calling the API.
            transport: Optional httpx transport, mainly for tests.
        """
        from ...config import get_settings

        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.base_url = base_url or settings.gemini_base_url
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.max_retries = (
            max_retries if max_retries is not None else settings.max_retries
        )
        self.use_mock = use_mock
        self.transport = transport
        self._client: GeminiClient | None = None

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Unset USE_MOCK_AI for real extraction."
            )
        elif not self.api_key:
            # Not fatal: the API rejects the request when it is made.
            logger.warning(
                "GEMINI_API_KEY is not set; extraction requests will fail authentication."
            )

    @property
    def client(self) -> GeminiClient:
        """Lazy-load the API client."""
        if self._client is None:
            self._client = GeminiClient(
                api_key=self.api_key,
                model=self.model,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=self.max_retries,
                transport=self.transport,
            )
        return self._client

    async def extract_receipt(self, receipt_text: str) -> ExtractedReceipt:
        """
        Extract structured receipt data from plain receipt text.

        Args:
            receipt_text: Text extracted from the PDF.

        Returns:
            ExtractedReceipt validated from the model output.

        Raises:
            AIServiceError: On network, response-shape or JSON failures.
        """
        if self.use_mock:
            logger.info("Extracting receipt (MOCK MODE), %d chars", len(receipt_text))
            return self._get_mock_receipt()
        return await _extract_receipt(receipt_text, self.client)

    def _get_mock_receipt(self) -> ExtractedReceipt:
        """Return a mock receipt for development."""
        return ExtractedReceipt(
            store=StoreInfo(
                name="MOCK STORE LTD",
                address="1 Mock Street, Test City",
                tax_id="P000000000A",
                unique_receipt_number="URN-0001",
                serial_number="SN-0001",
            ),
            transaction=TransactionInfo(
                receipt_number="0001",
                date="2024-01-15",
                time="12:30:00",
                clerk_id="01",
                machine_number="M-01",
            ),
            items=[
                ReceiptItem(
                    code="MOCK-1",
                    description="Mock item",
                    quantity="2",
                    unit_price="5.00",
                    total="10.00",
                ),
            ],
            payment=PaymentInfo(
                bank="Mock Bank",
                card_type="VISA",
                amount="10.00",
                authorization_code="000000",
            ),
            verification_code="MOCK-VERIFY",
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: ReceiptAIService | None = None


def get_ai_service() -> ReceiptAIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        from ...config import get_settings

        _ai_service = ReceiptAIService(use_mock=get_settings().use_mock_ai)
    return _ai_service
