"""
Receipt extraction: send the receipt text to the model and parse its answer.

The model is asked for JSON only, but frequently wraps it in a markdown code
fence. The answer is unwrapped, parsed, and validated into ExtractedReceipt.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from ...models import ExtractedReceipt
from .client import GeminiClient
from .exceptions import InvalidResponseError, JsonParseError
from .prompts import build_extraction_prompt

logger = logging.getLogger(__name__)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)
_LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```$")


def get_response_text(payload: Any) -> str:
    """
    Return `candidates[0].content.parts[0].text` from a generateContent response.

    Raises:
        InvalidResponseError: If any step of the path is missing or the text is empty.
    """
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        logger.error("Unexpected response structure: %s", str(payload)[:500])
        raise InvalidResponseError("Invalid API response structure") from e

    if not isinstance(text, str) or not text.strip():
        raise InvalidResponseError("Invalid API response structure")
    return text


def clean_response_text(text: str) -> str:
    """
    Strip markdown code-fence markers around the model output.

    Cleaning already-clean text returns it unchanged.
    """
    text = text.strip()
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    # Unbalanced fence: drop whichever marker is present
    text = _LEADING_FENCE.sub("", text)
    text = _TRAILING_FENCE.sub("", text)
    return text.strip()


def parse_receipt_json(text: str) -> ExtractedReceipt:
    """
    Parse cleaned model output into an ExtractedReceipt.

    Raises:
        JsonParseError: If the text is not valid JSON.
        InvalidResponseError: If the JSON is not an object.
    """
    cleaned = clean_response_text(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse model output: %s", cleaned[:500])
        raise JsonParseError(f"Invalid JSON in model response: {e}") from e

    if not isinstance(data, dict):
        raise InvalidResponseError(
            f"Expected a JSON object from the model, got {type(data).__name__}"
        )

    try:
        return ExtractedReceipt.model_validate(data)
    except ValidationError as e:
        raise InvalidResponseError(f"Unexpected receipt structure: {e}") from e


async def extract_receipt(receipt_text: str, client: GeminiClient) -> ExtractedReceipt:
    """
    Request structured receipt data for the given text.

    Args:
        receipt_text: Plain text extracted from the PDF.
        client: Configured GeminiClient.

    Returns:
        The validated ExtractedReceipt.
    """
    prompt = build_extraction_prompt(receipt_text)
    logger.debug("Extraction prompt preview: %s...", prompt[:500])

    payload = await client.generate_content(prompt)
    response_text = get_response_text(payload)
    logger.debug("Model output preview: %s", response_text[:500])

    receipt = parse_receipt_json(response_text)
    logger.info(
        "Extracted receipt: store=%r, %d item(s)",
        receipt.store.name,
        len(receipt.items),
    )
    return receipt
