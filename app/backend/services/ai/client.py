"""
HTTP client for the Google generative-language API.

Issues `generateContent` requests with httpx. The API key travels as the
`key` query parameter; no headers are sent beyond the JSON content type.
"""

import logging
from typing import Any

import httpx

from .exceptions import NetworkOrHttpError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Statuses worth a second attempt: rate limiting and server-side failures.
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def _server_message(response: httpx.Response) -> str | None:
    """Pull the API's own error message out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if body.get("message"):
        return str(body["message"])
    return None


class GeminiClient:
    """
    Minimal async client for `models/{model}:generateContent`.

    One request per call, with an explicit timeout and a bounded number of
    retries for transport errors and retryable statuses.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 60.0,
        max_retries: int = 1,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API key sent as the `key` query parameter.
            model: Model name, e.g. "gemini-2.0-flash-001".
            base_url: API root without trailing slash.
            timeout: Seconds allowed per attempt.
            max_retries: Extra attempts after the first one fails.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def generate_content(self, prompt: str) -> dict[str, Any]:
        """
        POST a single-part prompt and return the decoded response body.

        Raises:
            NetworkOrHttpError: If every attempt fails or the API answers non-2xx.
        """
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        params = {"key": self.api_key or ""}
        attempts = self.max_retries + 1
        last_error = NetworkOrHttpError("Request was not attempted")

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            for attempt in range(1, attempts + 1):
                logger.info(
                    "Calling %s (attempt %d/%d, prompt %d chars)",
                    self.endpoint,
                    attempt,
                    attempts,
                    len(prompt),
                )
                try:
                    response = await client.post(self.endpoint, params=params, json=body)
                except httpx.TimeoutException as e:
                    logger.warning("Request timed out after %ss: %s", self.timeout, e)
                    last_error = NetworkOrHttpError(f"Request timed out: {e}")
                    continue
                except httpx.TransportError as e:
                    logger.warning("Request failed: %s", e)
                    last_error = NetworkOrHttpError(f"Request failed: {e}")
                    continue

                if response.is_success:
                    try:
                        return response.json()
                    except ValueError as e:
                        raise NetworkOrHttpError(
                            f"Response body is not JSON (status {response.status_code})",
                            status_code=response.status_code,
                        ) from e

                server_message = _server_message(response)
                logger.warning(
                    "API returned %d: %s",
                    response.status_code,
                    server_message or response.reason_phrase,
                )
                error = NetworkOrHttpError(
                    f"Request failed with status code {response.status_code}",
                    status_code=response.status_code,
                    server_message=server_message,
                )
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise error
                last_error = error

        logger.error("Giving up after %d attempt(s): %s", attempts, last_error)
        raise last_error
