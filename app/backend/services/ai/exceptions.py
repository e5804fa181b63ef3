"""
Shared exceptions for AI service modules.
"""

from ...exceptions import ReceiptProcessingError


class AIServiceError(ReceiptProcessingError):
    """Raised when AI service operations fail."""

    pass


class NetworkOrHttpError(AIServiceError):
    """
    Raised when the request fails in transport or returns a non-2xx status.

    Attributes:
        status_code: HTTP status of the last attempt, None for transport errors.
        server_message: Error message supplied by the API, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        server_message: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class InvalidResponseError(AIServiceError):
    """Raised when the API response does not have the expected shape."""

    pass


class JsonParseError(AIServiceError):
    """Raised when the model output is not valid JSON after cleanup."""

    pass
