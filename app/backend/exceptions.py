"""
Exceptions raised while processing a receipt.

Everything that can go wrong inside one processing action derives from
ReceiptProcessingError so the session controller can catch it in one place.
"""


class ReceiptProcessingError(Exception):
    """Base class for failures of a receipt processing action."""

    pass


class MissingFileError(ReceiptProcessingError):
    """Raised when processing is requested before a file was selected."""

    pass


class PdfParseError(ReceiptProcessingError):
    """Raised when the uploaded document cannot be opened or read as a PDF."""

    pass


class ProcessingInProgressError(Exception):
    """Raised when a session is asked to start while it is already processing."""

    pass


class NoReceiptDataError(Exception):
    """Raised when an export is requested before any receipt was extracted."""

    pass
