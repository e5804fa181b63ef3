"""
Receipt session controller.

A session owns the state of one user's screen: the selected file, the
processing state, the last error and the extracted receipt. It moves through

    idle -> file_selected -> processing -> ready | failed

and returns to file_selected whenever a new file is picked. Processing is
guarded against re-entry: a second request while one is in flight is refused
without touching the network.
"""

import logging
import uuid
from collections import OrderedDict

from .exceptions import (
    MissingFileError,
    NoReceiptDataError,
    ProcessingInProgressError,
    ReceiptProcessingError,
)
from .models import ExtractedReceipt, ProcessingState, SessionResponse
from .presentation import build_receipt_view
from .services.ai.exceptions import NetworkOrHttpError
from .services.export_service import ExportService
from .services.receipt_processor import ReceiptProcessor

logger = logging.getLogger(__name__)

MISSING_FILE_MESSAGE = "Please upload a PDF file first"


def describe_error(exc: Exception) -> str:
    """Turn a processing failure into the single message shown to the user."""
    if isinstance(exc, NetworkOrHttpError) and exc.server_message:
        return exc.server_message
    return f"Failed to process receipt: {exc}"


class ReceiptSession:
    """State of one receipt screen."""

    def __init__(self, session_id: str | None = None):
        self.id = session_id or str(uuid.uuid4())
        self.state = ProcessingState.IDLE
        self.file_name: str | None = None
        self.file_bytes: bytes | None = None
        self.error: str | None = None
        self.receipt: ExtractedReceipt | None = None
        self.warnings: list[str] = []

    @property
    def busy(self) -> bool:
        return self.state == ProcessingState.PROCESSING

    def _reset_result(self) -> None:
        self.receipt = None
        self.warnings = []
        self.error = None

    def select_file(self, file_name: str, file_bytes: bytes) -> None:
        """
        Select a new file, discarding any previous result and error.

        Raises:
            ProcessingInProgressError: If a processing run is in flight.
        """
        if self.busy:
            raise ProcessingInProgressError("Cannot change the file while processing")

        self.file_name = file_name
        self.file_bytes = file_bytes
        self._reset_result()
        self.state = ProcessingState.FILE_SELECTED
        logger.info("Session %s: selected %s (%d bytes)", self.id, file_name, len(file_bytes))

    async def process(self, processor: ReceiptProcessor) -> None:
        """
        Run extraction on the selected file.

        Failures of the run are recorded on the session (state `failed` and a
        readable error) rather than raised.

        Raises:
            MissingFileError: If no file has been selected.
            ProcessingInProgressError: If a run is already in flight.
        """
        if self.file_bytes is None:
            self.error = MISSING_FILE_MESSAGE
            raise MissingFileError(MISSING_FILE_MESSAGE)
        if self.busy:
            raise ProcessingInProgressError("Receipt is already being processed")

        # Guard is taken before the first await
        self.state = ProcessingState.PROCESSING
        self._reset_result()

        try:
            result = await processor.run(self.file_bytes, self.file_name or "")
        except ReceiptProcessingError as e:
            logger.error("Session %s: processing failed: %s", self.id, e)
            self.error = describe_error(e)
            self.state = ProcessingState.FAILED
            return
        except Exception as e:
            logger.exception("Session %s: unexpected processing error", self.id)
            self.error = describe_error(e)
            self.state = ProcessingState.FAILED
            return

        self.receipt = result.receipt
        self.warnings = result.warnings
        self.state = ProcessingState.READY
        logger.info("Session %s: receipt ready", self.id)

    def export(self, exporter: ExportService) -> bytes:
        """
        Build the spreadsheet for the current receipt.

        Raises:
            NoReceiptDataError: If no receipt has been extracted.
        """
        if self.receipt is None:
            raise NoReceiptDataError("No extracted receipt data to export")
        return exporter.build_workbook(self.receipt)

    def snapshot(self) -> SessionResponse:
        """Render the session state for the client."""
        return SessionResponse(
            id=self.id,
            state=self.state,
            file_name=self.file_name,
            error=self.error,
            receipt=self.receipt,
            view=build_receipt_view(self.receipt) if self.receipt else None,
            warnings=list(self.warnings),
            busy=self.busy,
            can_process=self.file_bytes is not None and not self.busy,
            can_export=self.receipt is not None,
        )


class SessionNotFoundError(KeyError):
    """Raised when a session id is unknown or was evicted."""

    pass


class SessionStore:
    """In-memory sessions, oldest evicted first once `max_sessions` is reached."""

    def __init__(self, max_sessions: int = 1000):
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, ReceiptSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> ReceiptSession:
        session = ReceiptSession()
        self._sessions[session.id] = session
        while len(self._sessions) > self.max_sessions:
            evicted_id, _ = self._sessions.popitem(last=False)
            logger.info("Evicted session %s", evicted_id)
        return session

    def get(self, session_id: str) -> ReceiptSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError(session_id)


_session_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get or create the session store singleton."""
    global _session_store
    if _session_store is None:
        from .config import get_settings

        _session_store = SessionStore(max_sessions=get_settings().max_sessions)
    return _session_store
