"""
Router for receipt session endpoints.

A session backs one receipt screen:
- Create / inspect / discard a session
- Select the PDF file
- Run processing (re-entry is refused while a run is in flight)
- Download the spreadsheet
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from ..config import Settings, get_settings
from ..models import SessionResponse
from ..services.export_service import ExportService, get_export_service
from ..services.receipt_processor import ReceiptProcessor, get_receipt_processor
from ..session import (
    ReceiptSession,
    SessionNotFoundError,
    SessionStore,
    get_session_store,
)
from .receipts import read_pdf_upload, xlsx_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _get_session(session_id: str, store: SessionStore) -> ReceiptSession:
    try:
        return store.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    """Start a new receipt session in the idle state."""
    session = store.create()
    logger.info("Created session %s", session.id)
    return session.snapshot()


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    """Return the session state, extracted receipt and summary view."""
    return _get_session(session_id, store).snapshot()


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    """Discard a session and everything it holds."""
    try:
        store.delete(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{session_id}/file", response_model=SessionResponse)
async def select_file(
    session_id: str,
    file: Annotated[UploadFile, File(description="PDF receipt")],
    settings: Settings = Depends(get_settings),
    store: SessionStore = Depends(get_session_store),
) -> SessionResponse:
    """
    Select the receipt PDF for a session.

    Clears any previous result and error.
    """
    session = _get_session(session_id, store)
    file_bytes = await read_pdf_upload(file, settings)
    session.select_file(file.filename, file_bytes)
    return session.snapshot()


@router.post("/{session_id}/process", response_model=SessionResponse)
async def process_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    processor: ReceiptProcessor = Depends(get_receipt_processor),
) -> SessionResponse:
    """
    Extract the receipt from the selected PDF.

    Processing failures are reported in the session's `error` field with
    state `failed`; the response is still 200.
    """
    session = _get_session(session_id, store)
    await session.process(processor)
    return session.snapshot()


@router.get("/{session_id}/export")
async def export_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    exporter: ExportService = Depends(get_export_service),
) -> Response:
    """Download the session's receipt as `receipt-details.xlsx`."""
    session = _get_session(session_id, store)
    return xlsx_response(session.export(exporter))
