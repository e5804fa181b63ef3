"""Pytest configuration and fixtures."""

import asyncio
import json
from typing import Any, Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from app.backend.main import app
from app.backend.models import ExtractedReceipt
from app.backend.services.ai import ReceiptAIService
from app.backend.services.pdf_service import PDFService
from app.backend.services.receipt_processor import ReceiptProcessor, get_receipt_processor
from app.backend.session import SessionStore, get_session_store

SAMPLE_RECEIPT_DATA: dict[str, Any] = {
    "store": {"name": "Shop"},
    "items": [
        {
            "code": "A1",
            "description": "Item",
            "quantity": "1",
            "unitPrice": "5",
            "total": "5",
        }
    ],
    "payment": {"amount": "5"},
}


def build_pdf(pages: list[list[str]]) -> bytes:
    """
    Build a small but well-formed PDF with one text line per entry.

    Uses the standard Helvetica font so no font program is embedded.
    """
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)

    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, lines in zip(page_ids, pages):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                "/Resources << /Font << /F1 3 0 R >> >> "
                f"/Contents {page_id + 1} 0 R >>"
            ).encode()
        )
        ops = ["BT", "/F1 12 Tf"]
        y = 700
        for line in lines:
            ops.append(f"1 0 0 1 72 {y} Tm ({line}) Tj")
            y -= 20
        ops.append("ET")
        stream = "\n".join(ops).encode()
        objects.append(
            f"<< /Length {len(stream)} >>\nstream\n".encode() + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n"
    ).encode()
    return bytes(out)


def gemini_payload(text: str) -> dict[str, Any]:
    """Wrap model output the way generateContent returns it."""
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


class FakePage:
    """Page stand-in that reports fixed text runs to the visitor."""

    def __init__(self, runs: list[str]):
        self.runs = runs

    def extract_text(self, visitor_text=None):
        for run in self.runs:
            if visitor_text is not None:
                visitor_text(run, None, None, None, 12)
        return "".join(self.runs)


class FakeReader:
    def __init__(self, pages: list[list[str]]):
        self.pages = [FakePage(runs) for runs in pages]


def fake_reader_factory(pages: list[list[str]]) -> Callable[[Any], FakeReader]:
    return lambda stream: FakeReader(pages)


class FakeAIService:
    """
    AI service stand-in that counts calls.

    When `gate` is set, each call waits on it, which keeps a run in flight.
    """

    def __init__(self, receipt: ExtractedReceipt | None = None, error: Exception | None = None):
        self.receipt = receipt or ExtractedReceipt.model_validate(SAMPLE_RECEIPT_DATA)
        self.error = error
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None

    async def extract_receipt(self, receipt_text: str) -> ExtractedReceipt:
        self.calls.append(receipt_text)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.receipt


@pytest.fixture
def sample_receipt_data() -> dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_RECEIPT_DATA))


@pytest.fixture
def sample_receipt() -> ExtractedReceipt:
    return ExtractedReceipt.model_validate(SAMPLE_RECEIPT_DATA)


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A two-page PDF with one word per page."""
    return build_pdf([["Hello"], ["World"]])


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


@pytest.fixture
def fake_pdf_bytes() -> bytes:
    """Bytes that pass the header check; pair with fake_reader_factory."""
    return b"%PDF-1.4 fake"


@pytest.fixture
def api_calls() -> list[httpx.Request]:
    return []


@pytest.fixture
def model_output() -> dict[str, Any]:
    """Mutable holder for the text the mocked API answers with."""
    return {"text": "```json\n" + json.dumps(SAMPLE_RECEIPT_DATA) + "\n```"}


@pytest.fixture
def mock_transport(api_calls, model_output) -> httpx.MockTransport:
    """generateContent stand-in answering with `model_output["text"]`."""

    def handler(request: httpx.Request) -> httpx.Response:
        api_calls.append(request)
        return httpx.Response(200, json=gemini_payload(model_output["text"]))

    return httpx.MockTransport(handler)


@pytest.fixture
def ai_service(mock_transport) -> ReceiptAIService:
    return ReceiptAIService(
        api_key="test-key",
        model="gemini-test",
        base_url="https://example.test/v1beta",
        timeout=5.0,
        max_retries=1,
        transport=mock_transport,
    )


@pytest.fixture
def processor(ai_service) -> ReceiptProcessor:
    return ReceiptProcessor(PDFService(timeout=10.0), ai_service)


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore(max_sessions=10)


@pytest.fixture
def client(processor, session_store) -> Generator[TestClient, None, None]:
    """Create a test client with the API mocked at the HTTP transport."""
    app.dependency_overrides[get_receipt_processor] = lambda: processor
    app.dependency_overrides[get_session_store] = lambda: session_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
