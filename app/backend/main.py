"""
FastAPI application for the receipt processing service.

Provides endpoints for:
- Uploading a PDF receipt and extracting its fields with a language model
- Driving a receipt session (file intake, processing, summary view)
- Exporting extracted receipts to a spreadsheet
"""

import logging

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .exceptions import (
    MissingFileError,
    NoReceiptDataError,
    PdfParseError,
    ProcessingInProgressError,
)
from .models import HealthResponse
from .routers import receipts, sessions
from .services.ai import AIServiceError, get_ai_service
from .services.pdf_service import get_pdf_service
from .session import describe_error

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
# httpx logs full request URLs at INFO, and the Gemini key is a query parameter
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Receipt Processor...")
    # Initialize services on startup
    get_pdf_service()
    get_ai_service()
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down Receipt Processor...")


# Create FastAPI application
app = FastAPI(
    title="Receipt Processor API",
    description="Extract structured data from PDF receipts and export it to Excel",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        message="Receipt Processor API is running",
        version=__version__,
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy", version=__version__)


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(receipts.router)
app.include_router(sessions.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(MissingFileError)
async def missing_file_error_handler(request: Request, exc: MissingFileError):
    """Handle processing requested without a file."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.exception_handler(PdfParseError)
async def pdf_parse_error_handler(request: Request, exc: PdfParseError):
    """Handle unreadable PDFs."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": describe_error(exc)},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request: Request, exc: AIServiceError):
    """Handle model request and response failures."""
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": describe_error(exc)},
    )


@app.exception_handler(ProcessingInProgressError)
async def processing_in_progress_handler(request: Request, exc: ProcessingInProgressError):
    """Handle re-entry while a processing run is in flight."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(NoReceiptDataError)
async def no_receipt_data_handler(request: Request, exc: NoReceiptDataError):
    """Handle export requested before any extraction."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )
