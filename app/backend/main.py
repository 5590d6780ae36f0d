"""
FastAPI application for the document AI service.

Provides endpoints for:
- Extracting text from document images
- Classifying documents and extracting structured fields
- Uploading documents for end-to-end processing
- Provider health and availability
"""

import logging

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Handle both package imports (when running as module) and standalone imports (uvicorn main:app)
try:
    from .models import HealthResponse
    from .routers import ai, upload
    from .services.ai import (
        AIServiceError,
        DocumentAIService,
        ProvidersExhaustedError,
        get_ai_service,
    )
    from .services.document_service import DocumentConversionError
except ImportError:
    import sys
    from pathlib import Path
    # Add parent directory to path for standalone imports
    backend_dir = Path(__file__).parent
    if str(backend_dir) not in sys.path:
        sys.path.insert(0, str(backend_dir))
    from models import HealthResponse
    from routers import ai, upload
    from services.ai import (
        AIServiceError,
        DocumentAIService,
        ProvidersExhaustedError,
        get_ai_service,
    )
    from services.document_service import DocumentConversionError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Document AI Service...")
    service = get_ai_service()
    logger.info(
        "Services initialized: OCR chain=%s, analysis chain=%s",
        service.settings.ocr_providers,
        service.settings.analysis_providers,
    )
    yield
    logger.info("Shutting down Document AI Service...")
    await service.aclose()


# Create FastAPI application
app = FastAPI(
    title="Document AI API",
    description="Text extraction and document analysis with multi-provider fallback",
    version=API_VERSION,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # React production (Docker)
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite development server
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        message="Document AI API is running",
    )


@app.get("/health", response_model=HealthResponse)
async def health_check(
    service: DocumentAIService = Depends(get_ai_service),
) -> HealthResponse:
    """Health check endpoint; reports configured credentials without probing."""
    configured = service.configured_providers()
    return HealthResponse(
        status="healthy" if any(configured.values()) else "degraded",
        version=API_VERSION,
        message="Service is healthy" if any(configured.values()) else "No AI provider configured",
        providers_configured=configured,
    )


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(ai.router)
app.include_router(upload.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(DocumentConversionError)
async def document_conversion_error_handler(request, exc: DocumentConversionError):
    """Handle upload conversion errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(ProvidersExhaustedError)
async def providers_exhausted_handler(request, exc: ProvidersExhaustedError):
    """Return the per-provider failure breakdown."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=exc.to_detail(),
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request, exc: AIServiceError):
    """Handle AI service errors."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )
