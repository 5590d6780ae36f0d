"""
Router for the core AI endpoints.

Handles:
- Text extraction from an image data URL
- Document analysis from text
- Provider availability status
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

# Handle both package imports and standalone imports
try:
    from ..models import (
        AnalyzeDocumentRequest,
        AnalyzeDocumentResponse,
        ExtractTextRequest,
        ExtractTextResponse,
        ProviderStatusResponse,
        ProvidersExhaustedResponse,
    )
    from ..services.ai import DocumentAIService, get_ai_service
except ImportError:
    from models import (
        AnalyzeDocumentRequest,
        AnalyzeDocumentResponse,
        ExtractTextRequest,
        ExtractTextResponse,
        ProviderStatusResponse,
        ProvidersExhaustedResponse,
    )
    from services.ai import DocumentAIService, get_ai_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ai"])

EXHAUSTED_RESPONSES = {
    status.HTTP_503_SERVICE_UNAVAILABLE: {
        "model": ProvidersExhaustedResponse,
        "description": "All configured providers failed",
    }
}


def check_preferred_provider(
    service: DocumentAIService, preferred_provider: str | None
) -> None:
    """Reject preferred provider ids the service does not know."""
    if preferred_provider and preferred_provider not in service.providers:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Unknown provider '{preferred_provider}'. "
                f"Known providers: {', '.join(service.providers)}"
            ),
        )


@router.post(
    "/extract-text",
    response_model=ExtractTextResponse,
    responses=EXHAUSTED_RESPONSES,
)
async def extract_text(
    request: ExtractTextRequest,
    service: DocumentAIService = Depends(get_ai_service),
) -> ExtractTextResponse:
    """
    Extract raw text from an image.

    Tries OCR providers in priority order, falling back on failure.
    """
    check_preferred_provider(service, request.preferred_provider)
    return await service.extract_text(
        request.image_data_url, preferred_provider=request.preferred_provider
    )


@router.post(
    "/analyze-document",
    response_model=AnalyzeDocumentResponse,
    responses=EXHAUSTED_RESPONSES,
)
async def analyze_document(
    request: AnalyzeDocumentRequest,
    service: DocumentAIService = Depends(get_ai_service),
) -> AnalyzeDocumentResponse:
    """Classify document text and extract its fields."""
    check_preferred_provider(service, request.preferred_provider)
    return await service.analyze_document(
        request.text, preferred_provider=request.preferred_provider
    )


@router.get("/providers/status", response_model=ProviderStatusResponse)
async def provider_status(
    service: DocumentAIService = Depends(get_ai_service),
) -> ProviderStatusResponse:
    """Probe every provider and report which ones answer."""
    providers = await service.list_provider_availability()
    return ProviderStatusResponse(providers=providers, available=any(providers.values()))
