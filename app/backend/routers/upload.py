"""
Router for upload processing endpoints.

Handles:
- Document upload (text, image or PDF) with OCR and analysis
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

# Handle both package imports and standalone imports
try:
    from ..models import ProcessDocumentResponse, ProvidersExhaustedResponse
    from ..services.ai import DocumentAIService, get_ai_service
    from ..services.document_service import (
        DocumentConversionError,
        DocumentService,
        get_document_service,
    )
    from .ai import check_preferred_provider
except ImportError:
    from models import ProcessDocumentResponse, ProvidersExhaustedResponse
    from services.ai import DocumentAIService, get_ai_service
    from services.document_service import (
        DocumentConversionError,
        DocumentService,
        get_document_service,
    )
    from routers.ai import check_preferred_provider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["upload"])


@router.post(
    "/process-document",
    response_model=ProcessDocumentResponse,
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ProvidersExhaustedResponse}
    },
)
async def process_document(
    file: Annotated[UploadFile, File(description="Text, image or PDF document")],
    preferred_provider: Annotated[str | None, Form()] = None,
    service: DocumentAIService = Depends(get_ai_service),
    documents: DocumentService = Depends(get_document_service),
) -> ProcessDocumentResponse:
    """
    Upload a document and run extraction plus analysis.

    Plain text skips OCR. Images and the first page of a PDF go through the
    OCR chain first.
    """
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No filename provided",
        )
    check_preferred_provider(service, preferred_provider)

    try:
        file_bytes = await file.read()
        if not file_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Empty file provided",
            )

        logger.info(
            "Processing upload: %s (%s, %d bytes)",
            file.filename,
            file.content_type,
            len(file_bytes),
        )

        try:
            prepared = documents.prepare(file_bytes, file.filename, file.content_type)
        except DocumentConversionError as e:
            logger.error("Document conversion failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(e),
            )

        return await service.process_document(
            filename=prepared.filename,
            content_type=prepared.content_type,
            text=prepared.text,
            image_data_url=prepared.image_data_url,
            preferred_provider=preferred_provider,
        )
    finally:
        await file.close()
