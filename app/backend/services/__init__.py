"""
Services package for the document AI application.

Contains:
- ai: Provider adapters, normalization, retry and fallback orchestration
- document_service: Upload conversion to text or image data URLs
"""

from .ai import DocumentAIService
from .document_service import DocumentService

__all__ = ["DocumentAIService", "DocumentService"]
