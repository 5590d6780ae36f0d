"""
AI service package for text extraction and document analysis.

This package provides modular AI functionality split into:
- providers: Adapters for each external AI service
- normalizer: Repair and validation of model JSON output
- retry: Bounded retries with exponential backoff for one provider
- orchestrator: Ordered fallback across providers

The DocumentAIService class is the entry point used by the routers.
"""

import asyncio
import logging

# Handle both package imports and standalone imports
try:
    from ...config import Settings, get_settings
    from ...models import (
        AnalyzeDocumentResponse,
        Capability,
        DocumentAnalysis,
        ExtractTextResponse,
        FailureClass,
        OCRResult,
        ProcessDocumentResponse,
    )
except ImportError:
    from config import Settings, get_settings
    from models import (
        AnalyzeDocumentResponse,
        Capability,
        DocumentAnalysis,
        ExtractTextResponse,
        FailureClass,
        OCRResult,
        ProcessDocumentResponse,
    )

from .exceptions import (
    AIServiceError,
    NormalizationError,
    ProviderError,
    ProvidersExhaustedError,
)
from .normalizer import normalize
from .orchestrator import FallbackOrchestrator, ResolvedResult, order_candidates
from .providers import ProviderAdapter, build_providers
from .retry import with_retry

logger = logging.getLogger(__name__)

# Export public functions and classes
__all__ = [
    "AIServiceError",
    "DocumentAIService",
    "FallbackOrchestrator",
    "NormalizationError",
    "ProviderError",
    "ProvidersExhaustedError",
    "ResolvedResult",
    "get_ai_service",
    "normalize",
    "order_candidates",
    "with_retry",
]


class DocumentAIService:
    """
    Reliable text extraction and document analysis over several providers.

    Each call resolves independently against the configured priority list for
    its capability, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        providers: dict[str, ProviderAdapter] | None = None,
        orchestrator: FallbackOrchestrator | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            settings: Application settings. If None, reads from config/environment.
            providers: Adapters keyed by provider id. Built from settings if None.
            orchestrator: Fallback orchestrator. Built from settings if None.
        """
        self.settings = settings or get_settings()
        self.providers = providers if providers is not None else build_providers(self.settings)
        self.orchestrator = orchestrator or FallbackOrchestrator(
            max_attempts=self.settings.max_retries,
            fallback_max_attempts=self.settings.fallback_max_retries,
            base_delay_ms=self.settings.retry_base_delay_ms,
            timeout_seconds=self.settings.request_timeout_seconds,
            # An empty document stays empty on the same provider; move on instead
            non_retryable={FailureClass.UNAUTHENTICATED, FailureClass.NO_USABLE_CONTENT},
        )
        self._chains = {
            Capability.EXTRACT_TEXT: self._build_chain(
                "ocr_providers", self.settings.ocr_providers
            ),
            Capability.ANALYZE_DOCUMENT: self._build_chain(
                "analysis_providers", self.settings.analysis_providers
            ),
        }

    def _build_chain(self, setting_name: str, provider_ids: list[str]) -> list[ProviderAdapter]:
        unknown = [pid for pid in provider_ids if pid not in self.providers]
        if unknown:
            raise AIServiceError(
                f"Unknown provider(s) in {setting_name}: {', '.join(unknown)}"
            )
        return [self.providers[pid] for pid in provider_ids]

    def candidates(self, capability: Capability) -> list[ProviderAdapter]:
        """Providers for a capability in priority order."""
        return list(self._chains[capability])

    def configured_providers(self) -> dict[str, bool]:
        """Which providers have a credential, without any network call."""
        return {pid: p.is_configured for pid, p in self.providers.items()}

    async def extract_text(
        self, image_data_url: str, preferred_provider: str | None = None
    ) -> ExtractTextResponse:
        """
        Extract text from an image data URL.

        The reported processing time covers the whole chain, including
        retries and fallbacks.

        Raises:
            ProvidersExhaustedError: If every OCR provider failed.
        """
        resolved = await self.orchestrator.resolve(
            Capability.EXTRACT_TEXT,
            self.candidates(Capability.EXTRACT_TEXT),
            image_data_url,
            preferred_provider=preferred_provider,
        )
        ocr: OCRResult = resolved.result
        return ExtractTextResponse(
            text=ocr.text,
            confidence=ocr.confidence,
            processing_time_ms=resolved.latency_ms,
            provider=resolved.provider_id,
        )

    async def analyze_document(
        self, text: str, preferred_provider: str | None = None
    ) -> AnalyzeDocumentResponse:
        """
        Classify document text and extract its fields.

        Raises:
            ProvidersExhaustedError: If every analysis provider failed.
        """
        resolved = await self.orchestrator.resolve(
            Capability.ANALYZE_DOCUMENT,
            self.candidates(Capability.ANALYZE_DOCUMENT),
            text,
            preferred_provider=preferred_provider,
        )
        analysis: DocumentAnalysis = resolved.result
        return AnalyzeDocumentResponse(
            **analysis.model_dump(),
            provider=resolved.provider_id,
            latency_ms=resolved.latency_ms,
        )

    async def list_provider_availability(self) -> dict[str, bool]:
        """Probe every provider concurrently. Never raises."""
        ids = list(self.providers)
        results = await asyncio.gather(
            *(self.providers[pid].is_available() for pid in ids),
            return_exceptions=True,
        )
        return {pid: result is True for pid, result in zip(ids, results)}

    async def process_document(
        self,
        filename: str,
        content_type: str,
        text: str | None = None,
        image_data_url: str | None = None,
        preferred_provider: str | None = None,
    ) -> ProcessDocumentResponse:
        """
        Run OCR (when only an image is available) and then analysis.

        Args:
            filename: Original upload name, echoed back.
            content_type: Upload MIME type, echoed back.
            text: Text already known for the document, skips OCR.
            image_data_url: Image to OCR when text is not given.
            preferred_provider: Optional provider id to try first for both steps.
        """
        ocr = None
        if text is None:
            if not image_data_url:
                raise AIServiceError("Either text or image_data_url is required")
            ocr = await self.extract_text(image_data_url, preferred_provider)
            text = ocr.text

        if not text.strip():
            raise ProviderError(
                FailureClass.NO_USABLE_CONTENT, f"No text found in {filename}"
            )

        analysis = await self.analyze_document(text, preferred_provider)
        logger.info(
            "Processed '%s': type=%s via %s",
            filename,
            analysis.document_type,
            analysis.provider,
        )
        return ProcessDocumentResponse(
            filename=filename,
            content_type=content_type,
            text=text,
            ocr=ocr,
            analysis=analysis,
        )

    async def aclose(self) -> None:
        for provider in self.providers.values():
            await provider.aclose()


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: DocumentAIService | None = None


def get_ai_service() -> DocumentAIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = DocumentAIService()
    return _ai_service
