"""
Provider adapters and the registry that builds them from settings.
"""

import logging

# Handle both package imports and standalone imports
try:
    from ....config import Settings
except ImportError:
    from config import Settings

from .base import HTTPProviderAdapter, ProviderAdapter, classify_status, clean_ocr_text
from .claude import ClaudeProvider
from .mistral import MistralProvider
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

__all__ = [
    "ClaudeProvider",
    "HTTPProviderAdapter",
    "MistralProvider",
    "OpenAIProvider",
    "ProviderAdapter",
    "build_providers",
    "classify_status",
    "clean_ocr_text",
]


def build_providers(settings: Settings) -> dict[str, ProviderAdapter]:
    """
    Instantiate every known provider from settings.

    Providers without a credential are still created; they fail fast with
    an unauthenticated error so the exhausted-chain breakdown says so.
    """
    timeout = settings.request_timeout_seconds
    providers: list[ProviderAdapter] = [
        MistralProvider(
            settings.mistral_api_key,
            timeout=timeout,
            ocr_model=settings.mistral_ocr_model,
            analysis_model=settings.mistral_analysis_model,
            char_budget=settings.analysis_char_budget_mistral,
        ),
        ClaudeProvider(
            settings.anthropic_api_key,
            timeout=timeout,
            model=settings.claude_model,
            char_budget=settings.analysis_char_budget_claude,
        ),
        OpenAIProvider(
            settings.openai_api_key,
            timeout=timeout,
            ocr_model=settings.openai_ocr_model,
            analysis_model=settings.openai_analysis_model,
            char_budget=settings.analysis_char_budget_openai,
        ),
    ]
    logger.info(
        "Registered providers: %s",
        ", ".join(f"{p.provider_id}({'configured' if p.is_configured else 'no key'})" for p in providers),
    )
    return {p.provider_id: p for p in providers}
