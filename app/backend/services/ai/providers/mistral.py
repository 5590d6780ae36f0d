"""
Mistral provider: the primary OCR engine.

Mistral is the cheapest option for text extraction, so it leads the OCR
chain. It also offers a best-effort analysis with a smaller model.
"""

import logging

import httpx

from ..prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    OCR_USER_PROMPT,
    build_analysis_prompt,
)
from .base import HTTPProviderAdapter

logger = logging.getLogger(__name__)


class MistralProvider(HTTPProviderAdapter):
    """Adapter for the Mistral chat completions API."""

    provider_id = "mistral"
    key_env_var = "MISTRAL_API_KEY"
    base_url = "https://api.mistral.ai/v1"
    ocr_confidence = 0.95

    def __init__(
        self,
        api_key: str | None,
        priority: int = 10,
        timeout: float = 30.0,
        ocr_model: str = "pixtral-large-latest",
        analysis_model: str = "mistral-small-latest",
        char_budget: int = 3000,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(api_key, priority=priority, timeout=timeout, client=client)
        self.ocr_model = ocr_model
        self.analysis_model = analysis_model
        self.char_budget = char_budget

    @staticmethod
    def _message_content(data: dict) -> str | None:
        choices = data.get("choices") or []
        if not choices:
            return None
        return (choices[0].get("message") or {}).get("content")

    async def _extract_text(self, image_data_url: str) -> str | None:
        logger.info(
            "Calling Mistral OCR: model=%s, payload=%d chars",
            self.ocr_model,
            len(image_data_url),
        )
        data = await self._post_json(
            "/chat/completions",
            {
                "model": self.ocr_model,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_USER_PROMPT},
                            {"type": "image_url", "image_url": {"url": image_data_url}},
                        ],
                    }
                ],
                "temperature": 0.1,
                "max_tokens": 4000,
            },
        )
        return self._message_content(data)

    async def _analyze(self, text: str) -> str | None:
        logger.info(
            "Calling Mistral analysis: model=%s, text=%d chars",
            self.analysis_model,
            len(text),
        )
        data = await self._post_json(
            "/chat/completions",
            {
                "model": self.analysis_model,
                "messages": [
                    {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": build_analysis_prompt(text, self.char_budget),
                    },
                ],
                "temperature": 0.1,
                "max_tokens": 1000,
            },
        )
        return self._message_content(data)
