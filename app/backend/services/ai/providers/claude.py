"""
Anthropic Claude provider.

Claude follows structured instructions well, so it leads the analysis chain
and serves as the second OCR engine.
"""

import logging

import httpx

from ..prompts import OCR_USER_PROMPT, build_analysis_prompt
from .base import HTTPProviderAdapter, split_data_url

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeProvider(HTTPProviderAdapter):
    """Adapter for the Anthropic Messages API."""

    provider_id = "claude"
    key_env_var = "ANTHROPIC_API_KEY"
    base_url = "https://api.anthropic.com/v1"
    ocr_confidence = 0.92

    def __init__(
        self,
        api_key: str | None,
        priority: int = 20,
        timeout: float = 30.0,
        model: str = "claude-3-5-sonnet-20241022",
        char_budget: int = 4000,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(api_key, priority=priority, timeout=timeout, client=client)
        self.model = model
        self.char_budget = char_budget

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _text_content(data: dict) -> str | None:
        blocks = data.get("content") or []
        texts = [
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ]
        joined = "".join(texts)
        return joined or None

    async def _extract_text(self, image_data_url: str) -> str | None:
        media_type, payload = split_data_url(image_data_url)
        logger.info(
            "Calling Claude OCR: model=%s, media_type=%s, payload=%d chars",
            self.model,
            media_type,
            len(payload),
        )
        data = await self._post_json(
            "/messages",
            {
                "model": self.model,
                "max_tokens": 4000,
                "messages": [
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": OCR_USER_PROMPT},
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": payload,
                                },
                            },
                        ],
                    }
                ],
            },
        )
        return self._text_content(data)

    async def _analyze(self, text: str) -> str | None:
        logger.info(
            "Calling Claude analysis: model=%s, text=%d chars", self.model, len(text)
        )
        data = await self._post_json(
            "/messages",
            {
                "model": self.model,
                "max_tokens": 2000,
                "temperature": 0.1,
                "messages": [
                    {
                        "role": "user",
                        "content": build_analysis_prompt(text, self.char_budget),
                    }
                ],
            },
        )
        return self._text_content(data)
