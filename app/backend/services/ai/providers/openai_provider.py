"""
OpenAI provider: the fallback for both OCR and analysis.

Uses the official openai SDK. The SDK's own retries are disabled so the
retry policy stays the only place that decides whether to call again.
"""

import logging
from typing import Any

import openai

# Handle both package imports and standalone imports
try:
    from ....models import FailureClass
except ImportError:
    from models import FailureClass

from ..exceptions import ProviderError
from ..prompts import (
    ANALYSIS_SYSTEM_PROMPT,
    OCR_SYSTEM_PROMPT,
    OCR_USER_PROMPT,
    build_analysis_prompt,
)
from .base import ProviderAdapter, classify_status

logger = logging.getLogger(__name__)


class OpenAIProvider(ProviderAdapter):
    """Adapter for OpenAI chat completions."""

    provider_id = "openai"
    key_env_var = "OPENAI_API_KEY"
    ocr_confidence = 0.88

    def __init__(
        self,
        api_key: str | None,
        priority: int = 30,
        timeout: float = 30.0,
        ocr_model: str = "gpt-4o",
        analysis_model: str = "gpt-3.5-turbo",
        char_budget: int = 3000,
        client: Any = None,  # AsyncOpenAI client
    ):
        super().__init__(api_key, priority=priority)
        self.timeout = timeout
        self.ocr_model = ocr_model
        self.analysis_model = analysis_model
        self.char_budget = char_budget
        self._client = client

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def _translate(self, e: openai.OpenAIError) -> ProviderError:
        """Map an SDK exception onto a FailureClass."""
        if isinstance(e, openai.APIStatusError):
            failure_class = classify_status(e.status_code)
            message = f"API error: {e.status_code} - {e.message}"
        elif isinstance(e, openai.APIConnectionError):
            # Also covers APITimeoutError
            failure_class = FailureClass.TRANSIENT_NETWORK
            message = f"Network error: {e}"
        else:
            failure_class = FailureClass.UNKNOWN
            message = str(e)
        logger.warning("OpenAI call failed (%s): %s", failure_class.value, message)
        return self.error(failure_class, message)

    async def _complete(self, model: str, messages: list[dict], max_tokens: int) -> str | None:
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=0.1,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            raise self._translate(e) from e

        if not response.choices:
            return None
        return response.choices[0].message.content

    async def _probe(self) -> bool:
        try:
            await self.client.models.list()
        except openai.OpenAIError:
            return False
        return True

    async def _extract_text(self, image_data_url: str) -> str | None:
        logger.info(
            "Calling OpenAI OCR: model=%s, payload=%d chars",
            self.ocr_model,
            len(image_data_url),
        )
        return await self._complete(
            self.ocr_model,
            [
                {"role": "system", "content": OCR_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": OCR_USER_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_data_url}},
                    ],
                },
            ],
            max_tokens=2000,
        )

    async def _analyze(self, text: str) -> str | None:
        logger.info(
            "Calling OpenAI analysis: model=%s, text=%d chars",
            self.analysis_model,
            len(text),
        )
        return await self._complete(
            self.analysis_model,
            [
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": build_analysis_prompt(text, self.char_budget)},
            ],
            max_tokens=1000,
        )

    async def aclose(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None
