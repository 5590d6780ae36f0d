"""
Provider adapter interface and helpers shared by the concrete adapters.

An adapter owns request construction and raw-error classification for one
upstream service. Whatever goes wrong upstream leaves the adapter as a
ProviderError carrying a FailureClass.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

# Handle both package imports and standalone imports
try:
    from ....models import (
        Capability,
        DocumentAnalysis,
        FailureClass,
        OCRResult,
        ProviderDescriptor,
    )
except ImportError:
    from models import (
        Capability,
        DocumentAnalysis,
        FailureClass,
        OCRResult,
        ProviderDescriptor,
    )

from ..exceptions import NormalizationError, ProviderError
from ..normalizer import normalize
from ..prompts import NO_TEXT_SENTINEL

logger = logging.getLogger(__name__)


def classify_status(status_code: int) -> FailureClass:
    """Map an upstream HTTP status code to a FailureClass."""
    if status_code in (401, 403):
        return FailureClass.UNAUTHENTICATED
    if status_code == 429:
        return FailureClass.RATE_LIMITED
    if status_code == 413:
        return FailureClass.PAYLOAD_TOO_LARGE
    if status_code == 408 or status_code >= 500:
        return FailureClass.TRANSIENT_NETWORK
    return FailureClass.UNKNOWN


def split_data_url(data_url: str) -> tuple[str, str]:
    """
    Split a base64 data URL into (mime_type, base64_payload).

    Falls back to image/jpeg when the header carries no media type.
    """
    header, _, payload = data_url.partition(",")
    mime_type = header.split(";")[0].split(":", 1)[-1] if header.startswith("data:") else ""
    return mime_type or "image/jpeg", payload


_LEADING_FENCE_RE = re.compile(r"^```[\w-]*\n?")
_TRAILING_FENCE_RE = re.compile(r"\n?```$")
_SENTINEL_RE = re.compile(
    r"^[\s\"'`*]*" + re.escape(NO_TEXT_SENTINEL) + r"[\s\"'`.!*]*$",
    re.IGNORECASE,
)


def clean_ocr_text(raw_text: str | None) -> str | None:
    """
    Strip markdown fences from OCR output.

    Returns None when nothing usable is left: empty output, or output that is
    only the no-text sentinel.
    """
    if not raw_text:
        return None
    text = raw_text.strip()
    text = _LEADING_FENCE_RE.sub("", text)
    text = _TRAILING_FENCE_RE.sub("", text).strip()
    if not text or _SENTINEL_RE.match(text):
        return None
    return text


class ProviderAdapter(ABC):
    """
    Uniform capability interface over one external AI service.

    Subclasses set provider_id, capabilities and ocr_confidence and implement
    the _probe, _extract_text and _analyze hooks. The public methods add
    credential checks, timing, OCR cleanup and normalization.
    """

    provider_id: str = ""
    capabilities: frozenset[Capability] = frozenset(
        {Capability.EXTRACT_TEXT, Capability.ANALYZE_DOCUMENT}
    )
    ocr_confidence: float = 0.9
    key_env_var: str = ""

    def __init__(self, api_key: str | None, priority: int = 100):
        self.api_key = api_key or ""
        self.priority = priority
        if not self.api_key:
            logger.warning(
                "%s not configured; provider '%s' will be skipped",
                self.key_env_var or "API key",
                self.provider_id,
            )

    @property
    def descriptor(self) -> ProviderDescriptor:
        return ProviderDescriptor(
            id=self.provider_id,
            priority=self.priority,
            capabilities=self.capabilities,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def error(self, failure_class: FailureClass, message: str) -> ProviderError:
        """Build a ProviderError tagged with this adapter's id."""
        return ProviderError(failure_class, message, provider_id=self.provider_id)

    def _require_key(self) -> None:
        if not self.api_key:
            raise self.error(
                FailureClass.UNAUTHENTICATED,
                f"{self.key_env_var or 'API key'} not configured",
            )

    # -------------------------------------------------------------------------
    # Public capability interface
    # -------------------------------------------------------------------------

    async def is_available(self) -> bool:
        """
        Cheap liveness probe. Never raises.

        Availability is advisory: a False here does not stop the capability
        calls from being attempted.
        """
        if not self.api_key:
            return False
        try:
            return await self._probe()
        except Exception as e:
            logger.info("Availability probe for %s failed: %s", self.provider_id, e)
            return False

    async def extract_text(self, image_data_url: str) -> OCRResult:
        """
        Extract raw text from an image given as a data URL.

        Raises:
            ProviderError: NO_USABLE_CONTENT when the provider returns nothing
                or only the no-text sentinel; other classes per upstream error.
        """
        self._require_key()
        start = time.perf_counter()

        raw_text = await self._extract_text(image_data_url)
        text = clean_ocr_text(raw_text)
        if text is None:
            raise self.error(
                FailureClass.NO_USABLE_CONTENT,
                "No readable text found in the document",
            )

        return OCRResult(
            text=text,
            confidence=self.ocr_confidence,
            processing_time_ms=int((time.perf_counter() - start) * 1000),
        )

    async def analyze_document(self, text: str) -> DocumentAnalysis:
        """
        Classify document text and extract fields.

        Raises:
            ProviderError: MALFORMED_UPSTREAM_RESPONSE when the reply cannot be
                normalized; other classes per upstream error.
        """
        self._require_key()
        raw = await self._analyze(text)
        if not raw or not raw.strip():
            raise self.error(
                FailureClass.MALFORMED_UPSTREAM_RESPONSE,
                "No analysis content returned",
            )
        try:
            return normalize(raw)
        except NormalizationError as e:
            raise self.error(e.failure_class, e.message) from e

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    async def _probe(self) -> bool:
        """Return True if the upstream answers with the configured key."""

    @abstractmethod
    async def _extract_text(self, image_data_url: str) -> str | None:
        """Return the provider's raw OCR text."""

    @abstractmethod
    async def _analyze(self, text: str) -> str | None:
        """Return the provider's raw analysis reply."""

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""


class HTTPProviderAdapter(ProviderAdapter):
    """Adapter base for providers reached with plain JSON over httpx."""

    base_url: str = ""

    def __init__(
        self,
        api_key: str | None,
        priority: int = 100,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(api_key, priority)
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> httpx.Response:
        try:
            return await self.client.request(
                method, path, json=payload, headers=self._headers()
            )
        except httpx.TimeoutException as e:
            raise self.error(
                FailureClass.TRANSIENT_NETWORK, f"Request timed out: {e}"
            ) from e
        except httpx.TransportError as e:
            raise self.error(
                FailureClass.TRANSIENT_NETWORK, f"Network error: {e}"
            ) from e

    async def _post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON payload and return the decoded JSON body."""
        response = await self._request("POST", path, payload)

        if response.status_code >= 400:
            failure_class = classify_status(response.status_code)
            logger.warning(
                "%s returned HTTP %d (%s)",
                self.provider_id,
                response.status_code,
                failure_class.value,
            )
            raise self.error(
                failure_class,
                f"API error: {response.status_code} - {response.text[:300]}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise self.error(
                FailureClass.MALFORMED_UPSTREAM_RESPONSE,
                "Response body is not JSON",
            ) from e
        if not isinstance(data, dict):
            raise self.error(
                FailureClass.MALFORMED_UPSTREAM_RESPONSE,
                "Response body is not a JSON object",
            )
        return data

    async def _probe(self) -> bool:
        response = await self._request("GET", "/models")
        return response.is_success

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
