"""Pytest configuration and fixtures."""

import json
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient

from app.backend.config import Settings
from app.backend.main import app
from app.backend.models import FailureClass
from app.backend.services.ai import DocumentAIService, FallbackOrchestrator, get_ai_service
from app.backend.services.ai.providers.base import ProviderAdapter

# 1x1 transparent PNG
TINY_PNG_DATA_URL = (
    "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42"
    "mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class ScriptedProvider(ProviderAdapter):
    """
    Provider whose responses are scripted per capability.

    Each script entry is either a return value, a FailureClass (raised as a
    ProviderError), or an exception instance. The last entry repeats.
    """

    ocr_confidence = 0.9

    def __init__(
        self,
        provider_id: str,
        ocr: list[Any] | None = None,
        analysis: list[Any] | None = None,
        available: Any = True,
        api_key: str | None = "test-key",
    ):
        self.provider_id = provider_id
        super().__init__(api_key)
        self.ocr_script = list(ocr or [])
        self.analysis_script = list(analysis or [])
        self.available = available
        self.calls: list[tuple[str, str]] = []

    def _next(self, script: list[Any]) -> Any:
        if not script:
            raise self.error(FailureClass.UNKNOWN, "nothing scripted")
        item = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(item, FailureClass):
            raise self.error(item, f"scripted {item.value}")
        if isinstance(item, BaseException):
            raise item
        return item

    async def _probe(self) -> bool:
        if isinstance(self.available, BaseException):
            raise self.available
        return self.available

    async def _extract_text(self, image_data_url: str) -> str | None:
        self.calls.append(("extract_text", image_data_url))
        return self._next(self.ocr_script)

    async def _analyze(self, text: str) -> str | None:
        self.calls.append(("analyze_document", text))
        return self._next(self.analysis_script)


async def no_sleep(seconds: float) -> None:
    """Stand-in for asyncio.sleep that returns immediately."""
    return None


def analysis_json(**overrides: Any) -> str:
    """A well-formed analysis reply as a provider would send it."""
    payload = {
        "document_type": "passport",
        "confidence": 0.9,
        "suggested_form": "visa_application",
        "extracted_data": {"full_name": "Jane Doe", "passport_number": "P123456789"},
    }
    payload.update(overrides)
    return json.dumps(payload)


def make_service(
    providers: list[ProviderAdapter],
    ocr_order: list[str] | None = None,
    analysis_order: list[str] | None = None,
    **orchestrator_kwargs: Any,
) -> DocumentAIService:
    """Build a DocumentAIService around fake providers with no backoff delay."""
    ids = [p.provider_id for p in providers]
    settings = Settings(
        ocr_providers=ocr_order or ids,
        analysis_providers=analysis_order or ids,
        retry_base_delay_ms=0,
    )
    orchestrator_kwargs.setdefault("sleep", no_sleep)
    orchestrator_kwargs.setdefault("max_attempts", 3)
    orchestrator_kwargs.setdefault("fallback_max_attempts", 2)
    orchestrator_kwargs.setdefault(
        "non_retryable",
        {FailureClass.UNAUTHENTICATED, FailureClass.NO_USABLE_CONTENT},
    )
    return DocumentAIService(
        settings=settings,
        providers={p.provider_id: p for p in providers},
        orchestrator=FallbackOrchestrator(**orchestrator_kwargs),
    )


@pytest.fixture
def tiny_png_data_url() -> str:
    return TINY_PNG_DATA_URL


@pytest.fixture
def fake_service() -> DocumentAIService:
    """Service with a failing primary and a working fallback for both capabilities."""
    return make_service(
        [
            ScriptedProvider(
                "primary",
                ocr=[FailureClass.RATE_LIMITED],
                analysis=[FailureClass.RATE_LIMITED],
            ),
            ScriptedProvider(
                "fallback",
                ocr=["Jane Doe\nPassport P123456789"],
                analysis=[analysis_json()],
            ),
        ]
    )


@pytest.fixture
def client(fake_service: DocumentAIService) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application backed by fake providers."""
    app.dependency_overrides[get_ai_service] = lambda: fake_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
