"""
Fallback orchestration across an ordered list of provider adapters.

Candidates are tried strictly one after another. Each one is wrapped by the
retry policy; any failure class moves on to the next candidate. When the
list runs out, a single ProvidersExhaustedError itemises every failure.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Collection, Sequence

from pydantic import BaseModel, Field

# Handle both package imports and standalone imports
try:
    from ...models import (
        Capability,
        DocumentAnalysis,
        FailureClass,
        OCRResult,
        ProviderOutcome,
    )
except ImportError:
    from models import (
        Capability,
        DocumentAnalysis,
        FailureClass,
        OCRResult,
        ProviderOutcome,
    )

from .exceptions import ProviderError, ProvidersExhaustedError
from .providers.base import ProviderAdapter
from .retry import DEFAULT_NON_RETRYABLE, with_retry

logger = logging.getLogger(__name__)


class ResolvedResult(BaseModel):
    """Winning result of a resolve call plus its bookkeeping."""

    result: OCRResult | DocumentAnalysis
    provider_id: str
    latency_ms: int = Field(default=0, ge=0)
    outcomes: list[ProviderOutcome] = Field(default_factory=list)


def order_candidates(
    candidates: Sequence[ProviderAdapter], preferred_provider: str | None = None
) -> list[ProviderAdapter]:
    """Move the preferred provider to the front, keeping the rest in order."""
    ordered = list(candidates)
    if not preferred_provider:
        return ordered

    preferred = [c for c in ordered if c.provider_id == preferred_provider]
    if not preferred:
        logger.warning(
            "Preferred provider '%s' is not a candidate; using default order",
            preferred_provider,
        )
        return ordered
    return preferred + [c for c in ordered if c.provider_id != preferred_provider]


class FallbackOrchestrator:
    """
    Tries candidates in priority order until one succeeds.

    Holds no per-call state, so one instance can serve concurrent resolve
    calls.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        fallback_max_attempts: int | None = None,
        base_delay_ms: int = 1000,
        timeout_seconds: float | None = None,
        non_retryable: Collection[FailureClass] = DEFAULT_NON_RETRYABLE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            max_attempts: Retry budget for the first candidate.
            fallback_max_attempts: Retry budget for later candidates
                (defaults to max_attempts).
            base_delay_ms: Base exponential backoff between retries.
            timeout_seconds: Per-attempt timeout; None disables it.
            non_retryable: Failure classes the retry policy rethrows at once.
            sleep: Awaitable sleep, injectable for tests.
        """
        self.max_attempts = max_attempts
        self.fallback_max_attempts = (
            fallback_max_attempts if fallback_max_attempts is not None else max_attempts
        )
        self.base_delay_ms = base_delay_ms
        self.timeout_seconds = timeout_seconds
        self.non_retryable = frozenset(non_retryable)
        self.sleep = sleep

    async def _call(
        self, adapter: ProviderAdapter, capability: Capability, payload: str
    ) -> OCRResult | DocumentAnalysis:
        """One provider call, with every error mapped to a ProviderError."""
        if capability is Capability.EXTRACT_TEXT:
            call = adapter.extract_text(payload)
        else:
            call = adapter.analyze_document(payload)

        try:
            if self.timeout_seconds:
                return await asyncio.wait_for(call, self.timeout_seconds)
            return await call
        except ProviderError as e:
            if not e.provider_id:
                e.provider_id = adapter.provider_id
            raise
        except asyncio.TimeoutError as e:
            raise ProviderError(
                FailureClass.TRANSIENT_NETWORK,
                f"Timed out after {self.timeout_seconds}s",
                provider_id=adapter.provider_id,
            ) from e
        except asyncio.CancelledError as e:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                # Our own caller cancelled us
                raise
            raise ProviderError(
                FailureClass.TRANSIENT_NETWORK,
                "Upstream call was abandoned",
                provider_id=adapter.provider_id,
            ) from e
        except Exception as e:
            logger.exception("Unexpected error from provider %s", adapter.provider_id)
            raise ProviderError(
                FailureClass.UNKNOWN, str(e) or type(e).__name__,
                provider_id=adapter.provider_id,
            ) from e

    async def _attempt_candidate(
        self,
        adapter: ProviderAdapter,
        capability: Capability,
        payload: str,
        max_attempts: int,
    ) -> ProviderOutcome:
        calls = 0

        async def attempt() -> OCRResult | DocumentAnalysis:
            nonlocal calls
            calls += 1
            return await self._call(adapter, capability, payload)

        start = time.perf_counter()
        try:
            result = await with_retry(
                attempt,
                max_attempts=max_attempts,
                base_delay_ms=self.base_delay_ms,
                non_retryable=self.non_retryable,
                sleep=self.sleep,
            )
        except ProviderError as e:
            latency_ms = int((time.perf_counter() - start) * 1000)
            logger.warning(
                "Provider %s failed %s after %d attempt(s): %s (%s)",
                adapter.provider_id,
                capability.value,
                calls,
                e.failure_class.value,
                e.message,
            )
            return ProviderOutcome(
                provider_id=adapter.provider_id,
                capability=capability,
                succeeded=False,
                latency_ms=latency_ms,
                attempts=calls,
                failure=e.failure_class,
                message=e.message,
            )

        return ProviderOutcome(
            provider_id=adapter.provider_id,
            capability=capability,
            succeeded=True,
            latency_ms=int((time.perf_counter() - start) * 1000),
            attempts=calls,
            result=result,
        )

    async def resolve(
        self,
        capability: Capability,
        candidates: Sequence[ProviderAdapter],
        payload: str,
        preferred_provider: str | None = None,
    ) -> ResolvedResult:
        """
        Run capability against candidates until one succeeds.

        Args:
            capability: Which adapter method to call.
            candidates: Adapters in priority order.
            payload: Image data URL for EXTRACT_TEXT, text for ANALYZE_DOCUMENT.
            preferred_provider: Optional provider id to try first.

        Returns:
            ResolvedResult with the winning result, provider, elapsed latency
            and the outcome of every candidate tried.

        Raises:
            ProvidersExhaustedError: If every candidate failed (or there were
                none), with one entry per candidate tried.
        """
        start = time.perf_counter()
        ordered = [
            c for c in order_candidates(candidates, preferred_provider)
            if capability in c.capabilities
        ]
        outcomes: list[ProviderOutcome] = []

        for index, adapter in enumerate(ordered):
            budget = self.max_attempts if index == 0 else self.fallback_max_attempts
            outcome = await self._attempt_candidate(adapter, capability, payload, budget)
            outcomes.append(outcome)

            if outcome.succeeded and outcome.result is not None:
                latency_ms = int((time.perf_counter() - start) * 1000)
                if index > 0:
                    logger.info("Used fallback provider %s for %s", adapter.provider_id, capability.value)
                logger.info(
                    "%s resolved by %s in %d ms (%d candidate(s) tried)",
                    capability.value,
                    adapter.provider_id,
                    latency_ms,
                    len(outcomes),
                )
                return ResolvedResult(
                    result=outcome.result,
                    provider_id=adapter.provider_id,
                    latency_ms=latency_ms,
                    outcomes=outcomes,
                )

        error = ProvidersExhaustedError(capability, outcomes)
        logger.error("%s", error)
        raise error
