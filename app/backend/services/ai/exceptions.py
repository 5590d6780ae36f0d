"""
Shared exceptions for AI service modules.
"""

# Handle both package imports and standalone imports
try:
    from ...models import Capability, FailureClass, ProviderOutcome
except ImportError:
    from models import Capability, FailureClass, ProviderOutcome


class AIServiceError(Exception):
    """Raised when AI service operations fail."""

    pass


class ProviderError(AIServiceError):
    """
    A single provider call failed.

    This is the only error type an adapter lets escape; provider-specific
    exceptions are translated into a FailureClass first.
    """

    def __init__(
        self,
        failure_class: FailureClass,
        message: str,
        provider_id: str = "",
    ):
        super().__init__(message)
        self.failure_class = failure_class
        self.message = message
        self.provider_id = provider_id

    def __str__(self) -> str:
        prefix = f"[{self.provider_id}] " if self.provider_id else ""
        return f"{prefix}{self.failure_class.value}: {self.message}"


class NormalizationError(ProviderError):
    """Raw model output could not be turned into a DocumentAnalysis."""

    def __init__(self, message: str):
        super().__init__(FailureClass.MALFORMED_UPSTREAM_RESPONSE, message)


class ProvidersExhaustedError(AIServiceError):
    """Every candidate provider failed for a capability."""

    def __init__(self, capability: Capability, outcomes: list[ProviderOutcome]):
        self.capability = capability
        self.outcomes = outcomes
        if outcomes:
            summary = "; ".join(
                f"{o.provider_id}: {o.failure.value if o.failure else 'unknown'} ({o.message})"
                for o in outcomes
            )
            message = f"All providers failed for {capability.value}: {summary}"
        else:
            message = f"No providers configured for {capability.value}"
        super().__init__(message)

    @property
    def failure_classes(self) -> dict[str, FailureClass]:
        return {
            o.provider_id: o.failure or FailureClass.UNKNOWN for o in self.outcomes
        }

    def to_detail(self) -> dict:
        """Render the per-provider breakdown for API responses."""
        return {
            "detail": str(self),
            "capability": self.capability.value,
            "failures": [
                {
                    "provider": o.provider_id,
                    "failure_class": (o.failure or FailureClass.UNKNOWN).value,
                    "message": o.message or "",
                }
                for o in self.outcomes
            ],
        }
