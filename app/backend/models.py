"""
Pydantic models for the document AI pipeline.

Defines strict types for capabilities, failure classes, canonical OCR and
analysis results, provider bookkeeping, and the HTTP request/response shapes.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Capability(str, Enum):
    """Operations the provider chain can perform."""

    EXTRACT_TEXT = "extract_text"
    ANALYZE_DOCUMENT = "analyze_document"


class FailureClass(str, Enum):
    """
    Provider-independent category of an upstream failure.

    Drives both the retry policy and the fallback bookkeeping.
    """

    UNAUTHENTICATED = "unauthenticated"
    RATE_LIMITED = "rate_limited"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    NO_USABLE_CONTENT = "no_usable_content"
    MALFORMED_UPSTREAM_RESPONSE = "malformed_upstream_response"
    TRANSIENT_NETWORK = "transient_network"
    UNKNOWN = "unknown"


class DocumentType(str, Enum):
    """Document types the analysis prompt asks providers to choose from."""

    PASSPORT = "passport"
    VISA = "visa"
    FINANCIAL = "financial"
    PERSONAL = "personal"
    CONTRACT = "contract"
    OTHER = "other"


class SuggestedForm(str, Enum):
    """Forms a document can be routed to."""

    VISA_APPLICATION = "visa_application"
    FINANCIAL_DECLARATION = "financial_declaration"
    PERSONAL_INFORMATION = "personal_information"


# =============================================================================
# Canonical Results
# =============================================================================


class OCRResult(BaseModel):
    """
    Result of a successful text extraction.

    Attributes:
        text: Extracted text, trimmed and never empty.
        confidence: Provider confidence between 0.0 and 1.0.
        processing_time_ms: Wall-clock time spent producing the result.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1, description="Extracted text")
    confidence: float = Field(..., ge=0.0, le=1.0)
    processing_time_ms: int = Field(default=0, ge=0)

    @field_validator("text")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Trim surrounding whitespace; whitespace-only text is rejected."""
        v = v.strip()
        if not v:
            raise ValueError("OCR text must not be empty")
        return v


class DocumentAnalysis(BaseModel):
    """
    Structured classification of a document.

    Attributes:
        document_type: One of DocumentType values; unrecognised upstream
            labels are passed through as-is.
        confidence: Classification confidence between 0.0 and 1.0.
        suggested_form: Form the document should populate.
        extracted_fields: Field name to string value. Never contains None.
    """

    model_config = ConfigDict(frozen=True)

    document_type: str = Field(default=DocumentType.OTHER.value)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    suggested_form: str = Field(default=SuggestedForm.PERSONAL_INFORMATION.value)
    extracted_fields: dict[str, str] = Field(default_factory=dict)


# =============================================================================
# Provider Bookkeeping
# =============================================================================


class ProviderDescriptor(BaseModel):
    """Static description of a provider adapter."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable provider identifier")
    priority: int = Field(default=100, description="Lower values are tried first")
    capabilities: frozenset[Capability] = Field(default_factory=frozenset)

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


class ProviderOutcome(BaseModel):
    """One candidate's attempt record within a single resolve call."""

    provider_id: str
    capability: Capability
    succeeded: bool
    latency_ms: int = Field(default=0, ge=0)
    attempts: int = Field(default=1, ge=0, description="Calls made by the retry policy")
    result: OCRResult | DocumentAnalysis | None = None
    failure: FailureClass | None = None
    message: str | None = None


# =============================================================================
# API Request/Response Models
# =============================================================================


class ExtractTextRequest(BaseModel):
    """Request model for the extract-text endpoint."""

    image_data_url: str = Field(
        ...,
        description="Base64 image embedded as a data URL",
        examples=["data:image/png;base64,iVBORw0KGgo..."],
    )
    preferred_provider: str | None = Field(
        default=None,
        description="Provider id to try first",
    )

    @field_validator("image_data_url")
    @classmethod
    def validate_data_url(cls, v: str) -> str:
        """Require a base64 data URL with a non-empty payload."""
        v = v.strip()
        header, sep, payload = v.partition(",")
        if not v.startswith("data:") or not sep or ";base64" not in header:
            raise ValueError("image_data_url must be a base64 data URL")
        if not payload:
            raise ValueError("image_data_url has an empty payload")
        return v


class AnalyzeDocumentRequest(BaseModel):
    """Request model for the analyze-document endpoint."""

    text: str = Field(..., description="Document text to classify")
    preferred_provider: str | None = None

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("text must not be empty")
        return v


class ExtractTextResponse(OCRResult):
    """OCR result plus the provider that produced it."""

    provider: str


class AnalyzeDocumentResponse(DocumentAnalysis):
    """Analysis result plus the provider that produced it."""

    provider: str
    latency_ms: int = Field(default=0, ge=0)


class ProviderFailureDetail(BaseModel):
    """One entry of an exhausted-chain breakdown."""

    provider: str
    failure_class: FailureClass
    message: str


class ProvidersExhaustedResponse(BaseModel):
    """Error body returned when every provider failed."""

    detail: str
    capability: Capability
    failures: list[ProviderFailureDetail] = Field(default_factory=list)


class ProviderStatusResponse(BaseModel):
    """Response model for provider availability."""

    providers: dict[str, bool] = Field(default_factory=dict)
    available: bool = Field(default=False, description="True if any provider is reachable")


class ProcessDocumentResponse(BaseModel):
    """Response model for the upload-and-process endpoint."""

    filename: str
    content_type: str
    text: str
    ocr: ExtractTextResponse | None = Field(
        default=None,
        description="Present when text had to be extracted from an image",
    )
    analysis: AnalyzeDocumentResponse


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    message: str | None = None
    providers_configured: dict[str, bool] = Field(default_factory=dict)
