"""
Prompt text shared by the provider adapters.

Every adapter sends the same OCR instruction and the same analysis schema so
that a single normalizer can handle all of their responses.
"""

import json

# Handle both package imports and standalone imports
try:
    from ...models import DocumentType, SuggestedForm
except ImportError:
    from models import DocumentType, SuggestedForm


# =============================================================================
# OCR Prompts
# =============================================================================

NO_TEXT_SENTINEL = "No text found"

OCR_SYSTEM_PROMPT = (
    "Extract text from images accurately. Return only the extracted text "
    "with no additional formatting or explanations."
)

OCR_USER_PROMPT = (
    "Extract all text from this document. Return only the extracted text with "
    "no additional formatting, explanations, or markdown. If there is no "
    f'readable text, return "{NO_TEXT_SENTINEL}".'
)


# =============================================================================
# Analysis Prompts
# =============================================================================

ANALYSIS_FIELDS = [
    "full_name",
    "date_of_birth",
    "nationality",
    "passport_number",
    "account_number",
    "bank_name",
    "balance",
    "monthly_income",
    "address",
    "phone",
    "email",
    "occupation",
]

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert document analyzer. Extract information accurately and "
    "respond with ONLY valid JSON. No explanations, no markdown, no code blocks."
)


def _enum_choices(enum_cls) -> str:
    return " | ".join(json.dumps(member.value) for member in enum_cls)


_FIELD_LINES = ",\n".join(
    f'    "{name}": "string or empty string"' for name in ANALYSIS_FIELDS
)

ANALYSIS_SCHEMA_DESCRIPTION = f"""{{
  "document_type": {_enum_choices(DocumentType)},
  "confidence": 0.85,
  "suggested_form": {_enum_choices(SuggestedForm)},
  "extracted_data": {{
{_FIELD_LINES}
  }}
}}"""

ANALYSIS_RULES = """Rules:
- Include only fields that are clearly found in the document
- Use empty string "" for missing fields, never null
- Confidence must be between 0 and 1
- All dates in YYYY-MM-DD format
- No trailing commas
- Double quotes only, no single quotes
- Valid JSON only, no explanations"""


def truncate_text(text: str, max_chars: int = 3000) -> str:
    """
    Truncate text to stay within an upstream token budget.

    Cuts at the last sentence end or line break when it falls in the final
    20% of the budget; otherwise hard-truncates and appends an ellipsis.

    Args:
        text: The document text.
        max_chars: Character budget for the provider.

    Returns:
        Text no longer than max_chars (plus the ellipsis on hard cuts).
    """
    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    cut_point = max(truncated.rfind("."), truncated.rfind("\n"))
    if cut_point > max_chars * 0.8:
        return truncated[: cut_point + 1]

    return truncated + "..."


def build_analysis_prompt(text: str, max_chars: int) -> str:
    """Build the user prompt asking for a DocumentAnalysis JSON object."""
    return f"""Analyze the following document text and extract structured information. Return ONLY valid JSON with no additional text, explanations, or markdown formatting.

Required JSON structure:
{ANALYSIS_SCHEMA_DESCRIPTION}

{ANALYSIS_RULES}

Document text (first {max_chars} characters):
{truncate_text(text, max_chars)}"""
