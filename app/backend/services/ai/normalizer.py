"""
Normalization of raw model output into a DocumentAnalysis.

Language models do not reliably emit clean JSON. This module is the single
place where that is handled:

- Stage A: locate a JSON object candidate inside prose or markdown fences
- Stage B: parse it, escalating through syntactic repairs
- Stage C: validate and default the parsed object into the canonical shape

Each stage is an ordered list of pure functions tried first-success-wins.
"""

import json
import logging
import math
import re
from typing import Any, Callable, Iterable, TypeVar

# Handle both package imports and standalone imports
try:
    from ...models import DocumentAnalysis, DocumentType, SuggestedForm
except ImportError:
    from models import DocumentAnalysis, DocumentType, SuggestedForm

from .exceptions import NormalizationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONFIDENCE = 0.5


def first_success(
    strategies: Iterable[Callable[[str], T | None]], value: str
) -> T | None:
    """Return the first non-None result of applying each strategy to value."""
    for strategy in strategies:
        try:
            result = strategy(value)
        except (ValueError, TypeError) as e:
            logger.debug("Strategy %s failed: %s", strategy.__name__, e)
            continue
        if result is not None:
            return result
    return None


# =============================================================================
# Stage A: JSON candidate extraction
# =============================================================================

_GREEDY_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


def _greedy_object(text: str) -> str | None:
    match = _GREEDY_OBJECT_RE.search(text)
    return match.group(0) if match else None


def _fenced_block(text: str) -> str | None:
    match = _FENCED_BLOCK_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def _brace_span(text: str) -> str | None:
    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        return text[first : last + 1]
    return None


EXTRACTION_STRATEGIES: tuple[Callable[[str], str | None], ...] = (
    _greedy_object,
    _fenced_block,
    _brace_span,
)


def extract_json_candidate(raw_text: str) -> str:
    """
    Find the JSON object substring in a raw model response.

    Raises:
        NormalizationError: If no strategy yields a non-empty candidate.
    """
    candidate = first_success(EXTRACTION_STRATEGIES, raw_text.strip())
    if not candidate or not candidate.strip():
        raise NormalizationError("No JSON object found in provider response")
    return candidate


# =============================================================================
# Stage B: parsing with escalating repair
# =============================================================================

_DOUBLE_QUOTED_RE = re.compile(r'"(?:\\.|[^"\\])*"')
_QUOTED_LITERAL_RE = re.compile(r'"(?:\\.|[^"\\])*"|\'(?:\\.|[^\'\\])*\'')
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][\w\-]*)(\s*):")
_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT_RE = re.compile(r"//[^\n]*")


def _rewrite_outside_literals(
    candidate: str,
    literal_re: re.Pattern,
    rewrite: Callable[[str], str],
    on_literal: Callable[[str], str] | None = None,
) -> str:
    """Apply rewrite to the text between string literals only."""
    parts = []
    pos = 0
    for match in literal_re.finditer(candidate):
        parts.append(rewrite(candidate[pos : match.start()]))
        literal = match.group(0)
        parts.append(on_literal(literal) if on_literal else literal)
        pos = match.end()
    parts.append(rewrite(candidate[pos:]))
    return "".join(parts)


def _to_double_quoted(literal: str) -> str:
    if literal.startswith('"'):
        return literal
    return json.dumps(literal[1:-1].replace("\\'", "'"), ensure_ascii=False)


def _fix_structure(segment: str) -> str:
    fixed = _TRAILING_COMMA_RE.sub(r"\1", segment)
    return _BARE_KEY_RE.sub(r'\1"\2"\3:', fixed)


def repair_json(candidate: str) -> str:
    """
    Apply syntactic fixes for the most common model JSON mistakes.

    Trailing commas are dropped, bare keys quoted and single-quoted keys or
    values converted to JSON strings. Text inside string literals is left
    untouched.
    """
    return _rewrite_outside_literals(
        candidate, _QUOTED_LITERAL_RE, _fix_structure, _to_double_quoted
    )


def _drop_comments(segment: str) -> str:
    return _LINE_COMMENT_RE.sub("", _BLOCK_COMMENT_RE.sub("", segment))


def strip_comments(candidate: str) -> str:
    # Comments may contain apostrophes, so only double quotes delimit strings here
    return _rewrite_outside_literals(candidate, _DOUBLE_QUOTED_RE, _drop_comments)


def _as_object(parsed: Any) -> dict[str, Any] | None:
    return parsed if isinstance(parsed, dict) else None


def _parse_as_is(candidate: str) -> dict[str, Any] | None:
    return _as_object(json.loads(candidate))


def _parse_repaired(candidate: str) -> dict[str, Any] | None:
    return _as_object(json.loads(repair_json(candidate)))


def _parse_without_comments(candidate: str) -> dict[str, Any] | None:
    return _as_object(json.loads(repair_json(strip_comments(candidate))))


PARSE_ATTEMPTS: tuple[Callable[[str], dict[str, Any] | None], ...] = (
    _parse_as_is,
    _parse_repaired,
    _parse_without_comments,
)


def parse_json_object(candidate: str) -> dict[str, Any]:
    """
    Parse a JSON object candidate, repairing it if necessary.

    Raises:
        NormalizationError: If every parse attempt fails.
    """
    # json.JSONDecodeError is a ValueError subclass, which first_success absorbs
    parsed = first_success(PARSE_ATTEMPTS, candidate)
    if parsed is None:
        logger.error("Failed to parse provider JSON: %s", candidate[:500])
        raise NormalizationError("Invalid JSON in provider response")
    return parsed


# =============================================================================
# Stage C: semantic validation and defaulting
# =============================================================================


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def clean_extracted_fields(data: Any) -> dict[str, str]:
    """Coerce every non-null value to a trimmed string; drop null entries."""
    if not isinstance(data, dict):
        return {}

    return {
        str(key): _stringify(value)
        for key, value in data.items()
        if key and value is not None
    }


def clamp_confidence(value: Any) -> float:
    """Clamp numeric confidence to [0, 1]; anything else gets the default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    if math.isnan(value):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


def _non_empty_string(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def validate_analysis(data: dict[str, Any]) -> DocumentAnalysis:
    """Build a DocumentAnalysis from a parsed object, applying defaults."""
    fields = data.get("extracted_data")
    if fields is None:
        fields = data.get("extracted_fields")

    return DocumentAnalysis(
        document_type=_non_empty_string(
            data.get("document_type"), DocumentType.OTHER.value
        ),
        confidence=clamp_confidence(data.get("confidence")),
        suggested_form=_non_empty_string(
            data.get("suggested_form"), SuggestedForm.PERSONAL_INFORMATION.value
        ),
        extracted_fields=clean_extracted_fields(fields),
    )


# =============================================================================
# Public API
# =============================================================================


def normalize(raw_text: str) -> DocumentAnalysis:
    """
    Turn raw provider output into a validated DocumentAnalysis.

    Pure function: no I/O, no state, same input gives the same output.

    Args:
        raw_text: Whatever text the provider returned.

    Returns:
        DocumentAnalysis with confidence in [0, 1] and string-only fields.

    Raises:
        NormalizationError: If no JSON object can be found or parsed.
    """
    if not raw_text or not raw_text.strip():
        raise NormalizationError("Empty provider response")

    candidate = extract_json_candidate(raw_text)
    parsed = parse_json_object(candidate)
    return validate_analysis(parsed)
