"""Tests for normalization of raw model output."""

import pytest

from app.backend.models import DocumentAnalysis, FailureClass
from app.backend.services.ai.exceptions import NormalizationError, ProviderError
from app.backend.services.ai.normalizer import (
    clamp_confidence,
    clean_extracted_fields,
    extract_json_candidate,
    first_success,
    normalize,
    parse_json_object,
    repair_json,
    strip_comments,
)


class TestExtractJsonCandidate:
    """Tests for locating the JSON object in a response."""

    def test_object_surrounded_by_prose(self):
        """Test that prose around the object is dropped."""
        raw = 'Sure! Here is the result: {"a": 1} Let me know if you need more.'
        assert extract_json_candidate(raw) == '{"a": 1}'

    def test_fenced_block(self):
        """Test that a fenced json block yields its object."""
        raw = 'Result:\n```json\n{"a": 1}\n```\nDone.'
        assert extract_json_candidate(raw) == '{"a": 1}'

    def test_greedy_span_covers_nested_objects(self):
        """Test that the span runs from the first { to the last }."""
        raw = 'x {"a": {"b": 2}} y'
        assert extract_json_candidate(raw) == '{"a": {"b": 2}}'

    def test_no_braces_raises(self):
        """Test that text without braces is rejected."""
        with pytest.raises(NormalizationError) as exc_info:
            extract_json_candidate("I could not analyze this document.")
        assert exc_info.value.failure_class == FailureClass.MALFORMED_UPSTREAM_RESPONSE
        assert isinstance(exc_info.value, ProviderError)


class TestParseJsonObject:
    """Tests for parsing with escalating repair."""

    def test_valid_json_parses_as_is(self):
        assert parse_json_object('{"a": "b"}') == {"a": "b"}

    def test_trailing_commas_removed(self):
        assert parse_json_object('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_bare_keys_quoted(self):
        assert parse_json_object('{a: 1, b_c: "x"}') == {"a": 1, "b_c": "x"}

    def test_single_quoted_values_converted(self):
        assert parse_json_object("{\"name\": 'John \"JJ\" Smith'}") == {
            "name": 'John "JJ" Smith'
        }

    def test_string_values_untouched_by_repair(self):
        """Test that ', Word:' and ',}' inside a string survive repair."""
        candidate = (
            '{"notes": "Issued by registry, Ref: 12", '
            '"label": "a,}", "x": [1,],}'
        )
        assert parse_json_object(candidate) == {
            "notes": "Issued by registry, Ref: 12",
            "label": "a,}",
            "x": [1],
        }

    def test_single_quoted_keys_and_values(self):
        """Test that a Python-dict style reply parses."""
        candidate = "{'document_type': 'passport', 'extracted_data': {'full_name': 'Jane, Ref: 7'}}"
        assert parse_json_object(candidate) == {
            "document_type": "passport",
            "extracted_data": {"full_name": "Jane, Ref: 7"},
        }

    def test_apostrophe_inside_double_quoted_string(self):
        assert parse_json_object('{"name": "O\'Brien", "city": \'Cork\',}') == {
            "name": "O'Brien",
            "city": "Cork",
        }

    def test_comments_stripped(self):
        """Test that block and line comments are removed on the last attempt."""
        candidate = """{
            /* model commentary */
            "document_type": "visa", // inline note
            "url": "https://example.com/a"
        }"""
        assert parse_json_object(candidate) == {
            "document_type": "visa",
            "url": "https://example.com/a",
        }

    def test_unrepairable_raises(self):
        with pytest.raises(NormalizationError):
            parse_json_object("{this is: not [json")

    def test_non_object_json_rejected(self):
        """Test that a JSON array is not accepted as an analysis object."""
        with pytest.raises(NormalizationError):
            parse_json_object("[1, 2, 3]")


class TestRepairHelpers:
    """Tests for individual repair functions."""

    def test_repair_json_combines_fixes(self):
        fixed = repair_json("{key: 'value',}")
        assert fixed == '{"key": "value"}'

    def test_strip_comments_keeps_urls(self):
        assert "https://x.y" in strip_comments('{"u": "https://x.y"}')

    def test_first_success_skips_failures(self):
        def boom(value):
            raise ValueError("nope")

        def none(value):
            return None

        def upper(value):
            return value.upper()

        assert first_success([boom, none, upper], "ok") == "OK"
        assert first_success([boom, none], "ok") is None


class TestSemanticValidation:
    """Tests for defaulting and coercion."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (1.4, 1.0),
            (-0.2, 0.0),
            (0.73, 0.73),
            (1, 1.0),
            ("0.9", 0.5),
            (None, 0.5),
            (True, 0.5),
            (float("nan"), 0.5),
        ],
    )
    def test_clamp_confidence(self, value, expected):
        assert clamp_confidence(value) == expected

    def test_clean_fields_drops_nulls_and_stringifies(self):
        cleaned = clean_extracted_fields(
            {"name": "  Jane  ", "age": 42, "ratio": 2.0, "ok": True, "gone": None, "": "x"}
        )
        assert cleaned == {"name": "Jane", "age": "42", "ratio": "2", "ok": "true"}

    def test_clean_fields_non_object_defaults_to_empty(self):
        assert clean_extracted_fields(["a", "b"]) == {}
        assert clean_extracted_fields("text") == {}
        assert clean_extracted_fields(None) == {}

    def test_nested_values_become_json_strings(self):
        cleaned = clean_extracted_fields({"address": {"city": "Paris"}})
        assert cleaned == {"address": '{"city": "Paris"}'}


class TestNormalize:
    """End-to-end tests for normalize."""

    def test_fenced_json_with_bare_key_and_null(self):
        """Test the canonical messy reply: fence, out-of-range confidence, bare null key."""
        raw = (
            '```json\n{"document_type":"passport","confidence":1.4,'
            '"extracted_data":{"name":"A",x:null}}\n```'
        )
        result = normalize(raw)
        assert result.document_type == "passport"
        assert result.confidence == 1.0
        assert result.extracted_fields == {"name": "A"}

    def test_trailing_comma_with_colon_in_value(self):
        """Test that only the trailing comma is repaired when a value contains ', Ref:'."""
        raw = (
            '{"document_type": "contract", "confidence": 0.8, '
            '"extracted_data": {"notes": "Issued by registry, Ref: 12"},}'
        )
        result = normalize(raw)
        assert result.document_type == "contract"
        assert result.extracted_fields == {"notes": "Issued by registry, Ref: 12"}

    def test_python_dict_style_reply(self):
        raw = (
            "{'document_type': 'passport', 'confidence': 0.9, "
            "'extracted_data': {'full_name': 'Jane'}}"
        )
        result = normalize(raw)
        assert result.document_type == "passport"
        assert result.confidence == 0.9
        assert result.extracted_fields == {"full_name": "Jane"}

    def test_defaults_applied(self):
        """Test that missing keys fall back to defaults."""
        result = normalize('{"extracted_data": "not an object"}')
        assert result == DocumentAnalysis(
            document_type="other",
            confidence=0.5,
            suggested_form="personal_information",
            extracted_fields={},
        )

    def test_empty_document_type_defaults_to_other(self):
        assert normalize('{"document_type": "  "}').document_type == "other"

    def test_unknown_document_type_passes_through(self):
        assert normalize('{"document_type": "invoice"}').document_type == "invoice"

    def test_no_braces_fails(self):
        with pytest.raises(NormalizationError) as exc_info:
            normalize("Sorry, I cannot help with that.")
        assert exc_info.value.failure_class == FailureClass.MALFORMED_UPSTREAM_RESPONSE

    def test_empty_input_fails(self):
        with pytest.raises(NormalizationError):
            normalize("   ")

    @pytest.mark.parametrize(
        "raw",
        [
            '{"document_type": "visa", "confidence": 7, "extracted_data": {"a": 1,},}',
            "{document_type: 'financial', confidence: -3, extracted_data: {bank_name: 'ACME'}}",
            'Here you go:\n```\n{"confidence": 0.4, "extracted_data": {"n": [1, 2]}}\n```',
            '{"confidence": "high", "extracted_data": {"flag": false, "v": 3.5}}',
        ],
    )
    def test_messy_inputs_yield_valid_shape(self, raw):
        """Test that repaired replies always satisfy the canonical invariants."""
        result = normalize(raw)
        assert 0.0 <= result.confidence <= 1.0
        assert all(isinstance(v, str) for v in result.extracted_fields.values())

    def test_is_idempotent(self):
        """Test that normalizing the same input twice gives the same output."""
        raw = "{document_type: 'contract', confidence: 0.6, extracted_data: {a: 'b',},}"
        assert normalize(raw) == normalize(raw)
