"""Tests for single-field extraction"""

from unittest.mock import MagicMock

import pytest

from field_prompt_tuner.domain.constants import NOT_PRESENT
from field_prompt_tuner.domain.value_objects import ModelResponse
from field_prompt_tuner.infrastructure.documents import TextDocumentStore
from field_prompt_tuner.infrastructure.extraction import (
    MAX_DOCUMENT_CHARS,
    LLMDocumentExtractor,
    build_extraction_prompt,
    clean_extracted_value,
)


@pytest.fixture
def store(tmp_path):
    (tmp_path / "d1.txt").write_text("This Agreement is effective as of January 1, 2024.", encoding="utf-8")
    return TextDocumentStore(tmp_path)


def make_client(output):
    client = MagicMock()
    client.generate.return_value = ModelResponse(output=output, latency_ms=5, model_name="test")
    return client


class TestBuildExtractionPrompt:
    def test_contains_field_and_instructions(self):
        prompt = build_extraction_prompt("doc text", "Effective Date", "date", "Look in the header.")

        assert "FIELD: Effective Date (type: date)" in prompt
        assert "INSTRUCTIONS: Look in the header." in prompt
        assert prompt.endswith("DOCUMENT:\ndoc text")
        assert "ALLOWED VALUES" not in prompt

    def test_options_for_option_fields(self):
        enum_prompt = build_extraction_prompt("t", "Type", "enum", "p", options=["MSA", "NDA"])
        multi_prompt = build_extraction_prompt("t", "Tags", "multiSelect", "p", options=["a", "b"])

        assert "ALLOWED VALUES: MSA | NDA" in enum_prompt
        assert "Several values may apply" not in enum_prompt
        assert "Several values may apply" in multi_prompt

    def test_options_ignored_for_plain_fields(self):
        assert "ALLOWED VALUES" not in build_extraction_prompt("t", "Name", "string", "p", options=["x"])

    def test_document_truncated(self):
        prompt = build_extraction_prompt("x" * (MAX_DOCUMENT_CHARS + 10), "F", "string", "p")
        assert prompt.endswith("DOCUMENT:\n" + "x" * MAX_DOCUMENT_CHARS)


class TestCleanExtractedValue:
    @pytest.mark.parametrize("raw,expected", [
        ("2024-01-01", "2024-01-01"),
        ("  Value: 2024-01-01\nBecause the header says so.", "2024-01-01"),
        ('"Acme Corp"', "Acme Corp"),
        ("Answer: 'Delaware'", "Delaware"),
        ("N/A", NOT_PRESENT),
        ("not found.", NOT_PRESENT),
        ("Not Present", NOT_PRESENT),
        ("", NOT_PRESENT),
        (None, NOT_PRESENT),
        ("  \n  ", NOT_PRESENT),
    ])
    def test_cleaning(self, raw, expected):
        assert clean_extracted_value(raw) == expected


class TestLLMDocumentExtractor:
    def test_extract(self, store):
        client = make_client("2024-01-01")
        extractor = LLMDocumentExtractor(client, store, field_names={"effective_date": "Effective Date"})

        result = extractor.extract("d1", "effective_date", "date", "Look in the opening paragraph.")

        assert result.value == "2024-01-01"
        assert result.success is True
        request = client.generate.call_args[0][0]
        assert "FIELD: Effective Date (type: date)" in request
        assert "effective as of January 1, 2024" in request

    def test_field_key_used_without_name(self, store):
        client = make_client("x")
        LLMDocumentExtractor(client, store).extract("d1", "effective_date", "date", "p")

        assert "FIELD: effective_date (type: date)" in client.generate.call_args[0][0]

    def test_missing_document(self, store):
        extractor = LLMDocumentExtractor(make_client("x"), store)

        with pytest.raises(FileNotFoundError, match="d9"):
            extractor.extract("d9", "effective_date", "date", "p")

    def test_client_error_propagates(self, store):
        client = MagicMock()
        client.generate.side_effect = RuntimeError("quota")

        with pytest.raises(RuntimeError, match="quota"):
            LLMDocumentExtractor(client, store).extract("d1", "effective_date", "date", "p")
