"""Tests for domain entities and value objects"""

from field_prompt_tuner.domain.entities import (
    FieldJob,
    HealthCheckResult,
    SamplingResult,
    SelectedDoc,
)
from field_prompt_tuner.domain.value_objects import (
    CompareConfig,
    ConfusionCounts,
    ModelResponse,
    PromptValidation,
)


class TestFieldJob:
    def test_construction(self):
        job = FieldJob(
            field_key="effective_date",
            field_name="Effective Date",
            field_type="date",
            field_prompt=None,
            ground_truths={"d1": "2024-01-01"},
            train_doc_ids=["d1", "d2"],
            holdout_doc_ids=["d3"],
        )
        assert job.sampled_doc_ids == ["d1", "d2", "d3"]
        assert job.initial_accuracy is None  # default
        assert job.options == []  # default


class TestSamplingResult:
    def test_selected_doc_ids(self):
        sampling = SamplingResult(
            selected_docs=[SelectedDoc("d2", "two.pdf", ["a"]), SelectedDoc("d1", "one.pdf", ["b"])],
            field_to_doc_ids={"a": ["d2"], "b": ["d1"]},
            train_doc_ids=["d2"],
            holdout_doc_ids=["d1"],
        )
        assert sampling.selected_doc_ids == ["d2", "d1"]


class TestCompareConfig:
    def test_to_dict(self):
        config = CompareConfig("law", "Governing Law", "llm-judge", {"comparisonPrompt": "Same state?"})
        assert config.to_dict() == {
            "fieldKey": "law",
            "fieldName": "Governing Law",
            "compareType": "llm-judge",
            "parameters": {"comparisonPrompt": "Same state?"},
        }


class TestConfusionCounts:
    def test_total(self):
        counts = ConfusionCounts(true_positives=3, true_negatives=1, false_positives=2, false_negatives=2)
        assert counts.total == 8


class TestPromptValidation:
    def test_element_count(self):
        validation = PromptValidation(is_valid=False, has_location=True, has_format=True)
        assert validation.element_count == 2


class TestModelResponse:
    def test_token_defaults(self):
        response = ModelResponse(output="ok", latency_ms=10, model_name="m1")
        assert response.input_tokens == 0
        assert response.output_tokens == 0


class TestHealthCheckResult:
    def test_failure(self):
        result = HealthCheckResult(
            model_name="gemini-2.5-flash",
            success=False,
            latency_ms=None,
            error="API key not set",
        )
        assert result.success is False
        assert result.error == "API key not set"
