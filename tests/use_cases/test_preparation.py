"""
Tests for work-plan preparation
"""

import pytest

from field_prompt_tuner.accuracy_data import FieldDefinition, parse_accuracy_data
from field_prompt_tuner.optimizer_config import ModelsConfig, OptimizerConfig, SamplingConfig
from field_prompt_tuner.use_cases.preparation import (
    NoComparisonDataError,
    compared_models,
    default_compare_config,
    prepare_work_plan,
)

MODEL = "gemini-2.5-flash"
OTHER_MODEL = "claude-haiku-4-5"


def _document(doc_id, effective_date, extracted_date, law, extracted_law):
    return {
        "id": doc_id,
        "fileName": f"{doc_id}.pdf",
        "fields": {
            "effective_date": {"Ground Truth": effective_date, MODEL: extracted_date},
            "governing_law": {"Ground Truth": law, MODEL: extracted_law},
        },
        "comparisonResults": {
            "effective_date": {MODEL: {"isMatch": effective_date == extracted_date}},
            "governing_law": {MODEL: {"isMatch": law == extracted_law, "details": "law check"}},
        },
    }


def make_accuracy_data(**overrides):
    data = {
        "templateKey": "master_services_agreement",
        "fields": [
            {"key": "effective_date", "name": "Effective Date", "type": "date", "prompt": "Extract the effective date"},
            {"key": "governing_law", "name": "Governing Law", "type": "string"},
            {"key": "vendor", "name": "Vendor", "type": "string"},
        ],
        "results": [
            _document("doc1", "2024-01-01", "2024-01-02", "Delaware", "Delaware"),
            _document("doc2", "2024-02-01", "2024-02-01", "New York", "New York"),
            _document("doc3", "2024-03-01", "2023-03-01", "Texas", "Texas"),
            _document("doc4", "2024-04-01", "2024-04-01", "Ohio", "Ohio"),
        ],
        "averages": {
            "effective_date": {MODEL: {"accuracy": 0.5}},
            "governing_law": {MODEL: {"accuracy": 1.0}},
        },
        "compareConfigs": {
            "governing_law": {"compareType": "llm-judge"},
        },
    }
    data.update(overrides)
    return parse_accuracy_data(data)


def make_config(test_model=MODEL, max_docs=5, holdout_ratio=0.2):
    return OptimizerConfig(
        sampling=SamplingConfig(max_docs=max_docs, holdout_ratio=holdout_ratio),
        models=ModelsConfig(test_model=test_model),
    )


class TestComparedModels:
    def test_first_seen_order(self):
        data = make_accuracy_data()
        data.results[0].comparison_results["vendor"] = {OTHER_MODEL: data.results[0].comparison_results["governing_law"][MODEL]}
        assert compared_models(data) == [MODEL, OTHER_MODEL]

    def test_no_comparisons(self):
        data = make_accuracy_data(results=[{"id": "doc1", "fileName": "doc1.pdf"}])
        assert compared_models(data) == []


class TestDefaultCompareConfig:
    @pytest.mark.parametrize("field_type,expected", [
        ("string", "near-exact-string"),
        ("date", "date-exact"),
        ("number", "exact-number"),
        ("float", "exact-number"),
        ("enum", "exact-string"),
        ("multiSelect", "list-unordered"),
    ])
    def test_by_field_type(self, field_type, expected):
        config = default_compare_config(FieldDefinition(key="k", name="K", type=field_type))
        assert config.compare_type == expected
        assert config.field_key == "k"

    def test_unknown_type(self):
        assert default_compare_config(FieldDefinition(key="k", name="K", type="signature")) is None


class TestPrepareWorkPlan:
    """prepare_work_plan()"""

    def test_only_failing_fields_with_recorded_failures(self):
        plan = prepare_work_plan(make_accuracy_data(), make_config())

        # vendor has no averages (0%) but no recorded failures either
        assert [job.field_key for job in plan.jobs] == ["effective_date"]
        assert plan.reference_model == MODEL
        assert plan.template_key == "master_services_agreement"
        assert plan.run_id

    def test_job_contents(self):
        plan = prepare_work_plan(make_accuracy_data(), make_config())
        job = plan.jobs[0]

        assert job.field_name == "Effective Date"
        assert job.field_type == "date"
        assert job.field_prompt == "Extract the effective date"
        assert job.initial_accuracy == 0.5
        assert job.compare_config.compare_type == "date-exact"
        assert [f.doc_id for f in job.failures] == ["doc1", "doc3"]
        assert job.ground_truths["doc1"] == "2024-01-01"
        assert set(job.ground_truths) == set(job.sampled_doc_ids)

    def test_failing_documents_sampled_first_then_padded(self):
        plan = prepare_work_plan(make_accuracy_data(), make_config())

        assert plan.sampling.selected_doc_ids == ["doc1", "doc3", "doc2", "doc4"]
        assert plan.sampling.train_doc_ids == ["doc1", "doc3", "doc2"]
        assert plan.sampling.holdout_doc_ids == ["doc4"]
        assert plan.doc_names["doc2"] == "doc2.pdf"

    def test_max_docs_limits_sample(self):
        plan = prepare_work_plan(make_accuracy_data(), make_config(max_docs=2))

        assert plan.sampling.selected_doc_ids == ["doc1", "doc3"]
        assert plan.sampling.holdout_doc_ids == []

    def test_explicit_compare_config_is_used(self):
        data = make_accuracy_data(averages={"governing_law": {MODEL: {"accuracy": 0.5}}})
        data.results[0].comparison_results["governing_law"][MODEL].is_match = False

        plan = prepare_work_plan(data, make_config(), field_keys=["governing_law"])

        assert len(plan.jobs) == 1
        assert plan.jobs[0].compare_config.compare_type == "llm-judge"
        assert plan.jobs[0].failures[0].comparison_reason == "law check"

    def test_field_keys_filter(self):
        plan = prepare_work_plan(make_accuracy_data(), make_config(), field_keys=["governing_law"])

        assert plan.jobs == []
        assert plan.sampling is None

    def test_reference_model_falls_back_to_first_compared(self):
        plan = prepare_work_plan(make_accuracy_data(), make_config(test_model="claude-sonnet-4-5"))

        assert plan.reference_model == MODEL
        assert plan.test_model == "claude-sonnet-4-5"
        assert len(plan.jobs) == 1

    def test_all_fields_meet_target(self):
        data = make_accuracy_data(averages={
            "effective_date": {MODEL: {"accuracy": 1.0}},
            "governing_law": {MODEL: {"accuracy": 1.0}},
            "vendor": {MODEL: {"accuracy": 1.0}},
        })

        plan = prepare_work_plan(data, make_config())

        assert plan.jobs == []
        assert plan.sampling is None

    def test_no_comparisons_raises(self):
        data = make_accuracy_data(results=[{"id": "doc1", "fileName": "doc1.pdf", "fields": {}}])

        with pytest.raises(NoComparisonDataError, match="Please run comparison first"):
            prepare_work_plan(data, make_config())

    def test_run_ids_are_unique(self):
        data = make_accuracy_data()
        assert prepare_work_plan(data, make_config()).run_id != prepare_work_plan(data, make_config()).run_id
