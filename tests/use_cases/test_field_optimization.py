"""
Tests for the per-field iteration controller

Extraction and prompt generation are replaced by scripted fakes so every
iteration outcome is deterministic.
"""

import threading
from unittest.mock import MagicMock

import pytest

from field_prompt_tuner.domain.constants import NOT_PRESENT
from field_prompt_tuner.domain.entities import FailureAnalysis, FieldJob
from field_prompt_tuner.domain.value_objects import (
    CompareConfig,
    ExtractionResult,
    GeneratedPrompt,
    JudgeVerdict,
)
from field_prompt_tuner.infrastructure.extraction import DocumentExtractor
from field_prompt_tuner.infrastructure.prompt_generation import PromptGenerator
from field_prompt_tuner.optimizer_config import IterationConfig
from field_prompt_tuner.prompts.generation_request import PromptGenerationRequest
from field_prompt_tuner.prompts.library import get_example_prompt_for_field
from field_prompt_tuner.use_cases.field_optimization import (
    FieldOptimizer,
    OptimizationServices,
    effective_compare_config,
    ground_truth_hash,
    has_measurable_ground_truth,
)

VALID_PROMPT = (
    "Search for the effective date in the opening paragraph, the header area and the signature block "
    'section. Look for phrases like "effective as of", "dated as of", "commences on", "entered into as of", '
    '"effective date", "start date". Return the date in YYYY-MM-DD format. Do NOT use signature dates '
    'unless no other date exists. Return "Not Present" if no effective date is found in the document.'
)
SECOND_PROMPT = VALID_PROMPT + ' If several dates appear, prefer the one explicitly labeled "Effective Date".'
INVALID_PROMPT = "Find the date."

GROUND_TRUTHS = {
    "d1": "2024-01-01",
    "d2": "2024-02-15",
    "d3": "2023-12-31",
    "d4": "2024-05-01",
    "d5": "2024-06-30",
}
WRONG = "2020-01-01"


class ScriptedExtractor(DocumentExtractor):
    """Answers from a prompt -> {doc_id: value} script; unknown docs get the ground truth"""

    def __init__(self, script=None, default=None):
        self.script = script or {}
        self.default = default if default is not None else GROUND_TRUTHS
        self.calls = []
        self._lock = threading.Lock()

    def extract(self, document_id, field_key, field_type, prompt, options=None):
        with self._lock:
            self.calls.append((document_id, prompt))
        answers = self.script.get(prompt, {})
        value = answers.get(document_id, self.default.get(document_id, NOT_PRESENT))
        if isinstance(value, Exception):
            raise value
        if isinstance(value, ExtractionResult):
            return value
        return ExtractionResult(value=value)


class ScriptedGenerator(PromptGenerator):
    """Returns (or raises) the queued items in order and records every request"""

    def __init__(self, *items):
        self.items = list(items)
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return GeneratedPrompt(new_prompt=item, reasoning="scripted")


def make_job(**overrides):
    defaults = dict(
        field_key="effective_date",
        field_name="Effective Date",
        field_type="date",
        field_prompt=VALID_PROMPT,
        ground_truths=dict(GROUND_TRUTHS),
        train_doc_ids=["d1", "d2", "d3"],
        holdout_doc_ids=[],
        initial_accuracy=0.0,
        compare_config=CompareConfig("effective_date", "Effective Date", "date-exact"),
        template_key="master_services_agreement",
        doc_names={"d1": "msa_acme.pdf", "d2": "msa_beta.pdf", "d3": "msa_gamma.pdf"},
    )
    defaults.update(overrides)
    return FieldJob(**defaults)


def make_optimizer(extractor, generator, config=None, judge=None, analyzer=None):
    services = OptimizationServices(
        extractor=extractor,
        prompt_generator=generator,
        judge=judge,
        analyzer=analyzer,
    )
    return FieldOptimizer(services, config or IterationConfig(), extraction_concurrency=3, test_model="gemini-2.5-flash")


class TestHelpers:
    """Module-level helpers"""

    @pytest.mark.parametrize("value", [None, "", "   ", "-", " -- ", "—", "–"])
    def test_blank_ground_truth_is_not_measurable(self, value):
        assert has_measurable_ground_truth(value) is False

    @pytest.mark.parametrize("value", ["2024-01-01", "No", "0", NOT_PRESENT])
    def test_real_ground_truth_is_measurable(self, value):
        assert has_measurable_ground_truth(value) is True

    def test_deterministic_mode_downgrades_llm_judge(self):
        config = CompareConfig("law", "Governing Law", "llm-judge", {"comparisonPrompt": "same state?"})
        result = effective_compare_config(config, deterministic=True)
        assert result.compare_type == "near-exact-string"
        assert result.parameters == {"comparisonPrompt": "same state?"}
        assert config.compare_type == "llm-judge"

    def test_non_deterministic_mode_keeps_config(self):
        config = CompareConfig("law", "Governing Law", "llm-judge")
        assert effective_compare_config(config, deterministic=False) is config

    def test_other_compare_types_untouched(self):
        config = CompareConfig("date", "Date", "date-exact")
        assert effective_compare_config(config, deterministic=True) is config
        assert effective_compare_config(None, deterministic=True) is None

    def test_ground_truth_hash_ignores_doc_order(self):
        first = ground_truth_hash(GROUND_TRUTHS, ["d1", "d2"])
        second = ground_truth_hash(GROUND_TRUTHS, ["d2", "d1"])
        assert first == second
        assert len(first) == 64

    def test_ground_truth_hash_changes_with_values(self):
        changed = dict(GROUND_TRUTHS, d1="2025-01-01")
        assert ground_truth_hash(GROUND_TRUTHS, ["d1"]) != ground_truth_hash(changed, ["d1"])


class TestMeasure:
    """FieldOptimizer.measure()"""

    def test_all_correct(self):
        optimizer = make_optimizer(ScriptedExtractor(), ScriptedGenerator())
        job = make_job()

        measurement = optimizer.measure(job, VALID_PROMPT, job.train_doc_ids, job.compare_config)

        assert measurement.accuracy == 1.0
        assert measurement.failures == []
        assert [s.doc_id for s in measurement.successes] == ["d1", "d2", "d3"]
        assert measurement.successes[0].doc_name == "msa_acme.pdf"

    def test_failures_carry_prediction_and_expected(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d2": WRONG}})
        optimizer = make_optimizer(extractor, ScriptedGenerator())
        job = make_job()

        measurement = optimizer.measure(job, VALID_PROMPT, job.train_doc_ids, job.compare_config)

        assert measurement.accuracy == pytest.approx(2 / 3)
        assert len(measurement.failures) == 1
        failure = measurement.failures[0]
        assert failure.doc_id == "d2"
        assert failure.predicted == WRONG
        assert failure.expected == "2024-02-15"
        assert failure.reason == "none"

    def test_extraction_exception_counts_as_not_present(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d3": RuntimeError("model down")}})
        optimizer = make_optimizer(extractor, ScriptedGenerator())
        job = make_job()

        measurement = optimizer.measure(job, VALID_PROMPT, job.train_doc_ids, job.compare_config)

        assert measurement.accuracy == pytest.approx(2 / 3)
        assert measurement.failures[0].doc_id == "d3"
        assert measurement.failures[0].predicted == NOT_PRESENT

    def test_unsuccessful_extraction_counts_as_not_present(self):
        failed = ExtractionResult(value="", success=False, error="timeout")
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": failed}})
        optimizer = make_optimizer(extractor, ScriptedGenerator())
        job = make_job()

        measurement = optimizer.measure(job, VALID_PROMPT, job.train_doc_ids, job.compare_config)

        assert measurement.failures[0].predicted == NOT_PRESENT

    def test_documents_without_ground_truth_are_ignored(self):
        job = make_job(ground_truths={"d1": "2024-01-01", "d2": "", "d3": "-"})
        extractor = ScriptedExtractor(default={"d1": "2024-01-01", "d2": WRONG, "d3": WRONG})
        optimizer = make_optimizer(extractor, ScriptedGenerator())

        measurement = optimizer.measure(job, VALID_PROMPT, job.train_doc_ids, job.compare_config)

        assert measurement.accuracy == 1.0
        assert len(measurement.successes) == 1

    def test_no_measurable_documents_gives_none(self):
        job = make_job(ground_truths={"d1": "", "d2": "", "d3": ""})
        optimizer = make_optimizer(ScriptedExtractor(), ScriptedGenerator())

        measurement = optimizer.measure(job, VALID_PROMPT, job.train_doc_ids, job.compare_config)

        assert measurement.accuracy is None
        assert measurement.failures == []


class TestRewrite:
    """FieldOptimizer.rewrite(): validation, repair and library fallback"""

    def _request(self):
        return PromptGenerationRequest(
            field_name="Effective Date",
            field_type="date",
            current_prompt=VALID_PROMPT,
        )

    def test_valid_prompt_accepted_without_repair(self):
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        assert optimizer.rewrite(make_job(), self._request()) == SECOND_PROMPT
        assert len(generator.requests) == 1
        assert not generator.requests[0].is_repair

    def test_repair_fixes_invalid_prompt(self):
        generator = ScriptedGenerator(INVALID_PROMPT, SECOND_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        assert optimizer.rewrite(make_job(), self._request()) == SECOND_PROMPT
        assert len(generator.requests) == 2
        repair = generator.requests[1]
        assert repair.is_repair
        assert repair.repair_of == INVALID_PROMPT
        assert repair.validation.is_valid is False

    def test_falls_back_to_library_after_repairs_fail(self):
        generator = ScriptedGenerator(INVALID_PROMPT, INVALID_PROMPT, INVALID_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        result = optimizer.rewrite(make_job(), self._request())

        assert result == get_example_prompt_for_field("Effective Date", "date", [])
        assert len(generator.requests) == 3

    def test_repair_attempts_follow_config(self):
        generator = ScriptedGenerator(INVALID_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(), generator, IterationConfig(max_repair_attempts=0))

        result = optimizer.rewrite(make_job(), self._request())

        assert result == get_example_prompt_for_field("Effective Date", "date", [])
        assert len(generator.requests) == 1

    def test_failed_repair_call_falls_back_to_library(self):
        generator = ScriptedGenerator(INVALID_PROMPT, RuntimeError("rate limited"))
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        result = optimizer.rewrite(make_job(), self._request())

        assert result == get_example_prompt_for_field("Effective Date", "date", [])
        assert len(generator.requests) == 2

    def test_failed_initial_call_propagates(self):
        generator = ScriptedGenerator(RuntimeError("provider down"))
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        with pytest.raises(RuntimeError, match="provider down"):
            optimizer.rewrite(make_job(), self._request())


class TestRunIteration:
    """FieldOptimizer.run_iteration()"""

    def test_failure_requests_rewrite_with_examples(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(extractor, generator)
        job = make_job()

        result = optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        assert result.converged is False
        assert result.new_prompt == SECOND_PROMPT
        request = generator.requests[0]
        assert request.current_prompt == VALID_PROMPT
        assert request.failure_examples[0].predicted == WRONG
        assert len(request.success_examples) == 2
        assert request.document_type == "MSA (Master Service Agreement)"

    def test_last_iteration_does_not_rewrite(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        generator = ScriptedGenerator()
        optimizer = make_optimizer(extractor, generator, IterationConfig(max_iterations=3))
        job = make_job()

        result = optimizer.run_iteration(job, VALID_PROMPT, [], 3, job.compare_config)

        assert result.converged is False
        assert result.new_prompt == VALID_PROMPT
        assert generator.requests == []

    def test_holdout_runs_only_after_train_success(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        optimizer = make_optimizer(extractor, ScriptedGenerator(SECOND_PROMPT))
        job = make_job(holdout_doc_ids=["d4", "d5"])

        result = optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        assert result.holdout_accuracy is None
        assert {doc_id for doc_id, _ in extractor.calls} == {"d1", "d2", "d3"}

    def test_holdout_without_ground_truth_counts_as_pass(self):
        ground_truths = dict(GROUND_TRUTHS, d4="", d5="")
        optimizer = make_optimizer(ScriptedExtractor(), ScriptedGenerator())
        job = make_job(ground_truths=ground_truths, holdout_doc_ids=["d4", "d5"])

        result = optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        assert result.converged is True
        assert result.holdout_accuracy is None

    def test_company_name_from_config(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(extractor, generator, IterationConfig(company_name="Acme Inc"))
        job = make_job()

        optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        assert generator.requests[0].company_name == "Acme Inc"

    def test_company_detected_from_counter_party_failures(self):
        ground_truths = {"d1": "Beta LLC", "d2": "Gamma Corp", "d3": "Delta Inc"}
        extractor = ScriptedExtractor(default={"d1": "Acme Corp", "d2": "Acme Corp", "d3": "Delta Inc"})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(extractor, generator)
        job = make_job(
            field_key="counter_party",
            field_name="Counter Party Name",
            field_type="string",
            ground_truths=ground_truths,
            compare_config=CompareConfig("counter_party", "Counter Party Name", "near-exact-string"),
        )

        optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        assert generator.requests[0].company_name == "Acme Corp"

    def test_document_context_from_failure_analysis(self):
        analyzer = MagicMock()
        analyzer.analyze_all.return_value = [
            FailureAnalysis(
                doc_id="d1",
                doc_name="msa_acme.pdf",
                field_key="effective_date",
                field_name="Effective Date",
                ground_truth="2024-01-01",
                extracted_value=WRONG,
                failure_reason="Picked the signature date",
                suggested_fix="Prefer the opening paragraph",
                location="Signature block",
            )
        ]
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(extractor, generator, analyzer=analyzer)
        job = make_job()

        optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        context = generator.requests[0].document_context
        assert "## DOCUMENT ANALYSIS (Why Extractions Failed)" in context
        assert "Picked the signature date" in context
        details = analyzer.analyze_all.call_args[0][0]
        assert details[0].doc_id == "d1"
        assert details[0].extracted_value == WRONG

    def test_no_analysis_after_cutoff(self):
        analyzer = MagicMock()
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(extractor, generator, IterationConfig(analysis_iteration_cutoff=2), analyzer=analyzer)
        job = make_job()

        optimizer.run_iteration(job, VALID_PROMPT, [VALID_PROMPT], 3, job.compare_config)

        analyzer.analyze_all.assert_not_called()
        assert generator.requests[0].document_context is None

    def test_analysis_disabled(self):
        analyzer = MagicMock()
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(
            extractor, generator, IterationConfig(enable_failure_analysis=False), analyzer=analyzer,
        )
        job = make_job()

        optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        analyzer.analyze_all.assert_not_called()

    def test_analysis_error_is_not_fatal(self):
        analyzer = MagicMock()
        analyzer.analyze_all.side_effect = RuntimeError("analysis model down")
        extractor = ScriptedExtractor({VALID_PROMPT: {"d1": WRONG}})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(extractor, generator, analyzer=analyzer)
        job = make_job()

        result = optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        assert result.new_prompt == SECOND_PROMPT
        assert generator.requests[0].document_context is None


class TestOptimize:
    """FieldOptimizer.optimize(): the full field loop"""

    def test_converges_on_first_iteration(self):
        generator = ScriptedGenerator()
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        result = optimizer.optimize(make_job(initial_accuracy=0.5))

        assert result.converged is True
        assert result.iteration_count == 1
        assert result.final_prompt == VALID_PROMPT
        assert result.initial_prompt == VALID_PROMPT
        assert result.user_original_prompt == VALID_PROMPT
        assert result.initial_accuracy == 0.5
        assert result.final_accuracy == 1.0
        assert result.improved is True
        assert generator.requests == []

    def test_generic_start_gets_exactly_one_robust_rewrite(self):
        library_prompt = get_example_prompt_for_field("Effective Date", "date", [])
        robust = library_prompt + " Ignore dates that appear only in the recitals."
        generator = ScriptedGenerator(robust)
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        result = optimizer.optimize(make_job(field_prompt="Extract the effective date"))

        assert len(generator.requests) == 1
        assert result.converged is True
        assert result.iteration_count == 1
        assert result.initial_prompt == library_prompt
        assert result.final_prompt == robust
        assert result.user_original_prompt is None

    def test_shorter_robust_rewrite_is_discarded(self):
        library_prompt = get_example_prompt_for_field("Effective Date", "date", [])
        generator = ScriptedGenerator(VALID_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        result = optimizer.optimize(make_job(field_prompt=None))

        assert len(generator.requests) == 1
        assert result.final_prompt == library_prompt

    def test_failed_robust_rewrite_keeps_prompt(self):
        library_prompt = get_example_prompt_for_field("Effective Date", "date", [])
        generator = ScriptedGenerator(RuntimeError("provider down"))
        optimizer = make_optimizer(ScriptedExtractor(), generator)

        result = optimizer.optimize(make_job(field_prompt=""))

        assert result.converged is True
        assert result.final_prompt == library_prompt

    def test_holdout_rejection_continues_iterating(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d4": WRONG, "d5": WRONG}})
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(extractor, generator)

        result = optimizer.optimize(make_job(holdout_doc_ids=["d4", "d5"]))

        assert result.iteration_count == 2
        assert result.converged is True
        assert result.final_prompt == SECOND_PROMPT
        snapshots = result.experiment_metadata.iterations
        assert snapshots[0].train_accuracy == 1.0
        assert snapshots[0].holdout_accuracy == 0.0
        assert snapshots[1].holdout_accuracy == 1.0
        assert result.experiment_metadata.holdout_doc_ids == ["d4", "d5"]

    def test_holdout_rejected_prompt_is_never_best(self):
        script = {
            VALID_PROMPT: {"d4": WRONG, "d5": WRONG},
            SECOND_PROMPT: {"d3": WRONG},
        }
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(script), generator, IterationConfig(max_iterations=2))

        result = optimizer.optimize(make_job(holdout_doc_ids=["d4", "d5"]))

        assert result.converged is False
        assert result.iteration_count == 2
        assert result.final_accuracy == pytest.approx(2 / 3)
        assert result.final_prompt == SECOND_PROMPT
        assert result.candidate_prompt == SECOND_PROMPT
        assert result.experiment_metadata.iterations[0].holdout_accuracy == 0.0

    def test_only_holdout_rejected_iterations_fall_back_to_baseline(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d4": WRONG, "d5": WRONG}})
        optimizer = make_optimizer(extractor, ScriptedGenerator(), IterationConfig(max_iterations=1))

        result = optimizer.optimize(make_job(initial_accuracy=0.5, holdout_doc_ids=["d4", "d5"]))

        assert result.converged is False
        assert result.final_accuracy == 0.5
        assert result.final_prompt == VALID_PROMPT

    def test_iteration_result_flags_holdout_rejection(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d4": WRONG, "d5": WRONG}})
        optimizer = make_optimizer(extractor, ScriptedGenerator(SECOND_PROMPT))
        job = make_job(holdout_doc_ids=["d4", "d5"])

        result = optimizer.run_iteration(job, VALID_PROMPT, [], 1, job.compare_config)

        assert result.converged is False
        assert result.holdout_rejected is True
        assert result.new_prompt == SECOND_PROMPT

    def test_holdout_threshold_is_configurable(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d5": WRONG}})
        optimizer = make_optimizer(extractor, ScriptedGenerator(), IterationConfig(holdout_threshold=0.5))

        result = optimizer.optimize(make_job(holdout_doc_ids=["d4", "d5"]))

        assert result.converged is True
        assert result.iteration_count == 1

    def test_keeps_original_prompt_when_not_improved(self):
        script = {
            VALID_PROMPT: {"d2": WRONG, "d3": WRONG},
            SECOND_PROMPT: {"d2": WRONG, "d3": WRONG},
        }
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(script), generator, IterationConfig(max_iterations=2))

        result = optimizer.optimize(make_job(initial_accuracy=0.9))

        assert result.converged is False
        assert result.iteration_count == 2
        assert result.improved is False
        assert result.final_accuracy == pytest.approx(1 / 3)
        assert result.final_prompt == VALID_PROMPT
        # Equal accuracy: the longer prompt is the candidate
        assert result.candidate_prompt == SECOND_PROMPT
        assert len(generator.requests) == 1

    def test_best_prompt_wins_over_later_worse_prompt(self):
        script = {
            VALID_PROMPT: {"d3": WRONG},
            SECOND_PROMPT: {"d2": WRONG, "d3": WRONG},
        }
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(script), generator, IterationConfig(max_iterations=2))

        result = optimizer.optimize(make_job(initial_accuracy=0.0))

        assert result.final_accuracy == pytest.approx(2 / 3)
        assert result.final_prompt == VALID_PROMPT
        assert result.improved is True

    def test_previous_prompts_passed_to_later_rewrites(self):
        third_prompt = SECOND_PROMPT + " Do NOT return the date of the last amendment."
        script = {
            VALID_PROMPT: {"d3": WRONG},
            SECOND_PROMPT: {"d3": WRONG},
        }
        generator = ScriptedGenerator(SECOND_PROMPT, third_prompt)
        optimizer = make_optimizer(ScriptedExtractor(script), generator, IterationConfig(max_iterations=3))

        result = optimizer.optimize(make_job())

        assert generator.requests[1].previous_prompts == [VALID_PROMPT]
        assert generator.requests[1].iteration == 2
        assert result.converged is True
        assert result.final_prompt == third_prompt

    def test_failure_on_first_iteration_propagates(self):
        extractor = ScriptedExtractor({VALID_PROMPT: {"d3": WRONG}})
        optimizer = make_optimizer(extractor, ScriptedGenerator(RuntimeError("provider down")))

        with pytest.raises(RuntimeError, match="provider down"):
            optimizer.optimize(make_job())

    def test_later_failure_returns_best_so_far(self):
        script = {
            VALID_PROMPT: {"d3": WRONG},
            SECOND_PROMPT: {"d3": WRONG},
        }
        generator = ScriptedGenerator(SECOND_PROMPT, RuntimeError("provider down"))
        optimizer = make_optimizer(ScriptedExtractor(script), generator)

        result = optimizer.optimize(make_job(initial_accuracy=0.0))

        assert result.iteration_count == 2
        assert result.converged is False
        assert result.final_accuracy == pytest.approx(2 / 3)
        assert result.final_prompt == VALID_PROMPT

    def test_later_failure_without_gain_propagates(self):
        script = {
            VALID_PROMPT: {"d3": WRONG},
            SECOND_PROMPT: {"d3": WRONG},
        }
        generator = ScriptedGenerator(SECOND_PROMPT, RuntimeError("provider down"))
        optimizer = make_optimizer(ScriptedExtractor(script), generator)

        with pytest.raises(RuntimeError):
            optimizer.optimize(make_job(initial_accuracy=0.9))

    def test_baseline_from_first_iteration_when_unknown(self):
        script = {VALID_PROMPT: {"d2": WRONG, "d3": WRONG}}
        generator = ScriptedGenerator(SECOND_PROMPT)
        optimizer = make_optimizer(ScriptedExtractor(script), generator)

        result = optimizer.optimize(make_job(initial_accuracy=None))

        assert result.initial_accuracy == pytest.approx(1 / 3)
        assert result.final_accuracy == 1.0
        assert result.improved is True

    def test_field_without_ground_truth_is_improved(self):
        job = make_job(ground_truths={"d1": "", "d2": "-", "d3": " "}, initial_accuracy=None)
        optimizer = make_optimizer(ScriptedExtractor(default={}), ScriptedGenerator())

        result = optimizer.optimize(job)

        assert result.has_ground_truth is False
        assert result.improved is True
        assert result.converged is True
        assert result.initial_accuracy == 0.0
        assert result.final_accuracy == 0.0

    def test_deterministic_compare_skips_judge(self):
        judge = MagicMock()
        job = make_job(compare_config=CompareConfig("effective_date", "Effective Date", "llm-judge"))
        optimizer = make_optimizer(
            ScriptedExtractor(), ScriptedGenerator(), IterationConfig(deterministic_compare=True), judge=judge,
        )

        result = optimizer.optimize(job)

        judge.judge.assert_not_called()
        assert result.converged is True
        assert result.experiment_metadata.compare_config["compareType"] == "near-exact-string"

    def test_llm_judge_used_when_not_deterministic(self):
        judge = MagicMock()
        judge.judge.return_value = JudgeVerdict(is_match=True, reason="Same date")
        job = make_job(compare_config=CompareConfig("effective_date", "Effective Date", "llm-judge"))
        extractor = ScriptedExtractor(default={"d1": "January 1, 2024", "d2": "Feb 15 2024", "d3": "12/31/2023"})
        optimizer = make_optimizer(extractor, ScriptedGenerator(), judge=judge)

        result = optimizer.optimize(job)

        assert judge.judge.call_count == 3
        assert result.converged is True
        document_ids = sorted(call.kwargs["document_id"] for call in judge.judge.call_args_list)
        assert document_ids == ["d1", "d2", "d3"]

    def test_experiment_metadata(self):
        optimizer = make_optimizer(ScriptedExtractor(), ScriptedGenerator())
        job = make_job(holdout_doc_ids=["d4"])

        result = optimizer.optimize(job)

        metadata = result.experiment_metadata
        assert metadata.test_model == "gemini-2.5-flash"
        assert metadata.train_doc_ids == ["d1", "d2", "d3"]
        assert metadata.ground_truth_hash == ground_truth_hash(GROUND_TRUTHS, ["d1", "d2", "d3", "d4"])
        assert metadata.compare_config["compareType"] == "date-exact"
        assert metadata.iterations[0].prompt_length == len(VALID_PROMPT)
        assert result.sampled_doc_ids == ["d1", "d2", "d3", "d4"]
