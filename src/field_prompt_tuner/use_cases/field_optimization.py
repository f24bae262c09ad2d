"""
Field Optimization

Iteration controller for one field: test the current prompt on the training
documents, stop when it is accurate enough (and holds up on the holdout set),
otherwise ask for a rewrite and try again. The best prompt seen is kept
regardless of which iteration produced it.
"""

from __future__ import annotations

import dataclasses
import hashlib
import logging
import re
from dataclasses import dataclass

from field_prompt_tuner.comparison.llm_judge import SemanticJudge
from field_prompt_tuner.comparison.metrics import aggregate
from field_prompt_tuner.concurrency import run_bounded
from field_prompt_tuner.domain.constants import LLM_JUDGE, NEAR_EXACT_STRING, NOT_PRESENT
from field_prompt_tuner.domain.entities import (
    ExperimentMetadata,
    FailureExample,
    FieldFailureDetail,
    FieldJob,
    FieldResult,
    IterationResult,
    IterationSnapshot,
    SuccessExample,
)
from field_prompt_tuner.domain.value_objects import CompareConfig
from field_prompt_tuner.infrastructure.extraction import DocumentExtractor
from field_prompt_tuner.infrastructure.prompt_generation import PromptGenerator
from field_prompt_tuner.optimizer_config import IterationConfig
from field_prompt_tuner.prompts.generation_request import PromptGenerationRequest
from field_prompt_tuner.prompts.library import (
    detect_common_company,
    get_example_prompt_for_field,
    infer_document_type,
    is_counter_party_field,
    is_simple_prompt,
)
from field_prompt_tuner.prompts.validation import validate_prompt
from field_prompt_tuner.use_cases.failure_analysis import FailureAnalyzer, build_document_context

logger = logging.getLogger(__name__)

_BLANK_GROUND_TRUTH_RE = re.compile(r"^[\s\-–—]*$")


@dataclass
class OptimizationServices:
    """External collaborators used while optimizing"""
    extractor: DocumentExtractor
    prompt_generator: PromptGenerator
    judge: SemanticJudge | None = None
    analyzer: FailureAnalyzer | None = None


@dataclass
class _Measurement:
    accuracy: float | None
    failures: list[FailureExample]
    successes: list[SuccessExample]


def has_measurable_ground_truth(value: str | None) -> bool:
    """False for missing, blank or dash-only ground truth"""
    return value is not None and not _BLANK_GROUND_TRUTH_RE.match(str(value))


def effective_compare_config(config: CompareConfig | None, deterministic: bool) -> CompareConfig | None:
    """Compare config used while optimizing; llm-judge becomes near-exact in deterministic mode"""
    if config is not None and deterministic and config.compare_type == LLM_JUDGE:
        return dataclasses.replace(config, compare_type=NEAR_EXACT_STRING)
    return config


def ground_truth_hash(ground_truths: dict[str, str], doc_ids: list[str]) -> str:
    """SHA-256 of the ground truth values used, for change detection"""
    payload = "\n".join(f"{doc_id}:{ground_truths.get(doc_id, '')}" for doc_id in sorted(doc_ids))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _pct(value: float | None) -> str:
    return "n/a" if value is None else f"{value * 100:.1f}%"


class FieldOptimizer:
    """
    Optimizes the extraction prompt of a single field

    Each instance owns its own prompt history and best-accuracy tracker, so
    separate fields can run concurrently with separate instances.

    Args:
        services: Extraction, prompt generation, judge and analysis collaborators
        config: Iteration settings
        extraction_concurrency: Maximum documents extracted at once
        test_model: Name of the model under test, recorded in the metadata
    """

    def __init__(
        self,
        services: OptimizationServices,
        config: IterationConfig | None = None,
        extraction_concurrency: int = 5,
        test_model: str = "",
    ):
        self.services = services
        self.config = config or IterationConfig()
        self.extraction_concurrency = extraction_concurrency
        self.test_model = test_model

    # ------------------------------------------------------------------
    # Measurement
    # ------------------------------------------------------------------

    def _extract_one(self, job: FieldJob, prompt: str, doc_id: str) -> str:
        try:
            result = self.services.extractor.extract(
                doc_id, job.field_key, job.field_type, prompt, job.options or None,
            )
        except Exception as e:
            logger.error("Extraction failed for %s (%s): %s", doc_id, job.field_key, e)
            return NOT_PRESENT
        if not result.success:
            logger.error("Extraction failed for %s (%s): %s", doc_id, job.field_key, result.error)
            return NOT_PRESENT
        return result.value or NOT_PRESENT

    def measure(
        self,
        job: FieldJob,
        prompt: str,
        doc_ids: list[str],
        compare_config: CompareConfig | None,
    ) -> _Measurement:
        """
        Extract the field from the documents and score against ground truth

        Only documents with measurable ground truth count; accuracy is None
        when there are none.
        """
        predictions = run_bounded(
            doc_ids,
            self.extraction_concurrency,
            lambda doc_id: self._extract_one(job, prompt, doc_id),
        )

        measured = [
            (doc_id, predicted, job.ground_truths[doc_id])
            for doc_id, predicted in zip(doc_ids, predictions)
            if has_measurable_ground_truth(job.ground_truths.get(doc_id))
        ]
        if not measured:
            return _Measurement(accuracy=None, failures=[], successes=[])

        ids = [doc_id for doc_id, _, _ in measured]
        metrics = aggregate(
            [predicted for _, predicted, _ in measured],
            [expected for _, _, expected in measured],
            compare_config,
            judge=self.services.judge,
            document_ids=ids,
        )

        failures: list[FailureExample] = []
        successes: list[SuccessExample] = []
        for (doc_id, predicted, expected), comparison in zip(measured, metrics.comparisons):
            doc_name = job.doc_names.get(doc_id, doc_id)
            logger.debug("  %s: extracted %r, expected %r", doc_id, predicted, expected)
            if comparison is not None and comparison.is_match:
                successes.append(SuccessExample(doc_id=doc_id, doc_name=doc_name, value=predicted))
            else:
                reason = ""
                if comparison is not None:
                    reason = comparison.details or comparison.match_classification
                failures.append(FailureExample(
                    doc_id=doc_id,
                    doc_name=doc_name,
                    predicted=predicted,
                    expected=expected,
                    reason=reason,
                ))
        return _Measurement(accuracy=metrics.accuracy, failures=failures, successes=successes)

    # ------------------------------------------------------------------
    # Rewriting
    # ------------------------------------------------------------------

    def _company_name(self, job: FieldJob, failures: list[FailureExample]) -> str | None:
        if self.config.company_name:
            return self.config.company_name
        if is_counter_party_field(job.field_name):
            return detect_common_company(failures)
        return None

    def _document_context(self, job: FieldJob, failures: list[FailureExample], iteration: int) -> str | None:
        """Failure analysis for early iterations; None when disabled or on any error"""
        analyzer = self.services.analyzer
        if (
            analyzer is None
            or not self.config.enable_failure_analysis
            or iteration > self.config.analysis_iteration_cutoff
            or not failures
        ):
            return None
        try:
            details = [
                FieldFailureDetail(
                    doc_id=f.doc_id,
                    doc_name=f.doc_name,
                    ground_truth=f.expected,
                    extracted_value=f.predicted,
                    comparison_reason=f.reason,
                )
                for f in failures
            ]
            analyses = analyzer.analyze_all(details, job.field_key, job.field_name)
            return build_document_context(analyses) or None
        except Exception as e:
            logger.warning("Failure analysis skipped for '%s': %s", job.field_name, e)
            return None

    def _library_prompt(self, job: FieldJob, company: str | None) -> str:
        return get_example_prompt_for_field(job.field_name, job.field_type, job.options, company)

    def rewrite(self, job: FieldJob, request: PromptGenerationRequest) -> str:
        """
        Request a new prompt and make sure it passes validation

        Invalid prompts get up to max_repair_attempts repair requests; if none
        passes, the library example for the field is returned instead.

        Raises:
            Exception: If the initial generation call fails
        """
        candidate = self.services.prompt_generator.generate(request).new_prompt
        validation = validate_prompt(candidate)

        attempt = 0
        while not validation.is_valid and attempt < self.config.max_repair_attempts:
            attempt += 1
            logger.warning(
                "Generated prompt for '%s' failed validation (%s), repair attempt %d/%d",
                job.field_name, "; ".join(validation.errors), attempt, self.config.max_repair_attempts,
            )
            repair_request = dataclasses.replace(request, repair_of=candidate, validation=validation)
            try:
                candidate = self.services.prompt_generator.generate(repair_request).new_prompt
            except Exception as e:
                logger.warning("Repair request for '%s' failed: %s", job.field_name, e)
                break
            validation = validate_prompt(candidate)

        if not validation.is_valid:
            logger.warning("Falling back to library prompt for '%s'", job.field_name)
            return self._library_prompt(job, request.company_name)
        return candidate

    def _build_request(
        self,
        job: FieldJob,
        current_prompt: str,
        previous_prompts: list[str],
        measurement: _Measurement,
        iteration: int,
    ) -> PromptGenerationRequest:
        return PromptGenerationRequest(
            field_name=job.field_name,
            field_type=job.field_type,
            current_prompt=current_prompt,
            previous_prompts=list(previous_prompts),
            failure_examples=measurement.failures,
            success_examples=measurement.successes,
            iteration=iteration,
            max_iterations=self.config.max_iterations,
            options=list(job.options),
            company_name=self._company_name(job, measurement.failures),
            document_type=infer_document_type(job.template_key),
            template_key=job.template_key or None,
            custom_instructions=self.config.custom_instructions or None,
            document_context=self._document_context(job, measurement.failures, iteration),
        )

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def run_iteration(
        self,
        job: FieldJob,
        current_prompt: str,
        previous_prompts: list[str],
        iteration: int,
        compare_config: CompareConfig | None,
        needs_robust_rewrite: bool = False,
    ) -> IterationResult:
        """
        Test the current prompt and, unless it converged, produce the next one

        Args:
            job: Field being optimized
            current_prompt: Prompt under test
            previous_prompts: Prompts already tried
            iteration: 1-based iteration number
            compare_config: Effective compare config
            needs_robust_rewrite: Ask for one rewrite even on convergence

        Returns:
            IterationResult whose new_prompt is the prompt to adopt (converged)
            or to test next (not converged)
        """
        logger.info("[%d/%d] Testing field '%s' on %d documents",
                    iteration, self.config.max_iterations, job.field_name, len(job.train_doc_ids))

        measurement = self.measure(job, current_prompt, job.train_doc_ids, compare_config)
        accuracy = measurement.accuracy
        logger.info("  Train accuracy: %s", _pct(accuracy))

        converged = accuracy is None or accuracy >= self.config.target_accuracy
        holdout_accuracy = None
        holdout_rejected = False

        if converged and accuracy is not None and job.holdout_doc_ids:
            holdout_accuracy = self.measure(job, current_prompt, job.holdout_doc_ids, compare_config).accuracy
            logger.info("  Holdout accuracy: %s", _pct(holdout_accuracy))
            if holdout_accuracy is not None and holdout_accuracy < self.config.holdout_threshold:
                logger.warning(
                    "  Convergence rejected: holdout accuracy %s is below %s",
                    _pct(holdout_accuracy), _pct(self.config.holdout_threshold),
                )
                converged = False
                holdout_rejected = True

        if converged:
            new_prompt = current_prompt
            if needs_robust_rewrite:
                new_prompt = self._robust_rewrite(job, current_prompt, previous_prompts, measurement, iteration)
            else:
                logger.info("  Converged")
            return IterationResult(
                new_prompt=new_prompt,
                accuracy=accuracy,
                converged=True,
                failure_examples=measurement.failures,
                holdout_accuracy=holdout_accuracy,
            )

        new_prompt = current_prompt
        if iteration < self.config.max_iterations:
            logger.info("  Generating improved prompt")
            request = self._build_request(job, current_prompt, previous_prompts, measurement, iteration)
            new_prompt = self.rewrite(job, request)

        return IterationResult(
            new_prompt=new_prompt,
            accuracy=accuracy,
            converged=False,
            failure_examples=measurement.failures,
            holdout_accuracy=holdout_accuracy,
            holdout_rejected=holdout_rejected,
        )

    def _robust_rewrite(
        self,
        job: FieldJob,
        current_prompt: str,
        previous_prompts: list[str],
        measurement: _Measurement,
        iteration: int,
    ) -> str:
        """One rewrite of a converged but simple prompt; the longer prompt wins"""
        logger.info("  Converged with a simple prompt (%d chars), requesting a robust rewrite", len(current_prompt))
        try:
            request = self._build_request(job, current_prompt, previous_prompts, measurement, iteration)
            candidate = self.rewrite(job, request)
        except Exception as e:
            logger.warning("  Robust rewrite failed, keeping the current prompt: %s", e)
            return current_prompt
        if len(candidate) > len(current_prompt):
            logger.info("  Using generated robust prompt (%d chars)", len(candidate))
            return candidate
        return current_prompt

    # ------------------------------------------------------------------
    # Field loop
    # ------------------------------------------------------------------

    def optimize(self, job: FieldJob) -> FieldResult:
        """
        Run the iteration loop for one field

        Args:
            job: Field to optimize

        Returns:
            FieldResult; final_prompt is the original prompt unless the best
            prompt found is at least as accurate

        Raises:
            Exception: An iteration failure when no earlier iteration beat the baseline
        """
        cfg = self.config
        supplied_prompt = (job.field_prompt or "").strip()
        started_generic = is_simple_prompt(supplied_prompt)
        if started_generic:
            current_prompt = self._library_prompt(job, cfg.company_name or None)
            user_original_prompt = None
            logger.info("Field '%s': supplied prompt is missing or generic, starting from the library example",
                        job.field_name)
        else:
            current_prompt = supplied_prompt
            user_original_prompt = supplied_prompt

        initial_prompt = current_prompt
        compare_config = effective_compare_config(job.compare_config, cfg.deterministic_compare)
        has_ground_truth = any(has_measurable_ground_truth(job.ground_truths.get(d)) for d in job.sampled_doc_ids)

        baseline = job.initial_accuracy
        previous_prompts: list[str] = []
        # -1 so the first measured accuracy always becomes the best
        best_accuracy = -1.0
        best_prompt = current_prompt
        converged = False
        iteration_count = 0
        snapshots: list[IterationSnapshot] = []

        logger.info("Optimizing field '%s' (initial accuracy %s)", job.field_name, _pct(baseline))

        for iteration in range(1, cfg.max_iterations + 1):
            iteration_count = iteration
            try:
                result = self.run_iteration(
                    job,
                    current_prompt,
                    previous_prompts,
                    iteration,
                    compare_config,
                    needs_robust_rewrite=(
                        is_simple_prompt(current_prompt)
                        or (started_generic and current_prompt == initial_prompt)
                    ),
                )
            except Exception as e:
                logger.error("Iteration %d of '%s' failed: %s", iteration, job.field_name, e)
                if iteration > 1 and baseline is not None and best_accuracy > baseline:
                    logger.warning("Using best prompt from an earlier iteration (%s)", _pct(best_accuracy))
                    break
                raise

            if baseline is None:
                baseline = result.accuracy if result.accuracy is not None else 0.0

            snapshots.append(IterationSnapshot(
                iteration=iteration,
                train_accuracy=result.accuracy,
                holdout_accuracy=result.holdout_accuracy,
                prompt_length=len(current_prompt),
            ))

            if result.converged:
                converged = True
                if result.accuracy is not None:
                    best_accuracy = result.accuracy
                best_prompt = result.new_prompt
                break

            accuracy = result.accuracy if result.accuracy is not None else 0.0
            if result.holdout_rejected:
                # Train score does not generalize; never a best-prompt candidate
                logger.info("  Not tracked as best: rejected on holdout")
            elif accuracy > best_accuracy:
                best_accuracy = accuracy
                best_prompt = current_prompt
                logger.info("  New best accuracy: %s", _pct(best_accuracy))
            elif accuracy == best_accuracy and len(current_prompt) > len(best_prompt):
                best_prompt = current_prompt
                logger.info("  Same accuracy with a more detailed prompt (%d chars)", len(best_prompt))

            if result.new_prompt != current_prompt:
                previous_prompts.append(current_prompt)
                current_prompt = result.new_prompt
        else:
            logger.info("Max iterations reached for '%s', best accuracy %s", job.field_name, _pct(best_accuracy))

        initial_accuracy = baseline if baseline is not None else 0.0
        final_accuracy = best_accuracy if best_accuracy >= 0 else initial_accuracy
        improved = not has_ground_truth or final_accuracy >= initial_accuracy
        final_prompt = best_prompt if improved else initial_prompt

        if improved:
            logger.info("Field '%s': %s -> %s", job.field_name, _pct(initial_accuracy), _pct(final_accuracy))
        else:
            logger.warning(
                "Field '%s': best prompt scored %s, below the original %s; keeping the original prompt",
                job.field_name, _pct(final_accuracy), _pct(initial_accuracy),
            )

        metadata = ExperimentMetadata(
            test_model=self.test_model,
            compare_config=compare_config.to_dict() if compare_config else None,
            train_doc_ids=list(job.train_doc_ids),
            holdout_doc_ids=list(job.holdout_doc_ids),
            ground_truth_hash=ground_truth_hash(job.ground_truths, job.sampled_doc_ids),
            iterations=snapshots,
        )

        return FieldResult(
            field_key=job.field_key,
            field_name=job.field_name,
            initial_accuracy=initial_accuracy,
            final_accuracy=final_accuracy,
            iteration_count=iteration_count,
            initial_prompt=initial_prompt,
            final_prompt=final_prompt,
            converged=converged,
            improved=improved,
            sampled_doc_ids=job.sampled_doc_ids,
            experiment_metadata=metadata,
            user_original_prompt=user_original_prompt,
            has_ground_truth=has_ground_truth,
            candidate_prompt=best_prompt,
        )
