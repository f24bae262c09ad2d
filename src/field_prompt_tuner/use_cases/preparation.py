"""
Work-plan Preparation

Turns accuracy data into one FieldJob per failing field: picks the reference
model, finds the fields below target, samples documents and builds the
ground-truth maps.
"""

from __future__ import annotations

import logging
import uuid

from field_prompt_tuner.accuracy_data import AccuracyData, FieldDefinition
from field_prompt_tuner.domain.constants import DEFAULT_COMPARE_TYPES_BY_FIELD_TYPE
from field_prompt_tuner.domain.entities import FieldJob, SamplingResult, WorkPlan
from field_prompt_tuner.domain.value_objects import CompareConfig
from field_prompt_tuner.optimizer_config import OptimizerConfig
from field_prompt_tuner.sampling import build_failure_map, select_docs

logger = logging.getLogger(__name__)


class NoComparisonDataError(ValueError):
    """Raised when the accuracy data has no recorded comparisons to learn from"""

    def __init__(self, message: str = "No comparison results found. Please run comparison first."):
        super().__init__(message)


def compared_models(accuracy_data: AccuracyData) -> list[str]:
    """Models with at least one recorded comparison, in first-seen order"""
    models: dict[str, None] = {}
    for document in accuracy_data.results:
        for per_model in document.comparison_results.values():
            for model in per_model:
                models.setdefault(model, None)
    return list(models)


def default_compare_config(field_def: FieldDefinition) -> CompareConfig | None:
    """Compare strategy implied by the field type, None for unknown types"""
    compare_type = DEFAULT_COMPARE_TYPES_BY_FIELD_TYPE.get(field_def.type)
    if compare_type is None:
        return None
    return CompareConfig(field_key=field_def.key, field_name=field_def.name, compare_type=compare_type)


def _empty_plan(run_id: str, accuracy_data: AccuracyData, test_model: str, reference_model: str) -> WorkPlan:
    return WorkPlan(
        run_id=run_id,
        template_key=accuracy_data.template_key,
        test_model=test_model,
        reference_model=reference_model,
        sampling=None,
    )


def prepare_work_plan(
    accuracy_data: AccuracyData,
    config: OptimizerConfig,
    field_keys: list[str] | None = None,
) -> WorkPlan:
    """
    Build the work plan for an optimization run

    Args:
        accuracy_data: Accuracy data with recorded comparisons
        config: Optimizer configuration
        field_keys: Restrict optimization to these fields (all fields when None)

    Returns:
        WorkPlan (with no jobs when every field already meets the target)

    Raises:
        NoComparisonDataError: If no model has recorded comparisons
    """
    run_id = str(uuid.uuid4())
    test_model = config.models.test_model
    logger.info("Preparing work plan (run id %s, test model %s)", run_id, test_model)

    models = compared_models(accuracy_data)
    if not models:
        raise NoComparisonDataError()

    reference_model = test_model if test_model in models else models[0]
    logger.info("Reference model for accuracy: %s", reference_model)

    target = config.iteration.target_accuracy
    candidates = accuracy_data.fields
    if field_keys is not None:
        wanted = set(field_keys)
        candidates = [f for f in candidates if f.key in wanted]

    initial_accuracies: dict[str, float] = {}
    failing_fields: list[FieldDefinition] = []
    for field_def in candidates:
        averages = accuracy_data.averages.get(field_def.key, {}).get(reference_model)
        accuracy = averages.accuracy if averages is not None else 0.0
        initial_accuracies[field_def.key] = accuracy
        if accuracy < target:
            failing_fields.append(field_def)

    if not failing_fields:
        logger.info("All fields already meet the target accuracy on %s", reference_model)
        return _empty_plan(run_id, accuracy_data, test_model, reference_model)

    failure_map = build_failure_map(accuracy_data, [f.key for f in failing_fields], reference_model)
    fields_with_failures = [f for f in failing_fields if failure_map.get(f.key)]
    if not fields_with_failures:
        logger.warning("No failing field has a recorded failure on %s", reference_model)
        return _empty_plan(run_id, accuracy_data, test_model, reference_model)

    failure_map = {f.key: failure_map[f.key] for f in fields_with_failures}
    sampling: SamplingResult = select_docs(
        failure_map,
        config.sampling.max_docs,
        all_doc_ids=accuracy_data.document_ids,
        holdout_ratio=config.sampling.holdout_ratio,
    )

    documents = {d.id: d for d in accuracy_data.results}
    doc_names = {
        doc_id: documents[doc_id].file_name if doc_id in documents else doc_id
        for doc_id in sampling.selected_doc_ids
    }

    jobs: list[FieldJob] = []
    for field_def in fields_with_failures:
        ground_truths = {
            doc_id: documents[doc_id].ground_truth(field_def.key)
            for doc_id in sampling.field_to_doc_ids[field_def.key]
            if doc_id in documents
        }
        compare_config = accuracy_data.compare_configs.get(field_def.key) or default_compare_config(field_def)
        jobs.append(FieldJob(
            field_key=field_def.key,
            field_name=field_def.name,
            field_type=field_def.type,
            field_prompt=field_def.prompt,
            ground_truths=ground_truths,
            train_doc_ids=list(sampling.train_doc_ids),
            holdout_doc_ids=list(sampling.holdout_doc_ids),
            initial_accuracy=initial_accuracies[field_def.key],
            compare_config=compare_config,
            options=list(field_def.options),
            template_key=accuracy_data.template_key,
            doc_names=doc_names,
            failures=list(failure_map[field_def.key]),
        ))

    logger.info("Work plan ready: %d fields on %d documents", len(jobs), len(sampling.selected_docs))
    return WorkPlan(
        run_id=run_id,
        template_key=accuracy_data.template_key,
        test_model=test_model,
        reference_model=reference_model,
        sampling=sampling,
        jobs=jobs,
        doc_names=doc_names,
    )
