"""
Field metrics

Aggregates per-document comparisons into accuracy, precision, recall and F1.
A wrong-but-present prediction counts as both a false positive and a false
negative.
"""

from __future__ import annotations

import dataclasses
import logging

from field_prompt_tuner.comparison.dates import dates_equal, is_date_like
from field_prompt_tuner.comparison.engine import compare
from field_prompt_tuner.comparison.llm_judge import SemanticJudge
from field_prompt_tuner.comparison.text_normalizers import normalize_for_metrics
from field_prompt_tuner.domain.constants import (
    CONFIDENCE_HIGH,
    CONFIDENCE_MEDIUM,
    ERROR_PREFIX,
    LLM_JUDGE,
    MATCH_DIFFERENT_FORMAT,
    MATCH_EXACT,
    MATCH_NONE,
    MATCH_NORMALIZED,
    MATCH_PARTIAL,
    NOT_PRESENT,
    PENDING_PREFIX,
    SKIPPED_PREFIXES,
)
from field_prompt_tuner.domain.value_objects import (
    CompareConfig,
    ComparisonResult,
    ConfusionCounts,
    MetricsResult,
)

logger = logging.getLogger(__name__)

EXAMPLE_CATEGORIES = ("true_positives", "false_positives", "false_negatives", "true_negatives")


def _no_match(match_type: str = "none") -> ComparisonResult:
    return ComparisonResult(False, CONFIDENCE_HIGH, match_type, MATCH_NONE)


def legacy_compare(predicted: str, actual: str) -> ComparisonResult:
    """
    Heuristic comparison used when a field has no compare configuration

    Exact, then normalized, then comma-set, then date, then containment.
    """
    if not predicted or not actual:
        return _no_match()
    if predicted.startswith(SKIPPED_PREFIXES):
        return _no_match()
    if predicted == NOT_PRESENT and actual == NOT_PRESENT:
        return ComparisonResult(True, CONFIDENCE_HIGH, "exact", MATCH_EXACT)
    if predicted == NOT_PRESENT or actual == NOT_PRESENT:
        return _no_match()
    if predicted == actual:
        return ComparisonResult(True, CONFIDENCE_HIGH, "exact", MATCH_EXACT)

    normalized_predicted = normalize_for_metrics(predicted)
    normalized_actual = normalize_for_metrics(actual)
    if not normalized_predicted or not normalized_actual:
        return _no_match()
    if normalized_predicted == normalized_actual:
        return ComparisonResult(True, CONFIDENCE_HIGH, "normalized", MATCH_NORMALIZED)

    if "," in predicted or "," in actual:
        predicted_items = sorted(i for i in (normalize_for_metrics(p) for p in predicted.split(",")) if i)
        actual_items = sorted(i for i in (normalize_for_metrics(a) for a in actual.split(",")) if i)
        if predicted_items == actual_items:
            return ComparisonResult(True, CONFIDENCE_HIGH, "normalized", MATCH_NORMALIZED)

    if is_date_like(predicted) and is_date_like(actual):
        if dates_equal(predicted, actual):
            return ComparisonResult(True, CONFIDENCE_HIGH, "date_format", MATCH_DIFFERENT_FORMAT)
        return _no_match()

    if normalized_actual in normalized_predicted or normalized_predicted in normalized_actual:
        return ComparisonResult(True, CONFIDENCE_MEDIUM, "partial", MATCH_PARTIAL)

    return _no_match()


def _as_not_present(value: str) -> str:
    if not value or normalize_for_metrics(value) == "":
        return NOT_PRESENT
    return value


def _empty_metrics(comparisons: list[ComparisonResult | None] | None = None) -> MetricsResult:
    return MetricsResult(
        accuracy=0.0,
        precision=0.0,
        recall=0.0,
        f1=0.0,
        confusion=ConfusionCounts(),
        valid_pairs=0,
        examples={category: [] for category in EXAMPLE_CATEGORIES},
        comparisons=comparisons or [],
    )


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def aggregate(
    predictions: list[str],
    ground_truths: list[str],
    config: CompareConfig | None = None,
    *,
    judge: SemanticJudge | None = None,
    document_ids: list[str] | None = None,
) -> MetricsResult:
    """
    Score a batch of predictions against ground truth

    Args:
        predictions: Extracted values, one per document
        ground_truths: Ground-truth values in the same order
        config: Field compare configuration (legacy heuristics when None)
        judge: Semantic judge for the llm-judge strategy
        document_ids: Document ids in the same order, passed to the judge

    Returns:
        MetricsResult with confusion counts, examples and per-pair comparisons

    Raises:
        ValueError: If predictions and ground truths differ in length
    """
    if len(predictions) != len(ground_truths):
        raise ValueError(
            f"Predictions and ground truths must have the same length "
            f"({len(predictions)} != {len(ground_truths)})."
        )
    if not predictions:
        return _empty_metrics()

    counts = ConfusionCounts()
    examples: dict[str, list[tuple[str, str]]] = {category: [] for category in EXAMPLE_CATEGORIES}
    comparisons: list[ComparisonResult | None] = []
    valid_pairs = 0

    for index, (raw_predicted, raw_actual) in enumerate(zip(predictions, ground_truths)):
        predicted_str = "" if raw_predicted is None else str(raw_predicted)
        if not predicted_str or predicted_str.startswith((PENDING_PREFIX, ERROR_PREFIX)):
            comparisons.append(None)
            continue

        actual = _as_not_present("" if raw_actual is None else str(raw_actual))
        predicted = _as_not_present(predicted_str)
        valid_pairs += 1
        pair = (predicted, actual)

        if actual == NOT_PRESENT:
            if predicted == NOT_PRESENT:
                counts.true_negatives += 1
                examples["true_negatives"].append(pair)
                comparisons.append(ComparisonResult(True, CONFIDENCE_HIGH, "exact", MATCH_EXACT))
            else:
                counts.false_positives += 1
                examples["false_positives"].append(pair)
                comparisons.append(_no_match())
            continue

        if config is None:
            result = legacy_compare(predicted, actual)
        else:
            pair_config = config
            if config.compare_type == LLM_JUDGE and document_ids and index < len(document_ids) and document_ids[index]:
                pair_config = dataclasses.replace(
                    config,
                    parameters={**config.parameters, "documentId": document_ids[index]},
                )
            result = compare(predicted, actual, pair_config, judge=judge)
        comparisons.append(result)

        if result.is_match:
            counts.true_positives += 1
            examples["true_positives"].append(pair)
        else:
            counts.false_positives += 1
            counts.false_negatives += 1
            examples["false_positives"].append(pair)
            examples["false_negatives"].append(pair)

    if valid_pairs == 0:
        return _empty_metrics(comparisons)

    tp = counts.true_positives
    fp = counts.false_positives
    fn = counts.false_negatives
    tn = counts.true_negatives
    accuracy = (tp + tn) / valid_pairs

    # Field correctly absent everywhere
    if tp == 0 and fp == 0 and fn == 0 and tn > 0:
        precision = recall = f1 = 1.0
    else:
        precision = tp / (tp + fp) if (tp + fp) > 0 else 0.0
        recall = tp / (tp + fn) if (tp + fn) > 0 else 0.0
        f1 = 2 * precision * recall / (precision + recall) if (precision + recall) > 0 else 0.0

    logger.debug("Aggregated %d valid pairs: tp=%d fp=%d fn=%d tn=%d", valid_pairs, tp, fp, fn, tn)

    return MetricsResult(
        accuracy=_clamp(accuracy),
        precision=_clamp(precision),
        recall=_clamp(recall),
        f1=_clamp(f1),
        confusion=counts,
        valid_pairs=valid_pairs,
        examples=examples,
        comparisons=comparisons,
    )
