"""
Compare engine

Routes a (predicted, ground truth) pair to the configured compare strategy
after handling empty, "Not Present" and pending/error values.
"""

from __future__ import annotations

import dataclasses
import logging

from field_prompt_tuner.comparison.llm_judge import (
    DEFAULT_COMPARISON_PROMPT,
    SemanticJudge,
)
from field_prompt_tuner.comparison.strategies import (
    STRATEGIES,
    compare_boolean,
    compare_near_exact_string,
)
from field_prompt_tuner.domain.constants import (
    BOOLEAN,
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    LLM_JUDGE,
    MATCH_EXACT,
    MATCH_NONE,
    MATCH_NORMALIZED,
    NOT_PRESENT,
    SKIPPED_PREFIXES,
)
from field_prompt_tuner.domain.value_objects import CompareConfig, ComparisonResult

logger = logging.getLogger(__name__)


def _prelude(extracted: str, ground_truth: str, config: CompareConfig) -> ComparisonResult | None:
    """Special cases evaluated before strategy dispatch, in priority order"""
    compare_type = config.compare_type

    if not extracted and not ground_truth:
        return ComparisonResult(True, CONFIDENCE_HIGH, compare_type, MATCH_EXACT)

    if extracted == NOT_PRESENT and ground_truth == NOT_PRESENT:
        return ComparisonResult(True, CONFIDENCE_HIGH, compare_type, MATCH_EXACT)

    # An absent yes/no clause means "No"
    if compare_type == BOOLEAN:
        return compare_boolean(
            "No" if extracted == NOT_PRESENT else extracted,
            "No" if ground_truth == NOT_PRESENT else ground_truth,
        )

    if extracted == NOT_PRESENT or ground_truth == NOT_PRESENT:
        return ComparisonResult(False, CONFIDENCE_HIGH, compare_type, MATCH_NONE)

    if extracted.startswith(SKIPPED_PREFIXES):
        return ComparisonResult(
            False, CONFIDENCE_HIGH, compare_type, MATCH_NONE,
            details="Skipped pending/error state",
        )

    return None


def _unknown_type(config: CompareConfig) -> ComparisonResult:
    logger.error("Unknown compare type: %s", config.compare_type)
    return ComparisonResult(
        is_match=False,
        confidence=CONFIDENCE_LOW,
        match_type=config.compare_type,
        match_classification=MATCH_NONE,
        error=f"Unknown compare type: {config.compare_type}",
    )


def _failed(config: CompareConfig, error: Exception) -> ComparisonResult:
    logger.error("Comparison failed for compare type %s: %s", config.compare_type, error)
    return ComparisonResult(
        is_match=False,
        confidence=CONFIDENCE_LOW,
        match_type=config.compare_type,
        match_classification=MATCH_NONE,
        error=str(error),
    )


def _near_exact_fallback(extracted: str, ground_truth: str, details: str, error: str | None = None) -> ComparisonResult:
    fallback = compare_near_exact_string(extracted, ground_truth)
    return dataclasses.replace(fallback, match_type=LLM_JUDGE, details=details, error=error)


def compare_llm_judge(
    extracted: str,
    ground_truth: str,
    config: CompareConfig,
    judge: SemanticJudge | None,
) -> ComparisonResult:
    """
    Semantic comparison through the judge collaborator

    Judge errors, exceptions and a missing judge all fall back to the
    near-exact strategy, recorded in details.
    """
    if judge is None:
        logger.warning("No semantic judge configured for %s, using near-exact fallback", config.field_key)
        return _near_exact_fallback(
            extracted, ground_truth,
            "No semantic judge configured, used near-exact fallback",
        )

    comparison_prompt = config.parameters.get("comparisonPrompt") or DEFAULT_COMPARISON_PROMPT
    try:
        verdict = judge.judge(
            extracted,
            ground_truth,
            comparison_prompt,
            document_id=config.parameters.get("documentId"),
        )
    except Exception as e:
        logger.warning("Semantic judge failed, using near-exact fallback: %s", e)
        return _near_exact_fallback(
            extracted, ground_truth,
            "LLM comparison failed, used near-exact fallback",
            error=str(e),
        )

    if verdict.error:
        logger.warning("Semantic judge returned an error, using near-exact fallback: %s", verdict.error)
        return _near_exact_fallback(
            extracted, ground_truth,
            f"LLM error (fallback used): {verdict.error}",
            error=verdict.error,
        )

    return ComparisonResult(
        is_match=verdict.is_match,
        confidence=CONFIDENCE_MEDIUM,
        match_type=LLM_JUDGE,
        match_classification=MATCH_NORMALIZED if verdict.is_match else MATCH_NONE,
        details=verdict.reason,
    )


def compare(
    predicted: str,
    ground_truth: str,
    config: CompareConfig,
    judge: SemanticJudge | None = None,
) -> ComparisonResult:
    """
    Compare one (predicted, ground truth) pair under a field's compare config

    Args:
        predicted: Extracted value
        ground_truth: Human-verified value
        config: Field compare configuration
        judge: Semantic judge used by the llm-judge strategy

    Returns:
        ComparisonResult
    """
    special = _prelude(predicted, ground_truth, config)
    if special is not None:
        return special

    try:
        if config.compare_type == LLM_JUDGE:
            return compare_llm_judge(predicted, ground_truth, config, judge)
        strategy = STRATEGIES.get(config.compare_type)
        if strategy is None:
            return _unknown_type(config)
        return strategy(predicted, ground_truth, config)
    except Exception as e:
        return _failed(config, e)


def compare_preview(predicted: str, ground_truth: str, config: CompareConfig) -> ComparisonResult:
    """
    Comparison that never calls the semantic judge

    Used where an external call is not possible; llm-judge fields are shown
    with the near-exact result.
    """
    special = _prelude(predicted, ground_truth, config)
    if special is not None:
        return special

    try:
        if config.compare_type == LLM_JUDGE:
            return _near_exact_fallback(predicted, ground_truth, "UI preview (actual metrics use LLM)")
        strategy = STRATEGIES.get(config.compare_type)
        if strategy is None:
            return _unknown_type(config)
        return strategy(predicted, ground_truth, config)
    except Exception as e:
        return _failed(config, e)
