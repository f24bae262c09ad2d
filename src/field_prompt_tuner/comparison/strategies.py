"""
Deterministic compare strategies

Each strategy takes (extracted, ground_truth, config) and returns a
ComparisonResult. The semantic llm-judge strategy lives in engine.py.
"""

from __future__ import annotations

import re
from typing import Callable

from field_prompt_tuner.comparison.dates import parse_flexible_date
from field_prompt_tuner.comparison.text_normalizers import (
    detect_separator,
    extract_core_names,
    normalize_text,
    parse_list,
)
from field_prompt_tuner.domain.constants import (
    BOOLEAN,
    CONFIDENCE_HIGH,
    CONFIDENCE_MEDIUM,
    DATE_EXACT,
    EXACT_NUMBER,
    EXACT_STRING,
    LIST_ORDERED,
    LIST_OVERLAP_THRESHOLD,
    LIST_UNORDERED,
    MATCH_DIFFERENT_FORMAT,
    MATCH_EXACT,
    MATCH_NONE,
    MATCH_NORMALIZED,
    MATCH_PARTIAL,
    MIN_CONTAINMENT_LENGTH,
    NEAR_EXACT_STRING,
)
from field_prompt_tuner.domain.value_objects import CompareConfig, ComparisonResult

_CURRENCY_RE = re.compile(r"[$€£¥,\s]")
_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_TRUE_VALUES = {"true", "yes", "y", "1", "✓", "checked"}
_FALSE_VALUES = {"false", "no", "n", "0", "unchecked"}


def _items_overlap(a: str, b: str) -> bool:
    if a == b or a in b or b in a:
        return True
    core_a = extract_core_names(a)
    return bool(core_a) and core_a == extract_core_names(b)


def compare_exact_string(extracted: str, ground_truth: str, config: CompareConfig | None = None) -> ComparisonResult:
    """Case-sensitive character-for-character equality"""
    is_match = extracted == ground_truth
    return ComparisonResult(
        is_match=is_match,
        confidence=CONFIDENCE_HIGH,
        match_type=EXACT_STRING,
        match_classification=MATCH_EXACT if is_match else MATCH_NONE,
    )


def _multi_value_match(
    multi_value: str,
    single_value: str,
    normalized_single: str,
    found_detail: str,
    partial_detail: str,
) -> ComparisonResult | None:
    separator = "|" if "|" in multi_value else ","
    if separator not in multi_value:
        return None

    items = parse_list(multi_value, separator)
    if normalized_single in items:
        return ComparisonResult(
            is_match=True,
            confidence=CONFIDENCE_HIGH,
            match_type=NEAR_EXACT_STRING,
            match_classification=MATCH_PARTIAL,
            details=found_detail,
        )

    single_core = extract_core_names(single_value)
    for item in items:
        item_core = extract_core_names(item)
        if item in normalized_single or normalized_single in item or (item_core and item_core == single_core):
            return ComparisonResult(
                is_match=True,
                confidence=CONFIDENCE_MEDIUM,
                match_type=NEAR_EXACT_STRING,
                match_classification=MATCH_PARTIAL,
                details=partial_detail,
            )
    return None


def compare_near_exact_string(
    extracted: str,
    ground_truth: str,
    config: CompareConfig | None = None,
) -> ComparisonResult:
    """
    Normalized comparison with multi-value and containment leniency

    Order of checks:
      1. Normalized equality (high confidence)
      2. Ground truth matches an item of a multi-value extraction
      3. Extraction matches an item of a multi-value ground truth
      4. One normalized value contains the other (medium confidence)
    """
    normalized_extracted = normalize_text(extracted)
    normalized_ground_truth = normalize_text(ground_truth)

    if normalized_extracted == normalized_ground_truth:
        return ComparisonResult(
            is_match=True,
            confidence=CONFIDENCE_HIGH,
            match_type=NEAR_EXACT_STRING,
            match_classification=MATCH_NORMALIZED,
        )

    result = _multi_value_match(
        extracted, ground_truth, normalized_ground_truth,
        "Ground truth found in multi-value extracted field",
        "Partial match found in multi-value extracted field",
    )
    if result is not None:
        return result

    result = _multi_value_match(
        ground_truth, extracted, normalized_extracted,
        "Extracted value found in multi-value ground truth",
        "Partial match found in multi-value ground truth",
    )
    if result is not None:
        return result

    if (
        len(normalized_extracted) >= MIN_CONTAINMENT_LENGTH
        and len(normalized_ground_truth) >= MIN_CONTAINMENT_LENGTH
    ):
        if normalized_ground_truth in normalized_extracted:
            details = "Ground truth is contained in extracted value"
        elif normalized_extracted in normalized_ground_truth:
            details = "Extracted value is contained in ground truth"
        else:
            details = None
        if details:
            return ComparisonResult(
                is_match=True,
                confidence=CONFIDENCE_MEDIUM,
                match_type=NEAR_EXACT_STRING,
                match_classification=MATCH_PARTIAL,
                details=details,
            )

    return ComparisonResult(
        is_match=False,
        confidence=CONFIDENCE_HIGH,
        match_type=NEAR_EXACT_STRING,
        match_classification=MATCH_NONE,
    )


def parse_number(text: str) -> float | None:
    """Parse the leading number of a string after dropping currency symbols and commas"""
    if not text:
        return None
    match = _LEADING_NUMBER_RE.match(_CURRENCY_RE.sub("", text))
    if not match:
        return None
    return float(match.group(0))


def compare_exact_number(extracted: str, ground_truth: str, config: CompareConfig | None = None) -> ComparisonResult:
    """Numeric equality; different-format when the strings differ"""
    extracted_number = parse_number(extracted)
    ground_truth_number = parse_number(ground_truth)

    if extracted_number is None or ground_truth_number is None:
        return ComparisonResult(
            is_match=False,
            confidence=CONFIDENCE_HIGH,
            match_type=EXACT_NUMBER,
            match_classification=MATCH_NONE,
            details="Failed to parse as number",
        )

    is_match = extracted_number == ground_truth_number
    if not is_match:
        classification = MATCH_NONE
    elif extracted.strip() != ground_truth.strip():
        classification = MATCH_DIFFERENT_FORMAT
    else:
        classification = MATCH_EXACT
    return ComparisonResult(
        is_match=is_match,
        confidence=CONFIDENCE_HIGH,
        match_type=EXACT_NUMBER,
        match_classification=classification,
    )


def compare_date_exact(extracted: str, ground_truth: str, config: CompareConfig | None = None) -> ComparisonResult:
    """Calendar-day equality across date layouts"""
    extracted_date = parse_flexible_date(extracted)
    ground_truth_date = parse_flexible_date(ground_truth)

    if extracted_date is None or ground_truth_date is None:
        return ComparisonResult(
            is_match=False,
            confidence=CONFIDENCE_HIGH,
            match_type=DATE_EXACT,
            match_classification=MATCH_NONE,
            details="Failed to parse as date",
        )

    is_match = extracted_date == ground_truth_date
    if not is_match:
        classification = MATCH_NONE
    elif extracted.strip().lower() != ground_truth.strip().lower():
        classification = MATCH_DIFFERENT_FORMAT
    else:
        classification = MATCH_EXACT
    return ComparisonResult(
        is_match=is_match,
        confidence=CONFIDENCE_HIGH,
        match_type=DATE_EXACT,
        match_classification=classification,
    )


def parse_boolean(text: str) -> bool | None:
    if not text:
        return None
    normalized = text.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def compare_boolean(extracted: str, ground_truth: str, config: CompareConfig | None = None) -> ComparisonResult:
    """Yes/no comparison; unparseable values never match"""
    extracted_bool = parse_boolean(extracted)
    ground_truth_bool = parse_boolean(ground_truth)

    if extracted_bool is None or ground_truth_bool is None:
        return ComparisonResult(
            is_match=False,
            confidence=CONFIDENCE_HIGH,
            match_type=BOOLEAN,
            match_classification=MATCH_NONE,
            details="Failed to parse as boolean",
        )

    is_match = extracted_bool == ground_truth_bool
    if not is_match:
        classification = MATCH_NONE
    elif extracted.strip().lower() != ground_truth.strip().lower():
        classification = MATCH_DIFFERENT_FORMAT
    else:
        classification = MATCH_EXACT
    return ComparisonResult(
        is_match=is_match,
        confidence=CONFIDENCE_HIGH,
        match_type=BOOLEAN,
        match_classification=classification,
    )


def _separator(extracted: str, ground_truth: str, config: CompareConfig | None) -> str:
    if config is not None and config.parameters.get("separator"):
        return config.parameters["separator"]
    return detect_separator(extracted, ground_truth)


def compare_list_unordered(extracted: str, ground_truth: str, config: CompareConfig | None = None) -> ComparisonResult:
    """
    Order-insensitive list comparison

    Identical item sets match with high confidence. Otherwise a list matches
    partially when at least LIST_OVERLAP_THRESHOLD of the items on either side
    find a counterpart (equal, contained, or same core name).
    """
    separator = _separator(extracted, ground_truth, config)
    extracted_items = parse_list(extracted, separator)
    ground_truth_items = parse_list(ground_truth, separator)

    if sorted(extracted_items) == sorted(ground_truth_items):
        order_different = extracted_items != ground_truth_items
        return ComparisonResult(
            is_match=True,
            confidence=CONFIDENCE_HIGH,
            match_type=LIST_UNORDERED,
            match_classification=MATCH_DIFFERENT_FORMAT if order_different else MATCH_NORMALIZED,
            details="Same items in different order" if order_different else None,
        )

    matched_ground_truth = sum(
        1 for gt_item in ground_truth_items
        if any(_items_overlap(ext_item, gt_item) for ext_item in extracted_items)
    )
    matched_extracted = sum(
        1 for ext_item in extracted_items
        if any(_items_overlap(gt_item, ext_item) for gt_item in ground_truth_items)
    )
    gt_ratio = matched_ground_truth / len(ground_truth_items) if ground_truth_items else 0.0
    ext_ratio = matched_extracted / len(extracted_items) if extracted_items else 0.0

    if gt_ratio >= LIST_OVERLAP_THRESHOLD or ext_ratio >= LIST_OVERLAP_THRESHOLD:
        all_match = gt_ratio == 1.0 and ext_ratio == 1.0
        if all_match:
            details = "All items match with possible variations"
        else:
            details = f"{matched_ground_truth}/{len(ground_truth_items)} ground truth items found"
        return ComparisonResult(
            is_match=True,
            confidence=CONFIDENCE_HIGH if all_match else CONFIDENCE_MEDIUM,
            match_type=LIST_UNORDERED,
            match_classification=MATCH_NORMALIZED if all_match else MATCH_PARTIAL,
            details=details,
        )

    return ComparisonResult(
        is_match=False,
        confidence=CONFIDENCE_HIGH,
        match_type=LIST_UNORDERED,
        match_classification=MATCH_NONE,
    )


def compare_list_ordered(extracted: str, ground_truth: str, config: CompareConfig | None = None) -> ComparisonResult:
    """Positional list comparison; reordered items are reported, not matched"""
    separator = _separator(extracted, ground_truth, config)
    extracted_items = parse_list(extracted, separator)
    ground_truth_items = parse_list(ground_truth, separator)

    if extracted_items == ground_truth_items:
        return ComparisonResult(
            is_match=True,
            confidence=CONFIDENCE_HIGH,
            match_type=LIST_ORDERED,
            match_classification=MATCH_NORMALIZED,
        )

    if sorted(extracted_items) == sorted(ground_truth_items):
        return ComparisonResult(
            is_match=False,
            confidence=CONFIDENCE_HIGH,
            match_type=LIST_ORDERED,
            match_classification=MATCH_DIFFERENT_FORMAT,
            details="Same items but in different order",
        )

    return ComparisonResult(
        is_match=False,
        confidence=CONFIDENCE_HIGH,
        match_type=LIST_ORDERED,
        match_classification=MATCH_NONE,
    )


STRATEGIES: dict[str, Callable[[str, str, CompareConfig | None], ComparisonResult]] = {
    EXACT_STRING: compare_exact_string,
    NEAR_EXACT_STRING: compare_near_exact_string,
    EXACT_NUMBER: compare_exact_number,
    DATE_EXACT: compare_date_exact,
    BOOLEAN: compare_boolean,
    LIST_UNORDERED: compare_list_unordered,
    LIST_ORDERED: compare_list_ordered,
}
