"""
Document Sampling

Selects a small, maximally informative set of documents from earlier
extraction failures and splits it into training and holdout subsets.
"""

from __future__ import annotations

import logging
import math

from field_prompt_tuner.accuracy_data import AccuracyData
from field_prompt_tuner.domain.entities import (
    FieldFailureDetail,
    FieldFailureMap,
    SamplingResult,
    SelectedDoc,
)

logger = logging.getLogger(__name__)

MIN_DOCS_FOR_HOLDOUT = 3


def build_failure_map(
    accuracy_data: AccuracyData,
    field_keys: list[str],
    model: str,
) -> FieldFailureMap:
    """
    Collect, per field, the documents on which `model` was recorded as wrong

    Documents without a recorded comparison for the field are skipped.

    Args:
        accuracy_data: Accuracy data with recorded comparisons
        field_keys: Fields to scan
        model: Model whose comparisons are inspected

    Returns:
        FieldFailureMap (field key -> failing documents in data order)
    """
    failure_map: FieldFailureMap = {}
    for field_key in field_keys:
        failures = []
        for document in accuracy_data.results:
            comparison = document.comparison_results.get(field_key, {}).get(model)
            if comparison is None or comparison.is_match:
                continue
            failures.append(FieldFailureDetail(
                doc_id=document.id,
                doc_name=document.file_name,
                ground_truth=document.ground_truth(field_key),
                extracted_value=document.extracted_value(field_key, model),
                comparison_reason=comparison.details or "",
            ))
        failure_map[field_key] = failures
    return failure_map


def split_train_holdout(doc_ids: list[str], holdout_ratio: float) -> tuple[list[str], list[str]]:
    """
    Split ordered document ids into (train, holdout)

    The holdout is taken from the tail. Fewer than three documents or a
    non-positive ratio means no holdout. Otherwise the holdout holds
    round(n * ratio) documents, at least one and at most n // 2.

    Args:
        doc_ids: Document ids, most diagnostic first
        holdout_ratio: Fraction of documents to hold out

    Returns:
        tuple: (train ids, holdout ids)
    """
    total = len(doc_ids)
    if total < MIN_DOCS_FOR_HOLDOUT or holdout_ratio <= 0:
        return list(doc_ids), []

    holdout_count = math.floor(total * holdout_ratio + 0.5)
    if holdout_count == 0:
        holdout_count = 1
    holdout_count = min(holdout_count, total // 2)

    split_at = total - holdout_count
    return list(doc_ids[:split_at]), list(doc_ids[split_at:])


def _doc_name(failure_map: FieldFailureMap, field_key: str, doc_id: str) -> str:
    for failure in failure_map.get(field_key, []):
        if failure.doc_id == doc_id:
            return failure.doc_name
    return doc_id


def select_docs(
    failure_map: FieldFailureMap,
    max_docs: int,
    all_doc_ids: list[str] | None = None,
    holdout_ratio: float = 0.0,
) -> SamplingResult:
    """
    Pick up to max_docs documents by greedy coverage of failing fields

    1. Greedy: repeatedly take the document covering the most not-yet-covered
       failing fields. Ties go to the document seen first.
    2. Fill with the remaining failing documents in order.
    3. Pad with documents that never failed, from all_doc_ids.

    Every field is then tested on the full selected set.

    Args:
        failure_map: Field key -> failing documents
        max_docs: Maximum number of documents to select
        all_doc_ids: Universe of document ids used for padding
        holdout_ratio: Fraction of the selection held out for validation

    Returns:
        SamplingResult
    """
    doc_to_fields: dict[str, list[str]] = {}
    for field_key, failures in failure_map.items():
        for failure in failures:
            fields = doc_to_fields.setdefault(failure.doc_id, [])
            if field_key not in fields:
                fields.append(field_key)

    remaining = list(doc_to_fields.items())
    selected: list[SelectedDoc] = []
    covered: set[str] = set()

    while len(selected) < max_docs and remaining:
        best_index = -1
        best_score = 0
        for index, (_, fields) in enumerate(remaining):
            score = sum(1 for f in fields if f not in covered)
            if score > best_score:
                best_score = score
                best_index = index
        if best_index < 0:
            break

        doc_id, fields = remaining.pop(best_index)
        selected.append(SelectedDoc(doc_id, _doc_name(failure_map, fields[0], doc_id), list(fields)))
        covered.update(fields)

    while len(selected) < max_docs and remaining:
        doc_id, fields = remaining.pop(0)
        selected.append(SelectedDoc(doc_id, _doc_name(failure_map, fields[0], doc_id), list(fields)))

    if all_doc_ids and len(selected) < max_docs:
        chosen = {d.doc_id for d in selected}
        for doc_id in all_doc_ids:
            if len(selected) >= max_docs:
                break
            if doc_id in chosen:
                continue
            chosen.add(doc_id)
            selected.append(SelectedDoc(doc_id, doc_id, []))

    selected_ids = [d.doc_id for d in selected]
    train_ids, holdout_ids = split_train_holdout(selected_ids, holdout_ratio)

    logger.info(
        "Selected %d documents covering %d/%d failing fields (train=%d, holdout=%d)",
        len(selected), len(covered), len(failure_map), len(train_ids), len(holdout_ids),
    )

    return SamplingResult(
        selected_docs=selected,
        field_to_doc_ids={field_key: list(selected_ids) for field_key in failure_map},
        train_doc_ids=train_ids,
        holdout_doc_ids=holdout_ids,
    )
