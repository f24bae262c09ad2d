"""
Batch Coordination

Optimizes many fields at once with a field-level concurrency cap. A field
that fails is reported as a degraded result instead of aborting the batch.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from field_prompt_tuner.concurrency import run_bounded
from field_prompt_tuner.domain.entities import FieldJob, FieldResult
from field_prompt_tuner.optimizer_config import IterationConfig
from field_prompt_tuner.use_cases.field_optimization import FieldOptimizer, OptimizationServices

logger = logging.getLogger(__name__)

FieldCallback = Callable[[FieldResult, int], None]


def degraded_result(job: FieldJob, error: Exception | str | None = None) -> FieldResult:
    """Placeholder for a field that could not be optimized"""
    initial_accuracy = job.initial_accuracy if job.initial_accuracy is not None else 0.0
    prompt = job.field_prompt or ""
    return FieldResult(
        field_key=job.field_key,
        field_name=job.field_name,
        initial_accuracy=initial_accuracy,
        final_accuracy=initial_accuracy,
        iteration_count=0,
        initial_prompt=prompt,
        final_prompt=prompt,
        converged=False,
        improved=False,
        sampled_doc_ids=job.sampled_doc_ids,
        user_original_prompt=job.field_prompt or None,
        error=str(error) if error is not None else None,
    )


def run_batch(
    jobs: list[FieldJob],
    services: OptimizationServices,
    iteration_config: IterationConfig | None = None,
    field_concurrency: int = 2,
    extraction_concurrency: int = 5,
    test_model: str = "",
    on_field_complete: FieldCallback | None = None,
) -> list[FieldResult]:
    """
    Optimize every field job, at most `field_concurrency` at a time

    Each field gets its own FieldOptimizer, whose extractions run in a
    separate pool bounded by `extraction_concurrency`.

    Args:
        jobs: Fields to optimize
        services: Shared collaborators
        iteration_config: Iteration settings
        field_concurrency: Maximum fields optimized at once
        extraction_concurrency: Maximum extractions at once within one field
        test_model: Model under test, recorded in the metadata
        on_field_complete: Called with (result, index) as each field finishes,
            degraded results included. Calls are serialized on a
            dedicated thread, so a slow callback never holds a field worker.
            Exceptions it raises are logged. All calls finish before return.

    Returns:
        list[FieldResult]: One result per job, in job order
    """
    total = len(jobs)
    logger.info("Processing %d fields with concurrency %d", total, field_concurrency)
    # One worker: callbacks run in completion order, one at a time, off the field workers
    callback_executor = ThreadPoolExecutor(max_workers=1) if on_field_complete is not None else None

    def _run_callback(result: FieldResult, index: int) -> None:
        try:
            on_field_complete(result, index)
        except Exception as e:
            logger.warning("Field completion callback failed for '%s': %s", result.field_name, e)

    def _process(indexed_job: tuple[int, FieldJob]) -> FieldResult:
        index, job = indexed_job
        optimizer = FieldOptimizer(
            services,
            iteration_config,
            extraction_concurrency=extraction_concurrency,
            test_model=test_model,
        )
        try:
            result = optimizer.optimize(job)
        except Exception as e:
            logger.error("Field %d/%d failed (%s): %s", index + 1, total, job.field_name, e)
            result = degraded_result(job, e)
        else:
            logger.info("Field %d/%d completed (%s)", index + 1, total, job.field_name)
        if callback_executor is not None:
            callback_executor.submit(_run_callback, result, index)
        return result

    try:
        results = run_bounded(list(enumerate(jobs)), field_concurrency, _process)
    finally:
        if callback_executor is not None:
            callback_executor.shutdown(wait=True)
    logger.info("All %d fields completed", total)
    return results
