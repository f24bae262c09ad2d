"""
Optimization Run

Runs a whole optimization: prepare the work plan, optimize every field and
report timing. Also turns a report into a summary table.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from datetime import datetime

import pandas as pd

from field_prompt_tuner.accuracy_data import AccuracyData
from field_prompt_tuner.domain.constants import ESTIMATED_ITERATIONS_PER_FIELD, ESTIMATED_MS_PER_ITERATION
from field_prompt_tuner.domain.entities import RunReport, RunTiming
from field_prompt_tuner.optimizer_config import OptimizerConfig, load_config
from field_prompt_tuner.use_cases.batch import FieldCallback, run_batch
from field_prompt_tuner.use_cases.field_optimization import OptimizationServices
from field_prompt_tuner.use_cases.preparation import prepare_work_plan

logger = logging.getLogger(__name__)


def estimate_run_time_ms(field_count: int) -> int:
    return field_count * ESTIMATED_ITERATIONS_PER_FIELD * ESTIMATED_MS_PER_ITERATION


def run_optimization(
    accuracy_data: AccuracyData,
    services: OptimizationServices,
    config: OptimizerConfig | None = None,
    field_keys: list[str] | None = None,
    on_field_complete: FieldCallback | None = None,
) -> RunReport:
    """
    Optimize the prompts of every field that misses the target accuracy

    Args:
        accuracy_data: Accuracy data with recorded comparisons
        services: Extraction, prompt generation, judge and analysis collaborators
        config: OptimizerConfig (loads from env if not provided)
        field_keys: Restrict the run to these fields
        on_field_complete: Called with (result, index) as each field finishes

    Returns:
        RunReport with one result per optimized field

    Raises:
        NoComparisonDataError: If the accuracy data has no recorded comparisons
    """
    if config is None:
        config = load_config()

    start_time = datetime.now()
    started = time.monotonic()

    plan = prepare_work_plan(accuracy_data, config, field_keys)
    estimated_ms = estimate_run_time_ms(len(plan.jobs))
    if plan.jobs:
        logger.info("Run %s: optimizing %d fields (estimated %.0fs)", plan.run_id, len(plan.jobs), estimated_ms / 1000)
        results = run_batch(
            plan.jobs,
            services,
            iteration_config=config.iteration,
            field_concurrency=config.concurrency.field_concurrency,
            extraction_concurrency=config.concurrency.extraction_concurrency,
            test_model=plan.test_model,
            on_field_complete=on_field_complete,
        )
    else:
        logger.info("Run %s: no fields to optimize", plan.run_id)
        results = []

    actual_ms = int((time.monotonic() - started) * 1000)
    end_time = datetime.now()
    sampling = plan.sampling

    report = RunReport(
        run_id=plan.run_id,
        results=results,
        test_model=plan.test_model,
        sampled_doc_ids=sampling.selected_doc_ids if sampling else [],
        timing=RunTiming(
            start_time=start_time.isoformat(),
            end_time=end_time.isoformat(),
            estimated_time_ms=estimated_ms,
            actual_time_ms=actual_ms,
        ),
        train_doc_ids=list(sampling.train_doc_ids) if sampling else [],
        holdout_doc_ids=list(sampling.holdout_doc_ids) if sampling else [],
        sampled_doc_names=dict(plan.doc_names),
    )
    improved = sum(1 for r in results if r.improved)
    logger.info("Run %s finished in %.1fs: %d/%d fields improved", plan.run_id, actual_ms / 1000, improved, len(results))
    return report


def report_to_dataframe(report: RunReport) -> pd.DataFrame:
    """
    Per-field summary table of a run

    Args:
        report: Run report

    Returns:
        pd.DataFrame with one row per field
    """
    columns = [
        "run_id", "field_key", "field_name", "initial_accuracy", "final_accuracy",
        "accuracy_change", "iteration_count", "converged", "improved", "has_ground_truth",
        "initial_prompt_length", "final_prompt_length", "final_prompt", "error",
    ]
    rows = []
    for result in report.results:
        rows.append({
            "run_id": report.run_id,
            "field_key": result.field_key,
            "field_name": result.field_name,
            "initial_accuracy": result.initial_accuracy,
            "final_accuracy": result.final_accuracy,
            "accuracy_change": result.final_accuracy - result.initial_accuracy,
            "iteration_count": result.iteration_count,
            "converged": result.converged,
            "improved": result.improved,
            "has_ground_truth": result.has_ground_truth,
            "initial_prompt_length": len(result.initial_prompt),
            "final_prompt_length": len(result.final_prompt),
            "final_prompt": result.final_prompt,
            "error": result.error,
        })
    return pd.DataFrame(rows, columns=columns)


def report_to_dict(report: RunReport) -> dict:
    """JSON-serializable form of a run report"""
    return asdict(report)
