"""
Use Cases Layer

Aggregates the optimization workflow: work-plan preparation, the per-field
iteration controller, batch coordination, failure analysis and health checks.
"""

from field_prompt_tuner.use_cases.batch import degraded_result, run_batch
from field_prompt_tuner.use_cases.failure_analysis import (
    FailureAnalyzer,
    build_document_context,
)
from field_prompt_tuner.use_cases.field_optimization import (
    FieldOptimizer,
    OptimizationServices,
)
from field_prompt_tuner.use_cases.health_check import (
    HEALTH_CHECK_PROMPT,
    health_check_all_models,
    health_check_model,
    run_health_check,
)
from field_prompt_tuner.use_cases.optimization_run import (
    report_to_dataframe,
    report_to_dict,
    run_optimization,
)
from field_prompt_tuner.use_cases.preparation import (
    NoComparisonDataError,
    prepare_work_plan,
)

__all__ = [
    # batch
    "degraded_result",
    "run_batch",
    # failure_analysis
    "FailureAnalyzer",
    "build_document_context",
    # field_optimization
    "FieldOptimizer",
    "OptimizationServices",
    # health_check
    "HEALTH_CHECK_PROMPT",
    "health_check_all_models",
    "health_check_model",
    "run_health_check",
    # optimization_run
    "report_to_dataframe",
    "report_to_dict",
    "run_optimization",
    # preparation
    "NoComparisonDataError",
    "prepare_work_plan",
]
