"""
Domain Layer

Defines constants, entities, and value objects that form the core of the business logic.
Has no dependencies on external libraries.
"""

from field_prompt_tuner.domain.constants import (
    COMPARE_TYPES,
    GROUND_TRUTH_COLUMN,
    NOT_PRESENT,
    SKIPPED_PREFIXES,
)
from field_prompt_tuner.domain.entities import (
    ExperimentMetadata,
    FailureAnalysis,
    FailureExample,
    FieldFailureDetail,
    FieldFailureMap,
    FieldJob,
    FieldResult,
    HealthCheckResult,
    IterationResult,
    IterationSnapshot,
    RunReport,
    RunTiming,
    SamplingResult,
    SelectedDoc,
    SuccessExample,
    WorkPlan,
)
from field_prompt_tuner.domain.value_objects import (
    CompareConfig,
    ComparisonResult,
    ConfusionCounts,
    ExtractionResult,
    GeneratedPrompt,
    JudgeVerdict,
    MetricsResult,
    ModelResponse,
    PromptValidation,
)

__all__ = [
    # constants
    "COMPARE_TYPES",
    "GROUND_TRUTH_COLUMN",
    "NOT_PRESENT",
    "SKIPPED_PREFIXES",
    # entities
    "ExperimentMetadata",
    "FailureAnalysis",
    "FailureExample",
    "FieldFailureDetail",
    "FieldFailureMap",
    "FieldJob",
    "FieldResult",
    "HealthCheckResult",
    "IterationResult",
    "IterationSnapshot",
    "RunReport",
    "RunTiming",
    "SamplingResult",
    "SelectedDoc",
    "SuccessExample",
    "WorkPlan",
    # value objects
    "CompareConfig",
    "ComparisonResult",
    "ConfusionCounts",
    "ExtractionResult",
    "GeneratedPrompt",
    "JudgeVerdict",
    "MetricsResult",
    "ModelResponse",
    "PromptValidation",
]
