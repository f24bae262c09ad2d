"""
Domain Entities

Defines the primary data structures produced while sampling documents,
optimizing field prompts and reporting on a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from field_prompt_tuner.domain.value_objects import CompareConfig


@dataclass(frozen=True)
class FieldFailureDetail:
    """A document on which a field was previously extracted incorrectly"""
    doc_id: str
    doc_name: str
    ground_truth: str
    extracted_value: str
    comparison_reason: str = ""


# field key -> ordered list of failing documents
FieldFailureMap = dict[str, list[FieldFailureDetail]]


@dataclass
class SelectedDoc:
    """A sampled document and the failing fields it covers"""
    doc_id: str
    doc_name: str
    covered_field_keys: list[str] = field(default_factory=list)


@dataclass
class SamplingResult:
    """Selected documents and their train/holdout partition"""
    selected_docs: list[SelectedDoc]
    field_to_doc_ids: dict[str, list[str]]
    train_doc_ids: list[str]
    holdout_doc_ids: list[str]

    @property
    def selected_doc_ids(self) -> list[str]:
        return [d.doc_id for d in self.selected_docs]


@dataclass
class FailureExample:
    """One wrong extraction shown to the prompt generator"""
    doc_id: str
    doc_name: str
    predicted: str
    expected: str
    reason: str = ""


@dataclass
class SuccessExample:
    """One correct extraction shown to the prompt generator"""
    doc_id: str
    doc_name: str
    value: str


@dataclass
class IterationResult:
    """Result of one iteration of one field"""
    new_prompt: str
    accuracy: float | None
    converged: bool
    failure_examples: list[FailureExample] = field(default_factory=list)
    holdout_accuracy: float | None = None
    holdout_rejected: bool = False


@dataclass
class IterationSnapshot:
    """Per-iteration numbers kept for experiment metadata"""
    iteration: int
    train_accuracy: float | None
    holdout_accuracy: float | None
    prompt_length: int


@dataclass
class ExperimentMetadata:
    """Reproducibility record of how a field was optimized"""
    test_model: str
    compare_config: dict | None
    train_doc_ids: list[str]
    holdout_doc_ids: list[str]
    ground_truth_hash: str
    iterations: list[IterationSnapshot] = field(default_factory=list)


@dataclass
class FieldJob:
    """Everything the iteration controller needs to optimize one field"""
    field_key: str
    field_name: str
    field_type: str
    field_prompt: str | None
    ground_truths: dict[str, str]
    train_doc_ids: list[str]
    holdout_doc_ids: list[str] = field(default_factory=list)
    # Accuracy recorded for the original prompt before optimization
    initial_accuracy: float | None = None
    compare_config: CompareConfig | None = None
    options: list[str] = field(default_factory=list)
    template_key: str = ""
    doc_names: dict[str, str] = field(default_factory=dict)
    # Per-document failures recorded before optimization started
    failures: list[FieldFailureDetail] = field(default_factory=list)

    @property
    def sampled_doc_ids(self) -> list[str]:
        return self.train_doc_ids + self.holdout_doc_ids


@dataclass
class FieldResult:
    """Terminal artifact of one field's optimization"""
    field_key: str
    field_name: str
    initial_accuracy: float
    final_accuracy: float
    iteration_count: int
    initial_prompt: str
    final_prompt: str
    converged: bool
    improved: bool
    sampled_doc_ids: list[str]
    experiment_metadata: ExperimentMetadata | None = None
    user_original_prompt: str | None = None
    has_ground_truth: bool = True
    candidate_prompt: str | None = None
    error: str | None = None


@dataclass
class WorkPlan:
    """Prepared inputs for one optimization run"""
    run_id: str
    template_key: str
    test_model: str
    reference_model: str
    sampling: SamplingResult | None
    jobs: list[FieldJob] = field(default_factory=list)
    doc_names: dict[str, str] = field(default_factory=dict)


@dataclass
class RunTiming:
    """Wall-clock timing of a run"""
    start_time: str
    end_time: str
    estimated_time_ms: int
    actual_time_ms: int


@dataclass
class RunReport:
    """Aggregate result of one optimization run"""
    run_id: str
    results: list[FieldResult]
    test_model: str
    sampled_doc_ids: list[str]
    timing: RunTiming
    train_doc_ids: list[str] = field(default_factory=list)
    holdout_doc_ids: list[str] = field(default_factory=list)
    sampled_doc_names: dict[str, str] = field(default_factory=dict)


@dataclass
class HealthCheckResult:
    """Health check result"""
    model_name: str
    success: bool
    latency_ms: int | None
    error: str | None


@dataclass
class FailureAnalysis:
    """Explanation of why one document's extraction went wrong"""
    doc_id: str
    doc_name: str
    field_key: str
    field_name: str
    ground_truth: str
    extracted_value: str
    failure_reason: str
    suggested_fix: str
    relevant_text: str = ""
    location: str = ""
    structure_notes: str = ""
    wrong_value_location: str | None = None
