"""
Domain Value Objects

Defines immutable data structures passed between the comparison engine,
the model clients and the external collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ModelResponse:
    """Model response"""
    output: str
    latency_ms: int
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class CompareConfig:
    """Per-field comparison strategy"""
    field_key: str
    field_name: str
    compare_type: str
    parameters: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "fieldKey": self.field_key,
            "fieldName": self.field_name,
            "compareType": self.compare_type,
            "parameters": dict(self.parameters),
        }


@dataclass
class ComparisonResult:
    """Outcome of comparing one (predicted, ground truth) pair"""
    is_match: bool
    confidence: str
    match_type: str
    match_classification: str
    details: str | None = None
    error: str | None = None


@dataclass
class ConfusionCounts:
    """Confusion matrix totals for one field"""
    true_positives: int = 0
    true_negatives: int = 0
    false_positives: int = 0
    false_negatives: int = 0

    @property
    def total(self) -> int:
        return (
            self.true_positives + self.true_negatives
            + self.false_positives + self.false_negatives
        )


@dataclass
class MetricsResult:
    """Aggregate accuracy metrics for one field"""
    accuracy: float
    precision: float
    recall: float
    f1: float
    confusion: ConfusionCounts
    valid_pairs: int = 0
    # Example (predicted, ground truth) pairs per confusion category
    examples: dict[str, list[tuple[str, str]]] = field(default_factory=dict)
    # One entry per input pair; None where the prediction was skipped
    comparisons: list[ComparisonResult | None] = field(default_factory=list)


@dataclass
class JudgeVerdict:
    """Semantic judge decision"""
    is_match: bool
    reason: str
    error: str | None = None


@dataclass
class ExtractionResult:
    """Value returned by the extraction collaborator"""
    value: str
    confidence: float | None = None
    success: bool = True
    error: str | None = None


@dataclass
class GeneratedPrompt:
    """Rewritten prompt returned by the prompt generator"""
    new_prompt: str
    reasoning: str = "No reasoning provided"


@dataclass
class PromptValidation:
    """Structural checklist outcome for a candidate prompt"""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    has_location: bool = False
    has_synonyms: bool = False
    has_format: bool = False
    has_disambiguation: bool = False
    has_not_found: bool = False
    length: int = 0

    @property
    def element_count(self) -> int:
        return sum([
            self.has_location,
            self.has_synonyms,
            self.has_format,
            self.has_disambiguation,
            self.has_not_found,
        ])
