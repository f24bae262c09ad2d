"""
Comparison sub-package

Provides compare strategies, the compare engine, the semantic judge and
field metric aggregation.
"""

from field_prompt_tuner.comparison.dates import is_date_like, parse_flexible_date
from field_prompt_tuner.comparison.engine import compare, compare_preview
from field_prompt_tuner.comparison.llm_judge import (
    DEFAULT_COMPARISON_PROMPT,
    LLMJudgeError,
    LLMSemanticJudge,
    SemanticJudge,
)
from field_prompt_tuner.comparison.metrics import aggregate, legacy_compare
from field_prompt_tuner.comparison.strategies import STRATEGIES
from field_prompt_tuner.comparison.text_normalizers import (
    extract_core_names,
    normalize_text,
)

__all__ = [
    # engine
    "compare",
    "compare_preview",
    "STRATEGIES",
    # normalizers
    "extract_core_names",
    "normalize_text",
    "is_date_like",
    "parse_flexible_date",
    # judge
    "DEFAULT_COMPARISON_PROMPT",
    "LLMJudgeError",
    "LLMSemanticJudge",
    "SemanticJudge",
    # metrics
    "aggregate",
    "legacy_compare",
]
