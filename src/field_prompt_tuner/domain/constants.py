"""
Domain Constants

Centrally manages constants shared across sampling, comparison and optimization.
"""

# Sentinel meaning "this field does not occur in this document"
NOT_PRESENT = "Not Present"

# Column holding the human-verified value in accuracy data
GROUND_TRUTH_COLUMN = "Ground Truth"

# Prediction prefixes that mark an extraction that never produced a value
PENDING_PREFIX = "Pending"
ERROR_PREFIX = "Error"
NOT_FOUND_PREFIX = "Not Found"
SKIPPED_PREFIXES = (PENDING_PREFIX, ERROR_PREFIX, NOT_FOUND_PREFIX)

# Compare strategies
EXACT_STRING = "exact-string"
NEAR_EXACT_STRING = "near-exact-string"
LLM_JUDGE = "llm-judge"
EXACT_NUMBER = "exact-number"
DATE_EXACT = "date-exact"
BOOLEAN = "boolean"
LIST_UNORDERED = "list-unordered"
LIST_ORDERED = "list-ordered"

COMPARE_TYPES = [
    EXACT_STRING,
    NEAR_EXACT_STRING,
    LLM_JUDGE,
    EXACT_NUMBER,
    DATE_EXACT,
    BOOLEAN,
    LIST_UNORDERED,
    LIST_ORDERED,
]

# Confidence levels
CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_LOW = "low"

# Match classifications
MATCH_EXACT = "exact"
MATCH_NORMALIZED = "normalized"
MATCH_PARTIAL = "partial"
MATCH_DIFFERENT_FORMAT = "different-format"
MATCH_NONE = "none"

# Partial-match heuristics (tunable)
LIST_OVERLAP_THRESHOLD = 0.5
MIN_CONTAINMENT_LENGTH = 3

# Compare strategy used when a field has no explicit configuration
DEFAULT_COMPARE_TYPES_BY_FIELD_TYPE = {
    "string": NEAR_EXACT_STRING,
    "float": EXACT_NUMBER,
    "number": EXACT_NUMBER,
    "date": DATE_EXACT,
    "enum": EXACT_STRING,
    "multiSelect": LIST_UNORDERED,
    "dropdown_multi": LIST_UNORDERED,
}

# Field types whose values come from a fixed option list
OPTION_FIELD_TYPES = ("enum", "multiSelect", "dropdown_multi", "taxonomy")

# Prompt quality thresholds
SIMPLE_PROMPT_MAX_LENGTH = 150
MIN_PROMPT_LENGTH = 350

# Rough per-iteration cost used for run time estimates
ESTIMATED_ITERATIONS_PER_FIELD = 3
ESTIMATED_MS_PER_ITERATION = 12000

# Default model names
DEFAULT_TEST_MODEL = "gemini-2.5-flash"
DEFAULT_PROMPT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_JUDGE_MODEL = "gemini-2.5-flash"
