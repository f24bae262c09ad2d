"""
Prompt validation

Structural checklist every generated extraction prompt must pass before it is
tested: minimum length, location guidance, synonyms, output format,
disambiguation and not-found handling.
"""

from __future__ import annotations

import re

from field_prompt_tuner.domain.constants import MIN_PROMPT_LENGTH
from field_prompt_tuner.domain.value_objects import PromptValidation

_GENERIC_RE = re.compile(r"^extract the .{1,50}(from this document)?\.?$", re.IGNORECASE)

_LOCATION_PATTERNS = [
    re.compile(r"look in[^.]*(?:section|paragraph|header|footer|signature|block|area|field|table|page)", re.IGNORECASE),
    re.compile(r"search in[^.]*(?:section|paragraph|header|footer|signature|block|area|field|table|page)", re.IGNORECASE),
    re.compile(r"check (?:the )?(?:opening|closing|first|last|header|footer|signature|notices?)", re.IGNORECASE),
    re.compile(r"(?:opening|closing|first|last)\s+(?:paragraph|section|page)", re.IGNORECASE),
    re.compile(r"\(\d+\)[^.]*(?:section|paragraph|block|area)", re.IGNORECASE),
    re.compile(r"signature block|header area|footer area|notices section", re.IGNORECASE),
    re.compile(r"look in|search in|find in|check the|located in", re.IGNORECASE),
]

_QUOTED_PHRASE_RE = re.compile(r'"[^"]{3,}"')
_COMMA_LIST_RE = re.compile(
    r"""(?:look for|search for|phrases like)[^.]*[:,]\s*['"]?([^'"]+)['"]?(?:,\s*['"]?([^'"]+)['"]?)+""",
    re.IGNORECASE,
)
_SYNONYM_KEYWORD_RE = re.compile(r"phrases like|variations|synonyms", re.IGNORECASE)

_FORMAT_PATTERNS = [
    re.compile(r"return.*(?:format|YYYY|MM|DD|exactly|only the|single line|complete)", re.IGNORECASE),
    re.compile(r"format.*(?:as|to|should|must)", re.IGNORECASE),
    re.compile(r"output.*(?:format|as)", re.IGNORECASE),
    re.compile(r"YYYY-MM-DD|YYYY/MM/DD", re.IGNORECASE),
    re.compile(r"decimal|cents|digits|numeric", re.IGNORECASE),
    re.compile(r"exactly as|exactly one|exact value", re.IGNORECASE),
    re.compile(r"including (?:street|city|state|zip|suffix)", re.IGNORECASE),
    re.compile(r"full (?:legal |entity )?name", re.IGNORECASE),
]

_DISAMBIGUATION_RE = re.compile(
    r"do not|don't|not confuse|not return|not include|not extract|avoid|exclude|instead of|rather than",
    re.IGNORECASE,
)
_NOT_FOUND_RE = re.compile(
    r"not present|not found|missing|if no|if not|cannot find|doesn't exist|does not exist",
    re.IGNORECASE,
)

# Valid prompts carry at least this many of the five elements
MIN_ELEMENTS = 4


def count_synonyms(prompt: str) -> int:
    """Number of distinct quoted phrases (case-insensitive)"""
    return len({phrase.lower() for phrase in _QUOTED_PHRASE_RE.findall(prompt)})


def validate_prompt(prompt: str | None) -> PromptValidation:
    """
    Validate a prompt against the quality checklist

    A prompt is valid when it meets the minimum length, carries at least four
    of the five elements and raised at most one error.

    Args:
        prompt: Candidate extraction prompt

    Returns:
        PromptValidation with per-element flags and error messages
    """
    trimmed = (prompt or "").strip()
    errors: list[str] = []

    length = len(trimmed)
    meets_min_length = length >= MIN_PROMPT_LENGTH
    if not meets_min_length:
        errors.append(f"Prompt too short: {length} chars (need {MIN_PROMPT_LENGTH}+)")

    if _GENERIC_RE.match(trimmed):
        errors.append('Prompt is too generic - uses banned "Extract the X" pattern')

    has_location = any(p.search(trimmed) for p in _LOCATION_PATTERNS)
    if not has_location:
        errors.append("Missing LOCATION guidance - tell AI where to look in document")

    synonym_count = count_synonyms(trimmed)
    has_synonyms = (
        synonym_count >= 6
        or (synonym_count >= 4 and _COMMA_LIST_RE.search(trimmed) is not None)
        or (synonym_count >= 4 and _SYNONYM_KEYWORD_RE.search(trimmed) is not None)
    )
    if not has_synonyms:
        if 0 < synonym_count < 6:
            errors.append(f"Insufficient SYNONYMS - found {synonym_count} phrases, need 6+ distinct alternatives")
        else:
            errors.append("Missing SYNONYMS - list 6+ alternative phrases in quotes the value might appear as")

    has_format = any(p.search(trimmed) for p in _FORMAT_PATTERNS)
    if not has_format:
        errors.append("Missing FORMAT - specify exact output format (date format, precision, etc.)")

    has_disambiguation = _DISAMBIGUATION_RE.search(trimmed) is not None
    if not has_disambiguation:
        errors.append('Missing DISAMBIGUATION - add "Do NOT..." guidance to prevent mistakes')

    has_not_found = _NOT_FOUND_RE.search(trimmed) is not None
    if not has_not_found:
        errors.append("Missing NOT-FOUND handling - specify what to return if value not found")

    validation = PromptValidation(
        is_valid=False,
        errors=errors,
        has_location=has_location,
        has_synonyms=has_synonyms,
        has_format=has_format,
        has_disambiguation=has_disambiguation,
        has_not_found=has_not_found,
        length=length,
    )
    validation.is_valid = meets_min_length and validation.element_count >= MIN_ELEMENTS and len(errors) <= 1
    return validation
