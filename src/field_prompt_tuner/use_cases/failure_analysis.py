"""
Failure-cause analysis

Asks a model to look at the source document of a failed extraction and
explain where the correct value appears and why the wrong one was picked.
The result is advisory context for the prompt generator.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Callable

from field_prompt_tuner.concurrency import run_bounded
from field_prompt_tuner.domain.constants import ERROR_PREFIX, NOT_PRESENT
from field_prompt_tuner.domain.entities import FailureAnalysis, FieldFailureDetail
from field_prompt_tuner.infrastructure.model_clients.base import ModelClient
from field_prompt_tuner.prompts.generation_request import truncate

logger = logging.getLogger(__name__)

MAX_SNIPPET_LENGTH = 800
MAX_DOCUMENT_CHARS = 20000
MAX_DOCS_IN_CONTEXT = 3
CONTEXT_SNIPPET_LENGTH = 400
DEFAULT_ANALYSIS_CONCURRENCY = 2

UNKNOWN_LOCATION = "Unknown location"
NO_STRUCTURE_NOTES = "No structural notes available"
UNKNOWN_REASON = "Unable to determine failure reason"
DEFAULT_FIX = "Add more specific guidance to the prompt"
BASIC_REASON = "Unable to analyze document content"
BASIC_FIX = "Add more specific location guidance and synonyms"

_RELEVANT_TEXT_RE = re.compile(r"RELEVANT_TEXT_START\s*(.*?)\s*RELEVANT_TEXT_END", re.IGNORECASE | re.DOTALL)
# WRONG_VALUE_LOCATION contains "LOCATION:", so the plain marker must start a line
_LOCATION_RE = re.compile(r"^\s*LOCATION:\s*([^\n]+)", re.IGNORECASE | re.MULTILINE)
_WRONG_VALUE_RE = re.compile(r"WRONG_VALUE_LOCATION:\s*([^\n]+)", re.IGNORECASE)
_STRUCTURE_RE = re.compile(r"STRUCTURE_NOTES:\s*([^\n]+)", re.IGNORECASE)
_FAILURE_RE = re.compile(r"FAILURE_REASON:\s*([^\n]+)", re.IGNORECASE)
_FIX_RE = re.compile(r"SUGGESTED_FIX:\s*([^\n]+)", re.IGNORECASE)
_AMOUNT_NOISE_RE = re.compile(r"[$,]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def _has_value(value: str | None) -> bool:
    return bool(value) and value != NOT_PRESENT and not value.startswith(ERROR_PREFIX)


def _as_number(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(_AMOUNT_NOISE_RE.sub("", value))
    except ValueError:
        return None


def is_rounding_error(ground_truth: str, extracted: str) -> bool:
    """True when both values are numbers that differ by less than one"""
    expected = _as_number(ground_truth)
    actual = _as_number(extracted)
    if expected is None or actual is None:
        return False
    return 0 < abs(expected - actual) < 1


def build_analysis_prompt(field_name: str, ground_truth: str, extracted_value: str, document_text: str) -> str:
    """Build the marker-delimited analysis request for one failed document"""
    has_extracted = _has_value(extracted_value)
    has_ground_truth = bool(ground_truth) and ground_truth != NOT_PRESENT

    parts = [
        "You are analyzing a document to understand an extraction error.",
        "",
        f'FIELD: "{field_name}"',
    ]
    if has_ground_truth:
        parts.append(f'CORRECT VALUE (Ground Truth): "{ground_truth}"')
    else:
        parts.append("CORRECT VALUE: The field should not be present in this document")
    if has_extracted:
        parts.append(f'WRONG VALUE EXTRACTED: "{extracted_value}"')
    else:
        parts.append("WRONG VALUE EXTRACTED: Nothing was found (but it should have been)")

    parts.extend([
        "",
        "TASK: Analyze this document and explain WHY the extraction went wrong.",
        "",
        "Provide your analysis in this EXACT format:",
        "",
        "RELEVANT_TEXT_START",
        f'[Quote the section of the document (up to 500 chars) where the CORRECT value "{ground_truth}" '
        "appears, or where it SHOULD appear if not found]",
        "RELEVANT_TEXT_END",
        "",
        'LOCATION: [Where in the document is this? e.g., "Top header", "Near \'Bill To\' section", "Footer area"]',
        "",
    ])
    if has_extracted and has_ground_truth and extracted_value != ground_truth:
        parts.append(
            f'WRONG_VALUE_LOCATION: [Where does "{extracted_value}" appear? Why might the AI have grabbed it instead?]'
        )
        parts.append("")
    parts.extend([
        "STRUCTURE_NOTES: [Describe the structure around this field: a table, similar-looking values, confusing labels?]",
        "",
        "FAILURE_REASON: [In one sentence, the most likely reason the wrong value was extracted]",
        "",
        "SUGGESTED_FIX: [In one sentence, what guidance the extraction prompt should include to prevent this]",
    ])
    if has_ground_truth and has_extracted and is_rounding_error(ground_truth, extracted_value):
        parts.extend([
            "",
            f"IMPORTANT: This appears to be a ROUNDING error ({ground_truth} vs {extracted_value}).",
            "Pay attention to whether the document shows cents or decimals and whether they were rounded.",
        ])
    parts.extend([
        "",
        "DOCUMENT:",
        document_text[:MAX_DOCUMENT_CHARS],
    ])
    return "\n".join(parts)


def _first_group(pattern: re.Pattern, text: str) -> str | None:
    match = pattern.search(text)
    if match is None:
        return None
    return match.group(1).strip() or None


def parse_analysis_response(response: str) -> dict:
    """Pull the marker sections out of an analysis answer, with defaults"""
    relevant = _first_group(_RELEVANT_TEXT_RE, response) or response[:MAX_SNIPPET_LENGTH]
    return {
        "relevant_text": truncate(relevant, MAX_SNIPPET_LENGTH),
        "location": _first_group(_LOCATION_RE, response) or UNKNOWN_LOCATION,
        "wrong_value_location": _first_group(_WRONG_VALUE_RE, response),
        "structure_notes": _first_group(_STRUCTURE_RE, response) or NO_STRUCTURE_NOTES,
        "failure_reason": _first_group(_FAILURE_RE, response) or UNKNOWN_REASON,
        "suggested_fix": _first_group(_FIX_RE, response) or DEFAULT_FIX,
    }


class FailureAnalyzer:
    """
    Explains failed extractions using the source document text

    Args:
        client: Model used for the analysis
        load_text: Returns a document's text, or None when unavailable
        concurrency: Maximum number of documents analyzed at once
    """

    def __init__(
        self,
        client: ModelClient,
        load_text: Callable[[str], str | None],
        concurrency: int = DEFAULT_ANALYSIS_CONCURRENCY,
    ):
        self.client = client
        self.load_text = load_text
        self.concurrency = concurrency

    def analyze(self, failure: FieldFailureDetail, field_key: str, field_name: str) -> FailureAnalysis:
        """Analyze one failure; any error yields a basic analysis"""
        logger.info("Analyzing document %s for field '%s'", failure.doc_id, field_name)
        try:
            text = self.load_text(failure.doc_id)
            if text is None:
                raise FileNotFoundError(f"Document text not found: {failure.doc_id}")
            prompt = build_analysis_prompt(field_name, failure.ground_truth, failure.extracted_value, text)
            response = self.client.generate(prompt)
            parsed = parse_analysis_response(response.output)
        except Exception as e:
            logger.error("Failed to analyze document %s: %s", failure.doc_id, e)
            return FailureAnalysis(
                doc_id=failure.doc_id,
                doc_name=failure.doc_name,
                field_key=field_key,
                field_name=field_name,
                ground_truth=failure.ground_truth,
                extracted_value=failure.extracted_value,
                failure_reason=BASIC_REASON,
                suggested_fix=BASIC_FIX,
            )

        return FailureAnalysis(
            doc_id=failure.doc_id,
            doc_name=failure.doc_name,
            field_key=field_key,
            field_name=field_name,
            ground_truth=failure.ground_truth,
            extracted_value=failure.extracted_value,
            **parsed,
        )

    def analyze_all(
        self,
        failures: list[FieldFailureDetail],
        field_key: str,
        field_name: str,
    ) -> list[FailureAnalysis]:
        """Analyze several failures through the bounded pool, preserving order"""
        if not failures:
            return []
        logger.info("Analyzing %d failed extractions for document context", len(failures))
        return run_bounded(
            failures,
            self.concurrency,
            lambda failure: self.analyze(failure, field_key, field_name),
        )


def detect_failure_patterns(analyses: list[FailureAnalysis]) -> list[str]:
    """Recurring failure patterns across analyzed documents"""
    patterns: list[str] = []

    if any(is_rounding_error(a.ground_truth, a.extracted_value) for a in analyses):
        patterns.append(
            "ROUNDING: AI is rounding numbers instead of extracting exact values with decimals. "
            'Add explicit instruction: "Return the EXACT amount including cents (e.g., 123.45, not 123 or 124)"'
        )

    wrong_values = Counter(
        a.extracted_value for a in analyses if a.extracted_value and a.extracted_value != NOT_PRESENT
    )
    for value, count in wrong_values.items():
        if count >= 2:
            patterns.append(
                f'REPEATED ERROR: AI keeps extracting "{value}" incorrectly. '
                "This value should be explicitly excluded in the prompt."
            )

    missed = [
        a for a in analyses
        if (not a.extracted_value or a.extracted_value == NOT_PRESENT)
        and a.ground_truth and a.ground_truth != NOT_PRESENT
    ]
    if len(missed) >= 2:
        patterns.append(
            'MISSING VALUES: AI is returning "Not Present" when values exist. '
            "Add more synonyms and search locations."
        )

    format_issues = [
        a for a in analyses
        if a.ground_truth != a.extracted_value
        and _NON_ALNUM_RE.sub("", a.ground_truth.lower()) == _NON_ALNUM_RE.sub("", a.extracted_value.lower())
    ]
    if format_issues:
        patterns.append(
            "FORMAT MISMATCH: Values match but format differs. Add explicit format instructions "
            '(e.g., "Return with $ symbol" or "Use YYYY-MM-DD format").'
        )

    return patterns


def build_document_context(analyses: list[FailureAnalysis]) -> str:
    """
    Render analyses as a section of the prompt generation request

    Args:
        analyses: Analyses to summarize (only the first few are shown)

    Returns:
        Markdown section text, or an empty string when there is nothing to show
    """
    if not analyses:
        return ""

    lines = [
        "",
        "## DOCUMENT ANALYSIS (Why Extractions Failed)",
        "The following analysis shows ACTUAL document content where errors occurred:",
        "",
    ]
    for analysis in analyses[:MAX_DOCS_IN_CONTEXT]:
        lines.append(f"### Document: {analysis.doc_name}")
        lines.append(f'- Expected: "{truncate(analysis.ground_truth, 80)}"')
        lines.append(f'- AI Extracted: "{truncate(analysis.extracted_value, 80)}"')
        lines.append(f"- Location: {analysis.location or 'Unknown'}")
        lines.append(f"- Failure Reason: {analysis.failure_reason}")
        if analysis.relevant_text:
            lines.append("- Document Text:")
            lines.append("```")
            lines.append(truncate(analysis.relevant_text, CONTEXT_SNIPPET_LENGTH))
            lines.append("```")
        lines.append(f"- Fix: {analysis.suggested_fix}")
        lines.append("")

    patterns = detect_failure_patterns(analyses)
    if patterns:
        lines.append("### Common Patterns Detected:")
        lines.extend(f"! {pattern}" for pattern in patterns)
        lines.append("")

    return "\n".join(lines)
