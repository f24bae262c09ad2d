"""
Semantic judge

LLM-backed judge that decides whether an extracted value means the same
thing as the ground truth.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from field_prompt_tuner.infrastructure.model_clients import ModelClient

from field_prompt_tuner.domain.value_objects import JudgeVerdict

logger = logging.getLogger(__name__)

DEFAULT_COMPARISON_PROMPT = (
    "Determine if these two values are semantically equivalent. "
    "Focus on meaning rather than exact phrasing."
)

# Characters of source document shown to the judge
DOCUMENT_EXCERPT_CHARS = 4000


class LLMJudgeError(Exception):
    """Error raised when the judge model cannot be reached"""
    pass


class SemanticJudge(ABC):
    """Decides semantic equivalence of an extracted value and its ground truth"""

    @abstractmethod
    def judge(
        self,
        extracted: str,
        ground_truth: str,
        comparison_prompt: str,
        document_id: str | None = None,
    ) -> JudgeVerdict:
        pass


def build_judge_prompt(
    ground_truth: str,
    extracted: str,
    criteria: str,
    document_excerpt: str | None = None,
) -> str:
    """Build the MATCH / NO_MATCH judging prompt"""
    parts: list[str] = [
        "You are a metadata validation assistant. Compare the following two values "
        "and determine if they match according to the criteria.",
        "",
        f'Ground Truth: "{ground_truth}"',
        f'Extracted Value: "{extracted}"',
        "",
        f"Criteria: {criteria}",
        "",
    ]
    if document_excerpt:
        parts.append("Source document excerpt (for context):")
        parts.append(document_excerpt)
        parts.append("")
    parts.extend([
        "Respond with EXACTLY one of:",
        "- MATCH: if the values satisfy the criteria",
        "- NO_MATCH: if the values do not satisfy the criteria",
        "",
        "Then on a new line, provide a brief reason (1 sentence).",
        "",
        "Format:",
        "MATCH or NO_MATCH",
        "Reason: [your reason]",
    ])
    return "\n".join(parts)


def parse_judge_response(response: str) -> JudgeVerdict:
    """
    Parse a MATCH / NO_MATCH answer

    The first non-empty line carries the decision; a negative marker wins over
    the positive one. Anything else is treated as a no-match.
    """
    lines = [line.strip() for line in (response or "").split("\n") if line.strip()]
    if not lines:
        return JudgeVerdict(is_match=False, reason="Empty response")

    first_line = lines[0].upper()
    if "NO_MATCH" in first_line or "NO MATCH" in first_line:
        is_match = False
    elif "MATCH" in first_line:
        is_match = True
    else:
        logger.warning("Ambiguous judge response, treating as no match: %s", lines[0])
        return JudgeVerdict(is_match=False, reason="Ambiguous response: " + response[:100])

    reason = "No reason provided"
    if len(lines) > 1:
        reason_line = next((line for line in lines if line.lower().startswith("reason:")), None)
        reason = reason_line[7:].strip() if reason_line else lines[1]

    return JudgeVerdict(is_match=is_match, reason=reason)


class LLMSemanticJudge(SemanticJudge):
    """
    Semantic judge that asks a model client

    Optionally shows the judge an excerpt of the source document when a
    text loader is supplied.
    """

    def __init__(
        self,
        client: ModelClient,
        load_text: Callable[[str], str | None] | None = None,
    ) -> None:
        self._client = client
        self._load_text = load_text

    def judge(
        self,
        extracted: str,
        ground_truth: str,
        comparison_prompt: str,
        document_id: str | None = None,
    ) -> JudgeVerdict:
        """
        Ask the model whether the two values match

        Raises:
            LLMJudgeError: When the model call fails
        """
        excerpt = None
        if document_id and self._load_text is not None:
            text = self._load_text(document_id)
            if text:
                excerpt = text[:DOCUMENT_EXCERPT_CHARS]

        prompt = build_judge_prompt(ground_truth, extracted, comparison_prompt or DEFAULT_COMPARISON_PROMPT, excerpt)
        try:
            response = self._client.generate(prompt)
        except Exception as e:
            raise LLMJudgeError(f"Judge model call failed: {e}") from e

        verdict = parse_judge_response(response.output)
        logger.debug(
            "Judge decision for %r vs %r: %s (%s)",
            extracted, ground_truth, verdict.is_match, verdict.reason,
        )
        return verdict
