"""
Prompt generator response parsing

Tolerant parser for free-text model answers that should contain
{"newPrompt": ..., "reasoning": ...}. Tries a fixed list of shapes and
falls back to the trimmed raw text.
"""

from __future__ import annotations

import json
import logging
import re

from field_prompt_tuner.domain.value_objects import GeneratedPrompt

logger = logging.getLogger(__name__)

PROMPT_KEYS = ("newPrompt", "prompt", "new_prompt")
REASONING_KEYS = ("reasoning", "reason")
NO_REASONING = "No reasoning provided"

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_EMBEDDED_PROMPT_RE = re.compile(r'"(?:newPrompt|new_prompt|prompt)"\s*:\s*"((?:[^"\\]|\\.)*)"')
_EMBEDDED_REASONING_RE = re.compile(r'"reasoning"\s*:\s*"((?:[^"\\]|\\.)*)"')


def _from_mapping(data: object) -> GeneratedPrompt | None:
    if not isinstance(data, dict):
        return None
    for key in PROMPT_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            reasoning = next(
                (data[k] for k in REASONING_KEYS if isinstance(data.get(k), str) and data[k].strip()),
                NO_REASONING,
            )
            return GeneratedPrompt(new_prompt=value.strip(), reasoning=reasoning)
    return None


def _try_direct_json(text: str) -> GeneratedPrompt | None:
    try:
        return _from_mapping(json.loads(text))
    except json.JSONDecodeError:
        return None


def _try_fenced_json(text: str) -> GeneratedPrompt | None:
    for block in _FENCED_JSON_RE.findall(text):
        result = _try_direct_json(block)
        if result is not None:
            return result
    return None


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except json.JSONDecodeError:
        return value.replace('\\"', '"').replace("\\n", " ")


def _try_embedded_value(text: str) -> GeneratedPrompt | None:
    match = _EMBEDDED_PROMPT_RE.search(text)
    if not match:
        return None
    prompt = _unescape(match.group(1)).strip()
    if not prompt:
        return None
    reasoning_match = _EMBEDDED_REASONING_RE.search(text)
    reasoning = _unescape(reasoning_match.group(1)).strip() if reasoning_match else "Extracted from text"
    return GeneratedPrompt(new_prompt=prompt, reasoning=reasoning)


_STRATEGIES = (_try_direct_json, _try_fenced_json, _try_embedded_value)


def parse_prompt_response(response: str | None) -> GeneratedPrompt:
    """
    Parse a prompt generator answer

    Shapes tried in order: direct JSON, markdown-fenced JSON, an embedded
    "newPrompt" value, then plain text.

    Args:
        response: Raw model output

    Returns:
        GeneratedPrompt (the trimmed raw text when no known shape matched)
    """
    text = (response or "").strip()
    for strategy in _STRATEGIES:
        result = strategy(text)
        if result is not None:
            return result

    logger.debug("Prompt response had no structured shape, using raw text")
    return GeneratedPrompt(new_prompt=text, reasoning="Used raw response text")
