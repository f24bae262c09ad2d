"""
Text normalization helpers

Normalization shared by the near-exact and list comparison strategies:
spelled-out numbers, duration units, punctuation and whitespace.
"""

from __future__ import annotations

import math
import re

# Insertion order matters: "sixty (60)" is folded before "sixty" becomes "60"
_WORD_TO_NUMBER = {
    "zero": "0", "one": "1", "two": "2", "three": "3", "four": "4",
    "five": "5", "six": "6", "seven": "7", "eight": "8", "nine": "9",
    "ten": "10", "eleven": "11", "twelve": "12", "thirteen": "13",
    "fourteen": "14", "fifteen": "15", "sixteen": "16", "seventeen": "17",
    "eighteen": "18", "nineteen": "19", "twenty": "20", "thirty": "30",
    "forty": "40", "fifty": "50", "sixty": "60", "seventy": "70",
    "eighty": "80", "ninety": "90", "hundred": "100", "thousand": "1000",
}

_PAREN_NUMBER_PATTERNS = [
    (re.compile(rf"\b{word}\s*\({digit}\)", re.IGNORECASE), word)
    for word, digit in _WORD_TO_NUMBER.items()
]
_WORD_PATTERNS = [
    (re.compile(rf"\b{word}\b", re.IGNORECASE), digit)
    for word, digit in _WORD_TO_NUMBER.items()
]

_ONES = ("one", "two", "three", "four", "five", "six", "seven", "eight", "nine")
_TENS = ("twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety")
_BELOW_TWENTY = ("zero",) + _ONES + (
    "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen", "nineteen",
)

_ONES_ALT = rf"(?:{'|'.join(_ONES)})\b"
_TENS_ALT = rf"(?:{'|'.join(_TENS)})\b"
_BELOW_HUNDRED_ALT = rf"(?:{_TENS_ALT}(?:[\s-]+{_ONES_ALT})?|(?:{'|'.join(_BELOW_TWENTY)})\b)"

# Multi-word numbers up to 1000: "forty-five", "one hundred (and) twenty", "one thousand"
_COMPOUND_NUMBER_RE = re.compile(
    rf"\b(?P<words>(?:one|a)\s+thousand\b"
    rf"|(?:{_ONES_ALT}|a\b)\s+hundred\b(?:\s+(?:and\s+)?{_BELOW_HUNDRED_ALT})?"
    rf"|{_TENS_ALT}[\s-]+{_ONES_ALT})"
    rf"(?:\s*\((?P<digits>\d+)\))?",
    re.IGNORECASE,
)
_NUMBER_WORD_SPLIT_RE = re.compile(r"[\s-]+")

_YEARS_RE = re.compile(r"(\d+)\s*years?", re.IGNORECASE)
_WEEKS_RE = re.compile(r"(\d+)\s*weeks?", re.IGNORECASE)
_DAYS_RE = re.compile(r"(\d+)\s*days?", re.IGNORECASE)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_PARENTHETICAL_RE = re.compile(r"\([^)]*\)")
_HONORIFIC_RE = re.compile(r"\b(mr|mrs|ms|dr|prof|sir|dame|lord|lady)\b\.?", re.IGNORECASE)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3)"""
    return math.floor(value + 0.5)


def _days_to_unit(match: re.Match) -> str:
    days = int(match.group(1))
    if days >= 28:
        months = round_half_up(days / 30)
        if months > 0:
            return f"{months} months"
    return f"{days} days"


def _compound_value(words: str) -> int:
    total = 0
    for word in _NUMBER_WORD_SPLIT_RE.split(words.lower()):
        if word == "and":
            continue
        if word == "hundred":
            total = (total or 1) * 100
        elif word == "thousand":
            total = (total or 1) * 1000
        elif word == "a":
            total += 1
        else:
            total += int(_WORD_TO_NUMBER[word])
    return total


def _compound_to_digits(match: re.Match) -> str:
    value = _compound_value(match.group("words"))
    digits = match.group("digits")
    if digits is None or int(digits) == value:
        return str(value)
    return f"{value} ({digits})"


def normalize_duration(text: str) -> str:
    """
    Fold duration expressions to a common month unit

    "2 years" -> "24 months", "365 days" -> "12 months". Day counts under 28
    stay in days.
    """
    text = _YEARS_RE.sub(lambda m: f"{int(m.group(1)) * 12} months", text)
    text = _WEEKS_RE.sub(lambda m: f"{round_half_up(int(m.group(1)) / 4.33)} months", text)
    return _DAYS_RE.sub(_days_to_unit, text)


def normalize_text(text: str) -> str:
    """
    Normalize text for near-exact comparison

    - Convert to lowercase
    - Convert multi-word numbers ("forty-five (45)" -> "45")
    - Drop redundant parenthetical numbers ("sixty (60)" -> "sixty")
    - Convert spelled-out numbers to digits
    - Fold durations to months
    - Remove punctuation and collapse whitespace

    Args:
        text: Text to normalize

    Returns:
        Normalized text ("" for empty input)
    """
    if not text:
        return ""

    normalized = text.lower()
    normalized = _COMPOUND_NUMBER_RE.sub(_compound_to_digits, normalized)
    for pattern, word in _PAREN_NUMBER_PATTERNS:
        normalized = pattern.sub(word, normalized)
    for pattern, digit in _WORD_PATTERNS:
        normalized = pattern.sub(digit, normalized)

    normalized = normalize_duration(normalized)
    normalized = _PUNCTUATION_RE.sub("", normalized)
    return _WHITESPACE_RE.sub(" ", normalized).strip()


def normalize_for_metrics(text: str) -> str:
    """Lightweight normalization used by metric aggregation (case, whitespace, punctuation)"""
    if not text:
        return ""
    normalized = _WHITESPACE_RE.sub(" ", text.strip().lower())
    return _PUNCTUATION_RE.sub("", normalized).strip()


def extract_core_names(text: str) -> str:
    """
    Reduce a name to its core for loose matching

    "Dr. Jeffrey D. Fox (Managing Director)" -> "jeffrey d fox"
    """
    if not text:
        return ""
    cleaned = _PARENTHETICAL_RE.sub("", text.lower())
    cleaned = _HONORIFIC_RE.sub("", cleaned)
    return normalize_text(cleaned)


def detect_separator(extracted: str, ground_truth: str) -> str:
    """Pipe when either side contains one, otherwise comma"""
    if "|" in extracted or "|" in ground_truth:
        return "|"
    return ","


def parse_list(text: str, separator: str) -> list[str]:
    """Split a delimited value into normalized, non-empty items"""
    if not text:
        return []
    items = (normalize_text(item) for item in text.split(separator))
    return [item for item in items if item]
