"""
Flexible date parsing

Parses the date layouts commonly found in contracts and extraction output.
Ambiguous day/month order is resolved by whichever component exceeds 12,
defaulting to month-first.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from dateutil import parser as date_parser

_MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_ISO_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$")
_NUMERIC_SHORT_YEAR_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{2})$")
_NUMERIC_LONG_YEAR_RE = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")
_MON_SHORT_YEAR_RE = re.compile(r"^([a-z]{3})[-/](\d{1,2})[-/](\d{2})$", re.IGNORECASE)
_MON_LONG_YEAR_RE = re.compile(r"^([a-z]{3})[-/](\d{1,2})[-/](\d{4})$", re.IGNORECASE)
_MONTH_NAME_RE = re.compile(r"^([a-z]+)\s+(\d{1,2}),?\s+(\d{4})$", re.IGNORECASE)

_DATE_LIKE_PATTERNS = [
    re.compile(r"^\d{4}[-/]\d{1,2}[-/]\d{1,2}$"),
    re.compile(r"^\d{1,2}[-/]\d{1,2}[-/]\d{2,4}$"),
    re.compile(r"^[A-Za-z]{3}[-/]\d{1,2}[-/]\d{2,4}$"),
    re.compile(r"^[A-Za-z]{3,9}\s+\d{1,2},?\s+\d{4}$"),
    re.compile(r"^\d{1,2}\s+[A-Za-z]{3,9}\s+\d{4}$"),
    re.compile(r"^[A-Za-z]{3,9}\s+\d{1,2}$"),
    re.compile(r"^[A-Za-z]{3,9}\s+\d{4}$"),
]

_FALLBACK_DEFAULT = datetime(1900, 1, 1)


def _expand_year(two_digit: str) -> int:
    year = int(two_digit)
    return 2000 + year if year < 50 else 1900 + year


def _month_day(first: int, second: int) -> tuple[int, int]:
    """Resolve (month, day) from two numeric components"""
    if first > 12:
        return second, first
    return first, second


def _from_iso(m: re.Match) -> date:
    return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def _from_numeric_short(m: re.Match) -> date:
    month, day = _month_day(int(m.group(1)), int(m.group(2)))
    return date(_expand_year(m.group(3)), month, day)


def _from_numeric_long(m: re.Match) -> date:
    month, day = _month_day(int(m.group(1)), int(m.group(2)))
    return date(int(m.group(3)), month, day)


def _from_mon_short(m: re.Match) -> date | None:
    month = _MONTHS.get(m.group(1).lower())
    if month is None:
        return None
    return date(_expand_year(m.group(3)), month, int(m.group(2)))


def _from_mon_long(m: re.Match) -> date | None:
    month = _MONTHS.get(m.group(1).lower())
    if month is None:
        return None
    return date(int(m.group(3)), month, int(m.group(2)))


def _from_month_name(m: re.Match) -> date | None:
    month = _MONTHS.get(m.group(1).lower())
    if month is None:
        return None
    return date(int(m.group(3)), month, int(m.group(2)))


_PATTERNS = [
    (_ISO_RE, _from_iso),
    (_NUMERIC_SHORT_YEAR_RE, _from_numeric_short),
    (_NUMERIC_LONG_YEAR_RE, _from_numeric_long),
    (_MON_SHORT_YEAR_RE, _from_mon_short),
    (_MON_LONG_YEAR_RE, _from_mon_long),
    (_MONTH_NAME_RE, _from_month_name),
]


def parse_flexible_date(text: str) -> date | None:
    """
    Parse a date string in any supported layout

    Tries the fixed layouts first (ISO, numeric with 2- or 4-digit years,
    "MAR-22-08", "March 22, 2008"); impossible calendar dates fall through to
    the next layout. Anything else is handed to dateutil.

    Args:
        text: Date string

    Returns:
        The calendar day, or None if the string is not a date
    """
    if not text:
        return None
    trimmed = text.strip()
    if not trimmed:
        return None

    for pattern, build in _PATTERNS:
        match = pattern.match(trimmed)
        if not match:
            continue
        try:
            parsed = build(match)
        except ValueError:
            continue
        if parsed is not None:
            return parsed

    try:
        return date_parser.parse(trimmed, default=_FALLBACK_DEFAULT).date()
    except (ValueError, OverflowError):
        return None


def is_date_like(text: str) -> bool:
    """Whether a string has the shape of a date"""
    if not text:
        return False
    trimmed = text.strip()
    return any(pattern.match(trimmed) for pattern in _DATE_LIKE_PATTERNS)


def dates_equal(first: str, second: str) -> bool:
    """Whether two date strings denote the same calendar day"""
    parsed_first = parse_flexible_date(first)
    parsed_second = parse_flexible_date(second)
    if parsed_first is None or parsed_second is None:
        return False
    return parsed_first == parsed_second
