"""
Date normalization.

Four input formats are accepted, tried in this order:

    DD Mon YYYY      06 Dec 2025, 6 December 2025
    Mon DD, YYYY     Dec 06, 2025, December 6 2025
    YYYY-MM-DD       2025-12-06
    MM/DD/YYYY       12/06/2025

Everything is normalized to canonical YYYY-MM-DD. Impossible dates
(2025-02-30) and anything else normalize to None.
"""

import re
from datetime import date, datetime
from typing import Callable, Optional, Union


_MONTH_NAMES = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

_MONTHS: dict[str, int] = {}
for _number, _name in enumerate(_MONTH_NAMES, start=1):
    _MONTHS[_name] = _number
    _MONTHS[_name[:3]] = _number
_MONTHS["sept"] = 9


def month_number(name: str) -> Optional[int]:
    """1-12 for an English month name or abbreviation, else None."""
    return _MONTHS.get(name.strip().rstrip(".").lower())


# (regex, builder) pairs. Builders return (year, month, day) or None.
_DatePattern = tuple[re.Pattern, Callable[[re.Match], Optional[tuple[int, int, int]]]]


def _day_month_year(m: re.Match) -> Optional[tuple[int, int, int]]:
    month = month_number(m.group(2))
    return (int(m.group(3)), month, int(m.group(1))) if month else None


def _month_day_year(m: re.Match) -> Optional[tuple[int, int, int]]:
    month = month_number(m.group(1))
    return (int(m.group(3)), month, int(m.group(2))) if month else None


def _iso(m: re.Match) -> tuple[int, int, int]:
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def _us_slash(m: re.Match) -> tuple[int, int, int]:
    return int(m.group(3)), int(m.group(1)), int(m.group(2))


DATE_PATTERNS: list[_DatePattern] = [
    (re.compile(r"(?<!\d)(\d{1,2})\s+([A-Za-z]{3,9}\.?),?\s+(\d{4})(?!\d)"), _day_month_year),
    (re.compile(r"\b([A-Za-z]{3,9}\.?)\s+(\d{1,2}),?\s+(\d{4})(?!\d)"), _month_day_year),
    (re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)"), _iso),
    (re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)"), _us_slash),
]


def _to_iso(parts: Optional[tuple[int, int, int]]) -> Optional[str]:
    if parts is None:
        return None
    try:
        return date(*parts).isoformat()
    except ValueError:
        return None


def normalize_date(value: Union[str, date, None]) -> Optional[str]:
    """
    Canonical YYYY-MM-DD for a date string in one of the supported
    formats, or for a date/datetime object. None for anything else.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None

    text = value.strip()
    for pattern, build in DATE_PATTERNS:
        match = pattern.fullmatch(text)
        if match:
            return _to_iso(build(match))
    return None


def find_date(line: str) -> Optional[str]:
    """
    First date found anywhere in a line of text, normalized.

    Patterns are tried in cascade order; a pattern whose match is not a
    real date falls through to the next one.
    """
    for pattern, build in DATE_PATTERNS:
        for match in pattern.finditer(line):
            normalized = _to_iso(build(match))
            if normalized:
                return normalized
    return None
