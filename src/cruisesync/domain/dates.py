"""Shared date parsing for scraped and stored records.

Records arrive with dates in several shapes; everything is re-serialised to the
canonical dashed ``MM-DD-YYYY`` form before it is compared or persisted.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Final

CANONICAL_FORMAT: Final[str] = "%m-%d-%Y"

_DASHED = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_SLASHED = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})$")
_ISO = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
_COMPACT = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_CANONICAL = re.compile(r"^\d{2}-\d{2}-\d{4}$")


def parse_date(value: object) -> date | None:
    """Parse dashed, slashed, ISO or compact dates; return ``None`` when unparseable."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    if match := _DASHED.match(text):
        month, day, year = (int(part) for part in match.groups())
    elif match := _SLASHED.match(text):
        month, day = int(match.group(1)), int(match.group(2))
        year = int(match.group(3))
        if year < 100:
            year += 2000
    elif match := _ISO.match(text):
        year, month, day = (int(part) for part in match.groups())
    elif match := _COMPACT.match(text):
        year, month, day = (int(part) for part in match.groups())
    else:
        return None

    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_date(value: date) -> str:
    return value.strftime(CANONICAL_FORMAT)


def is_canonical(value: str) -> bool:
    return bool(_CANONICAL.match(value)) and parse_date(value) is not None


def add_days(value: str, days: int) -> str | None:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return format_date(parsed + timedelta(days=days))


def days_between(start: str | None, end: str | None) -> int | None:
    """Whole days from ``start`` to ``end``; ``None`` if either side is unparseable."""

    first = parse_date(start)
    second = parse_date(end)
    if first is None or second is None:
        return None
    return (second - first).days


def days_in_past(value: str | None, *, today: date) -> int | None:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return (today - parsed).days


def is_past(value: str | None, *, today: date) -> bool:
    elapsed = days_in_past(value, today=today)
    return elapsed is not None and elapsed > 0
