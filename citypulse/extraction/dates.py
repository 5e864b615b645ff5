from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser as date_parser


_HAS_DIGIT = re.compile(r"\d")
# free text must name a month or weekday, or carry a full numeric date
_MONTH_OR_WEEKDAY = re.compile(
    r"\b(?:january|february|march|april|may|june|july|august|september|october|november|december"
    r"|jan|feb|mar|apr|jun|jul|aug|sept|sep|oct|nov|dec"
    r"|monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|mon|tues|tue|wed|thurs|thur|thu|fri|sat|sun)\b",
    re.I,
)
_NUMERIC_DATE = re.compile(r"\b\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}\b")

YEAR_WINDOW = 5


def _looks_like_date(text: str) -> bool:
    return bool(_MONTH_OR_WEEKDAY.search(text) or _NUMERIC_DATE.search(text))


def parse_when(value: Any, *, now: Optional[datetime] = None) -> Optional[datetime]:
    """Best-effort calendar date-time parsing for scraped and API values.

    Accepts datetimes, epoch seconds, ISO strings and free-form text such as
    "Saturday, June 14 2025 10:00am". Naive results are taken as UTC.
    Text results more than YEAR_WINDOW years away from `now` are discarded.
    Returns None when nothing usable is found.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    s = " ".join(str(value).split())
    if not s or not _HAS_DIGIT.search(s):
        return None
    if s.isdigit() and len(s) >= 9:
        return parse_when(int(s))

    iso = s.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        if not _looks_like_date(s):
            return None
        try:
            parsed = date_parser.parse(s, fuzzy=True)
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    reference = now or datetime.now(timezone.utc)
    if abs(parsed.year - reference.year) > YEAR_WINDOW:
        return None
    return parsed
