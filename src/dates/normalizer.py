"""Canonical due dates.

Every date the engine stores is a `YYYY-MM-DD` string. This module turns ISO
text, raw values (dates, timestamps) and loose phrases such as "next friday" or
"in two weeks" into that form, or returns None when the input has no valid date.

Arithmetic runs on `date` objects, i.e. whole calendar days anchored at local
noon, so results never shift across daylight-saving transitions.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterator, Optional

from dateutil import parser as date_parser

ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

WEEKDAYS = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1, "tues": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3, "thur": 3, "thurs": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}
FULL_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

NUMBER_WORDS = {
    "a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

SATURDAY = 5

_WEEKDAY_ALT = "|".join(sorted(WEEKDAYS, key=len, reverse=True))
_MONTH_ALT = "|".join(sorted(MONTHS, key=len, reverse=True))
_NUMBER_ALT = r"\d+|" + "|".join(NUMBER_WORDS)


@dataclass(frozen=True)
class DateMatch:
    """A date phrase found inside a longer sentence."""

    start: int
    end: int
    text: str
    value: str


def to_iso(day: date) -> str:
    return day.isoformat()


def is_canonical_date(value: Any) -> bool:
    if not isinstance(value, str) or not ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def parse_number(word: str) -> Optional[int]:
    word = word.lower()
    if word.isdigit():
        return int(word)
    return NUMBER_WORDS.get(word)


def days_until_weekday(today: date, weekday: int) -> int:
    """Days from `today` to the next `weekday` (Monday=0), zero when today matches."""
    return (weekday - today.weekday()) % 7


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


# --- rule resolvers -------------------------------------------------------
# Each resolver gets the regex match and the reference day and returns the
# resolved calendar day, or None when the matched text is not a real date.


def _offset(days: int) -> Callable[[re.Match, date], Optional[date]]:
    def resolve(match: re.Match, today: date) -> Optional[date]:
        return today + timedelta(days=days)
    return resolve


def _in_n_units(match: re.Match, today: date) -> Optional[date]:
    amount = parse_number(match.group("n"))
    if amount is None:
        return None
    unit = match.group("unit").lower()
    if unit.startswith("week"):
        amount *= 7
    return today + timedelta(days=amount)


def _weekend(match: re.Match, today: date) -> Optional[date]:
    saturday = today + timedelta(days=days_until_weekday(today, SATURDAY))
    if match.group(0).lower().startswith("next"):
        saturday += timedelta(days=7)
    return saturday


def _next_month(match: re.Match, today: date) -> Optional[date]:
    if today.month == 12:
        return date(today.year + 1, 1, 1)
    return date(today.year, today.month + 1, 1)


def _end_of_month(match: re.Match, today: date) -> Optional[date]:
    last = calendar.monthrange(today.year, today.month)[1]
    return date(today.year, today.month, last)


def _month_day(match: re.Match, today: date) -> Optional[date]:
    month = MONTHS[match.group("month").lower()]
    day = int(match.group("day"))
    year = match.group("year")
    if year:
        return _safe_date(int(year), month, day)
    candidate = _safe_date(today.year, month, day)
    if candidate is None:
        # Feb 29 may exist next year even when it does not this year.
        return _safe_date(today.year + 1, month, day)
    if candidate < today:
        return _safe_date(today.year + 1, month, day)
    return candidate


def _us_numeric(match: re.Match, today: date) -> Optional[date]:
    return _safe_date(int(match.group("year")), int(match.group("month")), int(match.group("day")))


def _embedded_iso(match: re.Match, today: date) -> Optional[date]:
    return _safe_date(int(match.group("year")), int(match.group("month")), int(match.group("day")))


def _weekday(match: re.Match, today: date) -> Optional[date]:
    name = match.group("day").lower()
    qualifier = (match.group("qual") or "").lower()
    if name not in FULL_WEEKDAYS and not (qualifier or match.group("on")):
        # "sat", "sun", "wed" are too common as ordinary words to stand alone.
        return None
    ahead = days_until_weekday(today, WEEKDAYS[name])
    if qualifier in {"next", "upcoming", "coming"}:
        ahead += 7
    return today + timedelta(days=ahead)


_FLAGS = re.IGNORECASE

DATE_RULES = (
    ("day-after-tomorrow", re.compile(r"\bday\s+after\s+tomorrow\b", _FLAGS), _offset(2)),
    ("today", re.compile(r"\b(?:today|tonight)\b", _FLAGS), _offset(0)),
    ("tomorrow", re.compile(r"\b(?:tomorrow|tmrw|tmr)\b", _FLAGS), _offset(1)),
    (
        "in-n-units",
        re.compile(rf"\bin\s+(?P<n>{_NUMBER_ALT})\s+(?P<unit>days?|weeks?)\b", _FLAGS),
        _in_n_units,
    ),
    ("weekend", re.compile(r"\b(?:next\s+weekend|this\s+weekend|weekend)\b", _FLAGS), _weekend),
    ("next-week", re.compile(r"\bnext\s+week\b", _FLAGS), _offset(7)),
    ("next-month", re.compile(r"\bnext\s+month\b", _FLAGS), _next_month),
    ("end-of-month", re.compile(r"\bend\s+of\s+(?:the\s+)?month\b", _FLAGS), _end_of_month),
    (
        "month-day",
        re.compile(
            rf"\b(?:(?:{_WEEKDAY_ALT})\s*,?\s+)?(?P<month>{_MONTH_ALT})\.?\s+(?P<day>\d{{1,2}})"
            rf"(?:st|nd|rd|th)?\b(?:\s*,?\s*(?P<year>\d{{4}})\b)?",
            _FLAGS,
        ),
        _month_day,
    ),
    (
        "us-numeric",
        re.compile(r"\b(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4})\b", _FLAGS),
        _us_numeric,
    ),
    (
        "iso",
        re.compile(r"\b(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})\b", _FLAGS),
        _embedded_iso,
    ),
    (
        "weekday",
        re.compile(
            rf"(?<!every )(?<!each )\b(?:(?P<qual>this|next|upcoming|coming)\s+|(?P<on>on)\s+)?"
            rf"(?P<day>{_WEEKDAY_ALT})\b",
            _FLAGS,
        ),
        _weekday,
    ),
)


def iter_date_phrases(text: str, today: Optional[date] = None) -> Iterator[DateMatch]:
    """Yield every resolvable date phrase in `text`, in rule priority order."""
    today = today or date.today()
    for _name, pattern, resolve in DATE_RULES:
        for match in pattern.finditer(text):
            day = resolve(match, today)
            if day is None:
                continue
            yield DateMatch(match.start(), match.end(), match.group(0), to_iso(day))


# Rules whose text can look like a date yet name no real day ("Feb 30", "2025-02-30").
_CALENDAR_RULES = ("month-day", "us-numeric", "iso")


def iter_unresolved_dates(text: str, today: Optional[date] = None) -> Iterator[re.Match]:
    """Yield calendar-date spans in `text` that do not resolve to a real day."""
    today = today or date.today()
    for name, pattern, resolve in DATE_RULES:
        if name not in _CALENDAR_RULES:
            continue
        for match in pattern.finditer(text):
            if resolve(match, today) is None:
                yield match


def search_date_phrase(text: str, today: Optional[date] = None) -> Optional[DateMatch]:
    return next(iter_date_phrases(text or "", today), None)


def parse_date_phrase(text: str, today: Optional[date] = None) -> Optional[str]:
    match = search_date_phrase(text, today)
    return match.value if match else None


def normalize_due_date(value: Any, today: Optional[date] = None) -> Optional[str]:
    """Canonicalize `value` to `YYYY-MM-DD`, or None when it holds no valid date.

    Accepts date/datetime objects, POSIX timestamps in seconds, strict ISO dates,
    natural-language phrases, and anything else `dateutil` can read
    (2025/01/05, "5 January 2025", full ISO-8601 timestamps). Strict ISO text that
    names a nonexistent day (2024-02-30) is rejected rather than rolled over.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return to_iso(value.date())
    if isinstance(value, date):
        return to_iso(value)
    if isinstance(value, (int, float)):
        try:
            return to_iso(datetime.fromtimestamp(value).date())
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if ISO_DATE.match(text):
        return text if is_canonical_date(text) else None

    phrase = parse_date_phrase(text, today)
    if phrase is not None:
        return phrase

    default = datetime.combine(today or date.today(), datetime.min.time())
    try:
        return to_iso(date_parser.parse(text, default=default).date())
    except (ValueError, OverflowError):
        return None
