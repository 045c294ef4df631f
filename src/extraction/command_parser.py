"""Local, rule-based parsing of task commands.

Detection always runs against the original sentence. Each detected phrase only
marks its character span for removal, and the task description is whatever
is left once every marked span is cut out. One removal therefore never breaks
detection of another phrase, and the description keeps the user's casing.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from classification.priority import parse_priority_word
from classification.task_classifier import KNOWN_CATEGORIES, infer_category
from dates.normalizer import (
    DateMatch,
    WEEKDAYS,
    days_until_weekday,
    iter_date_phrases,
    iter_unresolved_dates,
    parse_number,
    search_date_phrase,
    to_iso,
)
from tasktalk.models import RecurrenceRule, TaskPayload
from tasktalk.text import collapse_whitespace, sanitize_plain_text

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

INTENT_PREFIX = re.compile(
    r"(?:please|kindly|hey|ok(?:ay)?"
    r"|(?:can|could|would)\s+you(?:\s+please)?"
    r"|i\s+(?:need|want|have)\s+to|i\s+must|i've\s+got\s+to|i\s+should"
    r"|remind\s+me\s+to|remind\s+me|don't\s+forget\s+to"
    r"|add\s+(?:a\s+)?(?:new\s+)?task(?:\s+to)?|create\s+(?:a\s+)?(?:new\s+)?task(?:\s+to)?|new\s+task"
    r"|add|create|(?:todo|to-do|task)\s*:)"
    r"(?=[\s,:;.!-]|$)[\s,:;.!-]*",
    _I,
)

PRIORITY_MARKERS = (
    re.compile(r"\b(?:with\s+)?(?:a\s+)?priority\s*(?:of|:|=|is)?\s*(?P<word>[a-z]+)\b", _I),
    re.compile(r"\b(?:with\s+)?(?:a\s+)?(?P<word>[a-z]+)[\s-]+priority\b", _I),
    re.compile(r"\b(?P<word>when\s+possible)\b", _I),
    re.compile(
        r"\b(?P<word>urgent|asap|critical|important|immediately|someday|eventually|whenever|optional)\b",
        _I,
    ),
)

_WEEKDAY_FULL = "monday|tuesday|wednesday|thursday|friday|saturday|sunday"
_NUMBER = r"\d+|one|two|three|four|five|six|seven|eight|nine|ten"

# (pattern, builder) in priority order; the first hit wins.
RECURRENCE_MARKERS = (
    (
        re.compile(rf"\b(?:every|each)\s+(?P<day>{_WEEKDAY_FULL})s?\b", _I),
        lambda m: RecurrenceRule(type="weekly", day_of_week=(WEEKDAYS[m.group("day").lower()] + 1) % 7),
    ),
    (
        re.compile(rf"\bevery\s+(?P<n>{_NUMBER})\s+(?P<unit>days?|weeks?|months?)\b", _I),
        lambda m: RecurrenceRule(
            type={"d": "daily", "w": "weekly", "m": "monthly"}[m.group("unit")[0].lower()],
            interval=max(parse_number(m.group("n")) or 1, 1),
        ),
    ),
    (
        re.compile(r"\b(?:every\s+other\s+week|bi-?weekly|fortnightly)\b", _I),
        lambda m: RecurrenceRule(type="weekly", interval=2),
    ),
    (
        re.compile(r"\b(?:daily|every\s*day|each\s+day)\b", _I),
        lambda m: RecurrenceRule(type="daily"),
    ),
    (
        re.compile(r"\b(?:weekly|every\s+week|each\s+week)\b", _I),
        lambda m: RecurrenceRule(type="weekly"),
    ),
    (
        re.compile(r"\b(?:monthly|every\s+month|each\s+month)\b", _I),
        lambda m: RecurrenceRule(type="monthly"),
    ),
)

_CATEGORY_ALT = "|".join(KNOWN_CATEGORIES)
EXPLICIT_CATEGORY = re.compile(
    rf"(?:#(?P<tag>[a-z]+)\b"
    rf"|\b(?:category|cat)\s*[:=]\s*(?P<named>[a-z]+)\b"
    rf"|\b(?:in|under|for)\s+(?:the\s+|my\s+)?(?P<listed>{_CATEGORY_ALT})\s+(?:category|list)\b)",
    _I,
)

LIST_SUFFIX = re.compile(
    r"\b(?:to|on|in|onto)\s+(?:my|the)\s+(?:to-?do\s+|task\s+)?(?:list|tasks)\b", _I
)

DATE_PREPOSITION = re.compile(r"\b(?:due(?:\s+(?:on|by))?|by|on|before|until)\s+$", _I)

_LEADING_FILLER = {"to", "with", "and"}
_TRAILING_FILLER = {
    "by", "on", "at", "for", "due", "until", "before", "with", "priority",
    "task", "and", "a",
}
_EDGE_PUNCTUATION = " \t.,;:!?-"


@dataclass
class _Scan:
    sentence: str
    spans: list = field(default_factory=list)

    def overlaps(self, start: int, end: int) -> bool:
        return any(start < e and s < end for s, e in self.spans)

    def mark(self, start: int, end: int) -> None:
        self.spans.append((start, end))

    def remaining(self) -> str:
        keep = [" " if any(s <= i < e for s, e in self.spans) else ch for i, ch in enumerate(self.sentence)]
        return "".join(keep)


def _strip_intent(scan: _Scan) -> None:
    pos = len(scan.sentence) - len(scan.sentence.lstrip())
    while True:
        match = INTENT_PREFIX.match(scan.sentence, pos)
        if not match or match.end() == pos:
            return
        scan.mark(match.start(), match.end())
        pos = match.end()


def _detect_priority(scan: _Scan) -> Optional[str]:
    found = None
    for pattern in PRIORITY_MARKERS:
        for match in pattern.finditer(scan.sentence):
            if scan.overlaps(match.start(), match.end()):
                continue
            level = parse_priority_word(match.group("word"))
            if level is None:
                continue
            scan.mark(match.start(), match.end())
            if found is None:
                found = level
    return found


def _mark_date(scan: _Scan, start: int, end: int) -> None:
    lead = DATE_PREPOSITION.search(scan.sentence[:start])
    if lead and not scan.overlaps(lead.start(), start):
        start = lead.start()
    scan.mark(start, end)


def _detect_date(scan: _Scan, today: Optional[date]) -> Optional[str]:
    """Resolved ISO date, or the raw text of a date that names no real day."""
    for found in iter_date_phrases(scan.sentence, today):
        if scan.overlaps(found.start, found.end):
            continue
        _mark_date(scan, found.start, found.end)
        return found.value
    for match in iter_unresolved_dates(scan.sentence, today):
        if scan.overlaps(match.start(), match.end()):
            continue
        # kept raw so validation reports it as an invalid date
        _mark_date(scan, match.start(), match.end())
        return match.group(0)
    return None


def _detect_recurrence(scan: _Scan) -> Optional[RecurrenceRule]:
    for pattern, build in RECURRENCE_MARKERS:
        for match in pattern.finditer(scan.sentence):
            if scan.overlaps(match.start(), match.end()):
                continue
            scan.mark(match.start(), match.end())
            return build(match)
    return None


def _detect_category(scan: _Scan) -> Optional[str]:
    for match in EXPLICIT_CATEGORY.finditer(scan.sentence):
        if scan.overlaps(match.start(), match.end()):
            continue
        scan.mark(match.start(), match.end())
        return (match.group("tag") or match.group("named") or match.group("listed")).lower()
    return None


def first_weekday_on_or_after(today: date, day_of_week: int) -> date:
    """`day_of_week` uses 0 = Sunday."""
    return today + timedelta(days=days_until_weekday(today, (day_of_week - 1) % 7))


def clean_description(text: str) -> str:
    text = LIST_SUFFIX.sub(" ", text)
    tokens = collapse_whitespace(text).strip(_EDGE_PUNCTUATION).split()
    changed = True
    while tokens and changed:
        changed = False
        if tokens and tokens[0].lower() in _LEADING_FILLER:
            tokens.pop(0)
            changed = True
        if tokens and tokens[-1].lower().strip(_EDGE_PUNCTUATION) in _TRAILING_FILLER:
            tokens.pop()
            changed = True
    return " ".join(tokens).strip(_EDGE_PUNCTUATION)


def parse_single_task(sentence: str, today: Optional[date] = None) -> Optional[TaskPayload]:
    """Parse one task out of a free-text sentence.

    Returns None when nothing usable is left after the intent words, priority,
    date, recurrence and category markers are cut out.
    """
    sentence = sanitize_plain_text(sentence)
    if not sentence:
        return None
    today = today or date.today()
    scan = _Scan(sentence)

    _strip_intent(scan)
    priority = _detect_priority(scan)
    due_date = _detect_date(scan, today)
    recurring = _detect_recurrence(scan)
    if recurring is not None and recurring.day_of_week is not None and due_date is None:
        due_date = to_iso(first_weekday_on_or_after(today, recurring.day_of_week))
    category = _detect_category(scan)

    text = clean_description(scan.remaining())
    if len(text) < 2:
        logger.debug(f"No task description left in '{sentence}'")
        return None
    if category is None:
        category = infer_category(text)

    return TaskPayload(
        text=text,
        priority=priority,
        due_date=due_date,
        category=category,
        recurring=recurring,
    )


# --- references to existing tasks ---------------------------------------

REFERENCE_LEAD = re.compile(
    r"^(?:(?:please|kindly|can\s+you|could\s+you)\s+)*"
    r"(?:i(?:\s+have|'ve|\s+just)?\s+(?:finished|completed|done|did)"
    r"|mark(?:\s+off)?|complete|finish(?:ed)?|done(?:\s+with)?|check\s+off|tick\s+off"
    r"|delete|remove|cancel|drop|get\s+rid\s+of)\s+",
    _I,
)
REFERENCE_TAIL = re.compile(r"\s+(?:as\s+)?(?:complete|completed|done|finished)\s*[.!]*$", _I)
REFERENCE_FILLER = re.compile(r"^(?:(?:please|kindly|the|a|an|my|task)\s+)+", _I)
ID_REFERENCE = re.compile(r"\bid:([a-z0-9]+)\b", _I)


def extract_task_reference(message: str) -> str:
    """Strip command words so only the description of the target task is left."""
    text = sanitize_plain_text(message)
    text = REFERENCE_LEAD.sub("", text, count=1)
    text = REFERENCE_TAIL.sub("", text)
    text = REFERENCE_FILLER.sub("", text)
    return text.strip(_EDGE_PUNCTUATION)


def find_id_reference(message: str) -> Optional[str]:
    match = ID_REFERENCE.search(message or "")
    return match.group(1) if match else None


@dataclass(frozen=True)
class DueDateChange:
    task_name: str
    when: DateMatch


@dataclass(frozen=True)
class PriorityChange:
    task_name: str
    priority: str


DUE_DATE_CHANGE = (
    re.compile(
        r"^(?:please\s+)?(?:change|set|update|adjust)\s+(?:the\s+)?(?:due\s+date|deadline|date)"
        r"(?:\s+(?:of|for|on))?\s+(?P<body>.+)$",
        _I,
    ),
    re.compile(
        r"^(?:please\s+)?(?:move|push|reschedule|postpone|delay|shift)\s+(?:the\s+)?(?P<body>.+)$",
        _I,
    ),
)
DATE_SEPARATOR = re.compile(r"\s+(?:to|for|by|on|until|till)\s+", _I)

PRIORITY_CHANGE = re.compile(
    r"^(?:please\s+)?(?:set|change|update|adjust|make|mark|raise|lower|bump)\s+(?:the\s+)?"
    r"(?:priority(?:\s+(?:of|for|on))?\s+)?(?P<body>.+)$",
    _I,
)
PRIORITY_SEPARATOR = re.compile(r"\s+(?:to|as|be|is|become)\s+", _I)
TRAILING_PRIORITY = re.compile(r"^(?P<task>.+?)\s+(?P<level>[a-z]+)\s+priority$", _I)


def _strip_article(text: str) -> str:
    return REFERENCE_FILLER.sub("", text).strip(_EDGE_PUNCTUATION)


def parse_due_date_change(message: str, today: Optional[date] = None) -> Optional[DueDateChange]:
    """Recognize "change the due date of X to Y" and "move X to Y".

    The split point is the first separator whose right-hand side is entirely
    a date phrase, so task names that contain "to" still resolve.
    """
    text = sanitize_plain_text(message).rstrip(".!?")
    for pattern in DUE_DATE_CHANGE:
        match = pattern.match(text)
        if not match:
            continue
        body = match.group("body")
        for sep in DATE_SEPARATOR.finditer(body):
            when_text = body[sep.end():].strip()
            found = search_date_phrase(when_text, today)
            if found is None or found.start != 0 or found.end != len(when_text):
                continue
            task_name = _strip_article(body[: sep.start()])
            if task_name:
                return DueDateChange(task_name=task_name, when=found)
    return None


def parse_priority_change(message: str) -> Optional[PriorityChange]:
    """Recognize "set the priority of X to high" and "make X urgent priority"."""
    text = sanitize_plain_text(message).rstrip(".!?")
    match = PRIORITY_CHANGE.match(text)
    if not match:
        return None
    body = match.group("body")
    for sep in PRIORITY_SEPARATOR.finditer(body):
        level_text = body[sep.end():].strip()
        if len(level_text.split()) > 3:
            continue
        level = parse_priority_word(level_text)
        task_name = _strip_article(body[: sep.start()])
        if level and task_name:
            return PriorityChange(task_name=task_name, priority=level)
    trailing = TRAILING_PRIORITY.match(body)
    if trailing:
        level = parse_priority_word(trailing.group("level"))
        task_name = _strip_article(trailing.group("task"))
        if level and task_name:
            return PriorityChange(task_name=task_name, priority=level)
    return None
