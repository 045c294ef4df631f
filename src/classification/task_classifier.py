from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import Optional

from dates.normalizer import SATURDAY, days_until_weekday, to_iso
from tasktalk.models import TaskPayload

logger = logging.getLogger(__name__)


def _words(*words: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.IGNORECASE)


# Ordered: the first category with a keyword in the text wins.
CATEGORY_KEYWORDS = (
    ("health", _words(
        "doctor", "dentist", "pharmacy", "medicine", "medication", "prescription",
        "checkup", "check-up", "therapy", "therapist", "hospital", "vet", "clinic",
    )),
    ("shopping", _words(
        "buy", "groceries", "grocery", "shop", "shopping", "purchase", "order",
        "pick up", "store", "supermarket", "milk", "bread",
    )),
    ("fitness", _words(
        "gym", "workout", "work out", "exercise", "run", "jog", "yoga", "swim",
        "training", "pilates", "hike",
    )),
    ("home", _words(
        "clean", "laundry", "dishes", "vacuum", "repair", "fix", "garden", "cook",
        "rent", "trash", "mow", "plumber", "tidy",
    )),
    ("social", _words(
        "party", "birthday", "friends", "friend", "wedding", "dinner with",
        "lunch with", "drinks", "visit", "mom", "dad", "family",
    )),
    ("finance", _words(
        "pay", "bill", "bills", "invoice", "tax", "taxes", "bank", "budget",
        "insurance", "loan", "mortgage",
    )),
    ("work", _words(
        "meeting", "report", "presentation", "email", "client", "project",
        "deadline", "office", "boss", "review", "standup", "colleague", "slides",
    )),
)

KNOWN_CATEGORIES = tuple(name for name, _ in CATEGORY_KEYWORDS) + ("personal", "general")

_SHOPPING = _words("grocery", "groceries", "shopping")
_WORKOUT = _words("workout", "work out", "gym", "exercise")
_APPOINTMENT = _words("meeting", "call")


def infer_category(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for name, pattern in CATEGORY_KEYWORDS:
        if pattern.search(text):
            return name
    return None


def next_weekday(today: date) -> date:
    day = today + timedelta(days=1)
    while day.weekday() >= SATURDAY:
        day += timedelta(days=1)
    return day


def suggest_due_date(text: Optional[str], today: Optional[date] = None) -> Optional[str]:
    """Guess a due date from what the task is about, or None."""
    if not text:
        return None
    today = today or date.today()
    if _SHOPPING.search(text):
        return to_iso(today + timedelta(days=days_until_weekday(today, SATURDAY)))
    if _WORKOUT.search(text):
        return to_iso(today + timedelta(days=1))
    if _APPOINTMENT.search(text):
        return to_iso(next_weekday(today))
    return None


class TaskClassifier:
    """Fills the fields a parsed payload left open, using local heuristics only."""

    def __init__(self, suggest_due_dates: bool = False):
        self.suggest_due_dates = suggest_due_dates

    def classify(self, payload: TaskPayload, today: Optional[date] = None) -> TaskPayload:
        update = {}
        if not payload.category:
            category = infer_category(payload.text)
            if category:
                update["category"] = category
        if self.suggest_due_dates and payload.due_date is None:
            suggested = suggest_due_date(payload.text, today)
            if suggested:
                logger.debug(f"Suggested due date {suggested} for '{payload.text}'")
                update["due_date"] = suggested
        if not update:
            return payload
        return payload.model_copy(update=update)
