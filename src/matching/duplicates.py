from __future__ import annotations

from typing import Any, Iterable, Optional, Union

from dates.normalizer import normalize_due_date
from tasktalk.models import DEFAULT_CATEGORY, DEFAULT_PRIORITY, Task, TaskPayload
from tasktalk.text import sanitize_plain_text


def _text_key(text: Any) -> str:
    return sanitize_plain_text(text).lower()


def duplicate_key(item: Union[Task, TaskPayload]) -> tuple:
    category = _text_key(item.category) or DEFAULT_CATEGORY
    return (
        _text_key(item.text),
        item.priority or DEFAULT_PRIORITY,
        normalize_due_date(item.due_date),
        category,
    )


def is_duplicate(candidate: Union[Task, TaskPayload], existing: Iterable[Task]) -> bool:
    """True when a task with the same text, priority, due date and category exists."""
    return find_duplicate(candidate, existing) is not None


def find_duplicate(candidate: Union[Task, TaskPayload], existing: Iterable[Task]) -> Optional[Task]:
    key = duplicate_key(candidate)
    return next((t for t in existing if duplicate_key(t) == key), None)


def has_pending_instance(text: str, due_date: Optional[str], tasks: Iterable[Task]) -> bool:
    """True when an open task with this text and due date is already in `tasks`."""
    text_key = _text_key(text)
    due = normalize_due_date(due_date)
    return any(
        not t.completed and _text_key(t.text) == text_key and t.due_date == due
        for t in tasks
    )
