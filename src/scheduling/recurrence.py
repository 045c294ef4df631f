from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from dates.normalizer import normalize_due_date, to_iso
from matching.duplicates import has_pending_instance
from tasktalk.models import RecurrenceRule, Task, new_id, utc_now_iso

logger = logging.getLogger(__name__)


def next_occurrence(previous_due_date: Optional[str], rule: Optional[RecurrenceRule]) -> Optional[str]:
    """Due date of the instance that follows one due on `previous_due_date`.

    Monthly rules clamp to the end of shorter months (Jan 31 -> Feb 28/29).
    A weekly rule pinned to a weekday always advances exactly one week.
    """
    if rule is None:
        return None
    current = normalize_due_date(previous_due_date)
    if current is None:
        return None
    base = date.fromisoformat(current)

    if rule.type == "daily":
        return to_iso(base + timedelta(days=rule.interval))
    if rule.type == "weekly":
        if rule.day_of_week is not None:
            return to_iso(base + timedelta(days=7))
        return to_iso(base + timedelta(days=7 * rule.interval))
    if rule.type == "monthly":
        return to_iso(base + relativedelta(months=rule.interval))
    return None


def build_next_instance(task: Task, now: Optional[str] = None) -> Optional[Task]:
    """Fresh, open copy of a recurring `task` due on its next occurrence."""
    due = next_occurrence(task.due_date, task.recurring)
    if due is None:
        return None
    now = now or utc_now_iso()
    subtasks = [
        s.model_copy(update={"id": new_id(), "completed": False, "completed_at": None})
        for s in task.subtasks
    ]
    return task.model_copy(
        update={
            "id": new_id(),
            "due_date": due,
            "completed": False,
            "completed_at": None,
            "created_at": now,
            "updated_at": now,
            "subtasks": subtasks,
        }
    )


def roll_over(tasks: Iterable[Task], now: Optional[str] = None) -> list[Task]:
    """Next instances missing for completed recurring tasks."""
    tasks = list(tasks)
    created: list[Task] = []
    for task in tasks:
        if not task.completed or task.recurring is None:
            continue
        instance = build_next_instance(task, now)
        if instance is None:
            continue
        if has_pending_instance(instance.text, instance.due_date, tasks + created):
            continue
        logger.info(f"Rolled over recurring task '{task.text}' to {instance.due_date}")
        created.append(instance)
    return created
