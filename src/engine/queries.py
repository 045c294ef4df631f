"""Read-only views over a task list, and the text used to present them."""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional

from dates.normalizer import SATURDAY, days_until_weekday, to_iso
from matching.fuzzy import match_tokens
from tasktalk.models import Task, TaskStatistics

SUNDAY = 6


def pending(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if not t.completed]


def _by_due_date(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or ""))


def due_between(tasks: Iterable[Task], start: date, end: date) -> list[Task]:
    lo, hi = to_iso(start), to_iso(end)
    return _by_due_date(t for t in pending(tasks) if t.due_date and lo <= t.due_date <= hi)


def due_today(tasks: Iterable[Task], today: date) -> list[Task]:
    return due_between(tasks, today, today)


def due_tomorrow(tasks: Iterable[Task], today: date) -> list[Task]:
    tomorrow = today + timedelta(days=1)
    return due_between(tasks, tomorrow, tomorrow)


def weekend_range(today: date) -> tuple[date, date]:
    if today.weekday() == SUNDAY:
        return today - timedelta(days=1), today
    saturday = today + timedelta(days=days_until_weekday(today, SATURDAY))
    return saturday, saturday + timedelta(days=1)


def this_weekend(tasks: Iterable[Task], today: date) -> list[Task]:
    return due_between(tasks, *weekend_range(today))


def this_week(tasks: Iterable[Task], today: date) -> list[Task]:
    return due_between(tasks, today, today + timedelta(days=SUNDAY - today.weekday()))


def next_week(tasks: Iterable[Task], today: date) -> list[Task]:
    monday = today + timedelta(days=7 - today.weekday())
    return due_between(tasks, monday, monday + timedelta(days=6))


def overdue(tasks: Iterable[Task], today: date) -> list[Task]:
    cutoff = to_iso(today)
    return _by_due_date(t for t in pending(tasks) if t.due_date and t.due_date < cutoff)


def without_due_date(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in pending(tasks) if t.due_date is None]


def completed(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.completed]


def with_priority(tasks: Iterable[Task], priority: str) -> list[Task]:
    return _by_due_date(t for t in pending(tasks) if t.priority == priority)


def in_category(tasks: Iterable[Task], category: str) -> list[Task]:
    category = category.strip().lower()
    return _by_due_date(t for t in pending(tasks) if t.category == category)


def search(tasks: Iterable[Task], keyword: str) -> list[Task]:
    """Tasks whose text, notes or category mention every word of `keyword`."""
    words = match_tokens(keyword)
    if not words:
        return []
    found = []
    for task in tasks:
        haystack = " ".join([task.text, task.notes, task.category]).lower()
        if all(w in haystack for w in words):
            found.append(task)
    return found


def statistics(tasks: Iterable[Task], today: date) -> TaskStatistics:
    tasks = list(tasks)
    open_tasks = pending(tasks)
    done = len(tasks) - len(open_tasks)
    return TaskStatistics(
        total=len(tasks),
        pending=len(open_tasks),
        completed=done,
        overdue=len(overdue(tasks, today)),
        high=sum(1 for t in open_tasks if t.priority == "high"),
        medium=sum(1 for t in open_tasks if t.priority == "medium"),
        low=sum(1 for t in open_tasks if t.priority == "low"),
        completion_rate=round(100 * done / len(tasks)) if tasks else 0,
    )


# --- presentation --------------------------------------------------------


def format_display_date(value: Optional[str]) -> str:
    if not value:
        return "no due date"
    day = date.fromisoformat(value)
    return f"{day.strftime('%b')} {day.day}, {day.year}"


def format_task_line(task: Task) -> str:
    parts = [task.priority]
    if task.due_date:
        parts.append(f"due {format_display_date(task.due_date)}")
    if task.recurring is not None:
        parts.append(task.recurring.type)
    return f"{task.text} ({', '.join(parts)})"


def format_task_list(title: str, tasks: list[Task], empty: str) -> str:
    if not tasks:
        return empty
    lines = [f"{title} ({len(tasks)}):"]
    lines.extend(f"{i}. {format_task_line(t)}" for i, t in enumerate(tasks, start=1))
    return "\n".join(lines)


def format_added(created: list[Task]) -> str:
    if not created:
        return "That task already exists in your list."
    if len(created) == 1:
        task = created[0]
        message = f'Added "{task.text}" with {task.priority} priority'
        if task.due_date:
            message += f", due {format_display_date(task.due_date)}"
        return message + "."
    lines = [f"Added {len(created)} tasks:"]
    lines.extend(f"{i}. {format_task_line(t)}" for i, t in enumerate(created, start=1))
    return "\n".join(lines)


def format_statistics(stats: TaskStatistics) -> str:
    if stats.total == 0:
        return "Your task list is empty."
    lines = [
        f"You have {stats.total} tasks: {stats.pending} pending, {stats.completed} completed "
        f"({stats.completion_rate}% done).",
        f"Open by priority: {stats.high} high, {stats.medium} medium, {stats.low} low.",
    ]
    if stats.overdue:
        lines.append(f"{stats.overdue} overdue, worth a look first.")
    elif stats.completion_rate >= 75:
        lines.append("Great progress, keep it up.")
    elif stats.pending and stats.high:
        lines.append("Start with the high priority items.")
    return "\n".join(lines)
