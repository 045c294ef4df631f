from matching.duplicates import has_pending_instance, is_duplicate
from tasktalk.models import Task, TaskPayload


def test_all_four_fields_must_match():
    existing = [Task(text="Pay rent", due_date="2025-02-01", category="home")]
    assert is_duplicate(TaskPayload(text="  pay RENT ", due_date="2025-02-01", category="Home"), existing)
    assert not is_duplicate(TaskPayload(text="Pay rent", due_date="2025-03-01", category="home"), existing)
    assert not is_duplicate(TaskPayload(text="Pay rent", priority="high", due_date="2025-02-01", category="home"), existing)
    assert not is_duplicate(TaskPayload(text="Pay rent", due_date="2025-02-01"), existing)


def test_missing_fields_use_defaults():
    existing = [Task(text="Pay rent")]
    assert is_duplicate(TaskPayload(text="Pay rent"), existing)
    assert is_duplicate(TaskPayload(text="Pay rent", priority="medium", category="general"), existing)


def test_pending_instance_ignores_completed_tasks():
    tasks = [
        Task(text="Water plants", due_date="2025-01-20", completed=True, completed_at="2025-01-20T08:00:00+00:00"),
    ]
    assert not has_pending_instance("water plants", "2025-01-20", tasks)
    tasks.append(Task(text="Water plants", due_date="2025-01-20"))
    assert has_pending_instance("water plants", "2025-01-20", tasks)
