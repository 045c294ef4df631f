import pytest
from tasktalk.models import RecurrenceRule, Task

def test_task_invalid_due_date():
    with pytest.raises(Exception):
        Task(text="Bad", due_date="2024-02-30")

def test_task_empty_text():
    with pytest.raises(Exception):
        Task(text="")

def test_task_blank_text():
    with pytest.raises(Exception):
        Task(text="   ")

def test_task_unknown_priority():
    with pytest.raises(Exception):
        Task(text="x", priority="extreme")

def test_recurrence_interval_must_be_positive():
    with pytest.raises(Exception):
        RecurrenceRule(type="daily", interval=0)

def test_recurrence_day_of_week_range():
    with pytest.raises(Exception):
        RecurrenceRule(type="weekly", day_of_week=7)
