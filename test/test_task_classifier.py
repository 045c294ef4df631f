from datetime import date

from classification.task_classifier import TaskClassifier, infer_category, suggest_due_date
from tasktalk.models import TaskPayload

MONDAY = date(2025, 1, 13)


def test_infer_category_uses_table_order():
    assert infer_category("buy groceries") == "shopping"
    assert infer_category("book dentist appointment") == "health"
    assert infer_category("prepare slides for the client meeting") == "work"
    assert infer_category("think about life") is None


def test_suggest_due_date():
    assert suggest_due_date("grocery shopping", MONDAY) == "2025-01-18"
    assert suggest_due_date("morning workout", MONDAY) == "2025-01-14"
    assert suggest_due_date("call the bank", MONDAY) == "2025-01-14"
    assert suggest_due_date("call the bank", date(2025, 1, 17)) == "2025-01-20"
    assert suggest_due_date("read a book", MONDAY) is None


def test_classifier_keeps_explicit_values():
    payload = TaskPayload(text="buy milk", category="errands", due_date="2025-02-01")
    out = TaskClassifier(suggest_due_dates=True).classify(payload, MONDAY)
    assert out.category == "errands"
    assert out.due_date == "2025-02-01"


def test_classifier_fills_gaps():
    payload = TaskPayload(text="gym workout")
    out = TaskClassifier(suggest_due_dates=True).classify(payload, MONDAY)
    assert out.category == "fitness"
    assert out.due_date == "2025-01-14"


def test_suggestions_are_off_by_default():
    out = TaskClassifier().classify(TaskPayload(text="gym workout"), MONDAY)
    assert out.due_date is None
