import asyncio

import pytest


def _handle(engine, tasks, message):
    return asyncio.run(engine.handle_message(tasks, message))


@pytest.mark.parametrize(
    "message, expected",
    [
        ("what's due today?", ["call1"]),
        ("what do I have tomorrow", ["groc1"]),
        ("show overdue tasks", ["rep1"]),
        ("which tasks have no due date", ["call2"]),
        ("what's due this week", ["call1", "groc1"]),
        ("show high priority tasks", ["groc1"]),
        ("show work tasks", ["rep1"]),
        ("list completed tasks", ["gym1"]),
    ],
)
def test_queries(engine, sample_tasks, message, expected):
    result = _handle(engine, sample_tasks, message)
    assert result.success
    assert result.intent == "query"
    assert [i.id for i in result.items] == expected
    assert result.tasks == sample_tasks


def test_search(engine, sample_tasks):
    result = _handle(engine, sample_tasks, "find call")
    assert result.intent == "search"
    assert {i.id for i in result.items} == {"call1", "call2"}


def test_summary(engine, sample_tasks):
    result = _handle(engine, sample_tasks, "show my summary")
    assert result.statistics.total == 5
    assert result.statistics.overdue == 1


def test_add(engine):
    result = _handle(engine, [], "add walk the dog this weekend")
    assert result.intent == "add"
    assert result.task.text == "walk the dog"
    assert result.task.due_date == "2025-01-18"


def test_complete_and_delete(engine, sample_tasks):
    done = _handle(engine, sample_tasks, "mark groceries as done")
    assert done.intent == "complete"
    assert done.task.id == "groc1"

    deleted = _handle(engine, sample_tasks, "delete call dentist")
    assert deleted.intent == "delete"
    assert deleted.task.id == "call2"

    finished = _handle(engine, sample_tasks, "Done with the report")
    assert finished.intent == "complete"
    assert finished.task.id == "rep1"


def test_updates(engine, sample_tasks):
    moved = _handle(engine, sample_tasks, "move groceries to next friday")
    assert moved.intent == "update-due-date"
    assert moved.task.due_date == "2025-01-24"

    lowered = _handle(engine, sample_tasks, "set priority of call mom to low")
    assert lowered.intent == "update-priority"
    assert lowered.task.priority == "low"


def test_greeting_and_help(engine):
    assert _handle(engine, [], "hello").intent == "greeting"
    fallback = _handle(engine, [], "blah blah")
    assert fallback.intent == "help"
    assert fallback.reason == "no-match"
    assert not fallback.success
