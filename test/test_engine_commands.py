import asyncio

from conftest import MONDAY, NOW
from engine.commands import TaskCommandEngine
from engine.lock import TASK_MUTATION, MutationLock
from extraction.task_extractor import TaskExtractor
from llm.llm_client import LLMClient
from tasktalk.models import RecurrenceRule, Task, TaskPayload


def test_add_then_duplicate(engine):
    first = engine.validate_and_add([], TaskPayload(text="Pay rent"))
    assert first.success
    assert first.task.priority == "medium"
    assert first.task.category == "general"

    second = engine.validate_and_add(first.tasks, TaskPayload(text="Pay rent"))
    assert not second.success
    assert second.reason == "duplicate"
    assert len(second.tasks) == 1


def test_input_list_is_not_mutated(engine):
    tasks = []
    result = engine.validate_and_add(tasks, {"text": "Pay rent", "dueDate": "tomorrow"})
    assert tasks == []
    assert result.tasks[0].due_date == "2025-01-14"


def test_invalid_inputs(engine):
    assert engine.validate_and_add([], TaskPayload(text="   ")).reason == "invalid"
    assert engine.validate_and_add([], TaskPayload(text="<b></b>")).reason == "invalid"
    bad_date = engine.validate_and_add([], TaskPayload(text="Pay rent", due_date="2024-02-31"))
    assert bad_date.reason == "invalid-date"
    assert not bad_date.success
    # blank dates count as absent
    assert engine.validate_and_add([], TaskPayload(text="Pay rent", due_date="")).success


def test_locked_then_retry(engine, locks):
    token = locks.acquire(TASK_MUTATION)
    locked = engine.validate_and_add([], TaskPayload(text="Pay rent"))
    assert not locked.success
    assert locked.reason == "locked"
    assert locked.task is None

    locks.release(TASK_MUTATION, token)
    assert engine.validate_and_add([], TaskPayload(text="Pay rent")).success


def test_every_mutation_respects_the_lock(engine, locks, sample_tasks):
    locks.acquire(TASK_MUTATION)
    results = [
        engine.complete_task(sample_tasks, "groceries"),
        engine.delete_task(sample_tasks, "groceries"),
        engine.toggle_task(sample_tasks, "groc1"),
        engine.update_due_date(sample_tasks, "move groceries to friday"),
        engine.update_priority(sample_tasks, "set priority of groceries to low"),
        engine.process_recurring(sample_tasks),
        engine.add_subtask(sample_tasks, "groc1", "milk"),
        engine.clear_completed(sample_tasks),
        asyncio.run(engine.add_tasks_from_message(sample_tasks, "add walk the dog")),
    ]
    assert {r.reason for r in results} == {"locked"}
    assert all(r.tasks == sample_tasks for r in results)


def test_complete_weekly_task_rolls_over(engine):
    task = Task(text="Water plants", due_date="2025-01-13", recurring=RecurrenceRule(type="weekly", day_of_week=1))
    result = engine.complete_task([task], "water plants")
    assert result.success
    assert result.task.completed
    assert result.task.completed_at is not None
    assert [t.due_date for t in result.created] == ["2025-01-20"]
    assert len(result.tasks) == 2
    assert "Jan 20, 2025" in result.message


def test_complete_does_not_duplicate_existing_instance(engine):
    rule = RecurrenceRule(type="weekly", day_of_week=1)
    tasks = [
        Task(text="Water plants", due_date="2025-01-13", recurring=rule),
        Task(text="Water plants", due_date="2025-01-20", recurring=rule),
    ]
    result = engine.complete_task(tasks, "id:" + tasks[0].id)
    assert result.success
    assert result.created == []
    assert len(result.tasks) == 2


def test_complete_ambiguous_and_missing(engine, sample_tasks):
    ambiguous = engine.complete_task(sample_tasks, "mark call as done")
    assert ambiguous.reason == "ambiguous"
    assert ambiguous.multiple_matches
    assert {m.id for m in ambiguous.matches} == {"call1", "call2"}

    missing = engine.complete_task(sample_tasks, "complete walk the dog")
    assert missing.reason == "no-match"

    by_id = engine.complete_task(sample_tasks, "complete id:zzz")
    assert by_id.reason == "not-found"


def test_toggle_reopens(engine, sample_tasks):
    result = engine.toggle_task(sample_tasks, "gym1")
    assert result.success
    assert not result.task.completed
    assert result.task.completed_at is None


def test_delete_by_reference_and_id(engine, sample_tasks):
    result = engine.delete_task(sample_tasks, "delete the quarterly report")
    assert result.success
    assert "rep1" not in {t.id for t in result.tasks}
    assert len(sample_tasks) == 5

    assert engine.delete_task_by_id(sample_tasks, "nope").reason == "not-found"
    assert len(engine.delete_task_by_id(sample_tasks, "call2").tasks) == 4


def test_update_due_date(engine, sample_tasks):
    result = engine.update_due_date(sample_tasks, "change the due date of groceries to next friday")
    assert result.success
    assert result.task.id == "groc1"
    assert result.task.due_date == "2025-01-24"


def test_update_priority(engine, sample_tasks):
    result = engine.update_priority(sample_tasks, "set the priority of call mom to urgent")
    assert result.success
    assert result.task.id == "call1"
    assert result.task.priority == "high"

    assert engine.update_priority(sample_tasks, "hello there").reason == "invalid"


def test_subtasks(engine, sample_tasks):
    added = engine.add_subtask(sample_tasks, "groc1", "milk")
    assert [s.text for s in added.task.subtasks] == ["milk"]

    toggled = engine.toggle_subtask(added.tasks, "groc1", 0)
    assert toggled.task.subtasks[0].completed
    assert toggled.task.subtasks[0].completed_at is not None

    assert engine.toggle_subtask(toggled.tasks, "groc1", 3).reason == "not-found"
    assert engine.add_subtask(sample_tasks, "groc1", " ").reason == "invalid"

    deleted = engine.delete_subtask(toggled.tasks, "groc1", 0)
    assert deleted.task.subtasks == []


def test_process_recurring(engine):
    done = Task(
        text="Pay bills",
        due_date="2025-01-31",
        completed=True,
        completed_at="2025-01-31T09:00:00+00:00",
        recurring=RecurrenceRule(type="monthly"),
    )
    result = engine.process_recurring([done])
    assert [t.due_date for t in result.created] == ["2025-02-28"]
    again = engine.process_recurring(result.tasks)
    assert again.created == []


def test_clear(engine, sample_tasks):
    assert len(engine.clear_completed(sample_tasks).tasks) == 4
    assert engine.clear_all(sample_tasks).tasks == []


def test_add_tasks_from_message(engine):
    result = asyncio.run(engine.add_tasks_from_message([], "add buy milk tomorrow and call mom on friday"))
    assert result.success
    assert [t.text for t in result.created] == ["buy milk", "call mom"]
    assert result.created[1].due_date == "2025-01-17"
    assert result.message.startswith("Added 2 tasks")


def test_add_tasks_from_message_all_duplicates(engine):
    first = asyncio.run(engine.add_tasks_from_message([], "add pay rent"))
    again = asyncio.run(engine.add_tasks_from_message(first.tasks, "add pay rent"))
    assert not again.success
    assert again.reason == "duplicate"
    assert again.message == "That task already exists in your list."


def test_remote_dates_lose_to_local_ones(engine_factory, fake_provider_factory):
    provider = fake_provider_factory(
        '{"tasks":[{"text":"buy milk","priority":"urgent","dueDate":"2030-01-01","category":"Shopping"}]}'
    )
    engine = engine_factory(llm_client=LLMClient(provider=provider))
    result = asyncio.run(engine.add_tasks_from_message([], "buy milk tomorrow"))
    task = result.created[0]
    assert task.created_by == "ai"
    assert task.priority == "high"
    assert task.category == "shopping"
    assert task.due_date == "2025-01-14"


class ClockAdvancingExtractor:
    """Extraction that outlives the lock, letting another writer in meanwhile."""

    timeout_s = 3.0

    def __init__(self, clock, meanwhile):
        self.clock = clock
        self.meanwhile = meanwhile

    async def extract_async(self, text, **kwargs):
        self.clock.advance(6)
        self.meanwhile()
        return [TaskPayload(text="buy milk")]


def test_expired_hold_cannot_overwrite_a_later_write(locks, clock):
    other = {}
    extractor = ClockAdvancingExtractor(
        clock, lambda: other.update(result=engine.validate_and_add([], {"text": "Pay rent"}))
    )
    engine = TaskCommandEngine(
        lock=MutationLock(locks), extractor=extractor, today_fn=lambda: MONDAY, now_fn=lambda: NOW
    )
    result = asyncio.run(engine.add_tasks_from_message([], "add buy milk"))
    assert other["result"].success
    assert not result.success
    assert result.reason == "locked"
    assert result.tasks == []


def test_extraction_gives_up_before_the_lock_does(engine, locks):
    assert engine.extraction_timeout_s() < engine.lock.timeout_s
    slow = TaskCommandEngine(
        lock=MutationLock(locks, timeout_s=4.0),
        extractor=TaskExtractor(llm_client=LLMClient(), timeout_s=8.0),
    )
    assert slow.extraction_timeout_s() == 3.0


def test_unusable_remote_date_falls_back_to_local(engine_factory, fake_provider_factory):
    provider = fake_provider_factory('{"tasks":[{"text":"buy milk","dueDate":"2025-02-30"}]}')
    engine = engine_factory(llm_client=LLMClient(provider=provider))
    result = asyncio.run(engine.add_tasks_from_message([], "add buy milk"))
    assert result.success
    assert result.created[0].text == "buy milk"
    assert result.created[0].due_date is None


def test_local_recurrence_survives_remote_extraction(engine_factory, fake_provider_factory):
    provider = fake_provider_factory('{"tasks":[{"text":"water plants"}]}')
    engine = engine_factory(llm_client=LLMClient(provider=provider))
    result = asyncio.run(engine.add_tasks_from_message([], "water plants every monday"))
    task = result.created[0]
    assert task.created_by == "ai"
    assert task.recurring == RecurrenceRule(type="weekly", day_of_week=1)
    assert task.due_date == "2025-01-13"


def test_impossible_date_in_message_is_invalid_date(engine):
    result = asyncio.run(engine.add_tasks_from_message([], "add report due 2025-02-30"))
    assert not result.success
    assert result.reason == "invalid-date"
    assert result.tasks == []
