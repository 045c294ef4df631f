from datetime import date

import pytest

from engine.commands import TaskCommandEngine
from engine.lock import MutationLock, OperationLocks
from extraction.task_extractor import TaskExtractor
from llm.llm_client import LLMClient
from tasktalk.models import Task

MONDAY = date(2025, 1, 13)
NOW = "2025-01-13T09:00:00+00:00"


class FakeProvider:
    def __init__(self, response_text: str):
        self._response_text = response_text
        self.calls = []

    def generate(self, *, system: str, user: str) -> str:
        self.calls.append(user)
        return self._response_text


class FailingProvider:
    def generate(self, *, system: str, user: str) -> str:
        raise RuntimeError("connection refused")


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str):
        return FakeProvider(response_text)
    return _make


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def locks(clock):
    return OperationLocks(clock=clock)


@pytest.fixture
def engine_factory(locks):
    def _make(today: date = MONDAY, llm_client: LLMClient = None, **kwargs):
        return TaskCommandEngine(
            lock=MutationLock(locks),
            extractor=TaskExtractor(llm_client=llm_client or LLMClient(provider=None)),
            today_fn=lambda: today,
            now_fn=lambda: NOW,
            **kwargs,
        )
    return _make


@pytest.fixture
def engine(engine_factory):
    return engine_factory()


@pytest.fixture
def sample_tasks():
    return [
        Task(id="groc1", text="Buy groceries", priority="high", due_date="2025-01-14", category="shopping"),
        Task(id="call1", text="Call mom", due_date="2025-01-13", category="social"),
        Task(id="call2", text="Call dentist", category="health"),
        Task(id="rep1", text="Finish quarterly report", priority="low", due_date="2025-01-10", category="work"),
        Task(
            id="gym1",
            text="Go to the gym",
            due_date="2025-01-11",
            completed=True,
            completed_at="2025-01-11T18:00:00+00:00",
            category="fitness",
        ),
    ]
