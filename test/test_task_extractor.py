import asyncio
import time
from datetime import date

from conftest import FailingProvider
from extraction.task_extractor import TaskExtractor, merge_with_local
from llm.llm_client import LLMClient
from tasktalk.models import TaskPayload

MONDAY = date(2025, 1, 13)


class SlowProvider:
    def generate(self, *, system: str, user: str) -> str:
        time.sleep(0.5)
        return '{"tasks":[{"text":"too late"}]}'


def test_remote_tasks_are_used(fake_provider_factory):
    provider = fake_provider_factory('{"tasks":[{"text":"Book dentist","dueDate":null}]}')
    extractor = TaskExtractor(llm_client=LLMClient(provider=provider))
    tasks = extractor.extract("Book dentist", today=MONDAY)
    assert len(tasks) == 1
    assert tasks[0].created_by == "ai"


def test_garbage_output_falls_back_to_local(fake_provider_factory):
    provider = fake_provider_factory("THIS IS NOT JSON AT ALL")
    extractor = TaskExtractor(llm_client=LLMClient(provider=provider))
    tasks = extractor.extract("buy milk tomorrow", today=MONDAY)
    assert [t.text for t in tasks] == ["buy milk"]
    assert tasks[0].due_date == "2025-01-14"
    assert tasks[0].created_by is None


def test_provider_failure_falls_back_to_local():
    extractor = TaskExtractor(llm_client=LLMClient(provider=FailingProvider()))
    assert [t.text for t in extractor.extract("pay rent", today=MONDAY)] == ["pay rent"]


def test_eco_tier_skips_remote(fake_provider_factory):
    provider = fake_provider_factory('{"tasks":[{"text":"Something else"}]}')
    extractor = TaskExtractor(llm_client=LLMClient(provider=provider))
    tasks = extractor.extract("pay rent", llm_tier="eco", today=MONDAY)
    assert [t.text for t in tasks] == ["pay rent"]
    assert provider.calls == []


def test_disabled_client_is_local_only():
    extractor = TaskExtractor(llm_client=LLMClient())
    assert [t.text for t in extractor.extract("pay rent and call mom", today=MONDAY)] == ["pay rent", "call mom"]


def test_timeout_falls_back_to_local():
    extractor = TaskExtractor(llm_client=LLMClient(provider=SlowProvider()), timeout_s=0.05)
    tasks = asyncio.run(extractor.extract_async("pay rent", today=MONDAY))
    assert [t.text for t in tasks] == ["pay rent"]


def test_merge_fills_gaps_from_the_local_parse():
    local = [TaskPayload(text="Pay rent", priority="high", category="finance", due_date="2025-01-14")]
    remote = [TaskPayload(text="pay rent", due_date="2025-02-30", created_by="ai")]
    merged = merge_with_local(remote, local, MONDAY)[0]
    assert merged.priority == "high"
    assert merged.category == "finance"
    assert merged.due_date == "2025-01-14"
    assert merged.created_by == "ai"


def test_merge_keeps_remote_values_that_were_set():
    local = [TaskPayload(text="Pay rent", priority="low", category="home")]
    remote = [TaskPayload(text="Pay rent", priority="high", category="finance", due_date="tomorrow")]
    merged = merge_with_local(remote, local, MONDAY)[0]
    assert (merged.priority, merged.category, merged.due_date) == ("high", "finance", "2025-01-14")


def test_merge_drops_unusable_remote_date_without_local_twin():
    merged = merge_with_local([TaskPayload(text="Call bank", due_date="2025-02-30")], [], MONDAY)
    assert merged[0].due_date is None
