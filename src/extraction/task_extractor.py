from __future__ import annotations

import asyncio
import logging
import os
from datetime import date
from typing import Optional

from dates.normalizer import is_canonical_date, normalize_due_date
from extraction.batch_splitter import parse_batch_tasks
from llm.llm_client import LLMClient, LLMError
from tasktalk.models import TaskPayload

logger = logging.getLogger(__name__)

# Must stay below the mutation lock timeout; the engine clamps it if not.
LLM_TIMEOUT_S = float(os.getenv("LLM_TIMEOUT_S", "3"))


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    return (a or "").strip().lower() == (b or "").strip().lower()


def merge_with_local(
    remote: list[TaskPayload], local: list[TaskPayload], today: Optional[date] = None
) -> list[TaskPayload]:
    """Fill remote payloads from the local parse of the same task text.

    A locally parsed due date or recurrence wins over the remote one, and a
    remote priority or category left unset is taken from the local twin. A
    remote due date that does not normalize is dropped rather than passed on.
    """
    merged = []
    for payload in remote:
        due_date = normalize_due_date(payload.due_date, today)
        if due_date is None and payload.due_date:
            logger.info(f"Dropping unusable LLM due date {payload.due_date!r} for '{payload.text}'")
        update = {"due_date": due_date}

        twin = next((p for p in local if _same_text(p.text, payload.text)), None)
        if twin is not None:
            if is_canonical_date(twin.due_date):
                update["due_date"] = twin.due_date
            if twin.recurring is not None:
                update["recurring"] = twin.recurring
            if payload.priority is None:
                update["priority"] = twin.priority
            if payload.category is None:
                update["category"] = twin.category
        merged.append(payload.model_copy(update=update))
    return merged


class TaskExtractor:
    """Turns a free-text message into task payloads.

    Local parsing always runs. When an LLM client is enabled and the tier is
    not "eco", its output is used instead, and any failure, timeout or empty
    answer falls back to the local result.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, timeout_s: float = LLM_TIMEOUT_S):
        self.llm_client = llm_client if llm_client is not None else LLMClient.from_env()
        self.timeout_s = timeout_s

    def _use_remote(self, llm_tier: str) -> bool:
        return self.llm_client.enabled and llm_tier != "eco"

    def _remote(self, text: str, context: Optional[str], llm_tier: str) -> list[TaskPayload]:
        items = self.llm_client.extract_tasks(text, context=context, model_tier=llm_tier)
        return [
            TaskPayload(
                text=item["text"],
                priority=item.get("priority"),
                due_date=item.get("due_date"),
                category=item.get("category"),
                created_by="ai",
            )
            for item in items
        ]

    def _finish(
        self, remote: list[TaskPayload], local: list[TaskPayload], today: Optional[date]
    ) -> list[TaskPayload]:
        if not remote:
            logger.info("LLM produced no tasks, using local parse")
            return local
        return merge_with_local(remote, local, today)

    def extract(
        self,
        text: str,
        llm_tier: str = "large",
        context: Optional[str] = None,
        today: Optional[date] = None,
    ) -> list[TaskPayload]:
        local = parse_batch_tasks(text, today)
        if not self._use_remote(llm_tier):
            return local
        try:
            remote = self._remote(text, context, llm_tier)
        except (LLMError, ValueError) as e:
            logger.warning(f"LLM extraction failed, falling back to local parse: {e}")
            return local
        return self._finish(remote, local, today)

    async def extract_async(
        self,
        text: str,
        llm_tier: str = "large",
        context: Optional[str] = None,
        today: Optional[date] = None,
        timeout_s: Optional[float] = None,
    ) -> list[TaskPayload]:
        local = parse_batch_tasks(text, today)
        if not self._use_remote(llm_tier):
            return local
        timeout_s = self.timeout_s if timeout_s is None else timeout_s
        try:
            remote = await asyncio.wait_for(
                asyncio.to_thread(self._remote, text, context, llm_tier),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(f"LLM extraction timed out after {timeout_s}s, using local parse")
            return local
        except (LLMError, ValueError) as e:
            logger.warning(f"LLM extraction failed, falling back to local parse: {e}")
            return local
        return self._finish(remote, local, today)
