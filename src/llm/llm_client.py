from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

from pydantic import ValidationError

from llm.providers.base import LLMProvider
from llm.schemas import ExtractedTask

logger = logging.getLogger(__name__)

EMPTY_RESULT = json.dumps({"tasks": []})

EXTRACTION_SYSTEM_PROMPT = (
    "You turn short free-text notes into to-do items. "
    'Reply with JSON only, shaped as {"tasks": [{"text": str, "priority": "low"|"medium"|"high", '
    '"dueDate": "YYYY-MM-DD" or null, "category": str}]}. '
    "Keep each text short and imperative, do not invent tasks the note does not mention."
)


class LLMError(RuntimeError):
    """Raised when no provider is configured or the provider call fails."""


def provider_from_env() -> Optional[LLMProvider]:
    """Build the provider named by LLM_PROVIDER, or None when remote parsing is off."""
    name = os.getenv("LLM_PROVIDER", "none").strip().lower()
    if name in {"", "none", "off", "local"}:
        return None
    if name == "openai":
        from llm.providers.openai_provider import OpenAIProvider
        return OpenAIProvider()
    if name == "ollama":
        from llm.providers.ollama_provider import OllamaProvider
        return OllamaProvider()
    if name == "mock":
        from llm.providers.mock_provider import MockProvider
        return MockProvider()
    raise ValueError(f"Unknown LLM_PROVIDER: {name}")


def extract_json_text(raw: str) -> Optional[str]:
    """Return the outermost JSON object or array embedded in `raw`, if it parses."""
    if not raw:
        return None
    starts = [i for i in (raw.find("{"), raw.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    closer = "}" if raw[start] == "{" else "]"
    end = raw.rfind(closer)
    if end <= start:
        return None
    candidate = raw[start : end + 1]
    try:
        json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return candidate


class LLMClient:
    """Thin wrapper over an LLMProvider that always hands back parseable JSON.

    The provider is optional. Without one the client reports `enabled == False`
    and callers are expected to stay on local parsing.
    """

    def __init__(self, provider: Optional[LLMProvider] = None):
        self.provider = provider

    @classmethod
    def from_env(cls) -> "LLMClient":
        return cls(provider=provider_from_env())

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    def _select_model_name(self, model_tier: str) -> Optional[str]:
        if model_tier == "small":
            return os.getenv("LLM_MODEL_SMALL") or None
        return os.getenv("LLM_MODEL_LARGE") or None

    def _user_prompt(self, text: str, context: Optional[str]) -> str:
        prompt = f"Extract tasks from this note:\n{text}"
        if context:
            prompt += f"\n\nExisting tasks, for reference only:\n{context}"
        return prompt

    def complete(self, text: str, context: Optional[str] = None, model_tier: str = "large") -> str:
        """Ask the provider for tasks and return JSON text, `{"tasks": []}` on junk output."""
        if self.provider is None:
            raise LLMError("no LLM provider configured")

        kwargs: dict[str, Any] = {}
        model = self._select_model_name(model_tier)
        if model:
            kwargs["model"] = model

        try:
            raw = self.provider.generate(
                system=EXTRACTION_SYSTEM_PROMPT,
                user=self._user_prompt(text, context),
                **kwargs,
            )
        except Exception as e:
            raise LLMError(f"provider call failed: {e}") from e

        extracted = extract_json_text(raw)
        if extracted is None:
            logger.warning("LLM returned no usable JSON")
            return EMPTY_RESULT
        return extracted

    def extract_tasks(
        self, text: str, context: Optional[str] = None, model_tier: str = "large"
    ) -> list[dict[str, Any]]:
        data = json.loads(self.complete(text, context=context, model_tier=model_tier))
        if isinstance(data, dict):
            data = data.get("tasks", [])
        if not isinstance(data, list):
            return []

        tasks = []
        for item in data:
            try:
                tasks.append(ExtractedTask.model_validate(item).model_dump())
            except ValidationError as e:
                logger.warning(f"Dropping invalid task from LLM output: {e.error_count()} error(s)")
        return tasks
