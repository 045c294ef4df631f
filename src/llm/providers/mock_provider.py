from __future__ import annotations
import json
import re
from llm.providers.base import LLMProvider

_NOTE = re.compile(r"Extract tasks from this note:\n(?P<note>.*?)(?:\n\n|$)", re.DOTALL)


class MockProvider(LLMProvider):
    """Offline stand-in: echoes the note back as a single untouched task."""

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        match = _NOTE.search(user)
        note = match.group("note").strip() if match else ""
        if not note:
            return json.dumps({"tasks": []})
        return json.dumps({"tasks": [{"text": note, "priority": None, "dueDate": None, "category": None}]})
