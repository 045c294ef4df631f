from __future__ import annotations
from abc import ABC, abstractmethod

# Extraction wants the same tasks back for the same note.
EXTRACTION_TEMPERATURE = 0.0


def chat_messages(system: str, user: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


class LLMProvider(ABC):
    @abstractmethod
    def generate(self, *, system: str, user: str) -> str:
        """Reply text for one extraction prompt; LLMClient finds the JSON in it."""
        raise NotImplementedError
