from __future__ import annotations
import os
import httpx
from .base import EXTRACTION_TEMPERATURE, LLMProvider, chat_messages

class OllamaProvider(LLMProvider):
    """Task extraction against a local Ollama server in JSON mode."""

    def __init__(self):
        self.model = os.getenv("OLLAMA_MODEL", "llama3.1").strip()
        self.base_url = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434").strip().rstrip("/")
        self.timeout_s = float(os.getenv("LLM_HTTP_TIMEOUT_S", "10"))
        # task lists are short; cap the reply so a rambling model stops early
        self.max_tokens = int(os.getenv("LLM_MAX_TOKENS", "512"))

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        body = {
            "model": model or self.model,
            "stream": False,
            "format": "json",
            "messages": chat_messages(system, user),
            "options": {"temperature": EXTRACTION_TEMPERATURE, "num_predict": self.max_tokens},
        }
        with httpx.Client(base_url=self.base_url, timeout=self.timeout_s) as client:
            response = client.post("/api/chat", json=body)
            response.raise_for_status()
            return response.json()["message"]["content"]
