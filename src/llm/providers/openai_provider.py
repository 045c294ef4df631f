from __future__ import annotations
import os
import httpx
from .base import EXTRACTION_TEMPERATURE, LLMProvider, chat_messages

class OpenAIProvider(LLMProvider):
    """Any OpenAI-compatible chat completions endpoint (OpenRouter by default)."""

    def __init__(self):
        self.api_key = os.getenv("OPENAI_API_KEY", "").strip()
        self.model = os.getenv("OPENAI_MODEL", "moonshotai/kimi-k2").strip()
        self.base_url = os.getenv("OPENAI_BASE_URL", "https://openrouter.ai/api/v1").strip().rstrip("/")
        self.referer = os.getenv("OPENAI_HTTP_REFERER", "").strip()
        self.app_title = os.getenv("OPENAI_APP_TITLE", "").strip()
        self.timeout_s = float(os.getenv("LLM_HTTP_TIMEOUT_S", "10"))

        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is missing")

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        # OpenRouter attribution headers
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        if self.app_title:
            headers["X-Title"] = self.app_title
        return headers

    def generate(self, *, system: str, user: str, model: str | None = None) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": model or self.model,
            "messages": chat_messages(system, user),
            "temperature": EXTRACTION_TEMPERATURE,
        }

        with httpx.Client(timeout=self.timeout_s) as client:
            r = client.post(url, headers=self._headers(), json=payload)
            r.raise_for_status()
            data = r.json()

        return data["choices"][0]["message"]["content"]
