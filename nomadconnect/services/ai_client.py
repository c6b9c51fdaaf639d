from __future__ import annotations

from typing import Dict, List, Optional, Protocol

import httpx
from loguru import logger

from nomadconnect.core.config import AI_TIMEOUT_SECONDS, GROQ_API_KEY, GROQ_API_URL, GROQ_MODEL
from nomadconnect.core.errors import Unavailable

ChatMessages = List[Dict[str, str]]


class TextCompleter(Protocol):
    def complete(self, messages: ChatMessages) -> str: ...


class GroqCompleter:
    """OpenAI-compatible chat-completions client (Groq by default)."""

    def __init__(
        self,
        api_key: str = GROQ_API_KEY,
        url: str = GROQ_API_URL,
        model: str = GROQ_MODEL,
        temperature: float = 0.6,
        timeout: float = AI_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def complete(self, messages: ChatMessages) -> str:
        if not self.api_key:
            raise Unavailable("AI service not configured (GROQ_API_KEY missing)")

        try:
            resp = self._client.post(
                self.url,
                headers={
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": self.temperature,
                },
            )
        except httpx.HTTPError as exc:
            logger.error(f"AI request failed: {exc}")
            raise Unavailable("AI service unreachable") from exc

        if resp.status_code >= 400:
            logger.error(f"AI service error | status={resp.status_code} body={resp.text[:200]}")
            raise Unavailable(f"AI service returned HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise Unavailable("AI service returned non-JSON response") from exc

        if not isinstance(data, dict):
            raise Unavailable("AI service returned an unexpected response shape")

        choices = data.get("choices") or []
        if not isinstance(choices, list) or not choices:
            return ""
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message, dict):
            return ""
        content = message.get("content")
        return content if isinstance(content, str) else ""
