from __future__ import annotations

from typing import Any, Sequence

import httpx

from server.core.config import Settings, get_settings
from server.core.errors import CompletionError
from server.core.logger import get_logger

logger = get_logger("llm")


def _extract_content(payload: Any) -> str:
    if not isinstance(payload, dict):
        raise CompletionError("Unexpected provider payload")
    choices = payload.get("choices") or []
    if not choices:
        raise CompletionError("Provider returned no choices")
    choice = choices[0] or {}
    message = choice.get("message") or {}
    content = message.get("content")
    return str(content) if content is not None else ""


class LLMClient:
    """Client for an OpenAI-compatible chat completions endpoint."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.base_url = (self.settings.openai_base_url or "https://api.openai.com/v1").rstrip("/")
        self.model = self.settings.chat_model
        self.api_key = self.settings.openai_api_key
        self.extra_headers = dict(self.settings.provider_extra_headers or {})

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def chat(self, messages: Sequence[dict[str, Any]]) -> str:
        """Forward the conversation verbatim and return the assistant text."""
        if not self.api_key:
            raise CompletionError("openai_api_key is not configured")
        url = f"{self.base_url}/chat/completions"
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": list(messages),
        }
        headers = {"Content-Type": "application/json"}
        headers.update(self.extra_headers)
        headers["Authorization"] = f"Bearer {self.api_key}"
        async with httpx.AsyncClient(timeout=httpx.Timeout(None)) as client:
            try:
                resp = await client.post(url, json=payload, headers=headers)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                detail = exc.response.text.strip() or exc.response.reason_phrase or "HTTP error"
                raise CompletionError(
                    f"Provider answered {exc.response.status_code}: {detail}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.RequestError as exc:
                raise CompletionError(f"Unable to reach provider at {self.base_url}") from exc
            try:
                data = resp.json()
            except ValueError as exc:
                raise CompletionError("Provider returned a non-JSON body") from exc
        content = _extract_content(data)
        logger.info("completion ok model=%s messages=%d", self.model, len(payload["messages"]))
        return content
