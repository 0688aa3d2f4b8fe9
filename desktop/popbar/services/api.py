"""HTTP client used to talk to the Popbar backend."""

from __future__ import annotations

from typing import Any, Optional, Sequence

import httpx

from ..config.settings import AppSettings
from .errors import MalformedResponseError, TransportError
from .schemas import ChatMessage, conversation_payload


class PopbarAPI:
    """Async client for the chat and checkout endpoints.

    One request per call without retries. There is no timeout: a hung backend
    keeps the caller waiting.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.server.base_url,
            verify=settings.server.verify_ssl,
            timeout=httpx.Timeout(None),
            transport=transport,
        )

    async def send_chat(self, conversation: Sequence[ChatMessage]) -> ChatMessage:
        """Send the whole conversation and return the assistant reply."""
        response = await self._client.post(
            "/api/chat",
            json={"conversation": conversation_payload(list(conversation))},
        )
        if not response.is_success:
            raise TransportError(response.status_code, response.text)
        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedResponseError() from exc
        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not content:
            raise MalformedResponseError()
        return ChatMessage(role="assistant", content=str(content))

    async def create_checkout_session(self) -> Optional[str]:
        """Ask the backend for a checkout URL; None when it has none."""
        response = await self._client.post("/api/checkout-session")
        if not response.is_success:
            raise TransportError(response.status_code, response.text, "Failed to start checkout")
        try:
            data: Any = response.json()
        except ValueError as exc:
            raise MalformedResponseError("Invalid checkout response") from exc
        url = data.get("url") if isinstance(data, dict) else None
        return url if isinstance(url, str) and url else None

    async def ping(self) -> bool:
        """Return True when the backend health endpoint answers 200."""
        try:
            response = await self._client.get("/health")
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
