"""Data schemas exchanged between the overlay, the dispatcher and the backend."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Optional


TOGGLE_POPBAR = "TOGGLE_POPBAR"
AI_CHAT = "AI_CHAT"

Role = Literal["user", "assistant"]


@dataclass(slots=True, frozen=True)
class ChatMessage:
    """Conversation message."""

    role: Role
    content: str

    def to_payload(self) -> dict[str, str]:
        """Serialize the message for API calls."""
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChatMessage":
        """Construct a ChatMessage from a JSON payload."""
        role = payload.get("role")
        if role not in ("user", "assistant"):
            role = "user"
        content = payload.get("content")
        return cls(role=role, content=content if isinstance(content, str) else str(content or ""))


@dataclass(slots=True, frozen=True)
class TerminalEntry:
    """Terminal command and its computed output."""

    command: str
    output: str


@dataclass(slots=True)
class AiChatResponse:
    """Reply sent back by the dispatcher for an AI_CHAT request."""

    success: bool
    message: Optional[ChatMessage] = None
    error: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.message is not None:
            payload["message"] = self.message.to_payload()
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> "AiChatResponse":
        if not isinstance(payload, dict):
            return cls(success=False)
        raw_message = payload.get("message")
        message = ChatMessage.from_payload(raw_message) if isinstance(raw_message, dict) else None
        error = payload.get("error")
        return cls(
            success=bool(payload.get("success", False)),
            message=message,
            error=str(error) if error else None,
        )


def conversation_payload(conversation: list[ChatMessage]) -> list[dict[str, str]]:
    """Serialize a conversation in chronological order."""
    return [message.to_payload() for message in conversation]
