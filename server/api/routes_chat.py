from __future__ import annotations

import json
from typing import Any, Literal

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from server.core.errors import error_response
from server.core.llm import LLMClient
from server.core.logger import get_logger


router = APIRouter(prefix="/api", tags=["chat"])

logger = get_logger("server")


class AssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str = ""


class ChatReply(BaseModel):
    message: AssistantMessage


def get_llm_client() -> LLMClient:
    return LLMClient()


@router.post("/chat", response_model=ChatReply)
async def chat(
    request: Request,
    client: LLMClient = Depends(get_llm_client),
) -> Any:
    # The conversation is forwarded verbatim; only its container is checked.
    try:
        body = json.loads(await request.body() or b"null")
    except ValueError:
        body = None
    conversation = body.get("conversation") if isinstance(body, dict) else None
    if not isinstance(conversation, list):
        return JSONResponse(status_code=400, content=error_response("Invalid conversation"))
    try:
        content = await client.chat(conversation)
    except Exception:
        logger.exception("AI chat failed")
        return JSONResponse(status_code=500, content=error_response("AI chat failed"))
    return ChatReply(message=AssistantMessage(content=content or ""))
