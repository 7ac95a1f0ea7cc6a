"""POST /api/chat: run the agent loop and stream its events as SSE."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Literal

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from sse_starlette.sse import EventSourceResponse

from ccdev.core.config import resolve_api_key
from ccdev.core.conversation import Conversation
from ccdev.core.loop import AgentLoop
from ccdev.errors import ConfigError, ConversationError
from ccdev.server.state import AppState
from ccdev.tools.manager import ToolManager
from ccdev.types.config import AgentConfig
from ccdev.types.messages import ErrorEvent, Message

logger = logging.getLogger(__name__)


class ChatMessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str | list[dict[str, Any]]

    @field_validator("content")
    @classmethod
    def _not_empty(cls, value: str | list[dict[str, Any]]) -> str | list[dict[str, Any]]:
        if isinstance(value, str) and not value.strip():
            raise ValueError("content must not be empty")
        if isinstance(value, list) and not value:
            raise ValueError("content must not be empty")
        return value


class ChatRequest(BaseModel):
    messages: list[ChatMessageIn] = Field(min_length=1)
    model: str | None = None
    yolo: bool = False
    sandbox_id: str | None = Field(default=None, max_length=128, pattern=r"^[A-Za-z0-9_.-]+$")


def format_event(event: Message) -> dict[str, str]:
    """Render one loop event as an SSE ``event``/``data`` pair."""
    return {"event": event.event, "data": json.dumps(event.to_payload(), ensure_ascii=False)}


async def stream_events(loop: AgentLoop, conversation: Conversation) -> AsyncIterator[dict[str, str]]:
    """Yield SSE events until the loop's terminal ``done``/``error`` event."""
    try:
        async for event in loop.run(conversation):
            yield format_event(event)
    except Exception as exc:
        logger.exception("Chat stream failed")
        yield format_event(ErrorEvent(message=str(exc) or type(exc).__name__, code="internal_error"))


def register_chat_routes(app: FastAPI, *, state: AppState) -> None:
    @app.post("/api/chat")
    async def api_chat(payload: ChatRequest) -> Any:
        try:
            conversation = Conversation.from_dicts(m.model_dump() for m in payload.messages)
        except ConversationError as exc:
            return JSONResponse(
                {"error": exc.error_code, "message": exc.user_message, "details": [str(exc)]},
                status_code=400,
            )

        agent_config = state.config.agent
        api_key = resolve_api_key(agent_config.api_key)
        if not api_key:
            error = ConfigError("ANTHROPIC_API_KEY is not configured")
            return JSONResponse(error.payload(), status_code=500)

        model = payload.model or agent_config.model
        sandbox = state.sandboxes.get(payload.sandbox_id)
        loop = AgentLoop(
            state.provider_factory(model, api_key),
            ToolManager(sandbox),
            AgentConfig(
                model=model,
                max_tokens=agent_config.max_tokens,
                max_tool_iterations=agent_config.max_tool_iterations,
                system_prompt=agent_config.system_prompt,
            ),
            yolo=payload.yolo,
        )
        logger.info(
            "Chat request: model=%s messages=%d yolo=%s sandbox=%s",
            model, len(conversation), payload.yolo, sandbox.sandbox_id,
        )
        return EventSourceResponse(
            stream_events(loop, conversation),
            headers={"Cache-Control": "no-cache"},
        )
