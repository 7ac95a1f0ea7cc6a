"""Anthropic/Claude provider adapter."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from ccdev.errors import UpstreamModelError
from ccdev.providers.base import BaseProvider
from ccdev.types.config import DEFAULT_MAX_TOKENS, DEFAULT_MODEL
from ccdev.types.providers import ChatMessage, StreamEvent
from ccdev.types.tools import ToolDef

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProvider):
    """Provider adapter for Anthropic's Claude models.

    Uses the official ``anthropic`` SDK with its async streaming interface.
    SDK stream events are translated into provider-agnostic
    :class:`~ccdev.types.providers.StreamEvent` objects. The client is built
    with ``max_retries=0``: retrying is left to the caller.

    Parameters
    ----------
    api_key:
        Anthropic API key.  When *None* the SDK falls back to the
        ``ANTHROPIC_API_KEY`` environment variable.
    model:
        Model ID to use for completions.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
    ) -> None:
        super().__init__(model)
        if api_key:
            self._client = AsyncAnthropic(api_key=api_key, max_retries=0)
        else:
            self._client = AsyncAnthropic(max_retries=0)

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion from the Anthropic API.

        Raises
        ------
        UpstreamModelError
            On any SDK error (authentication, rate limit, connection, 5xx).
        """
        try:
            async for event in self._stream(messages, tools, system, max_tokens):
                yield event
        except anthropic.APIError as exc:
            logger.warning("Anthropic request failed: %s", exc)
            raise UpstreamModelError(_describe(exc)) from exc

    async def _stream(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        request: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": self._to_anthropic_messages(messages),
            "tools": self._make_tool_defs(tools),
        }
        if system:
            request["system"] = system

        async with self._client.messages.stream(**request) as stream:
            # Track the type of the *current* content block so we know when
            # a tool_use block has ended (content_block_stop).
            current_block_type: str | None = None

            async for event in stream:
                event_type: str = event.type

                if event_type == "content_block_start":
                    current_block_type = event.content_block.type
                    if current_block_type == "tool_use":
                        yield StreamEvent(
                            type="tool_use_start",
                            tool_use_id=event.content_block.id,
                            tool_name=event.content_block.name,
                        )

                elif event_type == "content_block_delta":
                    if event.delta.type == "text_delta":
                        yield StreamEvent(type="text_delta", text=event.delta.text)
                    elif event.delta.type == "input_json_delta":
                        yield StreamEvent(
                            type="tool_use_delta",
                            tool_args_json=event.delta.partial_json,
                        )

                elif event_type == "content_block_stop":
                    if current_block_type == "tool_use":
                        yield StreamEvent(type="tool_use_end")
                    current_block_type = None

                elif event_type == "message_stop":
                    final_message = await stream.get_final_message()
                    yield StreamEvent(
                        type="message_end",
                        stop_reason=final_message.stop_reason,
                        usage={
                            "input_tokens": final_message.usage.input_tokens,
                            "output_tokens": final_message.usage.output_tokens,
                        },
                    )

    def _to_anthropic_messages(
        self, messages: list[ChatMessage]
    ) -> list[dict[str, Any]]:
        """Convert our :class:`ChatMessage` list to Anthropic's messages format.

        Block-form content (text, tool_use, tool_result) passes through as-is;
        plain strings become a single text block for assistant turns.
        """
        result: list[dict[str, Any]] = []
        for msg in messages:
            if isinstance(msg.content, list):
                result.append({"role": msg.role, "content": msg.content})
            elif msg.role == "assistant":
                result.append(
                    {"role": "assistant", "content": [{"type": "text", "text": msg.content}]}
                )
            else:
                result.append({"role": msg.role, "content": msg.content})
        return result


def _describe(exc: anthropic.APIError) -> str:
    status = getattr(exc, "status_code", None)
    if status is not None:
        return f"Model provider returned HTTP {status}: {exc.message}"
    return f"Model provider request failed: {exc.message}"
