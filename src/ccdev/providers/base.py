"""Base provider with tool schema conversion and content-block helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from ccdev.types.providers import ChatMessage, StreamEvent
from ccdev.types.tools import ToolDef, ToolParam


class BaseProvider(ABC):
    """Abstract base class for model provider adapters.

    Concrete sub-classes must implement :meth:`chat_completion_stream`.
    Providers never retry on their own; a failed request surfaces as
    :class:`~ccdev.errors.UpstreamModelError`.

    Parameters
    ----------
    model:
        The model identifier string (e.g. ``"claude-sonnet-4-20250514"``).
    """

    def __init__(self, model: str) -> None:
        self._model = model

    @property
    def model_id(self) -> str:
        """The model identifier being used by this provider instance."""
        return self._model

    def format_tool_result(
        self,
        tool_use_id: str,
        content: str,
        is_error: bool = False,
    ) -> dict[str, Any]:
        """Build a ``tool_result`` content block.

        All blocks for one model turn are collected by the caller into a single
        ``role="user"`` message.
        """
        block: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": tool_use_id,
            "content": content,
        }
        if is_error:
            block["is_error"] = True
        return block

    def format_tool_use(
        self,
        tool_use_id: str,
        name: str,
        args: dict[str, Any],
    ) -> dict[str, Any]:
        """Build a tool-use content block for inclusion in an assistant message."""
        return {
            "type": "tool_use",
            "id": tool_use_id,
            "name": name,
            "input": args,
        }

    @abstractmethod
    def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        """Stream a chat completion, yielding :class:`StreamEvent` objects.

        Parameters
        ----------
        messages:
            Ordered list of conversation messages.
        tools:
            Tool definitions the model may call.
        system:
            System prompt string.
        max_tokens:
            Hard upper bound on generated tokens.

        Raises
        ------
        UpstreamModelError
            When the provider request fails for any reason.
        """
        ...

    def _make_tool_defs(self, tools: list[ToolDef]) -> list[dict[str, Any]]:
        """Render the tool catalog as ``name`` / ``description`` / ``input_schema`` dicts."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": self._object_schema(tool.parameters),
            }
            for tool in tools
        ]

    @classmethod
    def _object_schema(cls, params: tuple[ToolParam, ...]) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {p.name: cls._param_to_schema(p) for p in params},
        }
        required = [p.name for p in params if p.required]
        if required:
            schema["required"] = required
        return schema

    @staticmethod
    def _param_to_schema(param: ToolParam) -> dict[str, Any]:
        prop: dict[str, Any] = {"type": param.type, "description": param.description}
        if param.enum is not None:
            prop["enum"] = list(param.enum)
        if param.default is not None:
            prop["default"] = param.default
        return prop
