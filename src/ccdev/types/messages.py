"""Event types emitted by the agent loop.

Each event maps to one named Server-Sent Event on the chat stream.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class TextMessage:
    """Streaming text chunk from the model."""

    text: str

    event = "message"

    def to_payload(self) -> dict[str, Any]:
        return {"content": self.text}


@dataclass(frozen=True, slots=True)
class ToolUse:
    """Model requests a tool call."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    event = "tool_use"

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Result of executing a tool."""

    tool_use_id: str
    content: str
    is_error: bool = False

    event = "tool_result"

    def to_payload(self) -> dict[str, Any]:
        return {
            "tool_use_id": self.tool_use_id,
            "content": self.content,
            "is_error": self.is_error,
        }


@dataclass(frozen=True, slots=True)
class Result:
    """Final event when the agent loop completes."""

    stop_reason: str = "end_turn"
    iterations: int = 0
    tool_calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0

    event = "done"

    def to_payload(self) -> dict[str, Any]:
        return {
            "stop_reason": self.stop_reason,
            "iterations": self.iterations,
            "tool_calls": self.tool_calls,
            "usage": {
                "input_tokens": self.input_tokens,
                "output_tokens": self.output_tokens,
            },
        }


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    """The stream failed; no further events follow."""

    message: str
    code: str = "upstream_model_error"

    event = "error"

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code}


Message = TextMessage | ToolUse | ToolResult | Result | ErrorEvent
