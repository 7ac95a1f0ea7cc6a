"""Conversation: client-supplied history plus the turns the agent adds."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ccdev.errors import ConversationError
from ccdev.types.providers import ChatMessage

ROLES = ("user", "assistant")


def _blocks(content: str | list[dict[str, Any]]) -> list[dict[str, Any]]:
    return content if isinstance(content, list) else []


def validate_messages(messages: list[ChatMessage]) -> None:
    """Check the pairing rules for a history about to be sent to the model.

    Raises :class:`ConversationError` when the history is empty, a role is
    unknown, a text message is blank, a ``tool_result`` block references a
    tool-use id not issued by an earlier assistant turn, or the last message
    is not from the user.
    """
    if not messages:
        raise ConversationError("Conversation must contain at least one message")

    issued: set[str] = set()
    for index, msg in enumerate(messages):
        if msg.role not in ROLES:
            raise ConversationError(f"messages[{index}]: unknown role {msg.role!r}")
        if isinstance(msg.content, str):
            if not msg.content.strip():
                raise ConversationError(f"messages[{index}]: content must not be empty")
            continue
        if not msg.content:
            raise ConversationError(f"messages[{index}]: content must not be empty")
        for block in msg.content:
            kind = block.get("type")
            if kind == "tool_use":
                if msg.role != "assistant":
                    raise ConversationError(f"messages[{index}]: tool_use outside an assistant turn")
                issued.add(str(block.get("id", "")))
            elif kind == "tool_result":
                if msg.role != "user":
                    raise ConversationError(f"messages[{index}]: tool_result outside a user turn")
                ref = str(block.get("tool_use_id", ""))
                if ref not in issued:
                    raise ConversationError(
                        f"messages[{index}]: tool_result references unknown tool_use id {ref!r}"
                    )

    if messages[-1].role != "user":
        raise ConversationError("The last message must come from the user")


class Conversation:
    """Ordered message history for one chat request.

    Created from the client's history, then extended by the agent loop one
    assistant turn and one combined tool-result message at a time. Nothing is
    persisted here; :meth:`to_serializable` hands the history back to the
    caller.
    """

    def __init__(self, messages: Iterable[ChatMessage]) -> None:
        self._messages = list(messages)
        validate_messages(self._messages)

    @classmethod
    def from_dicts(cls, raw: Iterable[Mapping[str, Any]]) -> Conversation:
        return cls(ChatMessage(role=m["role"], content=m["content"]) for m in raw)

    @property
    def messages(self) -> list[ChatMessage]:
        return self._messages

    def pending_tool_use_ids(self) -> set[str]:
        """Tool-use ids from the last assistant turn that have no result yet."""
        if not self._messages or self._messages[-1].role != "assistant":
            return set()
        return {
            str(b["id"]) for b in _blocks(self._messages[-1].content) if b.get("type") == "tool_use"
        }

    def add_assistant(self, blocks: list[dict[str, Any]]) -> None:
        if blocks:
            self._messages.append(ChatMessage(role="assistant", content=blocks))

    def add_tool_results(self, blocks: list[dict[str, Any]]) -> None:
        """Append every result of one model turn as a single user message.

        Each block must answer a tool use of the preceding assistant turn,
        and every tool use must be answered.
        """
        pending = self.pending_tool_use_ids()
        answered = {str(b.get("tool_use_id", "")) for b in blocks}
        if answered != pending or len(blocks) != len(pending):
            raise ConversationError(
                f"Tool results {sorted(answered)} do not match tool uses {sorted(pending)}"
            )
        self._messages.append(ChatMessage(role="user", content=list(blocks)))

    def to_serializable(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)
