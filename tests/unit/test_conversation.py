"""Tests for ccdev.core.conversation."""

from __future__ import annotations

import pytest

from ccdev.core.conversation import Conversation, validate_messages
from ccdev.errors import ConversationError
from ccdev.types.providers import ChatMessage


def _tool_use(id_: str) -> dict:
    return {"type": "tool_use", "id": id_, "name": "list_files", "input": {}}


def _tool_result(id_: str) -> dict:
    return {"type": "tool_result", "tool_use_id": id_, "content": "ok"}


class TestValidateMessages:
    def test_single_user_message(self):
        validate_messages([ChatMessage(role="user", content="hi")])

    def test_full_history(self):
        validate_messages([
            ChatMessage(role="user", content="list files"),
            ChatMessage(role="assistant", content=[_tool_use("a")]),
            ChatMessage(role="user", content=[_tool_result("a")]),
            ChatMessage(role="assistant", content="There is one file."),
            ChatMessage(role="user", content="thanks"),
        ])

    def test_empty(self):
        with pytest.raises(ConversationError, match="at least one message"):
            validate_messages([])

    def test_unknown_role(self):
        with pytest.raises(ConversationError, match="unknown role 'system'"):
            validate_messages([ChatMessage(role="system", content="x")])

    @pytest.mark.parametrize("content", ["", "   ", []])
    def test_blank_content(self, content):
        with pytest.raises(ConversationError, match="must not be empty"):
            validate_messages([ChatMessage(role="user", content=content)])

    def test_result_without_use(self):
        with pytest.raises(ConversationError, match="unknown tool_use id 'ghost'"):
            validate_messages([
                ChatMessage(role="user", content="hi"),
                ChatMessage(role="assistant", content="hello"),
                ChatMessage(role="user", content=[_tool_result("ghost")]),
            ])

    def test_tool_use_from_user(self):
        with pytest.raises(ConversationError, match="outside an assistant turn"):
            validate_messages([ChatMessage(role="user", content=[_tool_use("a")])])

    def test_tool_result_from_assistant(self):
        with pytest.raises(ConversationError, match="outside a user turn"):
            validate_messages([
                ChatMessage(role="user", content="hi"),
                ChatMessage(role="assistant", content=[_tool_use("a"), _tool_result("a")]),
                ChatMessage(role="user", content="go on"),
            ])

    def test_must_end_with_user(self):
        with pytest.raises(ConversationError, match="last message"):
            validate_messages([
                ChatMessage(role="user", content="hi"),
                ChatMessage(role="assistant", content="hello"),
            ])


class TestConversation:
    def test_from_dicts(self):
        conv = Conversation.from_dicts([{"role": "user", "content": "hi"}])
        assert len(conv) == 1
        assert conv.to_serializable() == [{"role": "user", "content": "hi"}]

    def test_add_turns(self):
        conv = Conversation([ChatMessage(role="user", content="go")])
        conv.add_assistant([{"type": "text", "text": "ok"}, _tool_use("a"), _tool_use("b")])
        assert conv.pending_tool_use_ids() == {"a", "b"}

        conv.add_tool_results([_tool_result("a"), _tool_result("b")])
        assert conv.pending_tool_use_ids() == set()
        assert len(conv) == 3
        assert conv.messages[-1].role == "user"

    def test_empty_assistant_turn_is_skipped(self):
        conv = Conversation([ChatMessage(role="user", content="go")])
        conv.add_assistant([])
        assert len(conv) == 1

    def test_missing_result_rejected(self):
        conv = Conversation([ChatMessage(role="user", content="go")])
        conv.add_assistant([_tool_use("a"), _tool_use("b")])
        with pytest.raises(ConversationError, match="do not match"):
            conv.add_tool_results([_tool_result("a")])

    def test_duplicate_result_rejected(self):
        conv = Conversation([ChatMessage(role="user", content="go")])
        conv.add_assistant([_tool_use("a")])
        with pytest.raises(ConversationError):
            conv.add_tool_results([_tool_result("a"), _tool_result("a")])

    def test_invalid_history_rejected_on_construction(self):
        with pytest.raises(ConversationError):
            Conversation([ChatMessage(role="assistant", content="hi")])
