"""Tests for ccdev.types module."""

import pytest

from ccdev.errors import ConfigError, ConversationError, SandboxFileNotFoundError
from ccdev.types.config import AppConfig
from ccdev.types.messages import ErrorEvent, Result, TextMessage, ToolResult, ToolUse
from ccdev.types.providers import ChatMessage
from ccdev.types.sandbox import FileEntry, SandboxMode
from ccdev.types.tools import Language, ToolName


class TestMessages:
    def test_event_names(self):
        assert TextMessage(text="x").event == "message"
        assert ToolUse(id="a", name="read_file").event == "tool_use"
        assert ToolResult(tool_use_id="a", content="").event == "tool_result"
        assert Result().event == "done"
        assert ErrorEvent(message="boom").event == "error"

    def test_payloads(self):
        assert TextMessage(text="hi").to_payload() == {"content": "hi"}
        assert ToolUse(id="a", name="list_files").to_payload() == {
            "id": "a", "name": "list_files", "input": {},
        }
        assert ToolResult(tool_use_id="a", content="c", is_error=True).to_payload() == {
            "tool_use_id": "a", "content": "c", "is_error": True,
        }
        assert ErrorEvent(message="boom").to_payload() == {
            "message": "boom", "code": "upstream_model_error",
        }

    def test_result_payload(self):
        r = Result(stop_reason="end_turn", iterations=2, tool_calls=1, input_tokens=5, output_tokens=7)
        assert r.to_payload() == {
            "stop_reason": "end_turn",
            "iterations": 2,
            "tool_calls": 1,
            "usage": {"input_tokens": 5, "output_tokens": 7},
        }

    def test_frozen(self):
        msg = TextMessage(text="x")
        with pytest.raises(AttributeError):
            msg.text = "y"  # type: ignore[misc]


class TestEnums:
    def test_tool_names(self):
        assert [t.value for t in ToolName] == ["execute_code", "read_file", "write_file", "list_files"]

    def test_languages(self):
        assert [lang.value for lang in Language] == ["javascript", "typescript", "python", "bash"]

    def test_sandbox_modes(self):
        assert SandboxMode("none") is SandboxMode.NONE


class TestMisc:
    def test_chat_message_dict(self):
        assert ChatMessage(role="user", content="hi").to_dict() == {"role": "user", "content": "hi"}

    def test_file_entry_dict(self):
        assert FileEntry("src", "/workspace/src", "directory").to_dict() == {
            "name": "src", "path": "/workspace/src", "type": "directory",
        }
        assert FileEntry("a", "/a", "file", 3).to_dict()["size"] == 3

    def test_app_config_defaults(self):
        config = AppConfig()
        assert config.sandbox.workspace_root == "/workspace"
        assert config.server.cors_origins == ("*",)


class TestErrors:
    def test_payload(self):
        assert ConfigError("missing key").payload() == {
            "error": "configuration_error", "message": "missing key",
        }

    def test_payload_falls_back_to_user_message(self):
        assert ConversationError().payload(details=["x"]) == {
            "error": "validation_error", "message": "Invalid request format", "details": ["x"],
        }

    def test_not_found_is_sandbox_error(self):
        assert SandboxFileNotFoundError("x").error_code == "not_found"
