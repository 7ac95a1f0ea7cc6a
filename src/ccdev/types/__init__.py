"""Type definitions for ccdev."""

from ccdev.types.config import AgentConfig, AppConfig, SandboxConfig, ServerConfig
from ccdev.types.messages import (
    ErrorEvent,
    Message,
    Result,
    TextMessage,
    ToolResult,
    ToolUse,
)
from ccdev.types.providers import ChatMessage, ProviderAdapter, StreamEvent
from ccdev.types.sandbox import FileEntry, SandboxMode, SandboxPolicy
from ccdev.types.tools import (
    ExecuteCodeInput,
    Language,
    ListFilesInput,
    ReadFileInput,
    ToolDef,
    ToolInput,
    ToolName,
    ToolParam,
    ToolResultData,
    WriteFileInput,
)

__all__ = [
    "AgentConfig",
    "AppConfig",
    "ChatMessage",
    "ErrorEvent",
    "ExecuteCodeInput",
    "FileEntry",
    "Language",
    "ListFilesInput",
    "Message",
    "ProviderAdapter",
    "ReadFileInput",
    "Result",
    "SandboxConfig",
    "SandboxMode",
    "SandboxPolicy",
    "ServerConfig",
    "StreamEvent",
    "TextMessage",
    "ToolDef",
    "ToolInput",
    "ToolName",
    "ToolParam",
    "ToolResult",
    "ToolResultData",
    "ToolUse",
    "WriteFileInput",
]
