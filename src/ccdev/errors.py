"""Typed errors surfaced by the ccdev core."""

from __future__ import annotations

from typing import Any


class CcdevError(RuntimeError):
    """Base class for typed operational errors."""

    error_code = "internal_error"
    user_message = "An internal error occurred."

    def payload(self, *, details: Any = None) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error_code, "message": str(self) or self.user_message}
        if details is not None:
            body["details"] = details
        return body


class ConfigError(CcdevError):
    """Configuration is missing or invalid."""

    error_code = "configuration_error"
    user_message = "Configuration is invalid."


class ConversationError(CcdevError):
    """Client-supplied conversation history violates a pairing rule."""

    error_code = "validation_error"
    user_message = "Invalid request format"


class UpstreamModelError(CcdevError):
    """The language model provider call failed (auth, rate limit, network)."""

    error_code = "upstream_model_error"
    user_message = "The model provider request failed."


class SandboxError(CcdevError):
    """A sandbox operation failed."""

    error_code = "sandbox_error"
    user_message = "Sandbox operation failed."


class SandboxFileNotFoundError(SandboxError):
    """The requested path does not exist in the sandbox."""

    error_code = "not_found"
    user_message = "File not found"


class SandboxTimeoutError(SandboxError):
    """A sandbox file operation exceeded its time budget."""

    error_code = "timeout_error"
    user_message = "Sandbox operation timed out"


class FrameParseError(CcdevError):
    """A terminal client frame could not be parsed."""

    error_code = "parse_error"
    user_message = "Malformed terminal frame"
