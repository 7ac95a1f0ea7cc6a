"""Shared helpers for tool argument parsing and result construction."""

from __future__ import annotations

from typing import Any

from ccdev.types.tools import ToolResultData

MAX_OUTPUT_CHARS = 30_000


class ToolInputError(ValueError):
    """Raised when tool arguments are missing or have the wrong type."""


def require_str(args: dict[str, Any], key: str, *, allow_empty: bool = False) -> str:
    """Return ``args[key]`` as a string or raise :class:`ToolInputError`."""
    if key not in args or args[key] is None:
        raise ToolInputError(f"{key} is required.")
    value = args[key]
    if not isinstance(value, str):
        raise ToolInputError(f"{key} must be a string, got {type(value).__name__}.")
    if not allow_empty and not value.strip():
        raise ToolInputError(f"{key} must not be empty.")
    return value


def optional_str(args: dict[str, Any], key: str) -> str | None:
    value = args.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ToolInputError(f"{key} must be a string, got {type(value).__name__}.")
    return value


def truncate(output: str, limit: int = MAX_OUTPUT_CHARS) -> str:
    if len(output) <= limit:
        return output
    truncated = len(output) - limit
    return output[:limit] + f"\n[...{truncated} characters truncated]"


def ok(content: str) -> ToolResultData:
    return ToolResultData(content=content)


def error(msg: str) -> ToolResultData:
    return ToolResultData(content=msg, is_error=True)
