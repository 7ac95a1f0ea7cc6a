"""ToolManager: parses tool calls into typed inputs and dispatches them."""

from __future__ import annotations

import logging
from typing import Any

from ccdev.errors import SandboxError
from ccdev.observability.metrics import record_tool_call
from ccdev.sandbox.executor import SandboxExecutor
from ccdev.tools import execute_code, list_files, read_file, write_file
from ccdev.tools.base import ToolInputError, error, optional_str, require_str
from ccdev.types.tools import (
    ExecuteCodeInput,
    Language,
    ListFilesInput,
    ReadFileInput,
    ToolDef,
    ToolInput,
    ToolName,
    ToolResultData,
    WriteFileInput,
)

logger = logging.getLogger(__name__)

TOOL_DEFINITIONS: tuple[ToolDef, ...] = (
    execute_code.DEFINITION,
    read_file.DEFINITION,
    write_file.DEFINITION,
    list_files.DEFINITION,
)


def parse_tool_input(name: ToolName, args: dict[str, Any]) -> ToolInput:
    """Validate raw model arguments for *name* into its typed input.

    Raises :class:`ToolInputError` when a required field is missing or invalid.
    """
    if not isinstance(args, dict):
        raise ToolInputError(f"Tool input must be an object, got {type(args).__name__}.")

    match name:
        case ToolName.EXECUTE_CODE:
            raw_language = require_str(args, "language")
            try:
                language = Language(raw_language)
            except ValueError:
                allowed = ", ".join(lang.value for lang in Language)
                raise ToolInputError(
                    f"Unsupported language '{raw_language}'. Expected one of: {allowed}."
                ) from None
            return ExecuteCodeInput(language=language, code=require_str(args, "code"))
        case ToolName.READ_FILE:
            return ReadFileInput(path=require_str(args, "path"))
        case ToolName.WRITE_FILE:
            return WriteFileInput(
                path=require_str(args, "path"),
                content=require_str(args, "content", allow_empty=True),
            )
        case ToolName.LIST_FILES:
            return ListFilesInput(path=optional_str(args, "path"))


async def dispatch(inp: ToolInput, sandbox: SandboxExecutor) -> ToolResultData:
    """Run a typed tool input against *sandbox*."""
    match inp:
        case ExecuteCodeInput():
            return await execute_code.run(inp, sandbox)
        case ReadFileInput():
            return await read_file.run(inp, sandbox)
        case WriteFileInput():
            return await write_file.run(inp, sandbox)
        case ListFilesInput():
            return await list_files.run(inp, sandbox)


class ToolManager:
    """Dispatches tool calls from the model into one sandbox.

    Usage::

        manager = ToolManager(sandbox)
        result = await manager.execute("read_file", {"path": "README.md"})

    :meth:`execute` never raises; every failure comes back as a
    ``ToolResultData`` with ``is_error=True``.
    """

    def __init__(self, sandbox: SandboxExecutor) -> None:
        self._sandbox = sandbox

    @property
    def sandbox(self) -> SandboxExecutor:
        return self._sandbox

    def get_definitions(self) -> list[ToolDef]:
        """Return the tool definitions (for provider schema)."""
        return list(TOOL_DEFINITIONS)

    async def execute(self, name: str, args: dict[str, Any]) -> ToolResultData:
        result = await self._execute(name, args)
        record_tool_call(name, is_error=result.is_error)
        return result

    async def _execute(self, name: str, args: dict[str, Any]) -> ToolResultData:
        try:
            tool_name = ToolName(name)
        except ValueError:
            return error(
                f"Unknown tool: '{name}'. "
                f"Available tools: {sorted(t.value for t in ToolName)}"
            )

        try:
            inp = parse_tool_input(tool_name, args)
        except ToolInputError as exc:
            return error(f"Invalid input for {name}: {exc}")

        try:
            return await dispatch(inp, self._sandbox)
        except SandboxError as exc:
            return error(f"{name} failed: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Tool %s raised an unexpected error", name)
            return error(f"Tool '{name}' raised an unexpected error: {exc}")

    def __len__(self) -> int:
        return len(TOOL_DEFINITIONS)

    def __contains__(self, name: object) -> bool:
        return name in {t.value for t in ToolName}

    def __repr__(self) -> str:
        return f"ToolManager(sandbox={self._sandbox.sandbox_id!r})"
