"""read_file tool."""

from __future__ import annotations

from ccdev.errors import SandboxFileNotFoundError
from ccdev.sandbox.executor import SandboxExecutor
from ccdev.tools.base import error, ok
from ccdev.types.tools import ReadFileInput, ToolDef, ToolName, ToolParam, ToolResultData

DEFINITION = ToolDef(
    name=ToolName.READ_FILE.value,
    description="Read the contents of a file in the sandbox workspace.",
    parameters=(
        ToolParam(
            name="path",
            type="string",
            description="Path of the file to read, absolute or relative to the workspace root",
        ),
    ),
)


async def run(inp: ReadFileInput, sandbox: SandboxExecutor) -> ToolResultData:
    try:
        content = await sandbox.read_file(inp.path)
    except SandboxFileNotFoundError:
        return error(f"File not found: {sandbox.resolve_path(inp.path)}")
    return ok(content)
