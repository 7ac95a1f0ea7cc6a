"""write_file tool."""

from __future__ import annotations

from ccdev.sandbox.executor import SandboxExecutor
from ccdev.tools.base import ok
from ccdev.types.tools import ToolDef, ToolName, ToolParam, ToolResultData, WriteFileInput

DEFINITION = ToolDef(
    name=ToolName.WRITE_FILE.value,
    description=(
        "Write content to a file in the sandbox workspace. "
        "Parent directories are created as needed; an existing file is overwritten."
    ),
    parameters=(
        ToolParam(
            name="path",
            type="string",
            description="Path of the file to write, absolute or relative to the workspace root",
        ),
        ToolParam(
            name="content",
            type="string",
            description="The full content to write",
        ),
    ),
)


async def run(inp: WriteFileInput, sandbox: SandboxExecutor) -> ToolResultData:
    await sandbox.write_file(inp.path, inp.content)
    size = len(inp.content.encode("utf-8"))
    return ok(f"Wrote {size} bytes to {sandbox.resolve_path(inp.path)}")
