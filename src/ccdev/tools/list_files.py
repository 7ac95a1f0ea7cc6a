"""list_files tool."""

from __future__ import annotations

from ccdev.errors import SandboxFileNotFoundError
from ccdev.sandbox.executor import SandboxExecutor
from ccdev.tools.base import error, ok
from ccdev.types.sandbox import FileEntry
from ccdev.types.tools import ListFilesInput, ToolDef, ToolName, ToolParam, ToolResultData

DEFINITION = ToolDef(
    name=ToolName.LIST_FILES.value,
    description=(
        "List the entries of a directory in the sandbox workspace. "
        "Each entry is marked as a file or directory, with its size when known."
    ),
    parameters=(
        ToolParam(
            name="path",
            type="string",
            description="Directory to list (defaults to the workspace root)",
            required=False,
        ),
    ),
)


def format_entry(entry: FileEntry) -> str:
    if entry.is_dir:
        return f"[dir]  {entry.name}/"
    if entry.size is None:
        return f"[file] {entry.name}"
    return f"[file] {entry.name} ({entry.size} bytes)"


async def run(inp: ListFilesInput, sandbox: SandboxExecutor) -> ToolResultData:
    target = sandbox.resolve_path(inp.path)
    try:
        entries = await sandbox.list_files(target)
    except SandboxFileNotFoundError:
        return error(f"Directory not found: {target}")
    if not entries:
        return ok(f"{target} is empty")
    return ok("\n".join(format_entry(e) for e in entries))
