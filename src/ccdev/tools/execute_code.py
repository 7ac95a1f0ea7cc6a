"""execute_code tool: runs a snippet with the interpreter for its language."""

from __future__ import annotations

from ccdev.sandbox.executor import SandboxExecutor
from ccdev.tools.base import error, ok, truncate
from ccdev.types.tools import ExecuteCodeInput, Language, ToolDef, ToolName, ToolParam, ToolResultData

DEFINITION = ToolDef(
    name=ToolName.EXECUTE_CODE.value,
    description=(
        "Execute code in a sandboxed environment. Use this to run and test code. "
        "Returns stdout and stderr; a non-zero exit code is reported as an error."
    ),
    parameters=(
        ToolParam(
            name="language",
            type="string",
            description="The programming language of the code",
            enum=tuple(lang.value for lang in Language),
        ),
        ToolParam(
            name="code",
            type="string",
            description="The code to execute",
        ),
    ),
)


async def run(inp: ExecuteCodeInput, sandbox: SandboxExecutor) -> ToolResultData:
    result = await sandbox.run_code(inp.code, inp.language)

    if result.timed_out:
        return error(
            f"Execution timed out after {sandbox.policy.default_timeout_sec:g}s and was killed."
            + (f"\n{truncate(result.stdout)}" if result.stdout.strip() else "")
        )
    if result.oom_killed:
        return error("Execution killed due to memory limit (OOM).")

    output = result.stdout
    if result.stderr.strip():
        output = output.rstrip("\n") + ("\n" if output.strip() else "") + f"[stderr]\n{result.stderr}"
    output = truncate(output)

    text = output if output.strip() else "Code executed with no output"
    if result.exit_code != 0:
        text = text.rstrip("\n") + f"\n[Exit code: {result.exit_code}]"
        return error(text)
    return ok(text)
