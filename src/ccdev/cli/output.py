"""Terminal output for ``ccdev chat``: plain text or Rich."""

from __future__ import annotations

import sys
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ccdev.types.messages import ErrorEvent, Message, Result, TextMessage, ToolResult, ToolUse
from ccdev.types.tools import ToolName

TOOL_ICONS: dict[str, str] = {
    ToolName.EXECUTE_CODE.value: "█",
    ToolName.READ_FILE.value: "▸",
    ToolName.WRITE_FILE.value: "▸",
    ToolName.LIST_FILES.value: "○",
}
DEFAULT_ICON = "▸"

STYLE_TOOL_NAME = "bold #a78bfa"
STYLE_TOOL_DETAIL = "#7c7c8a"
STYLE_ERROR_LABEL = "bold #f87171"
STYLE_ERROR_BODY = "#f87171"
STYLE_RESULT_DIM = "dim #7c7c8a"
STYLE_RESULT_LABEL = "bold #94a3b8"
STYLE_RESULT_VALUE = "#e2e8f0"


def tool_detail(name: str, args: dict[str, Any]) -> str:
    if name == ToolName.EXECUTE_CODE.value:
        code = str(args.get("code", "")).strip().splitlines()
        first = code[0] if code else ""
        snippet = first if len(first) <= 80 else first[:77] + "..."
        return f"[{args.get('language', '?')}] {snippet}"
    if "path" in args:
        return str(args["path"])
    return ""


def print_message(msg: Message) -> None:
    """Print a message in basic text mode."""
    match msg:
        case TextMessage(text=t):
            sys.stdout.write(t)
            sys.stdout.flush()
        case ToolUse(name=name, input=args):
            print(f"\n[Tool: {name}] {tool_detail(name, args)}", file=sys.stderr)
        case ToolResult(content=content, is_error=True):
            print(f"[Error] {content[:200]}", file=sys.stderr)
        case ToolResult():
            pass
        case Result(stop_reason=reason, iterations=n, tool_calls=tc):
            print(f"\nStop: {reason} | Iterations: {n} | Tools: {tc}", file=sys.stderr)
        case ErrorEvent(message=m):
            print(f"\n[Error] {m}", file=sys.stderr)


class RichPrinter:
    """Rich-based message printer: streamed text on stdout, tool activity on stderr."""

    def __init__(self, console: Console | None = None, stdout: Console | None = None) -> None:
        self._console = console or Console(stderr=True)
        self._stdout = stdout or Console()
        self._mid_line = False

    def print_message(self, msg: Message) -> None:
        match msg:
            case TextMessage(text=t):
                self._stdout.print(t, end="", highlight=False, markup=False)
                self._mid_line = not t.endswith("\n")
            case ToolUse(name=name, input=args):
                self._end_line()
                line = Text()
                line.append(f"  {TOOL_ICONS.get(name, DEFAULT_ICON)} {name}", style=STYLE_TOOL_NAME)
                detail = tool_detail(name, args)
                if detail:
                    line.append("  " + detail, style=STYLE_TOOL_DETAIL)
                self._console.print(line)
            case ToolResult(content=content, is_error=True):
                label = Text("    ✗ ", style=STYLE_ERROR_LABEL)
                label.append(content[:300], style=STYLE_ERROR_BODY)
                self._console.print(label)
            case ToolResult(content=content):
                if len(content) > 300:
                    self._console.print(Text(f"    {content[:300]}…", style=STYLE_RESULT_DIM))
            case Result() as r:
                self._end_line()
                self._print_result(r)
            case ErrorEvent(message=m, code=code):
                self._end_line()
                self._console.print(Text(f"  ✗ {code}: {m}", style=STYLE_ERROR_LABEL))

    def _end_line(self) -> None:
        if self._mid_line:
            self._stdout.print()
            self._mid_line = False

    def _print_result(self, result: Result) -> None:
        tbl = Table(show_header=False, show_edge=False, show_lines=False, padding=(0, 1), expand=False)
        tbl.add_column(style=STYLE_RESULT_LABEL, justify="right", no_wrap=True)
        tbl.add_column(style=STYLE_RESULT_VALUE, no_wrap=True)
        tbl.add_row("Stop", result.stop_reason)
        tbl.add_row("Iterations", str(result.iterations))
        tbl.add_row("Tool calls", str(result.tool_calls))
        tokens = result.input_tokens + result.output_tokens
        if tokens:
            tbl.add_row("Tokens", f"{tokens:,}")
        self._console.print(Panel(tbl, border_style="#3f3f50", expand=False, padding=(0, 1)))
