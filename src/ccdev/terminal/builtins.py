"""Built-in shell commands interpreted by the terminal session itself."""

from __future__ import annotations

import posixpath
import shlex
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ccdev.errors import SandboxError, SandboxFileNotFoundError
from ccdev.sandbox.executor import SandboxExecutor

USER = "developer"
HOSTNAME = "ccdev-sandbox"
CLEAR_SCREEN = "\x1b[2J\x1b[H"

# Built-ins that only touch session state; always handled locally.
SESSION_BUILTINS = frozenset({
    "echo", "pwd", "clear", "whoami", "hostname", "date", "env", "uname", "help",
})
# Built-ins that read the filesystem; local only against the mock sandbox.
FILESYSTEM_BUILTINS = frozenset({"cd", "ls", "cat"})
BUILTINS = SESSION_BUILTINS | FILESYSTEM_BUILTINS

HELP_TEXT = (
    "Built-in commands:\n"
    "  cd [dir]     change directory\n"
    "  ls [dir]     list directory contents\n"
    "  cat FILE...  print files\n"
    "  echo ARGS    print arguments\n"
    "  pwd          print working directory\n"
    "  clear        clear the screen\n"
    "  whoami, hostname, date, env, uname [-a], help\n"
    "Anything else runs in the sandbox.\n"
)


@dataclass(slots=True)
class ShellContext:
    """The session state a built-in may read."""

    cwd: str
    cols: int
    rows: int
    sandbox: SandboxExecutor


@dataclass(slots=True)
class BuiltinResult:
    output: str = ""
    exit_code: int = 0
    cwd: str | None = None  # new working directory, when it changed


def fixed_env(ctx: ShellContext) -> dict[str, str]:
    """Environment passed to every sandboxed command."""
    return {
        "HOME": ctx.sandbox.workspace_root,
        "USER": USER,
        "LOGNAME": USER,
        "HOSTNAME": HOSTNAME,
        "SHELL": "/bin/sh",
        "TERM": "xterm-256color",
        "LANG": "C.UTF-8",
        "PATH": "/usr/local/sbin:/usr/local/bin:/usr/sbin:/usr/bin:/sbin:/bin",
        "PWD": ctx.cwd,
        "COLUMNS": str(ctx.cols),
        "LINES": str(ctx.rows),
    }


def to_crlf(text: str) -> str:
    """Convert bare ``\\n`` line endings to ``\\r\\n`` for the terminal."""
    return text.replace("\r\n", "\n").replace("\n", "\r\n")


def command_name(command: str) -> str:
    parts = command.split(None, 1)
    return parts[0] if parts else ""


def is_local(command: str, sandbox: SandboxExecutor) -> bool:
    """Whether *command* is interpreted here rather than in the sandbox."""
    name = command_name(command)
    if name in SESSION_BUILTINS:
        return True
    return name in FILESYSTEM_BUILTINS and sandbox.is_mock


# -- Commands ----------------------------------------------------------------

async def _echo(args: list[str], ctx: ShellContext) -> BuiltinResult:
    if args[:1] == ["-n"]:
        return BuiltinResult(" ".join(args[1:]))
    return BuiltinResult(" ".join(args) + "\n")


async def _pwd(args: list[str], ctx: ShellContext) -> BuiltinResult:
    return BuiltinResult(ctx.cwd + "\n")


async def _clear(args: list[str], ctx: ShellContext) -> BuiltinResult:
    return BuiltinResult(CLEAR_SCREEN)


async def _whoami(args: list[str], ctx: ShellContext) -> BuiltinResult:
    return BuiltinResult(USER + "\n")


async def _hostname(args: list[str], ctx: ShellContext) -> BuiltinResult:
    return BuiltinResult(HOSTNAME + "\n")


async def _date(args: list[str], ctx: ShellContext) -> BuiltinResult:
    return BuiltinResult(time.strftime("%a %b %d %H:%M:%S UTC %Y", time.gmtime()) + "\n")


async def _env(args: list[str], ctx: ShellContext) -> BuiltinResult:
    env = fixed_env(ctx)
    return BuiltinResult("".join(f"{k}={env[k]}\n" for k in sorted(env)))


async def _uname(args: list[str], ctx: ShellContext) -> BuiltinResult:
    if "-a" in args:
        return BuiltinResult(f"Linux {HOSTNAME} 6.1.0-ccdev x86_64 GNU/Linux\n")
    return BuiltinResult("Linux\n")


async def _help(args: list[str], ctx: ShellContext) -> BuiltinResult:
    return BuiltinResult(HELP_TEXT)


async def _cd(args: list[str], ctx: ShellContext) -> BuiltinResult:
    if len(args) > 1:
        return BuiltinResult("cd: too many arguments\n", exit_code=1)
    raw = args[0] if args else "~"
    if raw == "~" or raw.startswith("~/"):
        raw = ctx.sandbox.workspace_root + raw[1:]
    target = ctx.sandbox.resolve_path(raw, ctx.cwd)
    try:
        await ctx.sandbox.list_files(target)
    except SandboxFileNotFoundError:
        return BuiltinResult(f"cd: no such file or directory: {raw}\n", exit_code=1)
    return BuiltinResult(cwd=target)


async def _ls(args: list[str], ctx: ShellContext) -> BuiltinResult:
    show_all = any(a.startswith("-") and "a" in a for a in args)
    paths = [a for a in args if not a.startswith("-")] or ["."]
    blocks: list[str] = []
    exit_code = 0
    for raw in paths:
        target = ctx.sandbox.resolve_path(raw, ctx.cwd)
        try:
            entries = await ctx.sandbox.list_files(target)
        except SandboxFileNotFoundError:
            blocks.append(f"ls: cannot access '{raw}': No such file or directory\n")
            exit_code = 2
            continue
        names = [
            f"\x1b[1;34m{e.name}\x1b[0m" if e.is_dir else e.name
            for e in entries
            if show_all or not e.name.startswith(".")
        ]
        header = f"{raw}:\n" if len(paths) > 1 else ""
        blocks.append(header + ("  ".join(names) + "\n" if names else ""))
    return BuiltinResult("".join(blocks), exit_code=exit_code)


async def _cat(args: list[str], ctx: ShellContext) -> BuiltinResult:
    if not args:
        return BuiltinResult("cat: missing file operand\n", exit_code=1)
    parts: list[str] = []
    exit_code = 0
    for raw in args:
        try:
            parts.append(await ctx.sandbox.read_file(ctx.sandbox.resolve_path(raw, ctx.cwd)))
        except SandboxFileNotFoundError:
            parts.append(f"cat: {raw}: No such file or directory\n")
            exit_code = 1
    return BuiltinResult("".join(parts), exit_code=exit_code)


Builtin = Callable[[list[str], ShellContext], Awaitable[BuiltinResult]]

_COMMANDS: dict[str, Builtin] = {
    "echo": _echo,
    "pwd": _pwd,
    "clear": _clear,
    "whoami": _whoami,
    "hostname": _hostname,
    "date": _date,
    "env": _env,
    "uname": _uname,
    "help": _help,
    "cd": _cd,
    "ls": _ls,
    "cat": _cat,
}


async def run_builtin(command: str, ctx: ShellContext) -> BuiltinResult:
    """Interpret a built-in command line against *ctx*."""
    try:
        argv = shlex.split(command)
    except ValueError as exc:
        return BuiltinResult(f"sh: syntax error: {exc}\n", exit_code=2)
    name, args = argv[0], argv[1:]
    try:
        return await _COMMANDS[name](args, ctx)
    except SandboxError as exc:
        return BuiltinResult(f"{name}: {exc}\n", exit_code=1)


def abbreviate_path(path: str, width: int) -> str:
    """Shorten *path* from the left so it fits in *width* characters."""
    if len(path) <= width:
        return path
    tail = path[-max(width - 1, 1):]
    # Prefer cutting at a separator so the tail starts with a whole component.
    cut = tail.find(posixpath.sep)
    if 0 <= cut < len(tail) - 1:
        tail = tail[cut:]
    return "…" + tail
