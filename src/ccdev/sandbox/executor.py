"""SandboxExecutor ABC + factory."""

from __future__ import annotations

import asyncio
import codecs
import logging
import posixpath
import shlex
import shutil
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ccdev.errors import SandboxError, SandboxFileNotFoundError, SandboxTimeoutError
from ccdev.types.sandbox import FileEntry, SandboxMode, SandboxPolicy
from ccdev.types.tools import Language

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], Awaitable[None]]

TIMEOUT_EXIT_CODE = 124
# Exit status used by the shell snippets below to signal a missing path.
_MISSING_EXIT_CODE = 44
_CHUNK_SIZE = 4096

PROTECTED_PATHS = frozenset({"/", "/workspace", "/home"})

LANGUAGE_COMMANDS: dict[Language, tuple[str, ...]] = {
    Language.PYTHON: ("python3",),
    Language.BASH: ("bash",),
    Language.JAVASCRIPT: ("node",),
    Language.TYPESCRIPT: ("npx", "--yes", "tsx"),
}
LANGUAGE_SUFFIXES: dict[Language, str] = {
    Language.PYTHON: ".py",
    Language.BASH: ".sh",
    Language.JAVASCRIPT: ".js",
    Language.TYPESCRIPT: ".ts",
}


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Result from sandboxed command execution."""

    stdout: str
    stderr: str = ""
    exit_code: int = 0
    execution_time_ms: int = 0
    timed_out: bool = False
    oom_killed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
            "executionTime": self.execution_time_ms,
        }


def quote(value: str) -> str:
    """Single-quote *value* for safe embedding in a POSIX shell command line."""
    return shlex.quote(value)


def build_code_command(language: Language | str) -> str:
    """Return a shell command that runs the snippet fed on its stdin.

    The snippet is saved to a hidden script in the working directory so that
    relative imports resolve against the workspace, then removed again. It
    never appears on the command line, which keeps large snippets clear of
    the kernel's per-argument size limit.
    """
    lang = Language(language)
    script = f'"./.ccdev-code-$${LANGUAGE_SUFFIXES[lang]}"'
    return (
        f"cat > {script} || exit 1; "
        f"{shlex.join(LANGUAGE_COMMANDS[lang])} {script} < /dev/null; "
        f"__ccdev_status=$?; rm -f {script}; exit $__ccdev_status"
    )


async def collect_output(
    proc: asyncio.subprocess.Process,
    *,
    timeout_sec: float,
    on_output: OutputCallback | None = None,
    started: float | None = None,
    stdin: bytes | None = None,
) -> ExecutionResult:
    """Feed *stdin* to *proc* and drain stdout/stderr, forwarding chunks as they arrive.

    The process is killed when *timeout_sec* elapses or when the awaiting
    task is cancelled.
    """
    started = started if started is not None else time.monotonic()
    stdout_parts: list[str] = []
    stderr_parts: list[str] = []

    async def pump(stream: asyncio.StreamReader | None, parts: list[str]) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            text = decoder.decode(chunk, final=not chunk)
            if text:
                parts.append(text)
                if on_output is not None:
                    await on_output(text)
            if not chunk:
                return

    async def feed() -> None:
        if proc.stdin is None:
            return
        try:
            if stdin:
                proc.stdin.write(stdin)
                await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # The process exited without reading all of its input; its exit
            # status reports the outcome.
            pass
        finally:
            proc.stdin.close()

    try:
        await asyncio.wait_for(
            asyncio.gather(
                pump(proc.stdout, stdout_parts),
                pump(proc.stderr, stderr_parts),
                feed(),
                proc.wait(),
            ),
            timeout=timeout_sec,
        )
    except TimeoutError:
        _kill(proc)
        await proc.wait()
        return ExecutionResult(
            stdout="".join(stdout_parts),
            stderr="".join(stderr_parts) + f"Command timed out after {timeout_sec:g}s\n",
            exit_code=TIMEOUT_EXIT_CODE,
            execution_time_ms=_elapsed_ms(started),
            timed_out=True,
        )
    except asyncio.CancelledError:
        _kill(proc)
        raise

    exit_code = proc.returncode if proc.returncode is not None else 0
    return ExecutionResult(
        stdout="".join(stdout_parts),
        stderr="".join(stderr_parts),
        exit_code=exit_code,
        execution_time_ms=_elapsed_ms(started),
        # Exit code 137 = killed by signal 9, usually the memory limit
        oom_killed=exit_code == 137,
    )


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class SandboxExecutor(ABC):
    """Abstract base for sandbox executors.

    Subclasses provide :meth:`run_command`; the file operations here are
    implemented as shell snippets on top of it, with every embedded path
    quoted.  Backends with direct filesystem access may override them.
    """

    is_mock = False

    def __init__(self, policy: SandboxPolicy, sandbox_id: str = "default") -> None:
        self._policy = policy
        self._sandbox_id = sandbox_id

    @property
    def policy(self) -> SandboxPolicy:
        return self._policy

    @property
    def sandbox_id(self) -> str:
        return self._sandbox_id

    @property
    def workspace_root(self) -> str:
        return self._policy.workspace_root

    @property
    def mode(self) -> SandboxMode:
        return self._policy.mode

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @abstractmethod
    async def run_command(
        self,
        command: str,
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout_sec: float | None = None,
        on_output: OutputCallback | None = None,
        stdin: bytes | None = None,
    ) -> ExecutionResult:
        """Execute a shell command in the sandbox, optionally feeding *stdin*."""
        ...

    async def run_code(
        self,
        code: str,
        language: Language | str,
        *,
        timeout_sec: float | None = None,
    ) -> ExecutionResult:
        """Run a code snippet with the interpreter for *language*."""
        error = self.validate_command(code)
        if error:
            return ExecutionResult(stdout="", stderr=error + "\n", exit_code=1)
        return await self.run_command(
            build_code_command(language),
            cwd=self.workspace_root,
            timeout_sec=timeout_sec,
            stdin=code.encode("utf-8"),
        )

    def validate_command(self, command: str) -> str | None:
        """Check if a command is allowed. Returns error message or None.

        Normalises whitespace before matching so that extra spaces or tabs
        cannot be used to bypass a blocked pattern like ``rm -rf /``.
        """
        normalised = " ".join(command.split())
        for blocked in self._policy.blocked_commands:
            normalised_blocked = " ".join(blocked.split())
            if normalised_blocked in normalised:
                return f"Command blocked by sandbox policy: contains '{blocked}'"
        return None

    def resolve_path(self, path: str | None, cwd: str | None = None) -> str:
        """Resolve *path* against *cwd* (default: workspace root) without touching the sandbox."""
        base = cwd or self.workspace_root
        if not path:
            return posixpath.normpath(base)
        return posixpath.normpath(posixpath.join(base, path))

    def _timeout(self, timeout_sec: float | None) -> float:
        if timeout_sec is None or timeout_sec <= 0:
            return self._policy.default_timeout_sec
        return timeout_sec

    # ------------------------------------------------------------------
    # File operations (shell-backed)
    # ------------------------------------------------------------------

    async def read_file(self, path: str, *, timeout_sec: float | None = None) -> str:
        target = self.resolve_path(path)
        q = quote(target)
        result = await self._file_command(
            f"[ -f {q} ] || exit {_MISSING_EXIT_CODE}; cat -- {q}", target, timeout_sec,
        )
        return result.stdout

    async def write_file(
        self, path: str, content: str, *, timeout_sec: float | None = None,
    ) -> None:
        target = self.resolve_path(path)
        parent = posixpath.dirname(target) or "/"
        await self._file_command(
            f"mkdir -p -- {quote(parent)} && cat > {quote(target)}",
            target,
            timeout_sec,
            stdin=content.encode("utf-8"),
        )

    async def list_files(
        self, path: str | None = None, *, timeout_sec: float | None = None,
    ) -> list[FileEntry]:
        target = self.resolve_path(path)
        q = quote(target)
        result = await self._file_command(
            f"[ -d {q} ] || exit {_MISSING_EXIT_CODE}; "
            f"find {q} -mindepth 1 -maxdepth 1 -printf '%y\\t%s\\t%f\\n'",
            target,
            timeout_sec,
        )
        entries: list[FileEntry] = []
        for line in result.stdout.splitlines():
            kind, _, rest = line.partition("\t")
            size_text, _, name = rest.partition("\t")
            if not name:
                continue
            is_dir = kind == "d"
            entries.append(FileEntry(
                name=name,
                path=posixpath.join(target, name),
                type="directory" if is_dir else "file",
                size=None if is_dir or not size_text.isdigit() else int(size_text),
            ))
        return sort_entries(entries)

    async def mkdir(
        self, path: str, recursive: bool = True, *, timeout_sec: float | None = None,
    ) -> None:
        target = self.resolve_path(path)
        flag = "-p " if recursive else ""
        await self._file_command(f"mkdir {flag}-- {quote(target)}", target, timeout_sec)

    async def delete_file(self, path: str, *, timeout_sec: float | None = None) -> None:
        target = self.resolve_path(path)
        check_deletable(target, self.workspace_root)
        q = quote(target)
        await self._file_command(
            f"[ -e {q} ] || exit {_MISSING_EXIT_CODE}; rm -rf -- {q}", target, timeout_sec,
        )

    async def _file_command(
        self,
        command: str,
        target: str,
        timeout_sec: float | None,
        *,
        stdin: bytes | None = None,
    ) -> ExecutionResult:
        result = await self.run_command(
            command, cwd=self.workspace_root, timeout_sec=timeout_sec, stdin=stdin,
        )
        if result.timed_out:
            raise SandboxTimeoutError(f"Timed out accessing {target}")
        if result.exit_code == _MISSING_EXIT_CODE:
            raise SandboxFileNotFoundError(f"No such file or directory: {target}")
        if result.exit_code != 0:
            detail = result.stderr.strip() or f"exit code {result.exit_code}"
            raise SandboxError(f"Sandbox operation failed for {target}: {detail}")
        return result

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up sandbox resources."""
        ...


def sort_entries(entries: list[FileEntry]) -> list[FileEntry]:
    """Directories first, then files, each alphabetically."""
    return sorted(entries, key=lambda e: (not e.is_dir, e.name))


def check_deletable(path: str, workspace_root: str | None = None) -> None:
    """Refuse to delete system roots or the sandbox's own workspace root."""
    target = posixpath.normpath(path)
    if target in PROTECTED_PATHS or (workspace_root and target == posixpath.normpath(workspace_root)):
        raise SandboxError(f"Refusing to delete protected directory: {path}")


def create_executor(policy: SandboxPolicy, sandbox_id: str = "default") -> SandboxExecutor:
    """Factory to create the appropriate sandbox executor.

    Falls back to the in-memory mock when no real backend is available.
    """
    if policy.mode == SandboxMode.DOCKER:
        if shutil.which("docker") is None:
            logger.warning("docker not found on PATH; sandbox %s falls back to mock mode", sandbox_id)
            from ccdev.sandbox.mock import MockSandbox
            return MockSandbox(policy, sandbox_id)
        from ccdev.sandbox.docker import DockerSandbox
        return DockerSandbox(policy, sandbox_id)
    elif policy.mode == SandboxMode.PROCESS:
        from ccdev.sandbox.process import ProcessSandbox
        return ProcessSandbox(policy, sandbox_id)
    elif policy.mode == SandboxMode.NONE:
        logger.info("No sandbox backend configured; sandbox %s uses mock mode", sandbox_id)
        from ccdev.sandbox.mock import MockSandbox
        return MockSandbox(policy, sandbox_id)
    else:
        raise ValueError(f"Unknown sandbox mode: {policy.mode}")
