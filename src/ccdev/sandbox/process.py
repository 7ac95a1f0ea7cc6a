"""ProcessSandbox: local subprocess execution with setrlimit."""

from __future__ import annotations

import asyncio
import os
import shutil
import sys
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TypeVar

from ccdev.errors import SandboxError, SandboxFileNotFoundError, SandboxTimeoutError
from ccdev.sandbox.executor import (
    ExecutionResult,
    OutputCallback,
    SandboxExecutor,
    check_deletable,
    collect_output,
    sort_entries,
)
from ccdev.types.sandbox import FileEntry, SandboxPolicy

T = TypeVar("T")


class ProcessSandbox(SandboxExecutor):
    """Sandbox using host subprocesses with resource limits via setrlimit.

    Works on macOS and Linux. Uses RLIMIT_AS for memory, RLIMIT_CPU for CPU time,
    RLIMIT_NPROC for process count. The workspace root is a host directory,
    created on first use; file operations go straight to the filesystem.
    """

    def __init__(self, policy: SandboxPolicy, sandbox_id: str = "default") -> None:
        super().__init__(policy, sandbox_id)
        Path(policy.workspace_root).mkdir(parents=True, exist_ok=True)

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
        error = self.validate_command(command)
        if error:
            return ExecutionResult(stdout="", stderr=error + "\n", exit_code=1)

        # Build environment: strip sensitive vars
        proc_env = {k: v for k, v in os.environ.items() if k not in self._policy.strip_env}
        if env:
            proc_env.update(env)

        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                "/bin/sh", "-c", command,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd or self.workspace_root,
                env=proc_env,
                preexec_fn=self._preexec if sys.platform != "win32" else None,
            )
        except OSError as exc:
            return ExecutionResult(
                stdout="", stderr=f"Failed to start process: {exc}\n", exit_code=127,
            )

        return await collect_output(
            proc,
            timeout_sec=self._timeout(timeout_sec),
            on_output=on_output,
            started=started,
            stdin=stdin,
        )

    def _preexec(self) -> None:
        """Set resource limits in the child process (Unix only)."""
        import resource

        limits = self._policy.resource_limits

        mem_bytes = limits.max_memory_mb * 1024 * 1024
        for which, value in (
            (resource.RLIMIT_AS, mem_bytes),
            (resource.RLIMIT_CPU, limits.max_cpu_seconds),
            (resource.RLIMIT_NPROC, limits.max_processes),
        ):
            try:
                resource.setrlimit(which, (value, value))
            except (ValueError, OSError):
                pass

    # ------------------------------------------------------------------
    # File operations (direct filesystem access)
    # ------------------------------------------------------------------

    async def read_file(self, path: str, *, timeout_sec: float | None = None) -> str:
        target = Path(self.resolve_path(path))

        def _read() -> str:
            if not target.is_file():
                raise SandboxFileNotFoundError(f"No such file or directory: {target}")
            return target.read_bytes().decode("utf-8", errors="replace")

        return await self._fs(_read, target, timeout_sec)

    async def write_file(
        self, path: str, content: str, *, timeout_sec: float | None = None,
    ) -> None:
        target = Path(self.resolve_path(path))

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content.encode("utf-8"))

        await self._fs(_write, target, timeout_sec)

    async def list_files(
        self, path: str | None = None, *, timeout_sec: float | None = None,
    ) -> list[FileEntry]:
        target = Path(self.resolve_path(path))

        def _list() -> list[FileEntry]:
            if not target.is_dir():
                raise SandboxFileNotFoundError(f"No such file or directory: {target}")
            entries = []
            for child in target.iterdir():
                is_dir = child.is_dir()
                entries.append(FileEntry(
                    name=child.name,
                    path=str(child),
                    type="directory" if is_dir else "file",
                    size=None if is_dir else child.stat().st_size,
                ))
            return sort_entries(entries)

        return await self._fs(_list, target, timeout_sec)

    async def mkdir(
        self, path: str, recursive: bool = True, *, timeout_sec: float | None = None,
    ) -> None:
        target = Path(self.resolve_path(path))
        await self._fs(lambda: target.mkdir(parents=recursive, exist_ok=recursive), target, timeout_sec)

    async def delete_file(self, path: str, *, timeout_sec: float | None = None) -> None:
        target = Path(self.resolve_path(path))
        check_deletable(str(target), self.workspace_root)

        def _delete() -> None:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
            else:
                raise SandboxFileNotFoundError(f"No such file or directory: {target}")

        await self._fs(_delete, target, timeout_sec)

    async def _fs(self, fn: Callable[[], T], target: Path, timeout_sec: float | None) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self._timeout(timeout_sec))
        except TimeoutError as exc:
            raise SandboxTimeoutError(f"Timed out accessing {target}") from exc
        except SandboxError:
            raise
        except OSError as exc:
            raise SandboxError(f"Sandbox operation failed for {target}: {exc}") from exc

    async def cleanup(self) -> None:
        """No cleanup needed for process sandbox."""
        pass
