"""DockerSandbox: one long-lived container per sandbox id, driven via the docker CLI."""

from __future__ import annotations

import asyncio
import logging
import re
import time
import uuid
from collections.abc import Mapping

from ccdev.sandbox.executor import (
    ExecutionResult,
    OutputCallback,
    SandboxExecutor,
    collect_output,
)
from ccdev.types.sandbox import SandboxPolicy

logger = logging.getLogger(__name__)

_NAME_UNSAFE = re.compile(r"[^a-zA-Z0-9_.-]")
# Grace period on top of the command timeout for the docker client itself.
_CLIENT_GRACE_SEC = 10.0


class DockerSandbox(SandboxExecutor):
    """Sandbox using a Docker container via the docker CLI (no SDK required).

    The container is started lazily on the first command with the workspace
    root as its working directory and kept alive (``sleep infinity``) so the
    filesystem persists between commands. Each command is a ``docker exec``.
    """

    def __init__(self, policy: SandboxPolicy, sandbox_id: str = "default") -> None:
        super().__init__(policy, sandbox_id)
        safe_id = _NAME_UNSAFE.sub("-", sandbox_id)[:40]
        self._container_name = f"ccdev-sandbox-{safe_id}-{uuid.uuid4().hex[:8]}"
        self._started = False
        self._start_lock = asyncio.Lock()

    @property
    def container_name(self) -> str:
        return self._container_name

    def _build_run_args(self) -> list[str]:
        """Build ``docker run`` arguments for the long-lived container."""
        limits = self._policy.resource_limits
        args = [
            "docker", "run",
            "-d",
            "--rm",
            f"--name={self._container_name}",
            f"--memory={limits.max_memory_mb}m",
            f"--pids-limit={limits.max_processes}",
            "-w", self.workspace_root,
        ]
        if not self._policy.network.allow_network:
            args.append("--network=none")
        args.extend([self._policy.docker_image, "sleep", "infinity"])
        return args

    def _build_exec_args(
        self,
        command: str,
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> list[str]:
        """Build ``docker exec`` arguments for one command."""
        args = ["docker", "exec", "-i", "-w", cwd or self.workspace_root]
        for key, value in (env or {}).items():
            args.extend(["-e", f"{key}={value}"])
        args.extend([self._container_name, "sh", "-c", command])
        return args

    async def _ensure_started(self) -> ExecutionResult | None:
        """Start the container once. Returns a failure result, or None on success."""
        async with self._start_lock:
            if self._started:
                return None
            try:
                proc = await asyncio.create_subprocess_exec(
                    *self._build_run_args(),
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                return ExecutionResult(stdout="", stderr=f"Failed to run docker: {exc}\n", exit_code=127)
            result = await collect_output(proc, timeout_sec=self._policy.default_timeout_sec + _CLIENT_GRACE_SEC)
            if result.exit_code != 0:
                return result
            self._started = True
            logger.info("Started sandbox container %s for %s", self._container_name, self._sandbox_id)
            return None

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

        failure = await self._ensure_started()
        if failure is not None:
            return failure

        started = time.monotonic()
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._build_exec_args(command, cwd=cwd, env=env),
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return ExecutionResult(stdout="", stderr=f"Failed to run docker: {exc}\n", exit_code=127)

        # Killing the docker client on timeout does not stop the process in
        # the container; cleanup() removes the container entirely.
        return await collect_output(
            proc,
            timeout_sec=self._timeout(timeout_sec),
            on_output=on_output,
            started=started,
            stdin=stdin,
        )

    async def cleanup(self) -> None:
        """Kill and remove the container."""
        if not self._started:
            return
        try:
            proc = await asyncio.create_subprocess_exec(
                "docker", "rm", "-f", self._container_name,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await proc.wait()
        except OSError:
            pass
        self._started = False
