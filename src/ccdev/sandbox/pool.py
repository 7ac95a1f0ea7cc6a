"""SandboxPool: one executor per sandbox id, created on demand."""

from __future__ import annotations

import logging

from ccdev.sandbox.executor import SandboxExecutor, create_executor
from ccdev.types.sandbox import SandboxPolicy

logger = logging.getLogger(__name__)

DEFAULT_SANDBOX_ID = "default"


class SandboxPool:
    """Owns the executors for every sandbox id used by chat and terminals.

    Callers sharing an id share the underlying sandbox. Operations on it are
    not serialized here.
    """

    def __init__(self, policy: SandboxPolicy) -> None:
        self._policy = policy
        self._executors: dict[str, SandboxExecutor] = {}

    @property
    def policy(self) -> SandboxPolicy:
        return self._policy

    def get(self, sandbox_id: str | None = None) -> SandboxExecutor:
        key = sandbox_id or DEFAULT_SANDBOX_ID
        executor = self._executors.get(key)
        if executor is None:
            executor = create_executor(self._policy, key)
            self._executors[key] = executor
            logger.debug("Created %s sandbox %s", type(executor).__name__, key)
        return executor

    def __contains__(self, sandbox_id: str) -> bool:
        return sandbox_id in self._executors

    def __len__(self) -> int:
        return len(self._executors)

    async def cleanup_all(self) -> None:
        """Release every executor. Failures are logged, not raised."""
        executors = list(self._executors.values())
        self._executors.clear()
        for executor in executors:
            try:
                await executor.cleanup()
            except Exception:
                logger.exception("Failed to clean up sandbox %s", executor.sandbox_id)
