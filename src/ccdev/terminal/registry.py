"""TerminalRegistry: addressable terminal sessions keyed by session id."""

from __future__ import annotations

import asyncio
import logging

from ccdev.sandbox.pool import SandboxPool
from ccdev.terminal.session import TerminalSession

logger = logging.getLogger(__name__)


class TerminalRegistry:
    """Creates sessions lazily on first use and keeps them across reconnects.

    Sessions are dropped only by :meth:`remove` or :meth:`close_all`.
    """

    def __init__(self, sandboxes: SandboxPool) -> None:
        self._sandboxes = sandboxes
        self._sessions: dict[str, TerminalSession] = {}
        self._lock = asyncio.Lock()

    async def get_or_create(self, session_id: str, sandbox_id: str | None = None) -> TerminalSession:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = TerminalSession(session_id, self._sandboxes.get(sandbox_id))
                self._sessions[session_id] = session
                logger.info(
                    "Created terminal session %s on sandbox %s",
                    session_id, session.sandbox.sandbox_id,
                )
            return session

    def get(self, session_id: str) -> TerminalSession | None:
        return self._sessions.get(session_id)

    async def remove(self, session_id: str) -> None:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            await session.close()

    async def close_all(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.close()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
