"""TerminalSession: line editing, history and command dispatch for one terminal."""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from enum import Enum
from typing import Any, Protocol

from ccdev.errors import CcdevError, FrameParseError
from ccdev.observability.metrics import record_terminal_command
from ccdev.sandbox.executor import SandboxExecutor, quote
from ccdev.terminal.builtins import (
    HOSTNAME,
    USER,
    ShellContext,
    abbreviate_path,
    command_name,
    fixed_env,
    is_local,
    run_builtin,
    to_crlf,
)
from ccdev.terminal.protocol import (
    InputFrame,
    ResizeFrame,
    error_frame,
    exit_frame,
    output_frame,
    parse_client_frame,
)

logger = logging.getLogger(__name__)

WELCOME = "\x1b[32mConnected to ccdev sandbox\x1b[0m\r\n"
HISTORY_LIMIT = 100
DEFAULT_COLS = 80
DEFAULT_ROWS = 24

ERASE = "\b \b"
INTERRUPT = "^C\r\n"
CLEAR_LINE = "\r\x1b[K"
BUSY_MESSAGE = "A command is already running (press Ctrl-C to interrupt it)"

_UP = ("\x1b[A", "\x1bOA")
_DOWN = ("\x1b[B", "\x1bOB")
# Any other escape sequence (cursor keys, function keys) is ignored.
_ESCAPE = re.compile(r"\x1b(?:\[[0-9;?]*[A-Za-z~]|O[A-Za-z]|.)?", re.DOTALL)


class FrameSink(Protocol):
    """Anything frames can be pushed to (a FastAPI ``WebSocket`` in practice)."""

    async def send_json(self, data: Any) -> None: ...


class SessionState(Enum):
    AWAITING_INPUT = "awaiting_input"
    EXECUTING = "executing"


class TerminalSession:
    """One addressable terminal: shared by every socket attached to it.

    The session outlives its sockets; state (cwd, history, input buffer)
    persists across reconnects. Keystrokes are handled synchronously. A
    command runs as a background task so editing keys, resize and Ctrl-C
    are processed while it streams output. Only one command runs at a time.
    """

    def __init__(
        self,
        session_id: str,
        sandbox: SandboxExecutor,
        *,
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.session_id = session_id
        self._sandbox = sandbox
        self.cols = cols
        self.rows = rows
        self.cwd = sandbox.workspace_root
        self.input_buffer = ""
        self.history: deque[str] = deque(maxlen=history_limit)
        self.history_index = -1
        self._draft = ""
        self.state = SessionState.AWAITING_INPUT
        self._sockets: set[FrameSink] = set()
        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    @property
    def sandbox(self) -> SandboxExecutor:
        return self._sandbox

    @property
    def connections(self) -> int:
        return len(self._sockets)

    # ------------------------------------------------------------------
    # Sockets
    # ------------------------------------------------------------------

    async def attach(self, ws: FrameSink) -> None:
        """Register *ws* and greet it with the banner and a prompt."""
        async with self._lock:
            self._sockets.add(ws)
        logger.debug("Socket attached to terminal %s (%d open)", self.session_id, self.connections)
        await self.send(ws, output_frame(WELCOME + self.prompt() + self.input_buffer))

    async def detach(self, ws: FrameSink) -> None:
        async with self._lock:
            self._sockets.discard(ws)
        logger.debug("Socket detached from terminal %s (%d open)", self.session_id, self.connections)

    async def send(self, ws: FrameSink, frame: dict[str, Any]) -> None:
        """Send one frame to a single socket."""
        async with self._lock:
            if ws in self._sockets:
                await self._deliver(ws, frame)

    async def broadcast(self, frame: dict[str, Any]) -> None:
        """Send one frame to every attached socket, in attach-independent order."""
        async with self._lock:
            for ws in list(self._sockets):
                await self._deliver(ws, frame)

    async def _deliver(self, ws: FrameSink, frame: dict[str, Any]) -> None:
        # Caller holds the lock.
        try:
            await ws.send_json(frame)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Dropping terminal socket after send failure: %s", exc)
            self._sockets.discard(ws)

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    async def handle_frame(self, ws: FrameSink, raw: str | bytes) -> None:
        """Process one raw client frame from *ws*."""
        try:
            frame = parse_client_frame(raw)
        except FrameParseError as exc:
            await self.send(ws, error_frame(str(exc)))
            return
        match frame:
            case InputFrame():
                await self.handle_input(frame.data)
            case ResizeFrame():
                self.resize(frame.cols, frame.rows)

    def resize(self, cols: int, rows: int) -> None:
        """Update the terminal size; never touches a running command."""
        self.cols = cols
        self.rows = rows

    def prompt(self) -> str:
        user_host = f"{USER}@{HOSTNAME}"
        width = max(self.cols // 2 - len(user_host) - 3, 8)
        cwd = abbreviate_path(self.cwd, width)
        return f"\x1b[1;32m{user_host}\x1b[0m:\x1b[1;34m{cwd}\x1b[0m$ "

    # ------------------------------------------------------------------
    # Line editing
    # ------------------------------------------------------------------

    async def handle_input(self, data: str) -> None:
        echo: list[str] = []
        i = 0
        while i < len(data):
            ch = data[i]
            if ch == "\x1b":
                match = _ESCAPE.match(data, i)
                seq = match.group(0) if match else ch
                if seq in _UP:
                    echo.append(self._recall(-1))
                elif seq in _DOWN:
                    echo.append(self._recall(1))
                i += len(seq)
                continue
            if ch in "\r\n":
                # "\r\n" is a single Enter
                i += 2 if data.startswith("\r\n", i) else 1
                await self._flush(echo)
                await self._enter()
                continue
            if ch in ("\x7f", "\b"):
                if self.input_buffer:
                    self.input_buffer = self.input_buffer[:-1]
                    echo.append(ERASE)
            elif ch == "\x03":
                await self._flush(echo)
                await self._interrupt()
            elif ch.isprintable() or ch == "\t":
                self.input_buffer += ch
                echo.append(ch)
            i += 1
        await self._flush(echo)

    async def _flush(self, echo: list[str]) -> None:
        if echo:
            text = "".join(echo)
            echo.clear()
            if text:
                await self.broadcast(output_frame(text))

    def _recall(self, step: int) -> str:
        """Move through history by *step* (-1 older, +1 newer); return the redraw."""
        if not self.history:
            return ""
        if step < 0:
            if self.history_index == -1:
                self._draft = self.input_buffer
                self.history_index = len(self.history) - 1
            elif self.history_index > 0:
                self.history_index -= 1
            self.input_buffer = self.history[self.history_index]
        else:
            if self.history_index == -1:
                return ""
            if self.history_index < len(self.history) - 1:
                self.history_index += 1
                self.input_buffer = self.history[self.history_index]
            else:
                self.history_index = -1
                self.input_buffer = self._draft
        return CLEAR_LINE + self.prompt() + self.input_buffer

    def _remember(self, command: str) -> None:
        if not self.history or self.history[-1] != command:
            self.history.append(command)

    async def _interrupt(self) -> None:
        self.input_buffer = ""
        self.history_index = -1
        if self._task is not None and not self._task.done():
            await self.broadcast(output_frame(INTERRUPT))
            self._task.cancel()
            return
        await self.broadcast(output_frame(INTERRUPT + self.prompt()))

    async def _enter(self) -> None:
        if self.state is SessionState.EXECUTING:
            await self.broadcast(error_frame(BUSY_MESSAGE))
            return
        command = self.input_buffer.strip()
        self.input_buffer = ""
        self.history_index = -1
        self._draft = ""
        if not command:
            await self.broadcast(output_frame("\r\n" + self.prompt()))
            return
        self._remember(command)
        await self.broadcast(output_frame("\r\n"))
        self.state = SessionState.EXECUTING
        self._task = asyncio.create_task(self._execute(command))

    # ------------------------------------------------------------------
    # Command dispatch
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait for the running command, if any, to finish."""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def close(self) -> None:
        """Cancel any running command."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def _execute(self, command: str) -> None:
        try:
            if is_local(command, self._sandbox):
                record_terminal_command(builtin=True)
                await self._run_builtin(command)
            else:
                record_terminal_command(builtin=False)
                await self._run_in_sandbox(command)
        except CcdevError as exc:
            await self.broadcast(error_frame(str(exc)))
        except Exception as exc:
            logger.exception("Terminal %s: command failed: %s", self.session_id, command)
            await self.broadcast(error_frame(f"Internal error: {exc}"))
        finally:
            self.state = SessionState.AWAITING_INPUT
            await self.broadcast(output_frame(self.prompt() + self.input_buffer))

    async def _run_builtin(self, command: str) -> None:
        logger.debug("Terminal %s: builtin %s", self.session_id, command_name(command))
        result = await run_builtin(command, self._context())
        if result.cwd is not None:
            self.cwd = result.cwd
        if result.output:
            await self.broadcast(output_frame(to_crlf(result.output)))
        if result.exit_code != 0:
            await self.broadcast(exit_frame(result.exit_code))

    async def _run_in_sandbox(self, command: str) -> None:
        logger.info("Terminal %s: running in sandbox %s", self.session_id, self._sandbox.sandbox_id)
        streamed = False
        ends_with_newline = True

        async def on_output(chunk: str) -> None:
            nonlocal streamed, ends_with_newline
            streamed = True
            ends_with_newline = chunk.endswith("\n")
            await self.broadcast(output_frame(to_crlf(chunk)))

        changes_dir = command_name(command) == "cd"
        marker = f"/tmp/.ccdev-cwd-{re.sub(r'[^A-Za-z0-9_.-]', '_', self.session_id)}"
        to_run = command
        if changes_dir:
            # Record where the shell ended up on success, keeping the exit status.
            to_run = (
                f"{command}\n__ccdev_status=$?\n"
                f"[ \"$__ccdev_status\" -eq 0 ] && pwd > {quote(marker)}\n"
                f"exit $__ccdev_status"
            )

        ctx = self._context()
        result = await self._sandbox.run_command(
            to_run, cwd=self.cwd, env=fixed_env(ctx), on_output=on_output,
        )

        if not streamed and (result.stdout or result.stderr):
            text = result.stdout + result.stderr
            ends_with_newline = text.endswith("\n")
            await self.broadcast(output_frame(to_crlf(text)))
            streamed = True
        if streamed and not ends_with_newline:
            await self.broadcast(output_frame("\r\n"))

        if result.timed_out:
            await self.broadcast(error_frame(f"Command timed out: {command}"))
        if result.exit_code != 0:
            await self.broadcast(exit_frame(result.exit_code))
        elif changes_dir:
            await self._adopt_cwd(marker)

    async def _adopt_cwd(self, marker: str) -> None:
        try:
            resolved = (await self._sandbox.read_file(marker)).strip()
            await self._sandbox.delete_file(marker)
        except CcdevError as exc:
            logger.warning("Terminal %s: could not re-read cwd: %s", self.session_id, exc)
            return
        if resolved.startswith("/"):
            self.cwd = resolved

    def _context(self) -> ShellContext:
        return ShellContext(cwd=self.cwd, cols=self.cols, rows=self.rows, sandbox=self._sandbox)
