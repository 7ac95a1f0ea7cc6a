"""Tests for ccdev.terminal: line editing, history, dispatch and fan-out."""

from __future__ import annotations

import asyncio
import json
import uuid
from pathlib import Path

import pytest

from ccdev.sandbox.mock import MOCK_LABEL, MockSandbox
from ccdev.sandbox.pool import SandboxPool
from ccdev.sandbox.process import ProcessSandbox
from ccdev.terminal.builtins import (
    CLEAR_SCREEN,
    HELP_TEXT,
    ShellContext,
    abbreviate_path,
    is_local,
    run_builtin,
    to_crlf,
)
from ccdev.terminal.registry import TerminalRegistry
from ccdev.terminal.session import (
    BUSY_MESSAGE,
    ERASE,
    WELCOME,
    SessionState,
    TerminalSession,
)
from ccdev.types.sandbox import SandboxPolicy
from tests.conftest import FakeSocket, SlowSandbox


async def _open(sandbox=None, session_id: str = "t1", **kwargs) -> tuple[TerminalSession, FakeSocket]:
    session = TerminalSession(session_id, sandbox or MockSandbox(SandboxPolicy()), **kwargs)
    ws = FakeSocket()
    await session.attach(ws)
    ws.clear()
    return session, ws


async def _run(session: TerminalSession, line: str) -> None:
    await session.handle_input(line + "\r")
    await session.wait_idle()


class TestAttach:
    @pytest.mark.asyncio
    async def test_welcome_and_prompt(self):
        session = TerminalSession("t1", MockSandbox(SandboxPolicy()))
        ws = FakeSocket()
        await session.attach(ws)
        assert ws.frames == [{"type": "output", "data": WELCOME + session.prompt()}]
        assert session.connections == 1

    def test_prompt(self):
        session = TerminalSession("t1", MockSandbox(SandboxPolicy()))
        assert session.prompt() == (
            "\x1b[1;32mdeveloper@ccdev-sandbox\x1b[0m:\x1b[1;34m/workspace\x1b[0m$ "
        )

    @pytest.mark.asyncio
    async def test_welcome_only_to_new_socket(self):
        session, first = await _open()
        second = FakeSocket()
        await session.attach(second)
        assert first.frames == []
        assert len(second.frames) == 1

    @pytest.mark.asyncio
    async def test_failed_socket_is_dropped(self):
        session, ws = await _open()
        await session.attach(FakeSocket(fail=True))
        assert session.connections == 1
        await session.handle_input("x")
        assert ws.output == "x"


class TestLineEditing:
    @pytest.mark.asyncio
    async def test_typed_characters_echo(self):
        session, ws = await _open()
        await session.handle_input("l")
        await session.handle_input("s")
        assert ws.output == "ls"
        assert session.input_buffer == "ls"

    @pytest.mark.asyncio
    async def test_ls_keystrokes_run_command(self):
        session, ws = await _open()
        await session.handle_input("l")
        await session.handle_input("s")
        await session.handle_input("\r")
        await session.wait_idle()

        assert session.history[-1] == "ls"
        assert session.input_buffer == ""
        assert session.state is SessionState.AWAITING_INPUT
        out = ws.output
        assert out.startswith("ls\r\n")
        assert "\x1b[1;34msrc\x1b[0m  README.md  package.json  tsconfig.json\r\n" in out
        assert out.endswith(session.prompt())

    @pytest.mark.asyncio
    async def test_backspace_to_empty_adds_no_history(self):
        session, ws = await _open()
        await session.handle_input("a")
        await session.handle_input("\x7f")
        await session.handle_input("\x7f")
        await session.handle_input("\r")
        await session.wait_idle()

        assert list(session.history) == []
        assert ws.frames[1] == {"type": "output", "data": ERASE}
        # The second backspace had nothing to erase
        assert ws.frames[2] == {"type": "output", "data": "\r\n" + session.prompt()}

    @pytest.mark.asyncio
    async def test_crlf_is_one_enter(self):
        session, ws = await _open()
        await session.handle_input("pwd\r\n")
        await session.wait_idle()
        assert ws.of_type("error") == []
        assert list(session.history) == ["pwd"]

    @pytest.mark.asyncio
    async def test_other_escape_sequences_ignored(self):
        session, _ = await _open()
        await session.handle_input("a\x1b[Cb\x1b[D")
        assert session.input_buffer == "ab"

    @pytest.mark.asyncio
    async def test_ctrl_c_clears_line(self):
        session, ws = await _open()
        await session.handle_input("abc\x03")
        assert session.input_buffer == ""
        assert ws.frames[-1] == {"type": "output", "data": "^C\r\n" + session.prompt()}


class TestHistory:
    @pytest.mark.asyncio
    async def test_up_down_round_trip(self):
        session, _ = await _open()
        await _run(session, "ls")
        await _run(session, "pwd")
        await session.handle_input("ec")

        await session.handle_input("\x1b[A")
        assert session.input_buffer == "pwd"
        await session.handle_input("\x1b[B")
        assert session.input_buffer == "ec"

        await session.handle_input("\x1b[A\x1b[A")
        assert session.input_buffer == "ls"
        # Up at the oldest entry stays there
        await session.handle_input("\x1b[A")
        assert session.input_buffer == "ls"
        await session.handle_input("\x1b[B\x1b[B")
        assert session.input_buffer == "ec"
        await session.handle_input("\x1b[B")
        assert session.input_buffer == "ec"
        assert session.history_index == -1

    @pytest.mark.asyncio
    async def test_recall_redraws_line(self):
        session, ws = await _open()
        await _run(session, "whoami")
        ws.clear()
        await session.handle_input("\x1bOA")
        assert ws.output == "\r\x1b[K" + session.prompt() + "whoami"

    @pytest.mark.asyncio
    async def test_up_with_empty_history(self):
        session, ws = await _open()
        await session.handle_input("\x1b[A")
        assert session.input_buffer == ""
        assert ws.frames == []

    @pytest.mark.asyncio
    async def test_dedupe_and_cap(self):
        session, _ = await _open(history_limit=3)
        await _run(session, "pwd")
        await _run(session, "pwd")
        assert list(session.history) == ["pwd"]

        for command in ("whoami", "hostname", "date"):
            await _run(session, command)
        assert list(session.history) == ["whoami", "hostname", "date"]

    @pytest.mark.asyncio
    async def test_recalled_command_runs(self):
        session, ws = await _open()
        await _run(session, "echo again")
        ws.clear()
        await session.handle_input("\x1b[A\r")
        await session.wait_idle()
        assert "again\r\n" in ws.output
        assert list(session.history) == ["echo again"]


class TestCommands:
    @pytest.mark.asyncio
    async def test_sandbox_command_in_mock_mode(self):
        session, ws = await _open()
        await _run(session, "npm test")
        assert f"{MOCK_LABEL} $ npm test\r\n" in ws.output
        assert ws.of_type("exit") == []

    @pytest.mark.asyncio
    async def test_cd_in_mock_mode(self):
        session, ws = await _open()
        await _run(session, "cd src")
        assert session.cwd == "/workspace/src"
        await _run(session, "cat utils.ts")
        assert "export function greet" in ws.output
        await _run(session, "cd ..")
        assert session.cwd == "/workspace"

    @pytest.mark.asyncio
    async def test_cd_missing_directory(self):
        session, ws = await _open()
        await _run(session, "cd nowhere")
        assert session.cwd == "/workspace"
        assert "cd: no such file or directory: nowhere\r\n" in ws.output
        assert ws.of_type("exit") == [{"type": "exit", "exitCode": 1}]

    @pytest.mark.asyncio
    async def test_clear(self):
        session, ws = await _open()
        await _run(session, "clear")
        assert CLEAR_SCREEN in ws.output

    @pytest.mark.asyncio
    async def test_enter_while_executing_is_rejected(self):
        sandbox = SlowSandbox()
        session, ws = await _open(sandbox)
        await session.handle_input("sleep 5\r")
        await sandbox.started.wait()

        await session.handle_input("ls\r")
        assert ws.of_type("error") == [{"type": "error", "data": BUSY_MESSAGE}]
        assert sandbox.commands == ["sleep 5"]

        sandbox.release.set()
        await session.wait_idle()
        assert session.state is SessionState.AWAITING_INPUT
        # The rejected line is still in the buffer
        assert ws.frames[-1]["data"].endswith("ls")

    @pytest.mark.asyncio
    async def test_ctrl_c_interrupts_running_command(self):
        sandbox = SlowSandbox()
        session, ws = await _open(sandbox)
        await session.handle_input("sleep 5\r")
        await sandbox.started.wait()

        await session.handle_input("\x03")
        await session.wait_idle()

        assert sandbox.cancelled
        assert session.state is SessionState.AWAITING_INPUT
        assert "^C\r\n" in ws.output
        assert ws.output.endswith(session.prompt())

    @pytest.mark.asyncio
    async def test_resize_mid_command(self):
        sandbox = SlowSandbox()
        session, ws = await _open(sandbox)
        await session.handle_input("build\r")
        await sandbox.started.wait()

        await session.handle_frame(ws, json.dumps({"type": "resize", "cols": 132, "rows": 50}))
        assert (session.cols, session.rows) == (132, 50)
        assert session.state is SessionState.EXECUTING

        sandbox.release.set()
        await session.wait_idle()
        assert not sandbox.cancelled
        assert "done\r\n" in ws.output


class TestProcessSandboxTerminal:
    @pytest.mark.asyncio
    async def test_cd_tracks_sandbox_directory(self, process_sandbox: ProcessSandbox):
        await process_sandbox.mkdir("sub")
        session, ws = await _open(process_sandbox, session_id=f"proc-cd-{uuid.uuid4().hex[:8]}")

        await _run(session, "cd sub")

        expected = Path(process_sandbox.workspace_root) / "sub"
        assert Path(session.cwd).resolve() == expected.resolve()
        assert ws.of_type("exit") == []
        assert not Path(f"/tmp/.ccdev-cwd-{session.session_id}").exists()

    @pytest.mark.asyncio
    async def test_failed_cd_keeps_directory(self, process_sandbox: ProcessSandbox):
        session, ws = await _open(process_sandbox, session_id=f"proc-cd-fail-{uuid.uuid4().hex[:8]}")
        await _run(session, "cd does-not-exist")
        assert session.cwd == process_sandbox.workspace_root
        assert ws.of_type("exit")[0]["exitCode"] != 0
        # No directory marker is left behind
        assert not Path(f"/tmp/.ccdev-cwd-{session.session_id}").exists()

    @pytest.mark.asyncio
    async def test_output_is_crlf_terminated(self, process_sandbox: ProcessSandbox):
        session, ws = await _open(process_sandbox, session_id="proc-out")
        await _run(session, "printf 'a\\nb'")
        assert "a\r\nb\r\n" in ws.output

    @pytest.mark.asyncio
    async def test_exit_code_frame(self, process_sandbox: ProcessSandbox):
        session, ws = await _open(process_sandbox, session_id="proc-exit")
        await _run(session, "exit 3")
        assert ws.of_type("exit") == [{"type": "exit", "exitCode": 3}]


class TestFanOut:
    @pytest.mark.asyncio
    async def test_output_reaches_every_socket(self):
        session, first = await _open()
        second = FakeSocket()
        await session.attach(second)
        second.clear()

        await _run(session, "whoami")
        assert first.frames == second.frames
        assert "developer\r\n" in first.output

    @pytest.mark.asyncio
    async def test_parse_error_only_to_sender(self):
        session, first = await _open()
        second = FakeSocket()
        await session.attach(second)
        second.clear()

        await session.handle_frame(first, "not json")
        assert first.of_type("error")[0]["data"].startswith("Parse error:")
        assert second.frames == []

        await session.handle_frame(first, json.dumps({"type": "paste", "data": "x"}))
        assert first.of_type("error")[-1] == {"type": "error", "data": "Unknown message type"}

    @pytest.mark.asyncio
    async def test_input_frame(self):
        session, ws = await _open()
        await session.handle_frame(ws, b'{"type": "input", "data": "hi"}')
        assert session.input_buffer == "hi"

    @pytest.mark.asyncio
    async def test_state_persists_across_reconnect(self):
        session, first = await _open()
        await _run(session, "cd src")
        await session.handle_input("ca")
        await session.detach(first)
        assert session.connections == 0

        second = FakeSocket()
        await session.attach(second)
        assert second.output == WELCOME + session.prompt() + "ca"
        assert "/workspace/src" in session.prompt()
        assert list(session.history) == ["cd src"]


class TestBuiltins:
    def _ctx(self, sandbox=None) -> ShellContext:
        return ShellContext(cwd="/workspace", cols=80, rows=24, sandbox=sandbox or MockSandbox(SandboxPolicy()))

    @pytest.mark.asyncio
    async def test_echo(self):
        assert (await run_builtin("echo hello   world", self._ctx())).output == "hello world\n"
        assert (await run_builtin("echo -n 'a b'", self._ctx())).output == "a b"

    @pytest.mark.asyncio
    async def test_env(self):
        output = (await run_builtin("env", self._ctx())).output
        assert "HOME=/workspace\n" in output
        assert "USER=developer\n" in output
        assert "COLUMNS=80\n" in output

    @pytest.mark.asyncio
    async def test_misc(self):
        ctx = self._ctx()
        assert (await run_builtin("whoami", ctx)).output == "developer\n"
        assert (await run_builtin("hostname", ctx)).output == "ccdev-sandbox\n"
        assert (await run_builtin("uname", ctx)).output == "Linux\n"
        assert (await run_builtin("uname -a", ctx)).output.startswith("Linux ccdev-sandbox ")
        assert (await run_builtin("help", ctx)).output == HELP_TEXT
        assert (await run_builtin("pwd", ctx)).output == "/workspace\n"
        assert "UTC" in (await run_builtin("date", ctx)).output

    @pytest.mark.asyncio
    async def test_cd_variants(self):
        ctx = self._ctx()
        assert (await run_builtin("cd", ctx)).cwd == "/workspace"
        assert (await run_builtin("cd ~/src", ctx)).cwd == "/workspace/src"
        assert (await run_builtin("cd /tmp", ctx)).cwd == "/tmp"
        too_many = await run_builtin("cd a b", ctx)
        assert too_many.exit_code == 1
        assert too_many.cwd is None

    @pytest.mark.asyncio
    async def test_ls_and_cat_errors(self):
        ctx = self._ctx()
        missing = await run_builtin("ls nope", ctx)
        assert missing.exit_code == 2
        assert "cannot access 'nope'" in missing.output
        assert (await run_builtin("cat", ctx)).exit_code == 1
        assert (await run_builtin("cat ghost.txt", ctx)).output == "cat: ghost.txt: No such file or directory\n"

    @pytest.mark.asyncio
    async def test_ls_hidden_files(self):
        sandbox = MockSandbox(SandboxPolicy())
        await sandbox.write_file(".env", "X=1")
        ctx = self._ctx(sandbox)
        assert ".env" not in (await run_builtin("ls", ctx)).output
        assert ".env" in (await run_builtin("ls -a", ctx)).output

    @pytest.mark.asyncio
    async def test_syntax_error(self):
        result = await run_builtin("echo 'unterminated", self._ctx())
        assert result.exit_code == 2
        assert result.output.startswith("sh: syntax error:")

    def test_is_local(self, process_sandbox: ProcessSandbox):
        mock = MockSandbox(SandboxPolicy())
        assert is_local("ls -la", mock)
        assert not is_local("ls -la", process_sandbox)
        assert is_local("pwd", process_sandbox)
        assert not is_local("python3 app.py", mock)

    def test_abbreviate_path(self):
        assert abbreviate_path("/workspace", 14) == "/workspace"
        assert abbreviate_path("/workspace/src/components/deep/very", 14) == "…/deep/very"

    def test_to_crlf(self):
        assert to_crlf("a\nb\r\nc") == "a\r\nb\r\nc"


class TestRegistry:
    @pytest.mark.asyncio
    async def test_get_or_create(self):
        registry = TerminalRegistry(SandboxPool(SandboxPolicy()))
        first = await registry.get_or_create("abc")
        assert await registry.get_or_create("abc") is first
        assert registry.get("abc") is first
        assert registry.get("missing") is None
        assert "abc" in registry
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_sessions_share_sandbox_by_id(self):
        registry = TerminalRegistry(SandboxPool(SandboxPolicy()))
        a = await registry.get_or_create("a")
        b = await registry.get_or_create("b")
        c = await registry.get_or_create("c", "other")
        assert a.sandbox is b.sandbox
        assert c.sandbox is not a.sandbox

    @pytest.mark.asyncio
    async def test_concurrent_create_yields_one_session(self):
        registry = TerminalRegistry(SandboxPool(SandboxPolicy()))
        sessions = await asyncio.gather(*(registry.get_or_create("same") for _ in range(5)))
        assert all(s is sessions[0] for s in sessions)

    @pytest.mark.asyncio
    async def test_remove_and_close_all(self):
        registry = TerminalRegistry(SandboxPool(SandboxPolicy()))
        await registry.get_or_create("a")
        await registry.get_or_create("b")
        await registry.remove("a")
        assert "a" not in registry
        await registry.close_all()
        assert len(registry) == 0
