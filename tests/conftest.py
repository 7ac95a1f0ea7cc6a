"""Test fixtures including MockProvider for deterministic testing."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from ccdev.errors import UpstreamModelError
from ccdev.providers.base import BaseProvider
from ccdev.sandbox.executor import ExecutionResult, OutputCallback
from ccdev.sandbox.mock import MockSandbox
from ccdev.sandbox.process import ProcessSandbox
from ccdev.types.providers import ChatMessage, StreamEvent
from ccdev.types.sandbox import SandboxMode, SandboxPolicy
from ccdev.types.tools import ToolDef


@dataclass
class MockTurn:
    """A scripted turn for MockProvider.

    Specify either text or tool_uses (or both) for what the model should "respond" with.
    """

    text: str = ""
    tool_uses: list[dict[str, Any]] = field(default_factory=list)
    # Each tool_use: {"id": "tu1", "name": "read_file", "args": {"path": "README.md"}}
    stop_reason: str | None = None


class MockProvider(BaseProvider):
    """A deterministic mock provider for testing.

    Usage:
        provider = MockProvider(turns=[
            MockTurn(tool_uses=[{"id": "tu1", "name": "read_file", "args": {"path": "a.txt"}}]),
            MockTurn(text="The file says hello."),
        ])

    Every request is recorded in ``requests`` as a copy of the messages sent.
    """

    def __init__(self, turns: list[MockTurn], model: str = "mock-model"):
        super().__init__(model)
        self._turns = list(turns)
        self._turn_index = 0
        self.requests: list[list[ChatMessage]] = []
        self.systems: list[str] = []

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        """Yield scripted StreamEvents for the current turn."""
        self.requests.append(list(messages))
        self.systems.append(system)

        if self._turn_index >= len(self._turns):
            # Out of script: just end
            yield StreamEvent(
                type="message_end", stop_reason="end_turn",
                usage={"input_tokens": 10, "output_tokens": 5},
            )
            return

        turn = self._turns[self._turn_index]
        self._turn_index += 1

        if turn.text:
            yield StreamEvent(type="text_delta", text=turn.text)

        for tu in turn.tool_uses:
            yield StreamEvent(
                type="tool_use_start",
                tool_use_id=tu["id"],
                tool_name=tu["name"],
            )
            args_json = json.dumps(tu.get("args", {}))
            # Split the arguments like the real API does
            middle = len(args_json) // 2
            yield StreamEvent(type="tool_use_delta", tool_args_json=args_json[:middle])
            yield StreamEvent(type="tool_use_delta", tool_args_json=args_json[middle:])
            yield StreamEvent(type="tool_use_end")

        stop_reason = turn.stop_reason or ("tool_use" if turn.tool_uses else "end_turn")
        yield StreamEvent(
            type="message_end",
            stop_reason=stop_reason,
            usage={"input_tokens": 100, "output_tokens": 50},
        )

    @property
    def call_count(self) -> int:
        return len(self.requests)


class FailingMockProvider(MockProvider):
    """A mock provider whose request fails after *fail_after* events of the first turn."""

    def __init__(
        self,
        turns: list[MockTurn] | None = None,
        message: str = "Model provider returned HTTP 529: overloaded",
        fail_after: int = 0,
        model: str = "mock-model",
    ):
        super().__init__(turns or [], model=model)
        self._message = message
        self._fail_after = fail_after

    async def chat_completion_stream(
        self,
        messages: list[ChatMessage],
        tools: list[ToolDef],
        system: str,
        max_tokens: int,
    ) -> AsyncIterator[StreamEvent]:
        emitted = 0
        async for event in super().chat_completion_stream(messages, tools, system, max_tokens):
            if emitted >= self._fail_after:
                break
            emitted += 1
            yield event
        raise UpstreamModelError(self._message)


class FakeSocket:
    """Collects frames sent by a terminal session."""

    def __init__(self, fail: bool = False) -> None:
        self.frames: list[dict[str, Any]] = []
        self._fail = fail

    async def send_json(self, data: Any) -> None:
        if self._fail:
            raise RuntimeError("socket closed")
        self.frames.append(data)

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [f for f in self.frames if f["type"] == kind]

    @property
    def output(self) -> str:
        return "".join(f["data"] for f in self.of_type("output"))

    def clear(self) -> None:
        self.frames.clear()


class SlowSandbox(MockSandbox):
    """Mock sandbox whose commands block until ``release`` is set."""

    def __init__(self, policy: SandboxPolicy | None = None, sandbox_id: str = "default") -> None:
        super().__init__(policy or SandboxPolicy(), sandbox_id)
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.cancelled = False
        self.commands: list[str] = []

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
        self.commands.append(command)
        self.started.set()
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if on_output is not None:
            await on_output("done\n")
        return ExecutionResult(stdout="done\n")


@pytest.fixture
def mock_sandbox() -> MockSandbox:
    return MockSandbox(SandboxPolicy())


@pytest.fixture
def process_sandbox(tmp_path: Path) -> ProcessSandbox:
    """A host-process sandbox rooted in a temporary workspace."""
    workspace = tmp_path / "workspace"
    policy = SandboxPolicy(
        mode=SandboxMode.PROCESS,
        workspace_root=str(workspace),
        default_timeout_sec=10.0,
    )
    return ProcessSandbox(policy, "test")


@pytest.fixture
def mock_provider() -> MockProvider:
    """A simple mock provider that responds with text."""
    return MockProvider(turns=[
        MockTurn(text="I can help with that."),
    ])
