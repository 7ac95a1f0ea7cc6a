"""The core agent loop: orchestrates provider + tools."""

from __future__ import annotations

import inspect
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from ccdev.core.conversation import Conversation
from ccdev.errors import UpstreamModelError
from ccdev.observability.metrics import record_provider_latency, record_tokens
from ccdev.tools.manager import ToolManager
from ccdev.types.config import AgentConfig
from ccdev.types.messages import (
    ErrorEvent,
    Message,
    Result,
    TextMessage,
    ToolResult,
    ToolUse,
)
from ccdev.types.providers import ProviderAdapter, StreamEvent

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are ccdev, a coding assistant working inside a sandboxed development environment.

You can execute code (javascript, typescript, python, bash), read and write files, and list \
directories in the sandbox. Use the tools to check your work instead of guessing.

The workspace root is {workspace_root}. Relative paths are resolved against it.

Be concise in your text responses. Let your tool calls and code do the talking.
"""

YOLO_PROMPT = """\
Auto-approve mode is on: carry out file changes and commands directly without asking for \
confirmation.
"""

CAREFUL_PROMPT = """\
Before a destructive action (deleting or overwriting files, long-running commands), say in \
one sentence what you are about to do.
"""

# Stop reasons that mean the model finished on its own.
NATURAL_STOPS = frozenset({"end_turn", "stop_sequence"})

MAX_ITERATIONS_NOTICE = (
    "\n\nI've reached the limit of {limit} tool iterations for this request. "
    "Send another message to let me continue."
)

CheckpointCallback = Callable[[list[dict[str, Any]]], Awaitable[None] | None]


def build_system_prompt(
    *, workspace_root: str, yolo: bool = False, base: str | None = None,
) -> str:
    prompt = base if base else SYSTEM_PROMPT.format(workspace_root=workspace_root)
    return prompt.rstrip("\n") + "\n\n" + (YOLO_PROMPT if yolo else CAREFUL_PROMPT)


class AgentLoop:
    """The core agent loop.

    Orchestrates: conversation -> model -> tool calls -> model -> ... -> done.

    Each call to :meth:`run` is one bounded sequence of model round-trips.
    Events are yielded in generation order: text deltas as they stream,
    each ``ToolUse`` once its block is complete (before any tool runs), each
    ``ToolResult`` right after the tool returns. Tools of one turn run
    sequentially in call order. The last event is always a ``Result`` or an
    ``ErrorEvent``.
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        tools: ToolManager,
        config: AgentConfig | None = None,
        *,
        yolo: bool = False,
        on_checkpoint: CheckpointCallback | None = None,
    ) -> None:
        self._provider = provider
        self._tools = tools
        self._config = config or AgentConfig()
        self._yolo = yolo
        self._on_checkpoint = on_checkpoint
        self._tool_defs = tools.get_definitions()
        self._system = build_system_prompt(
            workspace_root=tools.sandbox.workspace_root,
            yolo=yolo,
            base=self._config.system_prompt,
        )

    @property
    def system_prompt(self) -> str:
        return self._system

    async def run(self, conversation: Conversation) -> AsyncIterator[Message]:
        """Drive the conversation to completion. Yields Message events."""
        limit = self._config.max_tool_iterations
        iterations = 0
        tool_call_count = 0
        input_tokens = 0
        output_tokens = 0
        stop_reason = "end_turn"

        logger.debug(
            "Agent loop start: model=%s yolo=%s messages=%d",
            self._provider.model_id, self._yolo, len(conversation),
        )

        while iterations < limit:
            iterations += 1

            # -- Requesting / Processing ------------------------------------
            text = ""
            tool_uses: list[ToolUse] = []
            current: dict[str, Any] | None = None
            turn_input = 0
            turn_output = 0
            stop_reason = "end_turn"
            started = time.monotonic()

            try:
                async for event in self._provider.chat_completion_stream(
                    messages=conversation.messages,
                    tools=self._tool_defs,
                    system=self._system,
                    max_tokens=self._config.max_tokens,
                ):
                    event: StreamEvent
                    if event.type == "text_delta" and event.text:
                        text += event.text
                        yield TextMessage(text=event.text)

                    elif event.type == "tool_use_start":
                        current = {
                            "id": event.tool_use_id or "",
                            "name": event.tool_name or "",
                            "args_json": "",
                        }

                    elif event.type == "tool_use_delta" and current is not None:
                        current["args_json"] += event.tool_args_json or ""

                    elif event.type == "tool_use_end" and current is not None:
                        tool_use = ToolUse(
                            id=current["id"],
                            name=current["name"],
                            input=_parse_args(current["args_json"]),
                        )
                        tool_uses.append(tool_use)
                        current = None
                        yield tool_use

                    elif event.type == "message_end":
                        stop_reason = event.stop_reason or "end_turn"
                        if event.usage:
                            turn_input = event.usage.get("input_tokens", 0)
                            turn_output = event.usage.get("output_tokens", 0)
            except UpstreamModelError as exc:
                logger.warning("Agent loop aborted on iteration %d: %s", iterations, exc)
                yield ErrorEvent(message=str(exc), code=exc.error_code)
                return

            record_provider_latency((time.monotonic() - started) * 1000, model=self._provider.model_id)
            record_tokens(turn_input, turn_output, model=self._provider.model_id)
            input_tokens += turn_input
            output_tokens += turn_output

            blocks: list[dict[str, Any]] = []
            if text:
                blocks.append({"type": "text", "text": text})
            for tu in tool_uses:
                blocks.append(self._provider.format_tool_use(tu.id, tu.name, tu.input))
            conversation.add_assistant(blocks)

            logger.debug(
                "Iteration %d: stop_reason=%s tool_calls=%d", iterations, stop_reason, len(tool_uses),
            )

            # -- Done? -------------------------------------------------------
            if not tool_uses or stop_reason in NATURAL_STOPS:
                if tool_uses:
                    # The model stopped naturally but left tool calls behind;
                    # answer them so the stored history stays well-formed.
                    conversation.add_tool_results([
                        self._provider.format_tool_result(
                            tu.id, "Tool call skipped: the turn had already ended.", True,
                        )
                        for tu in tool_uses
                    ])
                await self._checkpoint(conversation)
                yield Result(
                    stop_reason=stop_reason,
                    iterations=iterations,
                    tool_calls=tool_call_count,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                )
                return

            # -- Executing ---------------------------------------------------
            result_blocks: list[dict[str, Any]] = []
            for tu in tool_uses:
                tool_call_count += 1
                logger.debug("Executing tool %s (%s)", tu.name, tu.id)
                result = await self._tools.execute(tu.name, tu.input)
                yield ToolResult(tool_use_id=tu.id, content=result.content, is_error=result.is_error)
                result_blocks.append(
                    self._provider.format_tool_result(tu.id, result.content, result.is_error)
                )
            conversation.add_tool_results(result_blocks)
            await self._checkpoint(conversation)

        logger.info("Agent loop reached the iteration limit (%d)", limit)
        yield TextMessage(text=MAX_ITERATIONS_NOTICE.format(limit=limit))
        yield Result(
            stop_reason="max_iterations",
            iterations=iterations,
            tool_calls=tool_call_count,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

    async def _checkpoint(self, conversation: Conversation) -> None:
        if self._on_checkpoint is None:
            return
        outcome = self._on_checkpoint(conversation.to_serializable())
        if inspect.isawaitable(outcome):
            await outcome


def _parse_args(raw: str) -> dict[str, Any]:
    try:
        args = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        return {}
    return args if isinstance(args, dict) else {}
