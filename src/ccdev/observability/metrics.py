"""Metrics recording: OpenTelemetry counters and histograms.

Without an OpenTelemetry SDK configured the API hands out no-op instruments.
"""

from __future__ import annotations

from typing import Any

from opentelemetry import metrics

# Lazily-created instruments
_meter: Any = None
_token_counter: Any = None
_tool_call_counter: Any = None
_terminal_command_counter: Any = None
_latency_histogram: Any = None


def _ensure_instruments() -> None:
    """Create meter and instruments on first use."""
    global _meter, _token_counter, _tool_call_counter
    global _terminal_command_counter, _latency_histogram

    if _meter is not None:
        return

    _meter = metrics.get_meter("ccdev")
    _token_counter = _meter.create_counter(
        "ccdev.tokens",
        description="Total tokens consumed",
        unit="tokens",
    )
    _tool_call_counter = _meter.create_counter(
        "ccdev.tool_calls",
        description="Total tool calls executed",
    )
    _terminal_command_counter = _meter.create_counter(
        "ccdev.terminal_commands",
        description="Terminal commands dispatched",
    )
    _latency_histogram = _meter.create_histogram(
        "ccdev.provider_latency",
        description="Model round-trip latency",
        unit="ms",
    )


def record_tokens(input_tokens: int = 0, output_tokens: int = 0, *, model: str = "") -> None:
    """Record token usage."""
    _ensure_instruments()
    _token_counter.add(input_tokens, {"direction": "input", "model": model})
    _token_counter.add(output_tokens, {"direction": "output", "model": model})


def record_tool_call(tool_name: str, *, is_error: bool = False) -> None:
    """Record a tool call execution."""
    _ensure_instruments()
    _tool_call_counter.add(1, {"tool": tool_name, "error": str(is_error).lower()})


def record_terminal_command(*, builtin: bool) -> None:
    _ensure_instruments()
    _terminal_command_counter.add(1, {"kind": "builtin" if builtin else "sandbox"})


def record_provider_latency(latency_ms: float, *, model: str = "") -> None:
    """Record model round-trip latency in milliseconds."""
    _ensure_instruments()
    _latency_histogram.record(latency_ms, {"model": model})


def reset_instruments() -> None:
    """Reset module-level instruments for test isolation."""
    global _meter, _token_counter, _tool_call_counter
    global _terminal_command_counter, _latency_histogram
    _meter = None
    _token_counter = None
    _tool_call_counter = None
    _terminal_command_counter = None
    _latency_histogram = None
