"""OpenTelemetry-based observability for ccdev."""

from ccdev.observability.metrics import (
    record_provider_latency,
    record_terminal_command,
    record_tokens,
    record_tool_call,
)

__all__ = [
    "record_provider_latency",
    "record_terminal_command",
    "record_tokens",
    "record_tool_call",
]
