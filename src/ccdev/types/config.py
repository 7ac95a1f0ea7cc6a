"""Configuration types for ccdev."""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_MAX_TOOL_ITERATIONS = 10


@dataclass(frozen=True, slots=True)
class AgentConfig:
    """Configuration for the chat agent loop."""

    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    max_tool_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS
    api_key: str | None = None
    system_prompt: str | None = None


@dataclass(frozen=True, slots=True)
class SandboxConfig:
    """Configuration for the sandbox execution gateway."""

    mode: str = "none"
    workspace_root: str = "/workspace"
    blocked_commands: tuple[str, ...] = ()
    max_memory_mb: int = 512
    max_cpu_seconds: int = 30
    network_access: bool = False
    docker_image: str = "python:3.12-slim"
    timeout_sec: float = 30.0


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Configuration for the HTTP/WebSocket server."""

    host: str = "127.0.0.1"
    port: int = 8787
    cors_origins: tuple[str, ...] = ("*",)


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Everything the application needs, merged from TOML and env vars."""

    agent: AgentConfig = field(default_factory=AgentConfig)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "info"
