"""Sandbox execution types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_WORKSPACE_ROOT = "/workspace"


class SandboxMode(Enum):
    """Sandbox execution mode. NONE selects the in-memory mock."""

    NONE = "none"
    PROCESS = "process"
    DOCKER = "docker"


@dataclass(frozen=True, slots=True)
class ResourceLimits:
    """Resource limits for sandboxed execution."""

    max_memory_mb: int = 512
    max_cpu_seconds: int = 30
    max_processes: int = 64


@dataclass(frozen=True, slots=True)
class NetworkPolicy:
    """Network access policy for sandboxed execution."""

    allow_network: bool = False


@dataclass(frozen=True, slots=True)
class SandboxPolicy:
    """Complete sandbox policy combining all restrictions."""

    mode: SandboxMode = SandboxMode.NONE
    workspace_root: str = DEFAULT_WORKSPACE_ROOT
    blocked_commands: tuple[str, ...] = ()
    resource_limits: ResourceLimits = field(default_factory=ResourceLimits)
    network: NetworkPolicy = field(default_factory=NetworkPolicy)
    docker_image: str = "python:3.12-slim"
    default_timeout_sec: float = 30.0
    strip_env: tuple[str, ...] = (
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "AWS_SECRET_ACCESS_KEY",
        "GITHUB_TOKEN",
    )


@dataclass(frozen=True, slots=True)
class FileEntry:
    """One entry of a directory listing."""

    name: str
    path: str
    type: str  # "file" or "directory"
    size: int | None = None

    @property
    def is_dir(self) -> bool:
        return self.type == "directory"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "path": self.path, "type": self.type}
        if self.size is not None:
            data["size"] = self.size
        return data
