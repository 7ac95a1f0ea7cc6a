"""Build SandboxPolicy from config."""

from __future__ import annotations

import logging
from pathlib import Path

from ccdev.types.config import SandboxConfig
from ccdev.types.sandbox import (
    NetworkPolicy,
    ResourceLimits,
    SandboxMode,
    SandboxPolicy,
)

logger = logging.getLogger(__name__)


def build_policy(config: SandboxConfig, cwd: str | None = None) -> SandboxPolicy:
    """Build a SandboxPolicy from a SandboxConfig.

    For the ``process`` mode the workspace root is a host directory, so a
    relative path is resolved against *cwd*. The other modes use it verbatim
    as a path inside the sandbox.
    """
    try:
        mode = SandboxMode(config.mode)
    except ValueError:
        logger.warning("Unknown sandbox mode %r; using mock mode", config.mode)
        mode = SandboxMode.NONE

    workspace_root = config.workspace_root
    if mode == SandboxMode.PROCESS:
        path = Path(workspace_root)
        if not path.is_absolute():
            path = (Path(cwd) if cwd else Path.cwd()) / path
        workspace_root = str(path.resolve())

    return SandboxPolicy(
        mode=mode,
        workspace_root=workspace_root,
        blocked_commands=tuple(config.blocked_commands),
        resource_limits=ResourceLimits(
            max_memory_mb=config.max_memory_mb,
            max_cpu_seconds=config.max_cpu_seconds,
        ),
        network=NetworkPolicy(allow_network=config.network_access),
        docker_image=config.docker_image,
        default_timeout_sec=config.timeout_sec,
    )
